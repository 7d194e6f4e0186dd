import pytest

from trend_watch.watcher.policy import compose_message, compose_title, percent_change


@pytest.mark.parametrize(
    "previous,latest,expected",
    [
        (50, 75, 50.0),
        (100, 50, -50.0),
        (0, 10, 100.0),
        (None, 10, 100.0),
        (0, 0, 0.0),
        (None, 0, 0.0),
        (40, 40, 0.0),
    ],
)
def test_percent_change(previous, latest, expected):
    assert percent_change(previous, latest) == pytest.approx(expected)


def test_significant_rise_message():
    msg = compose_message(6.2)
    assert "up" in msg
    assert "6.2%" in msg


def test_significant_drop_message_uses_magnitude():
    msg = compose_message(-50.0)
    assert "down" in msg
    assert "50.0%" in msg
    assert "-50.0%" not in msg


def test_threshold_is_inclusive():
    assert "up" in compose_message(5.0)
    assert "down" in compose_message(-5.0)
    assert "no significant change" in compose_message(4.99).lower()


def test_small_change_keeps_sign():
    msg = compose_message(-3.0)
    assert "no significant change" in msg.lower()
    assert "-3.0%" in msg


def test_zero_change_is_not_significant():
    assert compose_message(0.0) == "No significant change in interest (0.0%)"


def test_title():
    assert compose_title("ai agents") == "Trend Alert: ai agents"
