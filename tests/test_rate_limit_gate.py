from trend_watch.watcher.rate_limit import MinIntervalGate


class FakeClock:
    def __init__(self, t=1000.0):
        self.t = t
        self.sleeps = []

    def __call__(self):
        return self.t

    def sleep(self, seconds):
        self.sleeps.append(seconds)
        self.t += seconds


def test_first_call_never_waits():
    clock = FakeClock()
    gate = MinIntervalGate(30, clock=clock, sleep_fn=clock.sleep)
    assert gate.wait() == 0.0
    assert clock.sleeps == []


def test_back_to_back_calls_are_spaced():
    clock = FakeClock()
    gate = MinIntervalGate(30, clock=clock, sleep_fn=clock.sleep)
    gate.wait()
    clock.t += 10
    assert gate.wait() == 20
    assert clock.sleeps == [20]
    # The next call is measured from the end of the previous wait.
    assert gate.wait() == 30


def test_no_wait_when_spacing_already_elapsed():
    clock = FakeClock()
    gate = MinIntervalGate(30, clock=clock, sleep_fn=clock.sleep)
    gate.wait()
    clock.t += 45
    assert gate.wait() == 0.0
    assert clock.sleeps == []


def test_zero_spacing_disables_gate():
    clock = FakeClock()
    gate = MinIntervalGate(0, clock=clock, sleep_fn=clock.sleep)
    for _ in range(3):
        assert gate.wait() == 0.0
    assert clock.sleeps == []
