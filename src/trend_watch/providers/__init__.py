from .base import FetchError, TrendProvider, get_provider, list_providers, parse_timeline_payload
from .google import GoogleTrendsProvider
from .recorded import RecordedProvider
from .synthetic import SyntheticProvider

__all__ = [
    "FetchError",
    "TrendProvider",
    "GoogleTrendsProvider",
    "RecordedProvider",
    "SyntheticProvider",
    "get_provider",
    "list_providers",
    "parse_timeline_payload",
]
