"""People-data provider access: resilient client, endpoint wrappers, profile normalization."""

from .api import RocketReachAPI
from .client import ProviderClient, compute_backoff
from .normalize import NormalizedLead, normalize_lead

__all__ = [
    "NormalizedLead",
    "ProviderClient",
    "RocketReachAPI",
    "compute_backoff",
    "normalize_lead",
]
