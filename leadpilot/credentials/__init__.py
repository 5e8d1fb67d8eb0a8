"""Provider credentials: encrypted settings storage and the resolved-policy cache."""

from .cache import PolicyCache, ProviderPolicy
from .crypto import SecretCipher
from .store import ProviderSettingsStore

__all__ = [
    "PolicyCache",
    "ProviderPolicy",
    "ProviderSettingsStore",
    "SecretCipher",
]
