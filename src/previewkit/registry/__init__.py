"""Provider registry internals: pattern table, caches and registrars."""

from .bootstrap import (
    Coordinator,
    ExternalRegistrar,
    ProviderRegistration,
    ProviderResolver,
    RegistrationContext,
)
from .cache import SupportCache
from .core import CoreRegistrar, enabled_providers
from .table import PatternTable, ProviderFactory

__all__ = [
    "PatternTable",
    "ProviderFactory",
    "SupportCache",
    "CoreRegistrar",
    "enabled_providers",
    "Coordinator",
    "ExternalRegistrar",
    "ProviderRegistration",
    "ProviderResolver",
    "RegistrationContext",
]
