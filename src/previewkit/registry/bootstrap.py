"""Providers contributed from outside previewkit.

Contributions come from installed packages (entry points in the
``previewkit.providers`` group) and from the ``providers:`` section of the
config file. They are collected into a ``RegistrationContext`` during
bootstrap; until bootstrap has run there is no context and the registry
simply sees no extra providers.

An entry point must load a callable taking the ``RegistrationContext``::

    def register(context):
        context.register_preview_provider("mypkg.previews:Custom", r"application/x-custom")
"""

from __future__ import annotations

import importlib
import importlib.metadata
import logging
from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, Any

from ..errors import ResolutionError
from .table import ProviderFactory

if TYPE_CHECKING:
    from ..config import PreviewConfig

logger = logging.getLogger(__name__)

ENTRY_POINT_GROUP = "previewkit.providers"


@dataclass(frozen=True)
class ProviderRegistration:
    """A provider contributed for a MIME-type pattern."""

    mime_type_regex: str
    provider: str


class RegistrationContext:
    """Collects provider contributions during bootstrap."""

    def __init__(self):
        self._preview_providers: list[ProviderRegistration] = []

    def register_preview_provider(self, provider: str, mime_type_regex: str) -> None:
        self._preview_providers.append(ProviderRegistration(mime_type_regex, provider))

    def get_preview_providers(self) -> list[ProviderRegistration]:
        return list(self._preview_providers)


class Coordinator:
    """Owns the registration context and the bootstrap sequence.

    Args:
        config: Configuration whose ``providers`` entries are contributed.
        entry_point_group: Entry point group to scan; None disables the scan.
    """

    def __init__(
        self,
        config: PreviewConfig | None = None,
        entry_point_group: str | None = ENTRY_POINT_GROUP,
    ):
        self.config = config
        self.entry_point_group = entry_point_group
        self._context: RegistrationContext | None = None

    def get_registration_context(self) -> RegistrationContext | None:
        """The populated context, or None before ``run_registration()``."""
        return self._context

    def run_registration(self) -> RegistrationContext:
        """Collect contributions from entry points and configuration.

        Broken entry points are logged and skipped. Runs once; later calls
        return the existing context.
        """
        if self._context is not None:
            return self._context

        context = RegistrationContext()

        if self.entry_point_group is not None:
            for entry_point in importlib.metadata.entry_points(group=self.entry_point_group):
                try:
                    register = entry_point.load()
                    register(context)
                except Exception:
                    logger.warning(
                        "Failed to load preview provider entry point %s",
                        entry_point.name,
                        exc_info=True,
                    )

        if self.config is not None:
            for entry in self.config.providers:
                context.register_preview_provider(entry.provider, entry.mime_type_regex)

        self._context = context
        return context


class ProviderResolver:
    """Resolves provider identifiers to shared instances.

    Identifiers registered with ``register()`` use their factory; anything
    else is treated as an import path (``package.module:Name`` or
    ``package.module.Name``) and instantiated without arguments. Instances
    are cached per identifier.
    """

    def __init__(self):
        self._factories: dict[str, Callable[[], Any]] = {}
        self._instances: dict[str, Any] = {}

    def register(self, identifier: str, factory: Callable[[], Any]) -> None:
        self._factories[identifier] = factory
        self._instances.pop(identifier, None)

    def resolve(self, identifier: str) -> Any:
        """Return the instance for ``identifier``.

        Raises:
            ResolutionError: If it cannot be imported or constructed.
        """
        if identifier in self._instances:
            return self._instances[identifier]

        factory = self._factories.get(identifier) or _import_object(identifier)
        try:
            instance = factory() if callable(factory) else factory
        except Exception as e:
            raise ResolutionError(f"Cannot construct {identifier}: {e}") from e

        self._instances[identifier] = instance
        return instance


def _import_object(identifier: str) -> Any:
    if ":" in identifier:
        module_name, _, attr_path = identifier.partition(":")
    else:
        module_name, _, attr_path = identifier.rpartition(".")
    if not module_name or not attr_path:
        raise ResolutionError(f"Invalid provider identifier: {identifier!r}")

    try:
        obj = importlib.import_module(module_name)
        for attr in attr_path.split("."):
            obj = getattr(obj, attr)
    except (ImportError, AttributeError) as e:
        raise ResolutionError(f"Cannot import {identifier}: {e}") from e
    return obj


class ExternalRegistrar:
    """Registers contributed providers into a manager.

    Called on every query. Each (pattern, provider) pair is registered at
    most once per registrar, so repeated queries do not stack duplicate
    factories under a pattern.
    """

    def __init__(self, coordinator: Coordinator, resolver: ProviderResolver):
        self.coordinator = coordinator
        self.resolver = resolver
        self._seen: set[tuple[str, str]] = set()

    def register(self, register_provider: Callable[[str, ProviderFactory], None]) -> None:
        context = self.coordinator.get_registration_context()
        if context is None:
            return

        for registration in context.get_preview_providers():
            key = (registration.mime_type_regex, registration.provider)
            if key in self._seen:
                continue
            self._seen.add(key)
            register_provider(
                registration.mime_type_regex, self._factory(registration.provider)
            )

    def _factory(self, identifier: str) -> ProviderFactory:
        def build():
            try:
                return self.resolver.resolve(identifier)
            except ResolutionError as e:
                logger.debug("Provider %s unavailable: %s", identifier, e)
                return None

        return ProviderFactory(identifier=identifier, build=build)
