"""The preview manager: provider registry and resolution.

``PreviewManager`` answers which providers exist, whether a MIME type is
supported and whether a preview is available for a concrete file. Actual
rendering is forwarded to a generator built lazily, once, around this
same manager.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING, Any, Protocol

from .capabilities import EnvironmentCapabilities, SystemCapabilities
from .config import PreviewConfig
from .providers.base import PreviewProvider
from .registry.bootstrap import Coordinator, ExternalRegistrar, ProviderResolver
from .registry.cache import SupportCache
from .registry.core import CoreRegistrar
from .registry.table import PatternTable, ProviderFactory

if TYPE_CHECKING:
    from .files import FileInfo
    from .generator import RenderedPreview

logger = logging.getLogger(__name__)

MODE_FILL = "fill"
MODE_COVER = "cover"


class Generator(Protocol):
    def get_preview(
        self,
        file: FileInfo,
        width: int = -1,
        height: int = -1,
        crop: bool = False,
        mode: str = MODE_FILL,
        mime_type: str | None = None,
    ) -> RenderedPreview: ...

    def generate_previews(
        self,
        file: FileInfo,
        specifications: list[dict[str, Any]],
        mime_type: str | None = None,
    ) -> RenderedPreview: ...


GeneratorFactory = Callable[["PreviewManager"], Generator]


def _default_generator(manager: PreviewManager) -> Generator:
    from .generator import PreviewGenerator

    return PreviewGenerator(manager)


class PreviewManager:
    """Registry of preview providers.

    Args:
        config: Read-only configuration source.
        capabilities: Capability facts; defaults to probing the machine.
        coordinator: Bootstrap coordinator holding contributed providers.
        resolver: Resolves contributed provider identifiers.
        generator_factory: Builds the generator; called at most once.
    """

    def __init__(
        self,
        config: PreviewConfig | None = None,
        capabilities: SystemCapabilities | None = None,
        coordinator: Coordinator | None = None,
        resolver: ProviderResolver | None = None,
        generator_factory: GeneratorFactory | None = None,
    ):
        self.config = config if config is not None else PreviewConfig()
        if capabilities is None:
            capabilities = EnvironmentCapabilities(
                allow_command_execution=self.config.allow_command_execution
            )
        self.capabilities = capabilities
        self.coordinator = coordinator if coordinator is not None else Coordinator(self.config)
        self.resolver = resolver if resolver is not None else ProviderResolver()

        self._table = PatternTable()
        self._support = SupportCache()
        self._core = CoreRegistrar(self.config, self.capabilities)
        self._external = ExternalRegistrar(self.coordinator, self.resolver)
        self._generator_factory = generator_factory or _default_generator
        self._generator: Generator | None = None

    @property
    def support_cache(self) -> SupportCache:
        return self._support

    def _previews_enabled(self) -> bool:
        return bool(self.config.get_system_value("enable_previews", True))

    def register_provider(
        self, mime_type_regex: str, factory: ProviderFactory | Callable[[], Any]
    ) -> None:
        """Register a deferred provider factory for a MIME-type pattern.

        Plain callables are wrapped in a ``ProviderFactory``. Does nothing
        when previews are disabled.
        """
        if not self._previews_enabled():
            return
        if not isinstance(factory, ProviderFactory):
            factory = ProviderFactory(
                identifier=getattr(factory, "__qualname__", repr(factory)), build=factory
            )
        self._table.register(mime_type_regex, factory)

    def get_providers(self) -> dict[str, list[ProviderFactory]]:
        """All patterns with their factories, most specific pattern first."""
        if not self._previews_enabled():
            return {}

        self._core.register(self.register_provider)
        self._external.register(self.register_provider)
        return self._table.all_sorted()

    def has_providers(self) -> bool:
        """Whether any provider is registered.

        Only the built-in providers are registered here; contributed ones
        are picked up by the other queries.
        """
        self._core.register(self.register_provider)
        return len(self._table) > 0

    def is_mime_supported(self, mime_type: str = "*") -> bool:
        """Whether any registered pattern matches ``mime_type``.

        Answers are cached per MIME type for the life of the manager.
        """
        if not self._previews_enabled():
            return False

        if mime_type in self._support:
            return self._support.is_supported(mime_type, ())

        patterns = self.get_providers()
        return self._support.is_supported(mime_type, patterns)

    def is_available(self, file: FileInfo) -> bool:
        """Whether some provider reports it can preview ``file``.

        Candidates are tried most specific pattern first, and in
        registration order within a pattern. Providers without an
        availability probe and factories that fail are skipped.
        """
        if not self._previews_enabled():
            return False

        self._core.register(self.register_provider)
        if not self.is_mime_supported(file.mime_type):
            return False

        mount = file.mount
        if mount is not None and not mount.get_option("previews", True):
            return False

        for provider in self.iter_providers(file.mime_type):
            probe = provider.availability()
            if probe is None:
                continue
            if probe(file):
                return True
        return False

    def iter_providers(self, mime_type: str):
        """Materialize the providers whose pattern matches ``mime_type``.

        Yields provider instances in resolution order; factories that fail
        or yield nothing are skipped.
        """
        self.get_providers()
        for pattern, factories in self._table.matching(mime_type):
            for factory in factories:
                provider = factory.materialize()
                if provider is None:
                    continue
                if not isinstance(provider, PreviewProvider):
                    logger.debug(
                        "Factory %s under %r returned %r, not a provider",
                        factory.identifier,
                        pattern,
                        type(provider).__name__,
                    )
                    continue
                yield provider

    def _get_generator(self) -> Generator:
        if self._generator is None:
            self._generator = self._generator_factory(self)
        return self._generator

    def get_preview(
        self,
        file: FileInfo,
        width: int = -1,
        height: int = -1,
        crop: bool = False,
        mode: str = MODE_FILL,
        mime_type: str | None = None,
    ) -> RenderedPreview:
        """Return a preview of ``file``.

        Raises:
            NotFoundError: If no provider can render the file.
            InvalidArgumentError: If the requested preview would be invalid.
        """
        return self._get_generator().get_preview(file, width, height, crop, mode, mime_type)

    def generate_previews(
        self,
        file: FileInfo,
        specifications: list[dict[str, Any]],
        mime_type: str | None = None,
    ) -> RenderedPreview:
        """Render each specification, returning the last preview generated.

        Raises:
            NotFoundError: If no provider can render the file.
            InvalidArgumentError: If a specification is invalid.
        """
        return self._get_generator().generate_previews(file, specifications, mime_type)
