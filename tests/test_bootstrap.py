"""Tests for previewkit.registry.bootstrap."""

import pytest

from previewkit.config import PreviewConfig, ProviderEntry
from previewkit.errors import ResolutionError
from previewkit.registry.bootstrap import (
    Coordinator,
    ExternalRegistrar,
    ProviderRegistration,
    ProviderResolver,
    RegistrationContext,
)
from sample_plugins import CustomProvider


class FakeEntryPoint:
    def __init__(self, name, target):
        self.name = name
        self._target = target

    def load(self):
        if isinstance(self._target, Exception):
            raise self._target
        return self._target


@pytest.fixture
def fake_entry_points(monkeypatch):
    """Replace the entry point lookup with a fixed list."""
    points = []

    def entry_points(group):
        assert group == "previewkit.providers"
        return list(points)

    monkeypatch.setattr("importlib.metadata.entry_points", entry_points)
    return points


class TestCoordinator:
    def test_no_context_before_registration(self):
        assert Coordinator(entry_point_group=None).get_registration_context() is None

    def test_collects_config_providers(self):
        config = PreviewConfig(
            providers=[ProviderEntry("application/x-custom", "sample_plugins:CustomProvider")]
        )
        coordinator = Coordinator(config, entry_point_group=None)
        context = coordinator.run_registration()

        assert coordinator.get_registration_context() is context
        assert context.get_preview_providers() == [
            ProviderRegistration("application/x-custom", "sample_plugins:CustomProvider")
        ]

    def test_collects_entry_points(self, fake_entry_points):
        import sample_plugins

        fake_entry_points.append(FakeEntryPoint("sample", sample_plugins.register))
        context = Coordinator().run_registration()

        assert [r.provider for r in context.get_preview_providers()] == [
            "sample_plugins:CustomProvider"
        ]

    def test_broken_entry_point_is_skipped(self, fake_entry_points, caplog):
        import sample_plugins

        fake_entry_points.append(FakeEntryPoint("broken", ImportError("no module")))
        fake_entry_points.append(FakeEntryPoint("sample", sample_plugins.register))
        context = Coordinator().run_registration()

        assert len(context.get_preview_providers()) == 1
        assert "broken" in caplog.text

    def test_runs_once(self):
        coordinator = Coordinator(entry_point_group=None)
        assert coordinator.run_registration() is coordinator.run_registration()


class TestProviderResolver:
    def test_resolves_import_path(self):
        provider = ProviderResolver().resolve("sample_plugins:CustomProvider")
        assert isinstance(provider, CustomProvider)

    def test_resolves_dotted_path(self):
        provider = ProviderResolver().resolve("sample_plugins.CustomProvider")
        assert isinstance(provider, CustomProvider)

    def test_instances_are_shared(self):
        resolver = ProviderResolver()
        assert resolver.resolve("sample_plugins:CustomProvider") is resolver.resolve(
            "sample_plugins:CustomProvider"
        )

    def test_explicit_registration(self):
        resolver = ProviderResolver()
        instance = CustomProvider()
        resolver.register("custom", lambda: instance)
        assert resolver.resolve("custom") is instance

    @pytest.mark.parametrize(
        "identifier",
        ["no_such_module:Thing", "sample_plugins:Missing", "nodots", "sample_plugins:BrokenProvider"],
    )
    def test_failures_raise_resolution_error(self, identifier):
        with pytest.raises(ResolutionError):
            ProviderResolver().resolve(identifier)


class TestExternalRegistrar:
    def _registrar(self, registrations, resolver=None):
        coordinator = Coordinator(entry_point_group=None)
        context = coordinator.run_registration()
        for provider, pattern in registrations:
            context.register_preview_provider(provider, pattern)
        return ExternalRegistrar(coordinator, resolver or ProviderResolver())

    def test_noop_without_context(self):
        registered = []
        registrar = ExternalRegistrar(Coordinator(entry_point_group=None), ProviderResolver())
        registrar.register(lambda p, f: registered.append(p))
        assert registered == []

    def test_registers_one_factory_per_contribution(self):
        registered = []
        registrar = self._registrar([("sample_plugins:CustomProvider", "application/x-custom")])
        registrar.register(lambda p, f: registered.append((p, f)))

        (pattern, factory), = registered
        assert pattern == "application/x-custom"
        assert isinstance(factory.materialize(), CustomProvider)

    def test_repeated_queries_do_not_duplicate(self):
        registered = []
        registrar = self._registrar([("sample_plugins:CustomProvider", "application/x-custom")])
        registrar.register(lambda p, f: registered.append(p))
        registrar.register(lambda p, f: registered.append(p))
        assert registered == ["application/x-custom"]

    def test_same_provider_under_two_patterns(self):
        registered = []
        registrar = self._registrar(
            [
                ("sample_plugins:CustomProvider", "application/x-custom"),
                ("sample_plugins:CustomProvider", "application/x-other"),
            ]
        )
        registrar.register(lambda p, f: registered.append(p))
        assert registered == ["application/x-custom", "application/x-other"]

    def test_unresolvable_provider_yields_none(self):
        registered = []
        registrar = self._registrar([("sample_plugins:BrokenProvider", "application/x-broken")])
        registrar.register(lambda p, f: registered.append(f))
        assert registered[0].materialize() is None


class TestRegistrationContext:
    def test_returns_copy(self):
        context = RegistrationContext()
        context.register_preview_provider("a:B", "x/y")
        context.get_preview_providers().clear()
        assert len(context.get_preview_providers()) == 1
