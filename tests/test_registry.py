"""
Unit tests for the plugin registry and the built-in catalogue.
"""

import pytest

from artimport.config.settings import ConfigurationError
from artimport.domain.enums import PluginType
from artimport.domain.errors import DuplicatePluginError, InvalidPluginError, PluginNotFoundError
from artimport.pipeline.registry import PluginRegistry
from artimport.plugins import build_registry

from .conftest import InMemoryDestination


class HalfImporter:
    """Importer missing generate_import_id."""
    plugin_type = "importer"
    name = "half"

    def read_records(self, document):
        return []

    def validate_data(self, raw):
        pass

    def map_data(self, raw, rules=None):
        pass


class UndeclaredExporter:
    """Exporter without a plugin_type attribute."""
    name = "undeclared"

    def configure(self, options=None):
        pass

    def validate(self, config=None):
        pass


class TestRegistry:

    def test_register_and_get(self):
        """Registered plugins are returned by name."""
        registry = PluginRegistry()
        plugin = InMemoryDestination()
        registry.register("memory", plugin)

        assert registry.get("memory") is plugin
        assert registry.get_exporter("memory") is plugin
        assert "memory" in registry
        assert len(registry) == 1

    def test_duplicate_name(self):
        """Registering a name twice fails."""
        registry = PluginRegistry()
        registry.register("memory", InMemoryDestination())
        with pytest.raises(DuplicatePluginError):
            registry.register("memory", InMemoryDestination())

    def test_not_found_lists_names(self):
        """The error names every registered plugin."""
        registry = PluginRegistry()
        registry.register("memory", InMemoryDestination())
        with pytest.raises(PluginNotFoundError) as exc_info:
            registry.get("nope")

        assert exc_info.value.available == ["memory"]
        assert "memory" in str(exc_info.value)

    def test_plugin_errors_are_configuration_errors(self):
        """Plugin errors abort a run like any configuration error."""
        assert issubclass(PluginNotFoundError, ConfigurationError)
        assert issubclass(DuplicatePluginError, ConfigurationError)
        assert issubclass(InvalidPluginError, ConfigurationError)

    def test_missing_method_is_named(self):
        """Validation reports the first missing contract method."""
        with pytest.raises(InvalidPluginError) as exc_info:
            PluginRegistry().register("half", HalfImporter())
        assert exc_info.value.missing_method == "generate_import_id"

    def test_contract_inferred_without_plugin_type(self):
        """Plugins without plugin_type are checked against the closest contract."""
        with pytest.raises(InvalidPluginError) as exc_info:
            PluginRegistry().validate(UndeclaredExporter())
        assert exc_info.value.missing_method == "export"
        assert exc_info.value.contract == "Exporter"

    def test_typed_lookup(self):
        """An exporter name is not accepted where an importer is expected."""
        registry = build_registry()
        with pytest.raises(PluginNotFoundError) as exc_info:
            registry.get_importer("json")
        assert "vancouver-public-art" in exc_info.value.available
        assert "json" not in exc_info.value.available


class TestBuiltins:

    def test_catalogue(self):
        """All built-in plugins are registered with their types."""
        registry = build_registry()
        assert registry.names(PluginType.IMPORTER) == ["osm-artwork", "vancouver-public-art"]
        assert registry.names(PluginType.EXPORTER) == ["api", "console", "json"]

    def test_fresh_instances_per_registry(self):
        """Each registry gets its own plugin instances."""
        assert build_registry().get("json") is not build_registry().get("json")

    def test_describe(self):
        """describe() lists name, type and description."""
        entries = {entry["name"]: entry for entry in build_registry().describe()}
        assert entries["api"]["type"] == "exporter"
        assert entries["osm-artwork"]["description"]
