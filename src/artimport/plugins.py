"""
Static plugin catalogue.

Every importer and exporter the CLI knows about is listed here; there is no
directory scanning. Each call builds fresh instances so runs never share
plugin state.
"""

from .exporters import ApiExporter, ConsoleExporter, JsonFileExporter
from .importers import OSMArtworkImporter, VancouverPublicArtImporter
from .pipeline.registry import PluginRegistry

BUILTIN_PLUGINS = (
    VancouverPublicArtImporter,
    OSMArtworkImporter,
    ApiExporter,
    JsonFileExporter,
    ConsoleExporter,
)


def build_registry() -> PluginRegistry:
    """Registry populated with the built-in importers and exporters."""
    registry = PluginRegistry()
    for plugin_class in BUILTIN_PLUGINS:
        plugin = plugin_class()
        registry.register(plugin.name, plugin)
    return registry
