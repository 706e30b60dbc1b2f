"""
PluginRegistry - Explicit Importer/Exporter Catalogue

Holds a fixed name -> instance mapping. Plugins are checked against their
contract when registered, so a broken or missing plugin surfaces as a
ConfigurationError at startup rather than halfway through a run.
"""

import logging
from typing import Any, Optional

from ..domain.enums import PluginType
from ..domain.errors import DuplicatePluginError, InvalidPluginError, PluginNotFoundError

logger = logging.getLogger(__name__)

IMPORTER_METHODS = ("read_records", "validate_data", "map_data", "generate_import_id")
EXPORTER_METHODS = ("configure", "validate", "export")

_CONTRACTS = {
    PluginType.IMPORTER: ("Importer", IMPORTER_METHODS),
    PluginType.EXPORTER: ("Exporter", EXPORTER_METHODS),
}


def _plugin_name(plugin: Any) -> str:
    return getattr(plugin, "name", None) or type(plugin).__name__


class PluginRegistry:
    """Name-keyed catalogue of importer and exporter instances."""

    def __init__(self):
        self._plugins: dict[str, Any] = {}
        self._types: dict[str, PluginType] = {}

    def register(self, name: str, plugin: Any) -> None:
        """
        Validate and register a plugin under ``name``.

        Raises:
            DuplicatePluginError: If the name is already taken
            InvalidPluginError: If the plugin does not satisfy its contract
        """
        if name in self._plugins:
            raise DuplicatePluginError(name)
        plugin_type = self.validate(plugin)
        self._plugins[name] = plugin
        self._types[name] = plugin_type
        logger.debug(f"Registered {plugin_type.value} '{name}'")

    def validate(self, plugin: Any) -> PluginType:
        """
        Check that a plugin structurally implements its contract.

        The contract comes from ``plugin.plugin_type`` when declared,
        otherwise from whichever contract the plugin is closest to.

        Returns:
            The plugin's type

        Raises:
            InvalidPluginError: Naming the first missing method
        """
        declared = getattr(plugin, "plugin_type", None)
        if declared is not None:
            try:
                plugin_type = PluginType(declared)
            except ValueError:
                raise InvalidPluginError(_plugin_name(plugin), "plugin_type", "Plugin")
        else:
            plugin_type = max(
                _CONTRACTS,
                key=lambda t: sum(callable(getattr(plugin, m, None)) for m in _CONTRACTS[t][1]),
            )

        contract, methods = _CONTRACTS[plugin_type]
        for method in methods:
            if not callable(getattr(plugin, method, None)):
                raise InvalidPluginError(_plugin_name(plugin), method, contract)
        return plugin_type

    def get(self, name: str) -> Any:
        """
        Look up a plugin of any type.

        Raises:
            PluginNotFoundError: Listing every registered name
        """
        if name not in self._plugins:
            raise PluginNotFoundError(name, list(self._plugins))
        return self._plugins[name]

    def get_importer(self, name: str) -> Any:
        """Look up an importer; the error lists importer names only."""
        return self._get_typed(name, PluginType.IMPORTER)

    def get_exporter(self, name: str) -> Any:
        """Look up an exporter; the error lists exporter names only."""
        return self._get_typed(name, PluginType.EXPORTER)

    def _get_typed(self, name: str, plugin_type: PluginType) -> Any:
        if self._types.get(name) != plugin_type:
            raise PluginNotFoundError(name, self.names(plugin_type), kind=plugin_type.value)
        return self._plugins[name]

    def names(self, plugin_type: Optional[PluginType] = None) -> list[str]:
        """Registered names, optionally restricted to one plugin type."""
        return sorted(
            name for name, kind in self._types.items()
            if plugin_type is None or kind == plugin_type
        )

    def plugin_type(self, name: str) -> PluginType:
        self.get(name)
        return self._types[name]

    def describe(self) -> list[dict[str, str]]:
        """Name, type and description of every plugin, for listings."""
        return [
            {
                'name': name,
                'type': self._types[name].value,
                'description': getattr(self._plugins[name], 'description', ''),
            }
            for name in self.names()
        ]

    def __contains__(self, name: str) -> bool:
        return name in self._plugins

    def __len__(self) -> int:
        return len(self._plugins)
