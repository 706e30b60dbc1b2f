"""
Exporter plugins.

- api: platform mass-import REST endpoint
- json: local JSON / JSON-lines file
- console: stdout preview
"""

from .api import ApiExporter
from .base import BaseExporter
from .console import ConsoleExporter
from .json_file import JsonFileExporter

__all__ = ["BaseExporter", "ApiExporter", "JsonFileExporter", "ConsoleExporter"]
