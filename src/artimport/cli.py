import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Annotated, Any, Optional

import typer

from . import __version__
from .cancellation import cancellation_scope
from .config.settings import Config, ConfigurationError
from .config_loader import (
    apply_run_config,
    load_input_document,
    load_mapping_script,
    load_optional_run_config,
    plugin_options,
)
from .domain.enums import PluginType
from .domain.models import ReportSummary
from .pipeline.dedupe import DuplicateDetector
from .pipeline.registry import PluginRegistry
from .pipeline.report import ReportTracker
from .pipeline.runner import DataPipeline
from .plugins import build_registry
from .utils import setup_logging

app = typer.Typer(help="Public art mass import: Import -> Map -> Dedupe -> Export")

logger = logging.getLogger(__name__)

EXIT_OK = 0
EXIT_RECORD_FAILURES = 1
EXIT_CONFIGURATION_ERROR = 2


@dataclass
class RunSetup:
    """Everything resolved before the first record is processed."""
    settings: Config
    registry: PluginRegistry
    importer: Any
    exporter: Any
    rules: Optional[list]
    raw_records: Optional[list]


def prepare_run(
    importer_name: str,
    exporter_name: str,
    input_file: Optional[Path] = None,
    mapping: Optional[Path] = None,
    config_file: Optional[Path] = None,
    output: Optional[Path] = None,
    dedupe_threshold: Optional[float] = None,
    concurrency: Optional[int] = None,
    auto_approve: bool = False,
) -> RunSetup:
    """
    Resolve settings, plugins, mapping rules and input records.

    Settings are layered environment -> YAML run config -> CLI flags.

    Raises:
        ConfigurationError: For anything that must stop the run before it starts
    """
    settings = Config()
    run_config = load_optional_run_config(config_file)
    apply_run_config(settings, run_config)
    settings.apply_overrides("dedupe", {"threshold": dedupe_threshold})
    settings.apply_overrides("run", {"concurrency": concurrency})

    registry = build_registry()
    importer = registry.get_importer(importer_name)
    exporter = registry.get_exporter(exporter_name)

    importer.configure(plugin_options(run_config, "importers", importer_name))

    rules = load_mapping_script(mapping) if mapping else None
    raw_records = importer.read_records(load_input_document(input_file)) if input_file else None

    api_defaults = {
        **settings.get_api_settings(),
        'photo_cache_dir': settings.run.photo_cache_dir,
    }
    exporter_options = {
        key: value for key, value in api_defaults.items() if key in exporter.option_names
    }
    exporter_options.update(plugin_options(run_config, "exporters", exporter_name))
    if output is not None:
        if "output_path" in exporter.option_names:
            exporter_options["output_path"] = str(output)
        else:
            logger.warning(f"--output is ignored by exporter '{exporter_name}'")
    if auto_approve:
        if "auto_approve" in exporter.option_names:
            exporter_options["auto_approve"] = True
        else:
            logger.warning(f"--auto-approve is ignored by exporter '{exporter_name}'")
    # Must stay last: configure() may open connections
    exporter.configure(exporter_options)

    return RunSetup(
        settings=settings,
        registry=registry,
        importer=importer,
        exporter=exporter,
        rules=rules,
        raw_records=raw_records,
    )


@app.command("import")
def import_command(
    importer: Annotated[str, typer.Option("--importer", help="Importer plugin name (see list-plugins)")],
    exporter: Annotated[str, typer.Option("--exporter", help="Exporter plugin name (see list-plugins)")],
    input_file: Annotated[Path, typer.Option("--input", "-i", help="Input JSON / GeoJSON file")],
    mapping: Annotated[Optional[Path], typer.Option("--mapping", "-m", help="Mapping script (JSON array of rules); importer defaults when omitted")] = None,
    offset: Annotated[int, typer.Option("--offset", min=0, help="Skip this many input records")] = 0,
    limit: Annotated[Optional[int], typer.Option("--limit", "-l", min=0, help="Process at most this many records")] = None,
    dedupe_threshold: Annotated[Optional[float], typer.Option("--dedupe-threshold", min=0.0, max=1.0, help="Duplicate score threshold (inclusive)")] = None,
    auto_approve: Annotated[bool, typer.Option("--auto-approve", help="Ask the destination to skip moderation")] = False,
    concurrency: Annotated[Optional[int], typer.Option("--concurrency", "-c", min=1, help="Worker threads")] = None,
    report: Annotated[Optional[Path], typer.Option("--report", help="Report path (default reports/<timestamp>-<importer>-<exporter>.json)")] = None,
    config: Annotated[Optional[Path], typer.Option("--config", help="YAML run config")] = None,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output file for file exporters")] = None,
    no_dedupe: Annotated[bool, typer.Option("--no-dedupe", help="Skip the duplicate check")] = False,
    dry_run: Annotated[bool, typer.Option("--dry-run", help="Check duplicates against the destination but create nothing")] = False,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable detailed logging output")] = False,
    log_to_file: Annotated[bool, typer.Option("--log-to-file", help="Create timestamped log files")] = False,
):
    """
    Import records from a source file into a destination.

    Exit codes: 0 every record created or skipped as duplicate, 1 one or more
    records failed, 2 configuration error (nothing processed, no report).

    Examples:
        artimport import --importer vancouver-public-art --exporter api --input public-art.json
        artimport import --importer osm-artwork --exporter json --input art.geojson -o out.json
        artimport import --importer vancouver-public-art --exporter api --input public-art.json --dry-run
    """
    log_file = setup_logging(verbose, importer, exporter, log_to_file)
    if log_file:
        typer.echo(f"Logging to: {log_file}")

    try:
        setup = prepare_run(
            importer_name=importer,
            exporter_name=exporter,
            input_file=input_file,
            mapping=mapping,
            config_file=config,
            output=output,
            dedupe_threshold=dedupe_threshold,
            concurrency=concurrency,
            auto_approve=auto_approve,
        )
    except ConfigurationError as e:
        typer.echo(f"ERROR: {e}", err=True)
        typer.echo(ReportSummary().one_line())
        raise typer.Exit(EXIT_CONFIGURATION_ERROR)

    settings = setup.settings
    lookup = None if no_dedupe else setup.exporter.nearby_lookup()
    if lookup is None and not no_dedupe:
        logger.info(f"Exporter '{exporter}' has no destination to check; duplicate check disabled")

    tracker = ReportTracker(Path(settings.run.reports_dir))
    parameters = {
        'mapping': str(mapping) if mapping else None,
        'offset': offset,
        'limit': limit,
        'dedupe_enabled': lookup is not None,
        'dedupe_threshold': settings.dedupe.threshold,
        'location_epsilon_m': settings.dedupe.location_epsilon_m,
        'search_radius_m': settings.dedupe.search_radius_m,
        'auto_approve': auto_approve,
        'dry_run': dry_run,
        'concurrency': settings.run.concurrency,
    }

    with cancellation_scope() as cancel_event:
        pipeline = DataPipeline(
            importer=setup.importer,
            exporter=setup.exporter,
            detector=DuplicateDetector(settings.dedupe),
            tracker=tracker,
            lookup=lookup,
            rules=setup.rules,
            concurrency=settings.run.concurrency,
            cancel_event=cancel_event,
            dry_run=dry_run,
        )
        result = pipeline.run(
            setup.raw_records,
            offset=offset,
            limit=limit,
            input_file=str(input_file),
            parameters=parameters,
        )

    report_path = tracker.write(result, report)
    typer.echo(f"Report: {report_path}")
    if dry_run:
        typer.echo("Dry run: created counts are records that would have been exported")
    typer.echo(result.summary.one_line())
    raise typer.Exit(EXIT_RECORD_FAILURES if result.has_failures else EXIT_OK)


@app.command("list-plugins")
def list_plugins():
    """List the registered importers and exporters."""
    registry = build_registry()
    for plugin_type, heading in ((PluginType.IMPORTER, "Importers"), (PluginType.EXPORTER, "Exporters")):
        typer.echo(heading)
        typer.echo("=" * 50)
        for name in registry.names(plugin_type):
            typer.echo(f"  {name:<24} {registry.get(name).description}")
        typer.echo("")


@app.command("plugin-info")
def plugin_info(
    name: Annotated[str, typer.Argument(help="Plugin name")],
):
    """
    Show details for one plugin.

    Importers print their default mapping rules, which can be saved and
    edited as a starting point for --mapping.
    """
    registry = build_registry()
    try:
        plugin = registry.get(name)
    except ConfigurationError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(EXIT_CONFIGURATION_ERROR)

    plugin_type = registry.plugin_type(name)
    typer.echo(f"Name:        {name}")
    typer.echo(f"Type:        {plugin_type.value}")
    typer.echo(f"Description: {plugin.description}")

    if plugin_type == PluginType.IMPORTER:
        rules = [rule.model_dump(by_alias=True, exclude_none=True) for rule in plugin.default_rules()]
        typer.echo("Default mapping rules:")
        typer.echo(json.dumps(rules, indent=2))
    else:
        typer.echo(f"Options:     {', '.join(plugin.option_names) or '(none)'}")


@app.command("validate-config")
def validate_config(
    importer: Annotated[str, typer.Option("--importer", help="Importer plugin name")],
    exporter: Annotated[str, typer.Option("--exporter", help="Exporter plugin name")],
    input_file: Annotated[Optional[Path], typer.Option("--input", "-i", help="Also validate every record of this input file")] = None,
    mapping: Annotated[Optional[Path], typer.Option("--mapping", "-m", help="Mapping script to check")] = None,
    config: Annotated[Optional[Path], typer.Option("--config", help="YAML run config")] = None,
    output: Annotated[Optional[Path], typer.Option("--output", "-o", help="Output file for file exporters")] = None,
    verbose: Annotated[bool, typer.Option("--verbose", "-v", help="Enable detailed logging output")] = False,
):
    """Check settings, plugins, mapping script and optionally input records without importing."""
    setup_logging(verbose)
    try:
        setup = prepare_run(
            importer_name=importer,
            exporter_name=exporter,
            input_file=input_file,
            mapping=mapping,
            config_file=config,
            output=output,
        )
    except ConfigurationError as e:
        typer.echo(f"ERROR: {e}", err=True)
        raise typer.Exit(EXIT_CONFIGURATION_ERROR)

    for key, value in setup.settings.get_summary().items():
        typer.echo(f"  {key}: {value}")

    if setup.rules is not None:
        typer.echo(f"Mapping script: {len(setup.rules)} rules OK")

    exit_code = EXIT_OK
    if setup.raw_records is not None:
        invalid = 0
        for index, raw in enumerate(setup.raw_records):
            result = setup.importer.validate_data(raw)
            if not result.valid:
                invalid += 1
                typer.echo(f"  record {index}: {'; '.join(result.errors)}")
        typer.echo(f"Input: {len(setup.raw_records) - invalid} of {len(setup.raw_records)} records valid")
        if invalid:
            exit_code = EXIT_RECORD_FAILURES

    typer.echo("Configuration OK")
    raise typer.Exit(exit_code)


@app.command("version")
def version():
    """Display version information."""
    typer.echo(f"artimport version: {__version__}")


if __name__ == "__main__":
    app()
