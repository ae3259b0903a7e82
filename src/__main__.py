"""Main entry point for DataSage."""

import argparse
import asyncio
import json
import sys
from pathlib import Path

import yaml

from src import __version__
from src.config.settings import Settings
from src.utils.logging import configure_logging

EXIT_OK = 0
EXIT_FAILED = 1
EXIT_INVALID = 2


def _load_job(path: Path) -> object:
    """Load a job document; .yaml/.yml files are parsed as YAML, others as JSON."""
    text = path.read_text(encoding="utf-8")
    if path.suffix.lower() in (".yaml", ".yml"):
        return yaml.safe_load(text)
    return json.loads(text)


def _emit(text: str, output: Path | None) -> None:
    if output is None:
        print(text)
        return
    output.parent.mkdir(parents=True, exist_ok=True)
    output.write_text(text, encoding="utf-8")
    print(f"Wrote: {output}")


def _print_issues(errors) -> None:
    print("Configuration validation failed:", file=sys.stderr)
    for issue in errors:
        print(f"  - {issue.field}: {issue.message}", file=sys.stderr)


def create_parser() -> argparse.ArgumentParser:
    """Create the argument parser for the CLI."""
    parser = argparse.ArgumentParser(
        prog="datasage",
        description="DataSage: declarative browser automation and data extraction",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python -m src run job.json
  python -m src run job.yaml --format csv --output prices.csv
  python -m src validate job.json
  python -m src serve --port 3001
        """,
    )

    parser.add_argument(
        "--version",
        action="version",
        version=f"%(prog)s {__version__}",
    )

    parser.add_argument(
        "--log-level",
        choices=["DEBUG", "INFO", "WARNING", "ERROR"],
        default=None,
        help="Set the log level (overrides settings)",
    )

    subparsers = parser.add_subparsers(
        dest="mode",
        title="commands",
        description="Available commands",
    )

    run_parser = subparsers.add_parser(
        "run",
        help="Run an automation job file (JSON or YAML)",
    )
    run_parser.add_argument("job_file", type=Path, help="Path to the job file")
    run_parser.add_argument(
        "--format",
        choices=["json", "csv", "xml"],
        default=None,
        help="Output format (overrides the job's outputFormat)",
    )
    run_parser.add_argument(
        "--output",
        type=Path,
        default=None,
        help="Write the result to this file instead of stdout",
    )
    run_parser.add_argument(
        "--headed",
        action="store_true",
        help="Show the browser window (overrides execution.headless)",
    )

    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate a job file without launching a browser",
    )
    validate_parser.add_argument("job_file", type=Path, help="Path to the job file")

    subparsers.add_parser(
        "status",
        help="Print supported extraction types, security checks and formats",
    )

    serve_parser = subparsers.add_parser(
        "serve",
        help="Start the HTTP API",
    )
    serve_parser.add_argument("--host", default=None, help="Bind address (overrides settings)")
    serve_parser.add_argument("--port", type=int, default=None, help="Port (overrides settings)")

    return parser


def main(args: list[str] | None = None) -> int:
    """Main entry point for the application.

    Args:
        args: Command line arguments (defaults to sys.argv[1:]).

    Returns:
        Exit code (0 success, 1 job failure, 2 invalid job).
    """
    parser = create_parser()
    parsed = parser.parse_args(args)

    # Load settings
    try:
        settings = Settings()
    except Exception as e:
        print(f"Error loading settings: {e}", file=sys.stderr)
        return EXIT_FAILED

    # Configure logging
    log_level = parsed.log_level or settings.log_level
    logger = configure_logging(level=log_level)

    # If no mode specified, show help
    if parsed.mode is None:
        parser.print_help()
        return EXIT_OK

    from src.automation.service import AutomationService

    if parsed.mode == "status":
        print(json.dumps(AutomationService.status(), indent=2))
        return EXIT_OK

    if parsed.mode == "serve":
        import uvicorn

        from src.api import create_app

        host = parsed.host or settings.host
        port = parsed.port or settings.port
        logger.info(f"DataSage v{__version__} serving on http://{host}:{port}")
        uvicorn.run(
            create_app(AutomationService(settings=settings)),
            host=host,
            port=port,
            log_level=log_level.lower(),
        )
        return EXIT_OK

    try:
        payload = _load_job(parsed.job_file)
    except (OSError, UnicodeDecodeError, json.JSONDecodeError, yaml.YAMLError) as e:
        print(f"Error reading job file {parsed.job_file}: {e}", file=sys.stderr)
        return EXIT_FAILED

    service = AutomationService(settings=settings)

    if parsed.mode == "validate":
        result = service.validator.validate(payload)
        if not result.valid:
            _print_issues(result.errors)
            return EXIT_INVALID
        print(f"OK: {parsed.job_file} is a valid job")
        return EXIT_OK

    # run
    if isinstance(payload, dict):
        if parsed.format:
            payload["outputFormat"] = parsed.format
        if parsed.headed:
            execution = payload.get("execution")
            if not isinstance(execution, dict):
                execution = {}
            payload["execution"] = {**execution, "headless": False}

    logger.info(f"DataSage v{__version__} running {parsed.job_file}")
    outcome = asyncio.run(service.execute(payload))

    if outcome.errors:
        _print_issues(outcome.errors)
        return EXIT_INVALID

    if not outcome.success:
        print(f"Automation failed: {outcome.error_message}", file=sys.stderr)
        for entry in outcome.logs:
            print(f"  [{entry.timestamp}] {entry.level.upper()} {entry.message}", file=sys.stderr)
        return EXIT_FAILED

    output_format = service.requested_format(payload)
    if output_format.value == "json":
        _emit(json.dumps(outcome.to_dict(), indent=2, ensure_ascii=False), parsed.output)
        return EXIT_OK

    from src.automation.errors import FormattingError

    try:
        rendered = service.render(outcome, output_format)
    except FormattingError as e:
        print(f"Error formatting output: {e.message}", file=sys.stderr)
        return EXIT_FAILED

    _emit(rendered.body, parsed.output)
    return EXIT_OK


if __name__ == "__main__":
    sys.exit(main())
