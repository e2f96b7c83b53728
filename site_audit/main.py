"""
CLI interface for Site Audit.

Usage:
    site-audit run examples/playwright_dev.yaml                 # Run suite
    site-audit run suite.yaml --format json --output-dir out/   # JSON report
    site-audit run suite.yaml --parallel 8 --timeout 10         # Tune execution
    site-audit validate suite.yaml                              # Only validate
"""

import asyncio
import logging
import signal
from dataclasses import replace
from pathlib import Path
from typing import List, Optional

import typer
from dotenv import load_dotenv
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from site_audit.config import AuditConfig
from site_audit.core.assertions import build_assertions
from site_audit.core.exceptions import ConfigurationError
from site_audit.core.models import CheckSpec, Report, format_status_set
from site_audit.fetchers import create_fetcher
from site_audit.reports.generator import ReportGenerator
from site_audit.runner import CheckRunner
from site_audit.suite import load_suite


app = typer.Typer(
    name="site-audit",
    help="Declarative HTTP and browser checks for websites",
    no_args_is_help=True,
)
console = Console()

logger = logging.getLogger(__name__)

EXIT_FAILED = 1
EXIT_CONFIG_ERROR = 2
EXIT_INTERRUPTED = 130


def setup_logging(verbose: bool = False):
    """Настроить логирование."""
    level = logging.DEBUG if verbose else logging.INFO
    logging.basicConfig(
        level=level,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s'
    )


async def execute_checks(specs: List[CheckSpec], config: AuditConfig) -> Report:
    """
    Выполнить проверки реальными fetcher'ами.

    Ctrl+C не обрывает запуск: новые проверки перестают стартовать,
    начатые завершаются или упираются в таймаут.
    """
    cancel_event = asyncio.Event()
    loop = asyncio.get_running_loop()

    def _on_interrupt():
        if not cancel_event.is_set():
            logger.warning("⚠️  Interrupted: waiting for in-flight checks, no new checks will start")
        cancel_event.set()

    try:
        loop.add_signal_handler(signal.SIGINT, _on_interrupt)
        handler_installed = True
    except (NotImplementedError, RuntimeError):
        # Windows или не главный поток
        logger.debug("SIGINT handler not supported, Ctrl+C aborts immediately")
        handler_installed = False

    try:
        async with create_fetcher(config) as fetcher:
            runner = CheckRunner.from_config(config)
            return await runner.run(specs, fetcher, cancel_event=cancel_event)
    finally:
        if handler_installed:
            loop.remove_signal_handler(signal.SIGINT)


@app.callback()
def main():
    """Load .env before any command."""
    load_dotenv()


@app.command("run")
def run_command(
    suite_path: Path = typer.Argument(..., help="Suite file (.yaml, .yml or .json)"),
    parallel: Optional[int] = typer.Option(None, "--parallel", "-p", help="Max concurrent checks (0 = unbounded)"),
    timeout: Optional[float] = typer.Option(None, "--timeout", "-t", help="Default per-check timeout, seconds"),
    output_format: Optional[str] = typer.Option(None, "--format", "-f", help="Report format: markdown or json"),
    output_dir: Optional[Path] = typer.Option(None, "--output-dir", help="Report directory"),
    output_file: Optional[Path] = typer.Option(None, "--output-file", help="Exact report file path"),
    no_report: bool = typer.Option(False, "--no-report", help="Do not write a report file"),
    no_summary: bool = typer.Option(False, "--no-summary", help="Skip console summary"),
    browser: Optional[str] = typer.Option(None, "--browser", help="chromium, firefox or webkit"),
    headed: bool = typer.Option(False, "--headed", help="Show the browser window"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output"),
):
    """🚦 Запустить проверки из suite-файла."""
    setup_logging(verbose)

    try:
        overrides = {
            "max_parallel": parallel,
            "default_timeout_seconds": timeout,
            "report_format": output_format,
            "report_output_dir": output_dir,
            "browser_type": browser,
            "headless": False if headed else None,
        }
        # replace() заново вызывает __post_init__, так что CLI значения тоже валидируются
        config = replace(AuditConfig(), **{k: v for k, v in overrides.items() if v is not None})

        suite = load_suite(suite_path)
    except ConfigurationError as e:
        console.print(f"[red]❌ Configuration error: {escape(str(e))}[/]")
        raise typer.Exit(EXIT_CONFIG_ERROR)

    logger.info(f"Starting suite {suite.name or suite_path} ({len(suite)} checks)")

    try:
        report = asyncio.run(execute_checks(suite.checks, config))
    except ConfigurationError as e:
        console.print(f"[red]❌ Configuration error: {escape(str(e))}[/]")
        raise typer.Exit(EXIT_CONFIG_ERROR)
    except KeyboardInterrupt:
        console.print("\n[yellow]⚠️  Run interrupted by user[/]")
        raise typer.Exit(EXIT_INTERRUPTED)

    if not no_report:
        generator = ReportGenerator(
            output_dir=config.report_output_dir,
            title=f"Site Audit Report: {suite.name}" if suite.name else "Site Audit Report",
        )
        report_path = generator.generate_report(report, format=config.report_format, output_path=output_file)
        logger.info(f"Report: {report_path}")
    else:
        generator = ReportGenerator()

    if not no_summary:
        generator.print_summary(report, console=console)

    if report.cancelled:
        raise typer.Exit(EXIT_INTERRUPTED)
    if not report.passed:
        raise typer.Exit(EXIT_FAILED)


@app.command("validate")
def validate_command(
    suite_path: Path = typer.Argument(..., help="Suite file (.yaml, .yml or .json)"),
):
    """🔎 Проверить suite-файл без запуска проверок."""
    try:
        suite = load_suite(suite_path)
    except ConfigurationError as e:
        console.print(f"[red]❌ {escape(str(e))}[/]")
        raise typer.Exit(EXIT_CONFIG_ERROR)

    table = Table(title=escape(f"📋 {suite.name or suite_path}"))
    table.add_column("#", justify="right", style="dim")
    table.add_column("Check", style="cyan")
    table.add_column("Mode")
    table.add_column("Target")
    table.add_column("Status")
    table.add_column("Assertions", justify="right")

    for i, spec in enumerate(suite.checks, 1):
        table.add_row(
            str(i),
            escape(spec.label),
            spec.mode.value,
            escape(f"{spec.method} {spec.target}"),
            format_status_set(spec.expected_status) if spec.expected_status else "-",
            str(len(build_assertions(spec))),
        )

    console.print(table)
    console.print(f"[green]✅ {len(suite)} checks are valid[/]")


if __name__ == "__main__":
    app()
