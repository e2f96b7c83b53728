"""
Report generator for check results.

Generates:
- Markdown reports for human reading
- JSON reports for machine processing
- Console summary (rich)
"""

import json
from pathlib import Path
from typing import Optional, Union

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from site_audit.core.models import CheckResult, Report, format_status_set


# Ограничение на количество заголовков в markdown отчёте
MAX_HEADERS_IN_REPORT = 10


class ReportGenerator:
    """Генератор отчётов."""

    def __init__(self, output_dir: Optional[Path] = None, title: str = "Site Audit Report"):
        """
        Args:
            output_dir: Директория для сохранения отчётов (по умолчанию audit_reports/)
            title: Заголовок markdown отчёта
        """
        self.output_dir = Path(output_dir) if output_dir else Path("audit_reports")
        self.title = title

    def _default_path(self, report: Report, extension: str) -> Path:
        timestamp_str = report.started_at.strftime("%Y%m%d_%H%M%S")
        return self.output_dir / f"audit_report_{timestamp_str}.{extension}"

    def generate_report(
        self,
        report: Report,
        format: str = "markdown",
        output_path: Optional[Union[str, Path]] = None,
    ) -> str:
        """
        Генерация отчёта.

        Args:
            report: Результаты запуска
            format: Формат отчёта ("markdown" или "json")
            output_path: Явный путь к файлу (по умолчанию имя генерируется по времени)

        Returns:
            Путь к сгенерированному файлу
        """
        if format == "json":
            return self.generate_json_report(report, output_path)
        return self.generate_markdown_report(report, output_path)

    def render_markdown(self, report: Report) -> str:
        """Собрать markdown текст отчёта."""
        lines = []

        # Header
        lines.append(f"# {self.title}")
        lines.append("")
        lines.append(f"**Date:** {report.started_at.strftime('%Y-%m-%d %H:%M:%S')}")
        lines.append("")

        # Summary
        lines.append("## Summary")
        lines.append("")
        lines.append(f"- **Total checks:** {report.total}")
        lines.append(f"- ✅ **Passed:** {report.passed_count}")
        lines.append(f"- ❌ **Failed:** {report.failed_count}")
        if report.cancelled:
            lines.append("- ⚠️ **Run was cancelled** before all checks started")
        lines.append("")

        # Results table
        lines.append("## Results")
        lines.append("")
        lines.append("| # | Check | Mode | Status | Latency | Result |")
        lines.append("|---|-------|------|--------|---------|--------|")
        for result in report.results:
            status = result.observed_status if result.observed_status is not None else "-"
            latency = f"{result.observed_latency_ms:.0f}ms" if result.observed_latency_ms is not None else "-"
            outcome = "✅ PASSED" if result.passed else "❌ FAILED"
            lines.append(
                f"| {result.index + 1} | {_escape_table_cell(result.spec.label)} | {result.spec.mode.value} "
                f"| {status} | {latency} | {outcome} |"
            )
        lines.append("")

        # Failures
        failed = report.failed_results()
        if failed:
            lines.append("## Failures")
            lines.append("")
            for result in failed:
                lines.extend(self._failure_section(result))

        # Footer
        lines.append("---")
        lines.append(f"*Checks completed in {report.duration_seconds:.2f} seconds*")

        return "\n".join(lines)

    def _failure_section(self, result: CheckResult):
        spec = result.spec
        lines = [f"### ❌ {spec.label}", ""]
        lines.append(f"**Target:** `{spec.method} {spec.target}` ({spec.mode.value})")
        lines.append("")
        if spec.expected_status:
            lines.append(f"**Expected status:** {format_status_set(spec.expected_status)}")
            lines.append("")
        lines.append("**Failures:**")
        for failure in result.failures:
            lines.append(f"- {failure}")
        lines.append("")

        if result.observed_headers:
            lines.append("**Observed headers:**")
            for name, value in list(result.observed_headers.items())[:MAX_HEADERS_IN_REPORT]:
                lines.append(f"- `{name}: {value}`")
            lines.append("")
        return lines

    def generate_markdown_report(self, report: Report, output_path: Optional[Union[str, Path]] = None) -> str:
        """
        Генерация Markdown отчёта.

        Returns:
            Путь к файлу отчёта
        """
        filepath = Path(output_path) if output_path else self._default_path(report, "md")
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "w", encoding="utf-8") as f:
            f.write(self.render_markdown(report))

        return str(filepath)

    def generate_json_report(self, report: Report, output_path: Optional[Union[str, Path]] = None) -> str:
        """
        Генерация JSON отчёта.

        Returns:
            Путь к файлу отчёта
        """
        filepath = Path(output_path) if output_path else self._default_path(report, "json")
        filepath.parent.mkdir(parents=True, exist_ok=True)

        with open(filepath, "w", encoding="utf-8") as f:
            json.dump(report.to_dict(), f, indent=2, ensure_ascii=False)

        return str(filepath)

    def print_summary(self, report: Report, console: Optional[Console] = None):
        """Вывести краткую сводку в консоль."""
        console = console or Console()

        table = Table(title="Check Results")
        table.add_column("#", justify="right", style="dim")
        table.add_column("Check")
        table.add_column("Mode")
        table.add_column("Status", justify="right")
        table.add_column("Latency", justify="right")
        table.add_column("Result")

        for result in report.results:
            table.add_row(
                str(result.index + 1),
                escape(result.spec.label),
                result.spec.mode.value,
                str(result.observed_status) if result.observed_status is not None else "-",
                f"{result.observed_latency_ms:.0f}ms" if result.observed_latency_ms is not None else "-",
                "[green]PASSED[/]" if result.passed else "[red]FAILED[/]",
            )

        console.print(table)

        for result in report.failed_results():
            console.print(f"[red]❌ {escape(result.spec.label)}[/]")
            for failure in result.failures:
                console.print(f"   - {failure}", markup=False)

        console.print(
            f"\nTotal: {report.total}  "
            f"[green]Passed: {report.passed_count}[/]  "
            f"[red]Failed: {report.failed_count}[/]  "
            f"Duration: {report.duration_seconds:.2f}s"
        )
        if report.cancelled:
            console.print("[yellow]⚠️  Run cancelled: remaining checks were not started[/]")


def _escape_table_cell(text: str) -> str:
    return text.replace("|", "\\|")
