"""
CLI interface for CCUsage Monitor.

Prints the current Claude session block and today's Codex usage.
"""

import json
import logging
import sys
from dataclasses import asdict
from typing import Optional

import structlog
import typer
from rich.console import Console
from rich.table import Table

from ccusage_monitor.config.loader import DisplayConfig, load_display_config
from ccusage_monitor.core.models import ClaudeUsageData, CodexUsageData, UsageSummary
from ccusage_monitor.core.rate_limits import RateLimitWindow
from ccusage_monitor.core.service import CcusageService, ProviderMode, UsageError

app = typer.Typer()
console = Console()

# Exit codes
EXIT_CODE_PASS = 0
EXIT_CODE_FAIL = 1


def configure_logging(verbose: bool = False, log_format: str = "console") -> None:
    """Route structlog through stdlib logging on stderr."""
    level = logging.DEBUG if verbose else logging.WARNING
    logging.basicConfig(stream=sys.stderr, level=level, format="%(message)s", force=True)

    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer() if log_format == "json"
            else structlog.dev.ConsoleRenderer(colors=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


@app.callback(invoke_without_command=True)
def main(
    ctx: typer.Context,
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    log_format: str = typer.Option("console", "--log-format", help="Log format: console or json"),
):
    """CCUsage Monitor CLI."""
    configure_logging(verbose, log_format)
    if ctx.invoked_subcommand is None:
        console.print("CCUsage Monitor - Use --help to see available commands")


@app.command()
def status(
    mode: Optional[str] = typer.Option(
        None,
        "--mode",
        "-m",
        help="Provider mode: claude, codex, both, or auto"
    ),
    timezone: Optional[str] = typer.Option(
        None,
        "--timezone",
        "-t",
        help="IANA time zone defining today for Codex (default: host zone)"
    ),
    locale: Optional[str] = typer.Option(
        None,
        "--locale",
        "-l",
        help="Locale for displayed dates, e.g. en-US"
    ),
    no_cost: bool = typer.Option(
        False,
        "--no-cost",
        help="Hide cost figures"
    ),
    config_path: Optional[str] = typer.Option(
        None,
        "--config",
        "-c",
        help="YAML display settings file"
    ),
    as_json: bool = typer.Option(
        False,
        "--json",
        help="Print the raw usage summary as JSON"
    ),
):
    """
    Show current usage for Claude and Codex.

    Claude usage covers the active 5-hour session block; Codex usage covers
    the current calendar day. Command-line options override the config file.
    """
    try:
        config = load_display_config(config_path) if config_path else DisplayConfig()
    except Exception as e:
        console.print(f"[red]Invalid configuration:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)

    selected_mode = mode or config.provider_mode
    show_cost = config.show_cost and not no_cost

    service = CcusageService()
    try:
        summary = service.get_usage(
            selected_mode,
            timezone=timezone or config.timezone,
            locale=locale or config.locale,
        )
    except UsageError as e:
        console.print(f"[red]Error:[/] {str(e)}")
        sys.exit(EXIT_CODE_FAIL)
    finally:
        service.dispose()

    if as_json:
        console.print_json(json.dumps(_summary_to_dict(summary), default=str))
    else:
        _display_summary(summary, show_cost)
    sys.exit(EXIT_CODE_PASS)


def _summary_to_dict(summary: UsageSummary) -> dict:
    """JSON-friendly view of a summary."""
    return {
        "claude": asdict(summary.claude) if summary.claude else None,
        "codex": asdict(summary.codex) if summary.codex else None,
        "errors": [{"provider": e.provider, "message": e.message} for e in summary.errors],
    }


def _format_currency(amount: float) -> str:
    """Format currency with proper symbols and formatting."""
    return f"${abs(amount):,.2f}"


def _format_tokens(value: int) -> str:
    return f"{round(value):,}"


def _format_window(window: RateLimitWindow) -> str:
    text = f"{window.label}: {window.remaining_percent:.0f}% left"
    if window.resets_in_seconds is not None:
        minutes = int(window.resets_in_seconds // 60)
        hours, minutes = divmod(minutes, 60)
        days, hours = divmod(hours, 24)
        reset = f"{days}d {hours}h" if days else f"{hours}h {minutes}m"
        text += f" (resets in {reset})"
    return text


def _display_claude(data: ClaudeUsageData, show_cost: bool) -> None:
    console.print("\n[bold]Claude[/bold] (5-hour window)")
    if not data.available:
        console.print("[dim]Claude data directory was not found.[/]")
        return

    table = Table(show_header=False, box=None)
    table.add_row("Remaining", data.remaining_time)
    if show_cost:
        table.add_row("Cost (current window)", _format_currency(data.cost_usd))
    table.add_row("Tokens (current window)", _format_tokens(data.total_tokens))
    table.add_row("Active blocks", str(data.block_count))
    if data.active_block_end is not None:
        table.add_row("Block ends at", data.active_block_end.astimezone().strftime("%Y-%m-%d %H:%M"))
    console.print(table)

    if not data.has_data:
        console.print("[dim]No recent Claude activity detected.[/]")


def _display_codex(data: CodexUsageData, show_cost: bool) -> None:
    console.print(f"\n[bold]Codex[/bold] daily usage ({data.timezone})")
    if not data.available:
        checked = ", ".join(str(d) for d in data.missing_directories) or "n/a"
        console.print(f"[dim]Codex session directory not found (checked: {checked}).[/]")
        return

    table = Table(show_header=False, box=None)
    table.add_row("Date", data.display_date)
    table.add_row("Tokens", _format_tokens(data.total_tokens))
    if show_cost:
        cost = _format_currency(data.cost_usd) if data.cost_usd is not None else "Unavailable"
        table.add_row("Cost", cost)
    for window in (data.rate_limits.primary, data.rate_limits.secondary):
        if window is not None:
            table.add_row("Rate limit", _format_window(window))
    console.print(table)

    if not data.has_data:
        console.print("[dim]No Codex activity recorded for this day.[/]")

    if data.models:
        models = Table(title="Models")
        models.add_column("Model")
        models.add_column("Tokens", justify="right")
        if show_cost:
            models.add_column("Cost", justify="right")
        for model in data.models:
            name = f"{model.model} (fallback)" if model.is_fallback_model else model.model
            row = [name, _format_tokens(model.usage.total_tokens)]
            if show_cost:
                row.append(_format_currency(model.cost_usd) if model.cost_usd is not None else "N/A")
            models.add_row(*row)
        console.print(models)

    if data.issues:
        console.print("\n[yellow]Warnings:[/]")
        for issue in data.issues:
            console.print(f" • {issue}", markup=False)

    if data.missing_directories:
        console.print("\n[dim]Missing directories:[/]")
        for directory in data.missing_directories:
            console.print(f" • {directory}", markup=False)


def _display_summary(summary: UsageSummary, show_cost: bool) -> None:
    """Display the usage summary."""
    console.print("\n[bold]Usage Summary[/bold]")
    console.print("-" * 40)

    if summary.claude is not None:
        _display_claude(summary.claude, show_cost)
    if summary.codex is not None:
        _display_codex(summary.codex, show_cost)

    if summary.errors:
        console.print("\n[red]Errors:[/]")
        for error in summary.errors:
            console.print(f" • {error.provider}: {error.message}", markup=False)


if __name__ == "__main__":
    app()
