"""
Main CLI application for Market Intelligence.

Provides the command-line interface for:
- Suburb market stats and the combined suburb report
- Property details and comparable sales
- Configuration and credential status
"""

import asyncio
import json
import os
from pathlib import Path
from typing import Any, Awaitable, Callable, List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from market_intel import __version__
from market_intel.config import load_config
from market_intel.config.loader import get_default_config_path
from market_intel.core.exceptions import MarketIntelError
from market_intel.utils.logging import setup_logging, get_logger
from market_intel.utils.metrics import Metrics

# Initialize Typer app
app = typer.Typer(
    name="market-intel",
    help="Market Intelligence - suburb stats, property details and comparables",
    add_completion=False,
    no_args_is_help=True,
)

console = Console()
logger = get_logger(__name__)

RATING_STYLES = {
    "Low": "green",
    "Fast": "green",
    "Strong": "green",
    "Average": "yellow",
    "High": "red",
    "Slow": "red",
}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        console.print(f"[bold blue]Market Intelligence[/bold blue] v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose logging",
    ),
) -> None:
    """
    Market Intelligence - authenticated real-estate data collection.

    Use 'market-intel --help' for command list.
    """
    log_level = "DEBUG" if verbose else "INFO"
    setup_logging(level=log_level)


ConfigOption = typer.Option(
    None,
    "--config",
    "-c",
    help="Path to configuration file",
    exists=True,
    dir_okay=False,
)
JsonOption = typer.Option(False, "--json", help="Print raw JSON instead of a table")
TimeoutOption = typer.Option(
    None,
    "--timeout",
    "-t",
    help="Deadline in seconds for the whole operation",
    min=1.0,
)


def _run(label: str, factory: Callable[[], Awaitable[Any]]) -> Any:
    """Run an async operation, mapping failures to exit code 1."""
    try:
        result = asyncio.run(factory())
    except KeyboardInterrupt:
        console.print(f"\n[yellow]{label} cancelled by user[/yellow]")
        raise typer.Exit(1)
    except MarketIntelError as e:
        console.print(f"[red]Error:[/red] {e}")
        raise typer.Exit(1)
    except asyncio.TimeoutError:
        console.print(f"[red]Error:[/red] {label} did not finish before the deadline")
        raise typer.Exit(1)
    except Exception as e:
        console.print(f"[red]Error:[/red] {e}")
        logger.exception(f"{label} failed")
        raise typer.Exit(1)

    logger.debug(Metrics.get().summary())
    return result


def _load_settings(config_file: Optional[Path]):
    """Load settings from the given file or the first default location found."""
    return load_config(config_file or get_default_config_path())


def _print_json(data: Any) -> None:
    console.print_json(json.dumps(data))


def _rating(value: str) -> str:
    style = RATING_STYLES.get(value)
    return f"[{style}]{value}[/{style}]" if style else value


@app.command()
def stats(
    suburb: str = typer.Argument(..., help="Suburb name"),
    state: str = typer.Argument(..., help="State code, e.g. NSW"),
    postcode: str = typer.Argument(..., help="Postcode"),
    as_json: bool = JsonOption,
    timeout: Optional[float] = TimeoutOption,
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """
    Fetch normalized market stats for a suburb.

    Example:
        market-intel stats Paddington NSW 2021
    """

    async def _fetch():
        from market_intel.service import MarketDataService

        settings = _load_settings(config_file)
        async with MarketDataService(settings) as service:
            with console.status(f"[cyan]Fetching stats for {suburb}..."):
                return await service.get_market_stats(suburb, state, postcode, timeout)

    result = _run("Stats request", _fetch)

    if as_json:
        _print_json(result.to_dict())
        return

    data = result.to_dict()
    table = Table(title=f"{suburb.title()} {state.upper()} {postcode}", show_header=True)
    table.add_column("Metric", style="cyan")
    table.add_column("Value", justify="right")
    table.add_column("Rating")

    rated = {
        "stock_on_market": "stock_rating",
        "days_on_market": "dom_rating",
        "vacancy_rate": "vacancy_rating",
        "gross_rental_yield": "yield_rating",
    }
    for key, value in data.items():
        if key in rated.values():
            continue
        rating = data.get(rated[key], "") if key in rated else ""
        table.add_row(key.replace("_", " "), value or "-", _rating(rating))

    console.print(table)


@app.command(name="property")
def property_details(
    address: str = typer.Argument(..., help="Full street address"),
    as_json: bool = JsonOption,
    timeout: Optional[float] = TimeoutOption,
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """
    Extract property details, valuation and rental estimate.

    Example:
        market-intel property "12 Smith St, Paddington NSW 2021"
    """

    async def _fetch():
        from market_intel.service import MarketDataService

        settings = _load_settings(config_file)
        async with MarketDataService(settings) as service:
            with console.status(f"[cyan]Extracting {address}..."):
                return await service.get_property(address, timeout)

    record = _run("Property extraction", _fetch)

    if as_json:
        _print_json(record.to_dict())
        return

    table = Table(show_header=False, box=None)
    table.add_column("Field", style="dim")
    table.add_column("Value")

    for key, value in record.to_dict().items():
        if key == "schools":
            continue
        table.add_row(key.replace("_", " "), value or "-")

    console.print(Panel(table, title=address, border_style="blue"))

    if record.schools:
        schools = Table(title="Nearby Schools", show_header=True)
        schools.add_column("Name", style="cyan")
        schools.add_column("Distance", justify="right")
        schools.add_column("Type")
        schools.add_column("Sector")
        for school in record.schools:
            schools.add_row(school.name, school.distance, school.type, school.sector)
        console.print(schools)


@app.command()
def comparables(
    addresses: List[str] = typer.Argument(..., help="Addresses to look up, in order"),
    as_json: bool = JsonOption,
    timeout: Optional[float] = TimeoutOption,
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """
    Read sold data for comparable addresses.

    A failing address is reported in its row; the others still complete.

    Example:
        market-intel comparables "1 A St, Paddington NSW" "2 B St, Paddington NSW"
    """

    async def _fetch():
        from market_intel.service import MarketDataService

        settings = _load_settings(config_file)
        async with MarketDataService(settings) as service:
            with console.status(f"[cyan]Extracting {len(addresses)} comparables..."):
                return await service.get_comparables(addresses, timeout)

    records = _run("Comparables extraction", _fetch)

    if as_json:
        _print_json([r.to_dict() for r in records])
        return

    table = Table(title=f"Comparables ({len(records)})", show_header=True)
    table.add_column("#", style="dim", width=3)
    table.add_column("Address", style="cyan")
    table.add_column("Bed", justify="right")
    table.add_column("Bath", justify="right")
    table.add_column("Car", justify="right")
    table.add_column("Land", justify="right")
    table.add_column("Sold", justify="right")
    table.add_column("Date")

    for i, record in enumerate(records, 1):
        if not record.success:
            table.add_row(str(i), record.address, f"[red]{record.error}[/red]",
                          "", "", "", "", "")
            continue
        table.add_row(
            str(i),
            record.address,
            record.bedrooms,
            record.bathrooms,
            record.car_spaces,
            record.land_size,
            record.sold_price,
            record.sold_date,
        )

    console.print(table)


@app.command()
def suburb(
    suburb_name: str = typer.Argument(..., metavar="SUBURB", help="Suburb name"),
    state: str = typer.Argument(..., help="State code, e.g. NSW"),
    postcode: str = typer.Argument(..., help="Postcode"),
    vacancy: bool = typer.Option(
        True,
        "--vacancy/--no-vacancy",
        help="Also read the SQM Research vacancy rate",
    ),
    as_json: bool = JsonOption,
    timeout: Optional[float] = TimeoutOption,
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """
    Build the combined suburb report (DSR stats plus SQM vacancy).

    Example:
        market-intel suburb Paddington NSW 2021 --no-vacancy
    """

    async def _fetch():
        from market_intel.service import MarketDataService

        settings = _load_settings(config_file)
        async with MarketDataService(settings) as service:
            with console.status(f"[cyan]Building report for {suburb_name}..."):
                return await service.get_suburb_report(
                    suburb_name, state, postcode,
                    include_vacancy=vacancy,
                    timeout=timeout,
                )

    report = _run("Suburb report", _fetch)
    payload = report.to_dict()

    if as_json:
        _print_json({"success": report.success, **payload})
    else:
        table = Table(title=f"{suburb_name.title()} {state.upper()} {postcode}", show_header=True)
        table.add_column("Field", style="cyan")
        table.add_column("Value")
        for key, value in payload["data"].items():
            display = _rating(value) if key.endswith("_rating") else (value or "-")
            table.add_row(key.replace("_", " "), display)
        console.print(table)

        for error in report.errors:
            console.print(f"[yellow]{error['source']}:[/yellow] {error['error']}")

    if not report.success:
        raise typer.Exit(1)


@app.command()
def status(
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """
    Show provider endpoints and whether their credentials are set.

    Runs offline; no browser is started.
    """
    settings = _load_settings(config_file)

    table = Table(title="Providers", show_header=True)
    table.add_column("Provider", style="cyan")
    table.add_column("Base URL", style="dim")
    table.add_column("Credentials")

    for name in ("dsr", "corelogic", "sqm"):
        provider = getattr(settings, name)
        names = [n for n in (provider.identifier_env, provider.password_env) if n]
        if not names:
            creds = "[dim]not required[/dim]"
        elif all(os.environ.get(n) for n in names):
            creds = "[green]✓ set[/green]"
        else:
            missing = ", ".join(n for n in names if not os.environ.get(n))
            creds = f"[red]✗ missing {missing}[/red]"
        table.add_row(name, provider.base_url, creds)

    console.print(table)

    summary = Table(show_header=False, box=None)
    summary.add_column("Setting", style="dim")
    summary.add_column("Value")
    summary.add_row("Browser", f"{settings.browser.browser_type} "
                    f"({'headless' if settings.browser.headless else 'headed'})")
    summary.add_row("Session TTL", f"{settings.session.ttl_seconds:.0f}s")
    summary.add_row("Login confirmation",
                    "required" if settings.session.require_login_confirmation else "optimistic")
    summary.add_row("Batch pacing", f"{settings.extraction.pacing_delay_seconds}s")
    console.print(summary)


@app.command()
def config(
    show: bool = typer.Option(
        False,
        "--show",
        "-s",
        help="Show current configuration",
    ),
    init: bool = typer.Option(
        False,
        "--init",
        help="Create default configuration file",
    ),
    output: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output path for config file",
    ),
    config_file: Optional[Path] = ConfigOption,
) -> None:
    """
    Configuration management.

    Examples:
        market-intel config --show
        market-intel config --init --output ./market-intel.yaml
    """
    if init:
        _init_config(output)
    elif show:
        _show_config(config_file)
    else:
        console.print("Use --show to view config or --init to create default config")


def _show_config(config_file: Optional[Path]) -> None:
    """Show current configuration."""
    settings = _load_settings(config_file)
    config_dict = settings.model_dump(mode="json")

    console.print(Panel("[bold]Current Configuration[/bold]", border_style="blue"))

    for section, values in config_dict.items():
        console.print(f"\n[bold cyan]{section}:[/bold cyan]")
        if isinstance(values, dict):
            for key, value in values.items():
                console.print(f"  {key}: [dim]{value}[/dim]")
        else:
            console.print(f"  {values}")


def _init_config(output: Optional[Path]) -> None:
    """Create default configuration file."""
    import yaml
    from market_intel.config import Settings

    config_dict = Settings().model_dump(mode="json")
    output_path = output or Path("market-intel.yaml")

    if output_path.exists():
        if not typer.confirm(f"File {output_path} exists. Overwrite?"):
            raise typer.Exit(0)

    with open(output_path, "w") as f:
        yaml.dump(config_dict, f, default_flow_style=False, sort_keys=False)

    console.print(f"[green]✓[/green] Configuration saved to: {output_path}")


if __name__ == "__main__":
    app()
