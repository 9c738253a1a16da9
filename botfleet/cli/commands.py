"""CLI commands for botfleet."""

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from botfleet import __logo__, __version__

app = typer.Typer(
    name="botfleet",
    help=f"{__logo__} botfleet - rule-driven chat bot fleet",
    no_args_is_help=True,
)

console = Console()

ConfigOption = typer.Option(
    None, "--config", "-c", help="Config file (default: $BOTFLEET_CONFIG or ~/.config/botfleet/config.yml)"
)


def version_callback(value: bool):
    if value:
        console.print(f"{__logo__} botfleet v{__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        None, "--version", "-v", callback=version_callback, is_eager=True
    ),
):
    """botfleet - rule-driven chat bot fleet."""
    pass


def _load(config_path: Path | None):
    """Load config and profiles, exiting with status 1 on any config error."""
    from botfleet.config.loader import load_config, load_profiles
    from botfleet.errors import ConfigurationError

    try:
        config = load_config(config_path)
        profiles = load_profiles(config)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)
    return config, profiles


def _bots_table(profiles) -> Table:
    table = Table(title="Bots")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Phone")
    table.add_column("Auto-responses", justify="right")
    table.add_column("Webhooks", justify="right")
    table.add_column("Delay (ms)", justify="right")

    for profile in profiles:
        table.add_row(
            profile.bot_id,
            profile.name,
            profile.phone or "-",
            str(len(profile.auto_responses)),
            str(len(profile.webhooks)),
            str(profile.settings.outbound_delay_ms),
        )
    return table


# ============================================================================
# Config Commands
# ============================================================================


@app.command()
def validate(config_path: Path = ConfigOption):
    """Validate the config file and every bot's rules."""
    _, profiles = _load(config_path)
    console.print(_bots_table(profiles))
    console.print(f"[green]✓[/green] Configuration valid: {len(profiles)} bot(s)")


@app.command()
def bots(config_path: Path = ConfigOption):
    """List configured bots."""
    _, profiles = _load(config_path)
    if not profiles:
        console.print("[yellow]No bots configured[/yellow]")
        return
    console.print(_bots_table(profiles))


@app.command("create-bot")
def create_bot(
    name: str = typer.Option(None, "--name", "-n", help="Bot display name (prompted if omitted)"),
    phone: str = typer.Option(None, "--phone", "-p", help="Phone number or account id"),
    config_path: Path = ConfigOption,
):
    """Add a bot with default settings to the config file."""
    from botfleet.config.loader import generate_bot_id, get_config_path, save_bot
    from botfleet.config.schema import BotConfig
    from botfleet.errors import ConfigurationError

    if name is None:
        name = typer.prompt("What would you like to name your bot?")
    name = name.strip()
    if not name:
        console.print("[red]Bot name cannot be empty[/red]")
        raise typer.Exit(1)

    bot_id = generate_bot_id(name)
    path = config_path or get_config_path()
    console.print(f"Bot ID: [cyan]{bot_id}[/cyan]")

    try:
        replaced = save_bot(BotConfig(id=bot_id, name=name, phone=phone), path)
    except ConfigurationError as e:
        console.print(f"[red]Configuration error:[/red] {e}")
        raise typer.Exit(1)

    action = "Updated existing" if replaced else "Added new"
    console.print(f"[green]✓[/green] {action} bot {name!r} ({bot_id}) in {path}")
    console.print("\nAdd auto_responses and webhooks, then run: [cyan]botfleet run[/cyan]")


@app.command()
def status(config_path: Path = ConfigOption):
    """Show the status of a running fleet via its API."""
    import httpx

    config, _ = _load(config_path)
    settings = config.global_
    url = f"http://{settings.api_host}:{settings.api_port}/api/system/status"

    console.print(f"{__logo__} botfleet Status\n")
    console.print(f"Config: {config_path or 'default'} [green]✓[/green]")

    try:
        response = httpx.get(url, timeout=5.0)
        response.raise_for_status()
    except httpx.HTTPError as e:
        console.print(f"API: {url} [red]✗[/red] ({e})")
        raise typer.Exit(1)

    data = response.json()
    console.print(f"API: {url} [green]✓[/green]")
    console.print(f"Running: {'[green]yes[/green]' if data['is_running'] else '[dim]no[/dim]'}")

    table = Table(title="Bots")
    table.add_column("ID", style="cyan")
    table.add_column("Name")
    table.add_column("Connected")
    table.add_column("Queued", justify="right")
    table.add_column("Delay (ms)", justify="right")

    for bot in data["bots"]:
        table.add_row(
            bot["id"],
            bot["name"],
            "[green]✓[/green]" if bot["connected"] else "[red]✗[/red]",
            str(bot["queue"]["queue_size"]),
            str(bot["queue"]["delay_ms"]),
        )
    console.print(table)

    hooks = data["webhooks"]
    console.print(
        f"\n[bold]Webhooks:[/bold] {hooks['success_count']} delivered, "
        f"{hooks['error_count']} failed, {hooks['throttled_count']} throttled"
    )


# ============================================================================
# Fleet Commands
# ============================================================================


@app.command()
def run(
    config_path: Path = ConfigOption,
    no_api: bool = typer.Option(False, "--no-api", help="Do not start the HTTP status API"),
    log_level: str = typer.Option(None, "--log-level", "-l", help="Override global.log_level"),
):
    """Start the fleet and run until interrupted."""
    from botfleet.fleet.coordinator import FleetCoordinator
    from botfleet.logging_setup import configure_logging

    config, profiles = _load(config_path)
    settings = config.global_
    level = (log_level or settings.log_level).lower()
    if level == "warn":
        level = "warning"
    configure_logging(level)

    if not profiles:
        console.print("[yellow]Warning: No bots configured[/yellow]")

    coordinator = FleetCoordinator(
        startup_delay=settings.startup_delay,
        sweep_interval=settings.sweep_interval,
        shutdown_grace=settings.shutdown_grace,
        shared_cooldowns=settings.shared_cooldowns,
    )

    api_enabled = settings.api_enabled and not no_api

    async def run_fleet():
        await coordinator.start(profiles)
        console.print(f"[green]✓[/green] Fleet running with {len(coordinator.profiles)} bot(s)")

        server_task = None
        server = None
        if api_enabled:
            from botfleet.server.main import create_server

            server = create_server(
                coordinator,
                host=settings.api_host,
                port=settings.api_port,
                log_level=level,
            )
            server_task = asyncio.create_task(server.serve())
            console.print(f"[green]✓[/green] API: http://{settings.api_host}:{settings.api_port}")

        try:
            await coordinator.run_until_signal()
        finally:
            if server is not None and server_task is not None:
                server.should_exit = True
                await server_task

    try:
        asyncio.run(run_fleet())
    except KeyboardInterrupt:
        console.print("\nShutting down...")


if __name__ == "__main__":
    app()
