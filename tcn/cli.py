"""tcn CLI: operator entry point for the banshare backend."""

import asyncio
from pathlib import Path

import click
from rich.console import Console
from rich.table import Table

from tcn import __version__
from tcn.config import load_settings

console = Console()


def _workflow(settings):
    from tcn.banshares.gateway import HttpEnforcementGateway
    from tcn.banshares.settings_store import BanshareSettingsStore
    from tcn.banshares.store import BanshareStore
    from tcn.banshares.workflow import BanshareWorkflow
    from tcn.security.audit_log import AuditLogger

    base = Path(settings.data_dir)
    return BanshareWorkflow(
        BanshareStore(base / "banshares"),
        BanshareSettingsStore(base / "banshares"),
        HttpEnforcementGateway(settings.gateway_url, timeout=settings.gateway_timeout, token=settings.gateway_token),
        AuditLogger(base / "audit_logs"),
        urgent_remind_after=settings.urgent_remind_after,
        remind_after=settings.remind_after,
    )


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "config_path", default=None, help="Path to a YAML config file")
@click.pass_context
def main(ctx: click.Context, config_path: str | None):
    """tcn: backend of record for the banshare federation.

    Serve the REST API, inspect banshares and guild settings, and run
    scheduled maintenance such as review reminders.
    """
    from tcn.logging_config import setup_logging

    settings = load_settings(config_path)
    setup_logging(settings.log_level)
    ctx.obj = settings


# ── Serve ────────────────────────────────────────────────────────────


@main.command()
@click.option("--host", default="127.0.0.1")
@click.option("--port", default=8000, type=int)
@click.pass_obj
def serve(settings, host: str, port: int):
    """Run the REST API with uvicorn."""
    import uvicorn

    from web.backend.app.main import create_app

    uvicorn.run(create_app(settings), host=host, port=port)


# ── Banshares ────────────────────────────────────────────────────────


@main.command()
@click.pass_obj
def pending(settings):
    """List banshares still awaiting review."""
    workflow = _workflow(settings)
    messages = workflow.list_pending()

    if not messages:
        console.print("[green]No pending banshares.[/]")
        return

    table = Table(title=f"Pending banshares ({len(messages)})")
    table.add_column("Message", style="cyan", no_wrap=True)
    table.add_column("Severity", justify="center")
    table.add_column("Urgent", justify="center")
    table.add_column("Server")
    table.add_column("Reason")

    for message in messages:
        b = workflow.get(message)
        table.add_row(
            b.message,
            b.severity.value,
            "[red]yes[/]" if b.urgent else "no",
            b.server,
            b.reason[:60],
        )

    console.print(table)


@main.command()
@click.argument("message")
@click.pass_obj
def show(settings, message: str):
    """Show a banshare with its executors, crossposts and reports."""
    from tcn.errors import NotFoundError

    try:
        b = _workflow(settings).get(message)
    except NotFoundError as e:
        console.print(f"[red]{e.message}[/]")
        raise SystemExit(1)

    console.print(f"\n[bold blue]Banshare[/] {b.message}: [bold]{b.status.value}[/] ({b.severity.value})")
    console.print(f"  Author: {b.author}  Server: {b.server}  Urgent: {b.urgent}")
    console.print(f"  Targets: {' '.join(b.id_list) or b.ids}")
    console.print(f"  Reason: {b.reason}")
    for label, value in (("Publisher", b.publisher), ("Rejecter", b.rejecter), ("Rescinder", b.rescinder)):
        if value:
            console.print(f"  {label}: {value}")
    if b.explanation:
        console.print(f"  Explanation: {b.explanation}")

    if b.executors:
        table = Table(title="Executors")
        table.add_column("Guild", style="cyan")
        table.add_column("User")
        for guild, user in b.executors.items():
            table.add_row(guild, user)
        console.print(table)

    if b.crossposts:
        table = Table(title="Crossposts")
        table.add_column("Guild", style="cyan")
        table.add_column("Channel")
        table.add_column("Message")
        for c in b.crossposts:
            table.add_row(c.guild, c.channel, c.message)
        console.print(table)

    for r in b.reports:
        console.print(f"  [yellow]![/] report by {r.reporter}: {r.reason}")


@main.command()
@click.pass_obj
def remind(settings):
    """Re-ping reviewers about overdue pending banshares (run from cron)."""
    from tcn.errors import UpstreamError

    try:
        touched = asyncio.run(_workflow(settings).remind_pending())
    except UpstreamError as e:
        console.print(f"[red]Reminder failed:[/] {e.message}")
        raise SystemExit(1)

    if touched:
        console.print(f"[green]Reminded reviewers about {len(touched)} banshare(s).[/]")
    else:
        console.print("No banshares are due for a reminder.")


# ── Settings ─────────────────────────────────────────────────────────


@main.command()
@click.argument("guild")
@click.pass_obj
def settings(settings, guild: str):
    """Show a guild's resolved banshare settings."""
    s = _workflow(settings).get_settings(guild)

    table = Table(title=f"Banshare settings for {guild}")
    table.add_column("Setting", style="cyan")
    table.add_column("Value")
    table.add_row("channel", s.channel or "[dim]none[/]")
    table.add_row("logs", ", ".join(s.logs) or "[dim]none[/]")
    table.add_row("blockdms", str(s.blockdms))
    table.add_row("nobutton", str(s.nobutton))
    table.add_row("daedalus", str(s.daedalus))
    table.add_row("autoban", f"{s.autoban} ({s.autoban:08b})")
    console.print(table)


@main.command()
@click.argument("value", type=click.IntRange(0, 255))
def autoban(value: int):
    """Decode an autoban field into its severity/membership matrix."""
    from tcn.banshares.autoban import AutobanPolicy
    from tcn.banshares.models import Severity

    matrix = AutobanPolicy(value).matrix()

    table = Table(title=f"Autoban {value} ({value:08b})")
    table.add_column("Targets", style="cyan")
    for severity in Severity:
        table.add_column(severity.value, justify="center")
    for membership, row in matrix.items():
        table.add_row(
            membership.replace("_", "-"),
            *("[green]auto[/]" if row[s.value] else "[dim]manual[/]" for s in Severity),
        )
    console.print(table)


# ── Auth ─────────────────────────────────────────────────────────────


@main.command("create-key")
@click.argument("user_id")
@click.option("--name", default="cli", help="Label for the key")
@click.option("--days", default=90, type=int, help="Days until the key expires")
@click.pass_obj
def create_key(settings, user_id: str, name: str, days: int):
    """Issue an API key for an existing user."""
    from tcn.auth.store import UserStore

    store = UserStore(Path(settings.data_dir) / "auth")
    if store.get_user(user_id) is None:
        console.print(f"[red]No user exists with ID {user_id}.[/]")
        raise SystemExit(1)

    key, raw = store.create_api_key(user_id, name, expires_in_days=days)
    console.print(f"[green]Created key[/] {key.prefix}… (expires {key.expires_at[:10]})")
    console.print(f"  {raw}")
    console.print("[yellow]Store it now; it cannot be shown again.[/]")


if __name__ == "__main__":
    main()
