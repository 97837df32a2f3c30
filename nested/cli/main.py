"""CLI entry point.

Commands:
- serve: Run the API server
- status: Show backend and cache configuration
- check-email / check-username: Sign-up availability checks
- profile show / profile set: Read and edit the signed-in user's profile
- migrate: Push records saved offline to the backend
"""

import asyncio
import json
from typing import Annotated, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from nested.logging_config import configure_logging
from nested.persistence import (
    PROJECT_BINDING,
    LoadSource,
    PersistenceCoordinator,
    SaveStatus,
    migrate_cache_to_remote,
)
from nested.remote import configuration_error, is_remote_configured
from nested.services import Availability, ProfileService
from nested.session import Session
from nested.settings import get_settings

app = typer.Typer(
    name="nested",
    help="Persistence tools for the Nested student project network",
    add_completion=False,
    no_args_is_help=True,
)
profile_app = typer.Typer(help="Read and edit your profile", no_args_is_help=True)
app.add_typer(profile_app, name="profile")

console = Console()

_AVAILABILITY_COLORS = {
    Availability.AVAILABLE: "green",
    Availability.TAKEN: "red",
    Availability.INVALID: "red",
    Availability.UNKNOWN: "yellow",
}

UserIdOption = Annotated[
    str,
    typer.Option("--user-id", "-u", envvar="NESTED_USER_ID", help="Signed-in user id"),
]
TokenOption = Annotated[
    Optional[str],  # noqa: UP007
    typer.Option("--token", "-t", envvar="NESTED_ACCESS_TOKEN", help="Access token for the backend"),
]


@app.callback()
def main() -> None:
    configure_logging()


@app.command()
def serve(
    host: Annotated[
        Optional[str],  # noqa: UP007
        typer.Option("--host", "-h", help="Host to bind to"),
    ] = None,
    port: Annotated[
        Optional[int],  # noqa: UP007
        typer.Option("--port", "-p", help="Port to bind to"),
    ] = None,
    reload: Annotated[
        bool,
        typer.Option("--reload", "-r", help="Enable auto-reload for development"),
    ] = False,
) -> None:
    """Start the API server (health, lookups, send-email hook)."""
    import uvicorn

    settings = get_settings()
    host = host or settings.api_host
    port = port or settings.api_port

    console.print(
        Panel(
            f"[bold green]Starting Nested API Server[/bold green]\nHost: {host}\nPort: {port}\nReload: {reload}",
            title="Nested",
            border_style="green",
        )
    )
    uvicorn.run("nested.api.main:app", host=host, port=port, reload=reload, log_level="info")


@app.command()
def status() -> None:
    """Show which backends are configured and where the cache lives."""
    settings = get_settings()
    anon_key = settings.supabase_anon_key.get_secret_value()
    remote = is_remote_configured(settings.supabase_url, anon_key)

    table = Table(title="Nested Status", show_header=True)
    table.add_column("Component", style="cyan")
    table.add_column("State")
    table.add_column("Detail", style="dim")
    table.add_row(
        "Backend",
        "[green]configured[/green]" if remote else "[yellow]local-only[/yellow]",
        settings.supabase_url if remote else configuration_error(settings.supabase_url, anon_key),
    )
    table.add_row("Cache", "[green]ready[/green]", str(settings.cache_dir))
    email_ready = bool(settings.resend_api_key.get_secret_value())
    hook_signed = bool(settings.send_email_hook_secret.get_secret_value())
    table.add_row(
        "Email",
        "[green]configured[/green]" if email_ready else "[yellow]disabled[/yellow]",
        settings.email_from,
    )
    table.add_row(
        "Email hook",
        "[green]configured[/green]" if hook_signed else "[yellow]unsigned[/yellow]",
        "/hooks/send-email",
    )
    console.print(table)


@app.command("check-email")
def check_email(email: Annotated[str, typer.Argument(help="University email address")]) -> None:
    """Check that an email is a campus address and not already registered."""
    result = asyncio.run(ProfileService.from_settings().check_email(email))
    color = _AVAILABILITY_COLORS[result.status]
    console.print(f"[{color}]{result.status.value}[/{color}] {email}")
    if result.message:
        console.print(result.message)
    if result.status is Availability.INVALID:
        raise typer.Exit(code=1)


@app.command("check-username")
def check_username(username: Annotated[str, typer.Argument(help="Desired username")]) -> None:
    """Check username format rules and availability."""
    result = asyncio.run(ProfileService.from_settings().check_username(username))
    color = _AVAILABILITY_COLORS[result.status]
    console.print(f"[{color}]{result.status.value}[/{color}] {username}")
    if result.message:
        console.print(result.message)
    if result.status is Availability.INVALID:
        raise typer.Exit(code=1)


@profile_app.command("show")
def profile_show(user_id: UserIdOption, token: TokenOption = None) -> None:
    """Show the profile, from the backend or the local cache."""
    session = Session(user_id=user_id, access_token=token)
    result = asyncio.run(ProfileService.from_settings().load(session))
    if not result.found:
        console.print("[yellow]No profile found[/yellow]")
        raise typer.Exit(code=1)

    source = "[green]backend[/green]" if result.source is LoadSource.REMOTE else "[yellow]local cache[/yellow]"
    if result.unsynced:
        source += " [yellow](not synced)[/yellow]"
    console.print(Panel(json.dumps(result.record, indent=2, default=str), title=f"Profile from {source}"))


@profile_app.command("set")
def profile_set(
    user_id: UserIdOption,
    fields: Annotated[list[str], typer.Argument(help="field=value pairs; JSON values are parsed")],
    token: TokenOption = None,
) -> None:
    """Update profile fields, e.g. ``nested profile set -u ID bio="Hi" skills='["python"]'``."""
    updates = {}
    for pair in fields:
        name, sep, raw = pair.partition("=")
        if not sep:
            console.print(f"[red]Expected field=value, got {pair!r}[/red]")
            raise typer.Exit(code=2)
        try:
            updates[name] = json.loads(raw)
        except json.JSONDecodeError:
            updates[name] = raw

    session = Session(user_id=user_id, access_token=token)
    result = asyncio.run(ProfileService.from_settings().save(session, updates))

    if result.status is SaveStatus.SAVED:
        console.print("[green]Saved[/green]")
    elif result.status is SaveStatus.SAVED_LOCALLY_ONLY:
        console.print("[yellow]Saved locally; run `nested migrate` once the backend is reachable[/yellow]")
    else:
        detail = result.message or result.error_kind or ""
        console.print(f"[red]{result.status.value}[/red] {result.field or ''} {detail}".rstrip())
        raise typer.Exit(code=1)


@app.command()
def migrate(user_id: UserIdOption, token: TokenOption = None) -> None:
    """Push profile and projects saved offline to the backend."""
    service = ProfileService.from_settings()
    projects = PersistenceCoordinator(PROJECT_BINDING, service.remote, service.cache)
    session = Session(user_id=user_id, access_token=token)

    report = asyncio.run(migrate_cache_to_remote(session, service.coordinator, projects))

    console.print(f"Profile migrated: {'yes' if report.profile_migrated else 'no'}")
    console.print(f"Projects migrated: {report.projects_migrated}")
    for error in report.errors:
        console.print(f"[red]{error}[/red]")
    if not report.ok:
        raise typer.Exit(code=1)


if __name__ == "__main__":
    app()
