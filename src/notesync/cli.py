"""CLI interface for notesync."""

import time
from pathlib import Path
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from notesync import __version__
from notesync.application import Application, create_application
from notesync.config import Settings, get_settings
from notesync.exceptions import IndexOutOfRange
from notesync.logger import configure_logging
from notesync.models.note import Note, SyncStatus
from notesync.services.image_codec import ImageDecodeError

app = typer.Typer(
    name="notesync",
    help="Take notes with photos, kept in sync with your notes backend.",
    no_args_is_help=True,
)
console = Console()

STATUS_STYLES = {
    SyncStatus.PENDING: "[yellow]pending[/yellow]",
    SyncStatus.SYNCED: "[green]synced[/green]",
    SyncStatus.FAILED: "[red]failed[/red]",
}


def load_settings() -> Settings:
    """Load settings, exiting with a readable message when they are invalid."""
    try:
        settings = get_settings()
    except Exception as e:
        console.print(f"[red]Configuration error: {e}[/red]")
        console.print("Make sure you have a .env file with required settings.")
        raise typer.Exit(1)

    configure_logging(settings.log_level)
    return settings


def open_session(settings: Settings) -> Application:
    """Build the application and load the signed-in user's notes."""
    if not settings.is_authenticated:
        console.print("[yellow]Not signed in. Run 'notesync login' first.[/yellow]")
        raise typer.Exit(1)

    application = create_application(settings)
    result = application.gateway.check_session().result()

    if not result.success:
        application.close()
        console.print(f"[red]Cannot reach backend: {result.error}[/red]")
        raise typer.Exit(1)

    if not application.store.is_signed_in:
        application.close()
        console.print("[yellow]Session expired. Run 'notesync login' again.[/yellow]")
        raise typer.Exit(1)

    return application


def notes_table(notes: tuple[Note, ...], title: str = "Notes") -> Table:
    """Render notes as a table, one row per display position."""
    table = Table(title=title)
    table.add_column("#", justify="right", style="cyan")
    table.add_column("Name", style="bold")
    table.add_column("Description")
    table.add_column("Image", style="dim")
    table.add_column("Status")

    for index, note in enumerate(notes):
        if note.image is not None:
            image = f"{note.image.width}x{note.image.height}"
        else:
            image = "yes" if note.has_image else "-"
        table.add_row(
            str(index),
            note.name,
            note.description,
            image,
            STATUS_STYLES[note.sync_status],
        )

    return table


@app.command()
def login(
    username: Optional[str] = typer.Option(
        None, "--username", "-u", help="Username (default: NOTESYNC_USERNAME)"
    ),
    password: str = typer.Option(
        ..., "--password", "-p", prompt=True, hide_input=True, help="Password"
    ),
):
    """Sign in and print a session token to keep using."""
    settings = load_settings()
    username = username or settings.username
    if not username:
        username = typer.prompt("Username")

    with create_application(settings) as application:
        result = application.actions.sign_in(username, password).result()

        if not result.success:
            console.print(f"[red]Sign-in failed: {result.error}[/red]")
            raise typer.Exit(1)

        console.print(f"[green]✓[/green] Signed in as [bold]{username}[/bold]")
        console.print(f"  Notes: [cyan]{len(application.store)}[/cyan]")
        console.print("\nTo stay signed in, set:")
        console.print(f"  NOTESYNC_API_TOKEN={application.backend.token}")


@app.command()
def logout():
    """Sign out of the backend."""
    settings = load_settings()

    if not settings.is_authenticated:
        console.print("[yellow]Not signed in.[/yellow]")
        raise typer.Exit(0)

    with create_application(settings) as application:
        result = application.actions.sign_out().result()

    if not result.success:
        console.print(f"[red]Sign-out failed: {result.error}[/red]")
        raise typer.Exit(1)

    console.print("[green]✓[/green] Signed out. Unset NOTESYNC_API_TOKEN.")


@app.command("list")
def list_notes(
    images: bool = typer.Option(
        False, "--images", "-i", help="Wait for note images to download"
    ),
):
    """List your notes."""
    settings = load_settings()
    application = open_session(settings)

    if images:
        # Image fetches queued by the refresh finish before close() returns
        application.close()
    else:
        application.gateway.shutdown(wait=False, cancel_pending=True)

    notes = application.store.notes
    if not notes:
        console.print("[yellow]No notes yet. Add one with 'notesync add'.[/yellow]")
        raise typer.Exit(0)

    console.print(notes_table(notes))


@app.command()
def add(
    name: str = typer.Argument(..., help="Note name"),
    description: str = typer.Argument("", help="Note description"),
    image: Optional[Path] = typer.Option(
        None, "--image", "-i", help="Photo to attach", exists=True, dir_okay=False
    ),
):
    """Add a note."""
    settings = load_settings()
    application = open_session(settings)

    try:
        submission = application.actions.add_note(name, description, image_path=image)
    except (ValueError, ImageDecodeError) as e:
        application.close()
        console.print(f"[red]Cannot add note: {e}[/red]")
        raise typer.Exit(1)

    note_result = submission.note_future.result()
    application.close()

    if not note_result.success:
        console.print(f"[red]✗[/red] '{submission.note.name}' not synced: {note_result.error}")
        raise typer.Exit(1)

    if submission.note.image_name is not None:
        console.print(f"  [green]✓[/green] Image uploaded ({submission.note.image_name})")
    console.print(f"[green]✓[/green] Added '{submission.note.name}'")


@app.command()
def delete(
    index: int = typer.Argument(..., help="Position shown by 'notesync list'"),
):
    """Delete the note at a position."""
    settings = load_settings()
    application = open_session(settings)

    try:
        deletion = application.actions.delete_note_at(index)
    except IndexOutOfRange as e:
        application.close()
        console.print(f"[red]{e}[/red]")
        raise typer.Exit(1)

    result = deletion.future.result()
    application.close()

    if not result.success:
        console.print(f"[red]✗[/red] '{deletion.note.name}' not deleted: {result.error}")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Deleted '{deletion.note.name}'")


@app.command()
def watch(
    count: int = typer.Option(
        0, "--count", "-c", help="Stop after this many polls (0 = until interrupted)"
    ),
):
    """Show your notes and follow changes made elsewhere."""
    settings = load_settings()
    application = open_session(settings)

    subscription = application.store.subscribe_to_notes(
        lambda notes: console.print(notes_table(notes, title=f"Notes ({len(notes)})"))
    )

    polls = 0
    try:
        while count == 0 or polls < count:
            time.sleep(settings.poll_interval)
            result = application.gateway.pull_changes()
            if not result.success:
                console.print(f"[red]Cannot fetch changes: {result.error}[/red]")
            application.gateway.retry_failed()
            polls += 1
    except KeyboardInterrupt:
        console.print("\n[dim]Stopped watching.[/dim]")
    finally:
        subscription.dispose()
        application.close()


@app.command()
def status():
    """Show backend connection and session status."""
    settings = load_settings()

    with create_application(settings) as application:
        reachable = application.backend.check_connection()
        signed_in = False
        if reachable and settings.is_authenticated:
            signed_in = application.gateway.check_session().result().success and (
                application.store.is_signed_in
            )

    table = Table(title="notesync Status")
    table.add_column("Check", style="cyan")
    table.add_column("Value", justify="right")

    table.add_row("Backend", "[green]reachable[/green]" if reachable else "[red]unreachable[/red]")
    table.add_row("Session", "[green]signed in[/green]" if signed_in else "[yellow]signed out[/yellow]")
    if signed_in:
        table.add_row("Notes", str(len(application.store)))

    console.print(table)


@app.command()
def config():
    """Show current configuration."""
    settings = load_settings()

    table = Table(title="notesync Configuration")
    table.add_column("Setting", style="cyan")
    table.add_column("Value", style="green")

    token_masked = (
        settings.api_token[:10] + "..." if len(settings.api_token) > 10 else "***"
    ) if settings.api_token else "(not signed in)"

    table.add_row("Backend URL", settings.backend_url)
    table.add_row("API Token", token_masked)
    table.add_row("Username", settings.username or "(not set)")
    table.add_row("Request Timeout", f"{settings.request_timeout}s")
    table.add_row("Max Workers", str(settings.max_workers))
    table.add_row("Poll Interval", f"{settings.poll_interval}s")
    table.add_row("Log Level", settings.log_level)

    console.print(table)


@app.command()
def version():
    """Show version information."""
    console.print(f"notesync v{__version__}")


@app.callback()
def main():
    """
    notesync - notes with photos, synced to your notes backend.

    Sign in once, then add, list and delete notes from the command line.
    """
    pass


if __name__ == "__main__":
    app()
