# /askscript/app.py
"""
Operator CLI for AskScript.
Starts the HTTP server, or manages scripts directly against the local data
directory: upload a sheet, list scripts, try questions, delete a script.

Usage:
    askscript            interactive menu
    askscript serve      run the API server only
"""
import sys
from pathlib import Path

import uvicorn
from rich.panel import Panel
from rich.prompt import Prompt
from rich.table import Table, box

from .api_server import create_app
from .config import (
    DATA_DIR,
    HOST,
    MATCH_THRESHOLD,
    PORT,
    PUBLIC_BASE_URL,
    RESTORE_INDEXES_ON_STARTUP,
    console,
)
from .errors import ScriptError
from .observability import get_logger
from .script_service import ScriptService

logger = get_logger(__name__)


# --- UI & Formatting Functions ---

def display_welcome_banner():
    """Displays the application's welcome banner."""
    console.print(Panel(
        "[bold magenta]AskScript - Question/Answer Sheet Service[/bold magenta]",
        subtitle=f"[cyan]Data: {DATA_DIR}[/cyan]",
        expand=False
    ))
    console.print(f"[green]Match threshold: {MATCH_THRESHOLD:.2f} | Public URL: {PUBLIC_BASE_URL}[/green]")


def _resolve_upload_path(raw_input: str) -> tuple[Path | None, str | None]:
    """Normalizes and validates user-provided upload path."""
    cleaned = str(raw_input or "").strip().strip('"').strip("'")
    if not cleaned:
        return None, "Error: Empty path provided."
    try:
        resolved = Path(cleaned).expanduser().resolve(strict=True)
    except FileNotFoundError:
        return None, f"Error: File not found at '{cleaned}'"
    except OSError as exc:
        return None, f"Error: Invalid path '{cleaned}' ({exc})"
    if not resolved.is_file():
        return None, f"Error: Path is not a regular file: '{resolved}'"
    return resolved, None


# --- Main Application Flow ---

def handle_upload(service: ScriptService):
    """CLI flow for uploading a sheet."""
    file_path, error_message = _resolve_upload_path(Prompt.ask("Enter the full path to your sheet"))
    if file_path is None:
        console.print(f"[bold red]{error_message}[/bold red]")
        return
    client_name = Prompt.ask("Client name")
    try:
        record = service.upload(file_path.name, file_path.read_bytes(), client_name)
    except ScriptError as exc:
        console.print(f"[bold red]Error: {exc.message}[/bold red]")
        return
    console.print(
        Panel(
            f"[green]OK Script created: [bold]{record.script_id}[/bold]\n"
            f"       URL: {PUBLIC_BASE_URL}{record.redirect_url}",
            title="Upload Success",
            border_style="green",
        )
    )


def list_scripts(service: ScriptService):
    """Displays a table of all stored scripts."""
    records = service.records.all()
    if not records:
        console.print("[yellow]No scripts uploaded yet.[/yellow]")
        return

    table = Table(title="Scripts", border_style="blue", header_style="bold", box=box.SQUARE)
    table.add_column("Script ID", style="cyan")
    table.add_column("Client", style="magenta")
    table.add_column("File", style="yellow")
    table.add_column("Index", style="white")
    for record in records:
        status = "[green]Ready[/green]" if service.has_index(record.script_id) else "[red]Not Loaded[/red]"
        table.add_row(record.script_id, record.client_name, record.file_name, status)
    console.print(table)


def handle_questions(service: ScriptService):
    """Interactive question loop against one script."""
    script_id = Prompt.ask("Script ID")
    console.print("[italic]Type 'back' to return to menu.[/italic]")
    while True:
        question = Prompt.ask("[bold cyan]Ask a question[/bold cyan]")
        if question.lower() == "back":
            break
        if question.strip():
            result = service.answer(script_id, question)
            style = "blue" if result.outcome == "matched" else "yellow"
            console.print(Panel(result.answer, title="Answer", border_style=style))


def handle_delete(service: ScriptService):
    script_id = Prompt.ask("Script ID to delete")
    try:
        record = service.delete(script_id)
    except ScriptError as exc:
        console.print(f"[bold red]Error: {exc.message}[/bold red]")
        return
    console.print(f"[green]Deleted {record.script_id} ({record.client_name}).[/green]")


def serve(service: ScriptService | None = None):
    logger.info("server_starting", host=HOST, port=PORT)
    uvicorn.run(create_app(service), host=HOST, port=PORT)


def main():
    """Main application loop."""
    display_welcome_banner()
    if len(sys.argv) > 1 and sys.argv[1] == "serve":
        serve()
        return

    service = ScriptService.from_config()
    if RESTORE_INDEXES_ON_STARTUP:
        service.restore_indexes()

    while True:
        try:
            console.print("\n[bold]Main Menu:[/bold]")
            console.print("[green]1. Upload Sheet[/green]")
            console.print("[cyan]2. List Scripts[/cyan]")
            console.print("[blue]3. Ask Questions[/blue]")
            console.print("[yellow]4. Delete Script[/yellow]")
            console.print("[magenta]5. Start API Server[/magenta]")
            console.print("[red]6. Exit[/red]")

            choice = Prompt.ask("Choose an option", choices=["1", "2", "3", "4", "5", "6"])

            if choice == "1":
                handle_upload(service)
            elif choice == "2":
                list_scripts(service)
            elif choice == "3":
                handle_questions(service)
            elif choice == "4":
                handle_delete(service)
            elif choice == "5":
                serve(service)
            elif choice == "6":
                break
        except KeyboardInterrupt:
            break

    console.print("\n[bold magenta]Goodbye![/bold magenta]")
    sys.exit(0)


if __name__ == "__main__":
    main()
