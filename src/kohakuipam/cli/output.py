"""Console output helpers for the CLI."""

from rich.console import Console

from kohakuipam.ipam.exceptions import IPAMError
from kohakuipam.models.responses import ErrorResponse

console = Console()
err_console = Console(stderr=True)


def print_error(message: str) -> None:
    err_console.print(f"[bold red]Error:[/bold red] {message}")


def print_success(message: str) -> None:
    console.print(f"[green]{message}[/green]")


def report_ipam_error(error: IPAMError, as_json: bool = False) -> None:
    """Print an IPAMError, as an ErrorResponse payload when JSON is requested."""
    if as_json:
        payload = ErrorResponse(
            kind=error.kind, detail=str(error), status_code=error.status_code
        )
        console.print_json(payload.model_dump_json())
        return
    print_error(str(error))
