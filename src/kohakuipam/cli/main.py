"""
KohakuIPAM CLI entry point.

Usage:
    kohakuipam [OPTIONS] COMMAND [ARGS]...

Commands:
    layout    Datacenter layout inspection
    endpoint  Endpoint address allocation
"""

from typing import Annotated

import typer

from kohakuipam.cli import state
from kohakuipam.cli.commands import endpoint, layout
from kohakuipam.models.enums import LogLevel
from kohakuipam.utils.logger import configure_logging

app = typer.Typer(
    name="kohakuipam",
    help="KohakuIPAM endpoint address management CLI",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

# Register command groups
app.add_typer(layout.app, name="layout", help="Datacenter layout commands")
app.add_typer(endpoint.app, name="endpoint", help="Endpoint address commands")


@app.callback()
def main_callback(
    db_file: Annotated[
        str | None,
        typer.Option("--db", help="SQLite database file", envvar="KOHAKUIPAM_DB_FILE"),
    ] = None,
    layout_str: Annotated[
        str | None,
        typer.Option(
            "--layout",
            "-l",
            help="Layout BASE/PREFIX/HOST/TENANT/SEGMENT/ENDPOINT_SPACE/STRIDE",
            envvar="KOHAKUIPAM_LAYOUT",
        ),
    ] = None,
    log_level: Annotated[
        LogLevel | None,
        typer.Option(
            "--log-level",
            help="Logging level",
            envvar="KOHAKUIPAM_LOG_LEVEL",
        ),
    ] = None,
):
    """
    KohakuIPAM endpoint address management.

    Allocate, release and inspect endpoint addresses on a local database.
    """
    cfg = state.get_config()
    if db_file:
        cfg.DB_FILE = db_file
    if layout_str:
        cfg.LAYOUT = layout_str
    if log_level:
        cfg.LOG_LEVEL = log_level
    configure_logging(cfg.LOG_LEVEL, cfg.LOG_FILE)
    state.reset()


def main():
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
