"""Layout inspection commands."""

import json
from typing import Annotated

import typer

from kohakuipam.cli import state
from kohakuipam.cli.formatters import format_layout_table
from kohakuipam.cli.output import console, print_error
from kohakuipam.ipam.exceptions import IPAMError

app = typer.Typer(help="Datacenter layout commands")


@app.command("show")
def show_layout(
    as_json: Annotated[bool, typer.Option("--json", help="Print as JSON")] = False,
):
    """Show the configured bit-field layout."""
    try:
        layout = state.get_config().get_layout()
    except IPAMError as e:
        print_error(str(e))
        raise typer.Exit(1)

    if as_json:
        console.print_json(json.dumps(layout.to_dict()))
        return
    console.print(format_layout_table(layout))


@app.command("decode")
def decode_address(
    address: Annotated[str, typer.Argument(help="Endpoint IPv4 address")],
):
    """Decode an endpoint address into tenant, segment, host and network id."""
    try:
        layout = state.get_config().get_layout()
        location = layout.decompose(address)
    except IPAMError as e:
        print_error(str(e))
        raise typer.Exit(1)

    console.print(
        f"[cyan]{address}[/cyan] -> tenant={location.tenant_id} "
        f"segment={location.segment_id} host={location.host_id} "
        f"network_id={location.network_id}"
    )
