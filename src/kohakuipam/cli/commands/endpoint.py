"""Endpoint allocation commands."""

from typing import Annotated

import typer

from kohakuipam.cli import state
from kohakuipam.cli.formatters import format_endpoint_detail, format_endpoint_table
from kohakuipam.cli.output import console, print_success, report_ipam_error
from kohakuipam.ipam.exceptions import IPAMError

app = typer.Typer(help="Endpoint address commands")


@app.command("allocate")
def allocate_endpoint(
    tenant: Annotated[int, typer.Argument(help="Tenant id")],
    segment: Annotated[int, typer.Argument(help="Segment id")],
    host: Annotated[int, typer.Argument(help="Host id")],
    name: Annotated[
        str | None, typer.Option("--name", "-n", help="Endpoint name")
    ] = None,
    token: Annotated[
        str | None, typer.Option("--token", "-t", help="Idempotency token")
    ] = None,
    as_json: Annotated[bool, typer.Option("--json", help="Print as JSON")] = False,
):
    """Allocate an address for an endpoint."""
    try:
        service = state.get_service()
        response = service.allocate_endpoint_ip(
            tenant, segment, host, name=name, request_token=token
        )
    except IPAMError as e:
        report_ipam_error(e, as_json)
        raise typer.Exit(1)

    if as_json:
        console.print_json(response.model_dump_json())
        return

    verb = "Reclaimed" if response.reclaimed else "Allocated"
    print_success(f"{verb} {response.ip} (network id {response.network_id})")
    console.print(format_endpoint_detail(response.endpoint.model_dump()))


@app.command("release")
def release_endpoint(
    address: Annotated[str, typer.Argument(help="Endpoint IPv4 address")],
    as_json: Annotated[bool, typer.Option("--json", help="Print as JSON")] = False,
):
    """Release an endpoint address."""
    try:
        service = state.get_service()
        response = service.release_endpoint_ip(address)
    except IPAMError as e:
        report_ipam_error(e, as_json)
        raise typer.Exit(1)

    if as_json:
        console.print_json(response.model_dump_json())
        return
    print_success(f"Released {response.previous.ip}")


@app.command("list")
def list_endpoints(
    tenant: Annotated[int | None, typer.Option("--tenant", help="Tenant id")] = None,
    segment: Annotated[
        int | None, typer.Option("--segment", help="Segment id")
    ] = None,
    host: Annotated[int | None, typer.Option("--host", help="Host id")] = None,
    active: Annotated[
        bool, typer.Option("--active", "-a", help="Only endpoints in use")
    ] = False,
):
    """List endpoint records."""
    try:
        service = state.get_service()
        records = service.store.list_endpoints(
            tenant_id=tenant,
            segment_id=segment,
            host_id=host,
            in_use=True if active else None,
        )
    except IPAMError as e:
        report_ipam_error(e)
        raise typer.Exit(1)

    if not records:
        console.print("[yellow]No endpoints found.[/yellow]")
        return

    stride = service.layout.stride
    console.print(format_endpoint_table([r.to_dict(stride) for r in records]))
