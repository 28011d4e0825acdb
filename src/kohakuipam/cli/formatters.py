"""Rich renderables for layouts and endpoints."""

from rich.panel import Panel
from rich.table import Table

from kohakuipam.models.layout import DatacenterLayout


def format_layout_table(layout: DatacenterLayout) -> Table:
    """Bit-field table, most significant field first."""
    table = Table(title=f"Layout {layout}", show_header=True)
    table.add_column("Field", style="cyan")
    table.add_column("Bits", justify="right")
    table.add_column("Shift", justify="right")
    table.add_column("Capacity", justify="right", style="green")

    table.add_row("prefix", str(layout.prefix), str(32 - layout.prefix), "-")
    table.add_row("slack", str(layout.slack_bits), "-", "-")
    table.add_row(
        "host", str(layout.host_bits), str(layout.host_shift), str(2**layout.host_bits)
    )
    table.add_row(
        "tenant",
        str(layout.tenant_bits),
        str(layout.tenant_shift),
        str(2**layout.tenant_bits),
    )
    table.add_row(
        "segment",
        str(layout.segment_bits),
        str(layout.segment_shift),
        str(2**layout.segment_bits),
    )
    table.add_row(
        "endpoint space",
        str(layout.endpoint_space_bits),
        str(layout.stride),
        str(layout.endpoints_per_triple),
    )
    table.add_row("stride", str(layout.stride), "0", str(2**layout.stride))
    return table


def format_endpoint_table(endpoints: list[dict]) -> Table:
    table = Table(title="Endpoints", show_header=True)
    table.add_column("IP", style="cyan")
    table.add_column("Tenant", justify="right")
    table.add_column("Segment", justify="right")
    table.add_column("Host", justify="right")
    table.add_column("Net ID", justify="right")
    table.add_column("Name")
    table.add_column("State")

    for ep in endpoints:
        state = ep["state"]
        color = "green" if ep["in_use"] else "dim"
        table.add_row(
            ep["ip"],
            str(ep["tenant_id"]),
            str(ep["segment_id"]),
            str(ep["host_id"]),
            str(ep["network_id"]),
            ep.get("name") or "-",
            f"[{color}]{state}[/{color}]",
        )
    return table


def format_endpoint_detail(endpoint: dict, title: str = "Endpoint") -> Panel:
    lines = [
        f"[bold]IP:[/bold] {endpoint['ip']}",
        f"[bold]Tenant / Segment / Host:[/bold] "
        f"{endpoint['tenant_id']} / {endpoint['segment_id']} / {endpoint['host_id']}",
        f"[bold]Network ID:[/bold] {endpoint['network_id']}",
        f"[bold]Effective Network ID:[/bold] {endpoint['effective_network_id']}",
        f"[bold]Name:[/bold] {endpoint.get('name') or '-'}",
        f"[bold]In Use:[/bold] {endpoint['in_use']}",
    ]
    return Panel("\n".join(lines), title=title, expand=False)
