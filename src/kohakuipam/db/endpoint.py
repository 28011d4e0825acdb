"""
Endpoint database model for KohakuIPAM.

One row per address ever allocated to a (tenant, segment, host) triple.
Rows are never deleted: release flips `in_use` so the network-id to
address mapping survives and is handed back out on reclaim.
"""

import datetime

import peewee

from kohakuipam.db.base import BaseModel
from kohakuipam.ipam.encoder import effective_offset
from kohakuipam.models.enums import EndpointState


# =============================================================================
# Endpoint Model
# =============================================================================


class Endpoint(BaseModel):
    """
    Represents an endpoint (VM, container, pod) holding an overlay address.

    Attributes:
        ip: Assigned IPv4 address (unique across all records).
        tenant_id: Tenant of the placement triple.
        segment_id: Segment of the placement triple.
        host_id: Host of the placement triple.
        network_id: Ordinal of this endpoint within its triple.
        in_use: True while assigned, False once released.
        request_token: Optional idempotency token (unique when present).
    """

    # -------------------------------------------------------------------------
    # Identification
    # -------------------------------------------------------------------------

    id = peewee.AutoField()
    ip = peewee.CharField(unique=True)
    name = peewee.CharField(null=True)
    request_token = peewee.CharField(null=True, unique=True)

    # -------------------------------------------------------------------------
    # Placement
    # -------------------------------------------------------------------------

    tenant_id = peewee.IntegerField()
    segment_id = peewee.IntegerField()
    host_id = peewee.IntegerField()
    network_id = peewee.BigIntegerField()

    # -------------------------------------------------------------------------
    # State
    # -------------------------------------------------------------------------

    in_use = peewee.BooleanField(default=True, index=True)
    created_at = peewee.DateTimeField(default=datetime.datetime.now)
    updated_at = peewee.DateTimeField(default=datetime.datetime.now)

    class Meta:
        table_name = "endpoints"
        indexes = (
            # Network ids are unique within a triple
            (("tenant_id", "segment_id", "host_id", "network_id"), True),
        )

    # =========================================================================
    # Derived Values
    # =========================================================================

    @property
    def triple(self) -> tuple[int, int, int]:
        return (self.tenant_id, self.segment_id, self.host_id)

    @property
    def state(self) -> EndpointState:
        return EndpointState.IN_USE if self.in_use else EndpointState.RELEASED

    def effective_network_id(self, stride: int) -> int:
        """Recompute the offset of this endpoint for the given stride."""
        return effective_offset(self.network_id, stride)

    # =========================================================================
    # Serialization
    # =========================================================================

    def to_dict(self, stride: int | None = None) -> dict:
        """Convert endpoint to dictionary for payloads and CLI output."""
        return {
            "ip": self.ip,
            "tenant_id": self.tenant_id,
            "segment_id": self.segment_id,
            "host_id": self.host_id,
            "network_id": self.network_id,
            "effective_network_id": (
                self.effective_network_id(stride) if stride is not None else None
            ),
            "name": self.name,
            "in_use": self.in_use,
            "state": self.state.value,
            "created_at": self.created_at.isoformat() if self.created_at else None,
            "updated_at": self.updated_at.isoformat() if self.updated_at else None,
        }
