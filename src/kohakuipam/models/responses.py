"""
Pydantic models for allocator responses.

These are the typed payloads of the two operations the allocator exposes
to its service layer (AllocateEndpointIP / ReleaseEndpointIP). Wire
serialization belongs to that layer; model_dump() / model_dump_json()
give it a stable shape.
"""

from pydantic import BaseModel, Field


# =============================================================================
# Endpoint Models
# =============================================================================


class EndpointInfo(BaseModel):
    """Endpoint record as returned to callers."""

    ip: str = Field(..., description="Assigned IPv4 address")
    tenant_id: int
    segment_id: int
    host_id: int
    network_id: int = Field(..., ge=0, description="Ordinal within the triple")
    effective_network_id: int = Field(
        ..., ge=3, description="Offset of the endpoint within its triple block"
    )
    name: str | None = None
    in_use: bool


# =============================================================================
# Operation Responses
# =============================================================================


class AllocateResponse(BaseModel):
    """Response of AllocateEndpointIP."""

    ip: str
    network_id: int
    reclaimed: bool = Field(
        default=False,
        description="True when a released address was handed back out",
    )
    endpoint: EndpointInfo


class ReleaseResponse(BaseModel):
    """Response of ReleaseEndpointIP, carrying the record before release."""

    previous: EndpointInfo


class ErrorResponse(BaseModel):
    """Standard error payload for IPAMError kinds."""

    kind: str
    detail: str
    status_code: int
