"""
IPAM service: allocate / release orchestration.

Composes reclaim-or-mint with address encoding over an AllocationStore.

Allocation for (tenant, segment, host):
1. A request token already held by an in-use record returns that record.
2. The released slot with the smallest network id is reactivated; its
   stored address is handed back verbatim (no re-encoding).
3. Otherwise a fresh network id is minted and encoded:
       address = triple_prefix | (3 + 2**stride * network_id)
   and a new in-use record is inserted.

All steps run inside a single store transaction, so either the returned
endpoint is committed or nothing changed.

Layout parameters of a triple must not change once it has any endpoint:
reclaimed addresses keep their historical encoding, so minting under a
different layout would mix encodings within the triple. Minting checks the
triple's latest record still decodes under the current layout and raises
ConfigurationFault otherwise.
"""

from __future__ import annotations

import ipaddress

import peewee

from kohakuipam.config import IpamConfig
from kohakuipam.db.base import initialize_database, run_in_executor
from kohakuipam.db.endpoint import Endpoint
from kohakuipam.ipam.exceptions import (
    ConfigurationFault,
    ConflictViolation,
    InvalidArgument,
    StoreFault,
)
from kohakuipam.ipam.store import AllocationStore
from kohakuipam.models.layout import DatacenterLayout, EndpointLocation
from kohakuipam.models.responses import (
    AllocateResponse,
    EndpointInfo,
    ReleaseResponse,
)
from kohakuipam.utils.logger import get_logger

logger = get_logger(__name__)


class IPAMService:
    """
    Allocates and releases endpoint addresses within one datacenter layout.

    The layout is fixed for the lifetime of the service; build a new
    service to apply a new layout.
    """

    def __init__(self, layout: DatacenterLayout, store: AllocationStore | None = None):
        self.layout = layout
        self.store = store or AllocationStore()
        logger.info(f"IPAM service initialized with layout {layout}")

    # =========================================================================
    # Allocation
    # =========================================================================

    def allocate(
        self,
        tenant_id: int,
        segment_id: int,
        host_id: int,
        name: str | None = None,
        request_token: str | None = None,
    ) -> Endpoint:
        """
        Allocate an address for an endpoint placed on (tenant, segment, host).

        Args:
            tenant_id: Tenant id, must fit tenant_bits.
            segment_id: Segment id, must fit segment_bits.
            host_id: Host id, must fit host_bits.
            name: Optional endpoint name stored with the record.
            request_token: Optional idempotency token.

        Returns:
            The committed in-use endpoint record.

        Raises:
            InvalidArgument: If an id does not fit the layout.
            ConflictViolation: On a uniqueness violation or a reused token.
            ConfigurationFault: If the triple is out of network ids or its
                history was encoded under a different layout.
            StoreFault: If the database fails.
        """
        record, _ = self._allocate(tenant_id, segment_id, host_id, name, request_token)
        return record

    def _allocate(
        self,
        tenant_id: int,
        segment_id: int,
        host_id: int,
        name: str | None,
        request_token: str | None,
    ) -> tuple[Endpoint, bool]:
        # Validates the ids before touching the store
        base = self.layout.triple_prefix(tenant_id, segment_id, host_id)
        triple = (tenant_id, segment_id, host_id)

        with self.store.transaction():
            if request_token is not None:
                existing = self._find_token_holder(request_token, triple)
                if existing is not None:
                    logger.info(
                        f"Allocation with token {request_token!r} already served: "
                        f"{existing.ip}"
                    )
                    return existing, False

            record = self.store.reclaim(
                tenant_id, segment_id, host_id, name=name, request_token=request_token
            )
            if record is not None:
                reclaimed = True
            else:
                reclaimed = False
                self._check_layout_unchanged(tenant_id, segment_id, host_id)

                network_id = self.store.mint_next_network_id(
                    tenant_id, segment_id, host_id
                )
                if network_id > self.layout.max_network_id:
                    raise ConfigurationFault(
                        f"Triple tenant={tenant_id} segment={segment_id} "
                        f"host={host_id} exhausted its endpoint space "
                        f"({self.layout.endpoints_per_triple} endpoints)"
                    )
                offset = self.layout.endpoint_offset(network_id)
                ip = str(ipaddress.IPv4Address(base | offset))
                logger.debug(
                    f"Effective network id for network id {network_id} "
                    f"(stride {self.layout.stride}): {offset}, "
                    f"{base} | {offset} = {ip}"
                )

                record = Endpoint(
                    ip=ip,
                    tenant_id=tenant_id,
                    segment_id=segment_id,
                    host_id=host_id,
                    network_id=network_id,
                    name=name,
                    request_token=request_token,
                    in_use=True,
                )
                self.store.persist(record)

        logger.info(
            f"Allocated {record.ip} (network id {record.network_id}, "
            f"{'reclaimed' if reclaimed else 'new'}) for tenant={tenant_id} "
            f"segment={segment_id} host={host_id}"
        )
        return record, reclaimed

    def _find_token_holder(
        self, request_token: str, triple: tuple[int, int, int]
    ) -> Endpoint | None:
        """Return the in-use record already serving a token, if any."""
        existing = self.store.get_by_token(request_token)
        if existing is None:
            return None
        if not existing.in_use:
            raise ConflictViolation(
                f"Request token {request_token!r} belongs to released endpoint "
                f"{existing.ip}"
            )
        if existing.triple != triple:
            raise ConflictViolation(
                f"Request token {request_token!r} is held by {existing.ip} "
                f"on tenant={existing.tenant_id} segment={existing.segment_id} "
                f"host={existing.host_id}"
            )
        return existing

    def _check_layout_unchanged(
        self, tenant_id: int, segment_id: int, host_id: int
    ) -> None:
        """Refuse to mint if the triple's history decodes differently now."""
        latest = self.store.latest_for_triple(tenant_id, segment_id, host_id)
        if latest is None:
            return

        expected = EndpointLocation(tenant_id, segment_id, host_id, latest.network_id)
        try:
            location = self.layout.decompose(latest.ip)
        except InvalidArgument:
            location = None

        if location != expected:
            raise ConfigurationFault(
                f"Layout changed for tenant={tenant_id} segment={segment_id} "
                f"host={host_id}: stored address {latest.ip} "
                f"(network id {latest.network_id}) does not match layout {self.layout}"
            )

    # =========================================================================
    # Release
    # =========================================================================

    def release(self, address: str) -> Endpoint:
        """
        Release an address back to its triple's pool.

        Returns:
            The record as it was before release.

        Raises:
            InvalidArgument: If `address` is not an IPv4 address.
            NotFound: If no active record holds the address.
            ConsistencyFault: If several active records hold it.
        """
        try:
            address = str(ipaddress.IPv4Address(address))
        except ValueError as e:
            raise InvalidArgument(f"Invalid IPv4 address '{address}': {e}") from e

        record = self.store.release(address)
        logger.info(
            f"Released {address} (network id {record.network_id}) for "
            f"tenant={record.tenant_id} segment={record.segment_id} "
            f"host={record.host_id}"
        )
        return record

    # =========================================================================
    # Service-Layer Operations
    # =========================================================================

    def allocate_endpoint_ip(
        self,
        tenant_id: int,
        segment_id: int,
        host_id: int,
        name: str | None = None,
        request_token: str | None = None,
    ) -> AllocateResponse:
        """AllocateEndpointIP: allocate and return a typed payload."""
        record, reclaimed = self._allocate(
            tenant_id, segment_id, host_id, name, request_token
        )
        return AllocateResponse(
            ip=record.ip,
            network_id=record.network_id,
            reclaimed=reclaimed,
            endpoint=self.endpoint_info(record),
        )

    def release_endpoint_ip(self, address: str) -> ReleaseResponse:
        """ReleaseEndpointIP: release and return the previous record."""
        return ReleaseResponse(previous=self.endpoint_info(self.release(address)))

    def endpoint_info(self, record: Endpoint) -> EndpointInfo:
        return EndpointInfo(
            ip=record.ip,
            tenant_id=record.tenant_id,
            segment_id=record.segment_id,
            host_id=record.host_id,
            network_id=record.network_id,
            effective_network_id=record.effective_network_id(self.layout.stride),
            name=record.name,
            in_use=record.in_use,
        )

    # =========================================================================
    # Async Wrappers
    # =========================================================================

    async def allocate_async(self, *args, **kwargs) -> Endpoint:
        """Run allocate() in a worker thread."""
        return await run_in_executor(self.allocate, *args, **kwargs)

    async def release_async(self, address: str) -> Endpoint:
        """Run release() in a worker thread."""
        return await run_in_executor(self.release, address)


# =============================================================================
# Construction
# =============================================================================


def create_service(cfg: IpamConfig) -> IPAMService:
    """
    Build a service from configuration.

    The layout is validated before the database is opened, so an invalid
    layout fails at load time rather than on the first request.
    """
    layout = cfg.get_layout()
    try:
        initialize_database(cfg.DB_FILE)
    except (peewee.DatabaseError, OSError) as e:
        raise StoreFault(
            f"Cannot open endpoint database '{cfg.DB_FILE}': {e}"
        ) from e
    return IPAMService(layout)
