"""
Allocation store for endpoint addresses.

Durable bookkeeping of which addresses are allocated or released per
(tenant, segment, host) triple, and minting of fresh network ids.

Every operation runs inside transaction(): the store-wide mutex is held,
a single database transaction is open, and it is either committed or
rolled back before the mutex is released. Operations called while the
same thread already holds the transaction join it instead of nesting,
so the IPAM service can compose reclaim / mint / persist atomically.

The mutex is required on top of the transaction: "find max network id,
insert max + 1" and "find min free slot, flip its flag" are read-then-write
sequences that SQLite's deferred transactions do not serialize on their own.
"""

from __future__ import annotations

import contextlib
import datetime
import threading

import peewee

from kohakuipam.db.endpoint import Endpoint
from kohakuipam.ipam.exceptions import (
    ConflictViolation,
    ConsistencyFault,
    NotFound,
    StoreFault,
)
from kohakuipam.utils.logger import format_traceback, get_logger

logger = get_logger(__name__)


def _triple_filter(tenant_id: int, segment_id: int, host_id: int):
    return (
        (Endpoint.tenant_id == tenant_id)
        & (Endpoint.segment_id == segment_id)
        & (Endpoint.host_id == host_id)
    )


class AllocationStore:
    """
    Persistent, concurrency-safe table of endpoint records.

    State Management:
    - The endpoints table is the single source of truth
    - Records are append-only; release only clears `in_use`
    - All calls against one store instance are totally ordered by its mutex
    """

    def __init__(self):
        self.database = Endpoint._meta.database
        self._lock = threading.RLock()
        self._local = threading.local()

    # =========================================================================
    # Transaction Scope
    # =========================================================================

    @contextlib.contextmanager
    def transaction(self):
        """
        Hold the store mutex and a single database transaction.

        Re-entrant on the calling thread: an inner scope joins the outer
        transaction. Database errors are rolled back and surfaced as
        ConflictViolation (constraint violations) or StoreFault.
        """
        with self._lock:
            depth = getattr(self._local, "depth", 0)
            if depth:
                self._local.depth = depth + 1
                try:
                    yield
                finally:
                    self._local.depth = depth
                return

            self._local.depth = 1
            try:
                with self.database.atomic():
                    yield
            except peewee.IntegrityError as e:
                logger.error(f"IpamStore: constraint violation, rolled back: {e}")
                raise ConflictViolation(f"Endpoint constraint violated: {e}") from e
            except peewee.DatabaseError as e:
                logger.error(f"IpamStore: transaction failed, rolled back: {e}")
                logger.debug(format_traceback(e))
                raise StoreFault(f"Endpoint store failure: {e}") from e
            finally:
                self._local.depth = 0

    # =========================================================================
    # Allocation Operations
    # =========================================================================

    def reclaim(
        self,
        tenant_id: int,
        segment_id: int,
        host_id: int,
        name: str | None = None,
        request_token: str | None = None,
    ) -> Endpoint | None:
        """
        Reactivate the released slot with the smallest network id.

        The slot takes over `name` and `request_token` of the new request.

        Returns:
            The reactivated record, or None if the triple has no free slot.
        """
        with self.transaction():
            record = (
                Endpoint.select()
                .where(
                    _triple_filter(tenant_id, segment_id, host_id)
                    & (Endpoint.in_use == False)  # noqa: E712
                )
                .order_by(Endpoint.network_id)
                .first()
            )
            if record is None:
                return None

            now = datetime.datetime.now()
            updated = (
                Endpoint.update(
                    in_use=True,
                    name=name,
                    request_token=request_token,
                    updated_at=now,
                )
                .where((Endpoint.id == record.id) & (Endpoint.in_use == False))  # noqa: E712
                .execute()
            )
            if updated != 1:
                raise ConsistencyFault(
                    f"Expected to reclaim one record for ip {record.ip}, updated {updated}"
                )

            record.in_use = True
            record.name = name
            record.request_token = request_token
            record.updated_at = now
            logger.debug(
                f"IpamStore: reclaimed {record.ip} (network id {record.network_id}) "
                f"for tenant={tenant_id} segment={segment_id} host={host_id}"
            )
            return record

    def mint_next_network_id(self, tenant_id: int, segment_id: int, host_id: int) -> int:
        """
        Get the next network id for a triple: 1 + max over all its records.

        Call inside the same transaction() as the insert that consumes it.
        """
        with self.transaction():
            current = (
                Endpoint.select(peewee.fn.MAX(Endpoint.network_id))
                .where(_triple_filter(tenant_id, segment_id, host_id))
                .scalar()
            )
            network_id = 0 if current is None else current + 1
            logger.debug(
                f"IpamStore: max network id for tenant={tenant_id} "
                f"segment={segment_id} host={host_id} is {current}, "
                f"new network id is {network_id}"
            )
            return network_id

    def persist(self, record: Endpoint) -> Endpoint:
        """Insert a new endpoint record."""
        with self.transaction():
            record.save(force_insert=True)
            logger.debug(f"IpamStore: created endpoint {record.ip} (id {record.id})")
            return record

    def release(self, address: str) -> Endpoint:
        """
        Mark the active record for `address` as released.

        Returns:
            The record as it was before release.

        Raises:
            NotFound: If no active record holds the address.
            ConsistencyFault: If more than one active record holds it.
        """
        with self.transaction():
            matches = list(
                Endpoint.select().where(
                    (Endpoint.ip == address) & (Endpoint.in_use == True)  # noqa: E712
                )
            )
            if not matches:
                raise NotFound("endpoint", address)
            if len(matches) > 1:
                # Cannot happen while the unique index on ip holds
                message = (
                    f"Expected one active record for ip {address}, "
                    f"got {[m.id for m in matches]}"
                )
                logger.error(f"IpamStore: {message}")
                raise ConsistencyFault(message)

            record = matches[0]
            (
                Endpoint.update(in_use=False, updated_at=datetime.datetime.now())
                .where(Endpoint.id == record.id)
                .execute()
            )
            logger.debug(
                f"IpamStore: released {address} (network id {record.network_id})"
            )
            return record

    # =========================================================================
    # Queries
    # =========================================================================

    def get_by_address(self, address: str) -> Endpoint | None:
        """Get the record for an address, in use or released."""
        with self.transaction():
            return Endpoint.get_or_none(Endpoint.ip == address)

    def get_by_token(self, request_token: str) -> Endpoint | None:
        """Get the record carrying an idempotency token."""
        with self.transaction():
            return Endpoint.get_or_none(Endpoint.request_token == request_token)

    def latest_for_triple(
        self, tenant_id: int, segment_id: int, host_id: int
    ) -> Endpoint | None:
        """Get the record with the highest network id of a triple."""
        with self.transaction():
            return (
                Endpoint.select()
                .where(_triple_filter(tenant_id, segment_id, host_id))
                .order_by(Endpoint.network_id.desc())
                .first()
            )

    def list_endpoints(
        self,
        tenant_id: int | None = None,
        segment_id: int | None = None,
        host_id: int | None = None,
        in_use: bool | None = None,
    ) -> list[Endpoint]:
        """List records, optionally filtered by placement and state."""
        with self.transaction():
            query = Endpoint.select()
            if tenant_id is not None:
                query = query.where(Endpoint.tenant_id == tenant_id)
            if segment_id is not None:
                query = query.where(Endpoint.segment_id == segment_id)
            if host_id is not None:
                query = query.where(Endpoint.host_id == host_id)
            if in_use is not None:
                query = query.where(Endpoint.in_use == in_use)
            return list(
                query.order_by(
                    Endpoint.tenant_id,
                    Endpoint.segment_id,
                    Endpoint.host_id,
                    Endpoint.network_id,
                )
            )
