"""Tests for the allocation store."""

import pytest

from kohakuipam.db.base import db
from kohakuipam.db.endpoint import Endpoint
from kohakuipam.ipam.exceptions import (
    ConflictViolation,
    ConsistencyFault,
    NotFound,
    StoreFault,
)


def _make(ip, network_id, triple=(1, 1, 1), in_use=True, **kwargs):
    tenant_id, segment_id, host_id = triple
    return Endpoint(
        ip=ip,
        tenant_id=tenant_id,
        segment_id=segment_id,
        host_id=host_id,
        network_id=network_id,
        in_use=in_use,
        **kwargs,
    )


class TestMint:

    def test_first_network_id_is_zero(self, store):
        assert store.mint_next_network_id(1, 1, 1) == 0

    def test_counts_released_records(self, store):
        store.persist(_make("10.17.16.3", 0))
        store.persist(_make("10.17.17.3", 1, in_use=False))
        assert store.mint_next_network_id(1, 1, 1) == 2

    def test_scoped_to_triple(self, store):
        store.persist(_make("10.17.16.3", 0))
        assert store.mint_next_network_id(1, 1, 2) == 0
        assert store.mint_next_network_id(2, 1, 1) == 0


class TestReclaim:

    def test_nothing_to_reclaim(self, store):
        store.persist(_make("10.17.16.3", 0))
        assert store.reclaim(1, 1, 1) is None

    def test_smallest_released_network_id_first(self, store):
        store.persist(_make("10.17.16.3", 0))
        store.persist(_make("10.17.17.3", 1, in_use=False))
        store.persist(_make("10.17.18.3", 2, in_use=False))

        record = store.reclaim(1, 1, 1, name="vm-a", request_token="tok-a")
        assert record.network_id == 1
        assert record.ip == "10.17.17.3"
        assert record.in_use is True

        stored = Endpoint.get(Endpoint.ip == "10.17.17.3")
        assert stored.in_use is True
        assert stored.name == "vm-a"
        assert stored.request_token == "tok-a"

        assert store.reclaim(1, 1, 1).network_id == 2
        assert store.reclaim(1, 1, 1) is None


class TestRelease:

    def test_release_returns_previous_state(self, store):
        store.persist(_make("10.17.16.3", 0, name="vm-a"))
        previous = store.release("10.17.16.3")
        assert previous.in_use is True
        assert previous.name == "vm-a"
        assert Endpoint.get(Endpoint.ip == "10.17.16.3").in_use is False

    def test_release_unknown_address(self, store):
        with pytest.raises(NotFound):
            store.release("10.17.16.3")

    def test_release_twice(self, store):
        store.persist(_make("10.17.16.3", 0))
        store.release("10.17.16.3")
        with pytest.raises(NotFound):
            store.release("10.17.16.3")

    def test_records_are_never_deleted(self, store):
        store.persist(_make("10.17.16.3", 0))
        store.release("10.17.16.3")
        assert Endpoint.select().count() == 1

    def test_duplicate_active_records_are_surfaced(self, store):
        # Drop the unique index on ip to simulate corrupted state
        for (name,) in db.execute_sql(
            "SELECT name FROM sqlite_master WHERE type='index' "
            "AND tbl_name='endpoints' AND sql LIKE '%(\"ip\")%'"
        ).fetchall():
            db.execute_sql(f'DROP INDEX "{name}"')

        store.persist(_make("10.17.16.3", 0))
        store.persist(_make("10.17.16.3", 1))

        with pytest.raises(ConsistencyFault, match="Expected one active record"):
            store.release("10.17.16.3")
        # Nothing was flipped
        assert Endpoint.select().where(Endpoint.in_use == True).count() == 2  # noqa: E712


class TestConstraints:

    def test_duplicate_network_id_in_triple(self, store):
        store.persist(_make("10.17.16.3", 0))
        with pytest.raises(ConflictViolation):
            store.persist(_make("10.17.16.4", 0))
        assert Endpoint.select().count() == 1

    def test_duplicate_address(self, store):
        store.persist(_make("10.17.16.3", 0))
        with pytest.raises(ConflictViolation):
            store.persist(_make("10.17.16.3", 0, triple=(2, 2, 2)))

    def test_duplicate_request_token(self, store):
        store.persist(_make("10.17.16.3", 0, request_token="tok"))
        with pytest.raises(ConflictViolation):
            store.persist(_make("10.17.17.3", 1, request_token="tok"))

    def test_null_tokens_do_not_collide(self, store):
        store.persist(_make("10.17.16.3", 0))
        store.persist(_make("10.17.17.3", 1))
        assert Endpoint.select().count() == 2


class TestTransaction:

    def test_error_rolls_back_whole_scope(self, store):
        store.persist(_make("10.17.16.3", 0, in_use=False))

        with pytest.raises(RuntimeError):
            with store.transaction():
                assert store.reclaim(1, 1, 1) is not None
                store.persist(_make("10.17.17.3", 1))
                raise RuntimeError("boom")

        assert Endpoint.get(Endpoint.ip == "10.17.16.3").in_use is False
        assert Endpoint.get_or_none(Endpoint.ip == "10.17.17.3") is None

    def test_inner_scopes_join_outer_transaction(self, store):
        with store.transaction():
            store.persist(_make("10.17.16.3", 0))
            assert store.mint_next_network_id(1, 1, 1) == 1
        assert store.mint_next_network_id(1, 1, 1) == 1

    def test_store_usable_after_failure(self, store):
        store.persist(_make("10.17.16.3", 0))
        with pytest.raises(ConflictViolation):
            store.persist(_make("10.17.16.3", 1))
        store.persist(_make("10.17.17.3", 1))
        assert store.mint_next_network_id(1, 1, 1) == 2

    def test_database_error_rolls_back_as_store_fault(self, store):
        store.persist(_make("10.17.16.3", 0, in_use=False))

        with pytest.raises(StoreFault) as excinfo:
            with store.transaction():
                assert store.reclaim(1, 1, 1).ip == "10.17.16.3"
                db.execute_sql("SELECT network_id FROM missing_endpoints")

        assert excinfo.value.status_code == 503
        assert "missing_endpoints" in str(excinfo.value)
        assert Endpoint.get(Endpoint.ip == "10.17.16.3").in_use is False
        # The mutex and transaction depth are released after the fault
        assert store.reclaim(1, 1, 1).ip == "10.17.16.3"


class TestQueries:

    def test_list_filters(self, store):
        store.persist(_make("10.17.16.3", 0))
        store.persist(_make("10.17.17.3", 1, in_use=False))
        store.persist(_make("10.18.16.3", 0, triple=(2, 1, 1)))

        assert len(store.list_endpoints()) == 3
        assert [e.ip for e in store.list_endpoints(tenant_id=1)] == [
            "10.17.16.3",
            "10.17.17.3",
        ]
        assert [e.ip for e in store.list_endpoints(in_use=False)] == ["10.17.17.3"]

    def test_lookups(self, store):
        store.persist(_make("10.17.16.3", 0, request_token="tok"))
        store.persist(_make("10.17.17.3", 1))
        assert store.get_by_address("10.17.16.3").network_id == 0
        assert store.get_by_token("tok").ip == "10.17.16.3"
        assert store.get_by_token("missing") is None
        assert store.latest_for_triple(1, 1, 1).network_id == 1
        assert store.latest_for_triple(9, 9, 9) is None
