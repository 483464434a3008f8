import threading
from datetime import datetime, timedelta, timezone

import pytest

from buslease.exceptions import AlreadyActive, LeaseExpired, LockHeldByOther, NotHolder
from buslease.models.domain import LeaseState
from buslease.persistence.lease_store import InMemoryLeaseStore
from buslease.services.lease.manager import LockManager


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2025, 1, 6, 7, 30, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += timedelta(seconds=seconds)


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def manager(clock: FakeClock) -> LockManager:
    return LockManager(InMemoryLeaseStore(), clock=clock, default_ttl_seconds=300)


def test_acquire_free_bus(manager: LockManager, clock: FakeClock):
    lease = manager.acquire("BUS1", "D1", "T1", ttl=300)

    assert lease.state is LeaseState.HELD
    assert lease.holder_id == "D1"
    assert lease.trip_id == "T1"
    assert lease.acquired_at == clock.now
    assert lease.expires_at == clock.now + timedelta(seconds=300)


def test_acquire_by_other_holder_is_rejected_with_holder(manager: LockManager):
    manager.acquire("BUS1", "D1", "T1")

    with pytest.raises(LockHeldByOther) as excinfo:
        manager.acquire("BUS1", "D2", "T2")

    assert excinfo.value.holder_id == "D1"
    assert manager.inspect("BUS1").trip_id == "T1"


def test_acquire_by_same_holder_returns_existing_trip(manager: LockManager):
    manager.acquire("BUS1", "D1", "T1")

    with pytest.raises(AlreadyActive) as excinfo:
        manager.acquire("BUS1", "D1", "T-retry")

    assert excinfo.value.trip_id == "T1"
    assert manager.inspect("BUS1").trip_id == "T1"


def test_buses_do_not_contend(manager: LockManager):
    manager.acquire("BUS1", "D1", "T1")
    lease = manager.acquire("BUS2", "D2", "T2")

    assert lease.holder_id == "D2"


def test_expired_lease_is_taken_over(manager: LockManager, clock: FakeClock):
    manager.acquire("BUS1", "D1", "T1", ttl=300)
    clock.advance(301)

    assert manager.inspect("BUS1").live is False
    lease = manager.acquire("BUS1", "D2", "T2")

    assert lease.holder_id == "D2"
    assert lease.trip_id == "T2"


def test_lease_is_live_exactly_at_expiry(manager: LockManager, clock: FakeClock):
    manager.acquire("BUS1", "D1", "T1", ttl=300)
    clock.advance(300)

    with pytest.raises(LockHeldByOther):
        manager.acquire("BUS1", "D2", "T2")


def test_expired_lease_can_be_reacquired_by_previous_holder(manager: LockManager, clock: FakeClock):
    manager.acquire("BUS1", "D1", "T1", ttl=300)
    clock.advance(400)

    lease = manager.acquire("BUS1", "D1", "T1b")

    assert lease.trip_id == "T1b"


def test_concurrent_acquire_has_single_winner(manager: LockManager):
    holders = [f"D{i}" for i in range(16)]
    barrier = threading.Barrier(len(holders))
    winners: list[str] = []
    losers: list[str | None] = []

    def attempt(holder: str) -> None:
        barrier.wait()
        try:
            manager.acquire("BUS1", holder, f"trip-{holder}")
            winners.append(holder)
        except LockHeldByOther as exc:
            losers.append(exc.holder_id)

    threads = [threading.Thread(target=attempt, args=(holder,)) for holder in holders]
    for thread in threads:
        thread.start()
    for thread in threads:
        thread.join()

    assert len(winners) == 1
    assert len(losers) == len(holders) - 1
    assert set(losers) == {winners[0]}
    status = manager.inspect("BUS1")
    assert status.state is LeaseState.HELD
    assert status.trip_id == f"trip-{winners[0]}"


def test_heartbeat_extends_expiry(manager: LockManager, clock: FakeClock):
    first = manager.acquire("BUS1", "D1", "T1", ttl=300)
    clock.advance(5)

    renewed = manager.heartbeat("BUS1", "D1", "T1", ttl=300)

    assert renewed.expires_at == clock.now + timedelta(seconds=300)
    assert renewed.expires_at > first.expires_at
    assert renewed.acquired_at == first.acquired_at


def test_heartbeat_never_shortens_expiry(manager: LockManager):
    first = manager.acquire("BUS1", "D1", "T1", ttl=300)

    renewed = manager.heartbeat("BUS1", "D1", "T1", ttl=10)

    assert renewed.expires_at == first.expires_at


def test_heartbeat_keeps_lease_alive_past_first_ttl(manager: LockManager, clock: FakeClock):
    manager.acquire("BUS1", "D1", "T1", ttl=300)
    for _ in range(100):
        clock.advance(5)
        manager.heartbeat("BUS1", "D1", "T1", ttl=300)

    with pytest.raises(LockHeldByOther):
        manager.acquire("BUS1", "D2", "T2")


def test_heartbeat_with_wrong_trip_fails_without_mutation(manager: LockManager):
    lease = manager.acquire("BUS1", "D1", "T1")

    with pytest.raises(NotHolder):
        manager.heartbeat("BUS1", "D1", "T-other")

    assert manager.inspect("BUS1").expires_at == lease.expires_at


def test_heartbeat_after_release_fails(manager: LockManager):
    manager.acquire("BUS1", "D1", "T1")
    manager.release("BUS1", "D1", "T1")

    with pytest.raises(NotHolder):
        manager.heartbeat("BUS1", "D1", "T1")


def test_heartbeat_after_expiry_fails(manager: LockManager, clock: FakeClock):
    manager.acquire("BUS1", "D1", "T1", ttl=300)
    clock.advance(301)

    with pytest.raises(LeaseExpired):
        manager.heartbeat("BUS1", "D1", "T1")

    assert manager.inspect("BUS1").live is False


def test_heartbeat_after_takeover_fails(manager: LockManager, clock: FakeClock):
    manager.acquire("BUS1", "D1", "T1", ttl=300)
    clock.advance(301)
    manager.acquire("BUS1", "D2", "T2")

    with pytest.raises(NotHolder) as excinfo:
        manager.heartbeat("BUS1", "D1", "T1")

    assert excinfo.value.holder_id == "D2"


def test_release_frees_bus(manager: LockManager):
    manager.acquire("BUS1", "D1", "T1")

    lease = manager.release("BUS1", "D1", "T1")

    assert lease.state is LeaseState.FREE
    assert lease.holder_id is None
    assert manager.acquire("BUS1", "D2", "T2").holder_id == "D2"


def test_release_of_free_bus_is_noop(manager: LockManager):
    lease = manager.release("BUS9", "D1", "T1")

    assert lease.state is LeaseState.FREE


def test_release_swallows_store_failures(clock: FakeClock):
    class BrokenStore:
        def get(self, bus_id):
            raise RuntimeError("store down")

        def transact(self, bus_id, decide):
            raise RuntimeError("store down")

    manager = LockManager(BrokenStore(), clock=clock)

    lease = manager.release("BUS1", "D1", "T1")

    assert lease.state is LeaseState.FREE


def test_release_held_refuses_other_holder_of_live_lease(manager: LockManager):
    manager.acquire("BUS1", "D1", "T1")

    with pytest.raises(NotHolder) as excinfo:
        manager.release_held("BUS1", "D2", "made-up-trip")

    assert excinfo.value.holder_id == "D1"
    status = manager.inspect("BUS1")
    assert status.holder_id == "D1"
    assert status.live is True


def test_release_held_refuses_wrong_trip_of_same_holder(manager: LockManager):
    manager.acquire("BUS1", "D1", "T1")

    with pytest.raises(NotHolder):
        manager.release_held("BUS1", "D1", "T-old")

    assert manager.inspect("BUS1").trip_id == "T1"


def test_release_held_frees_for_holder(manager: LockManager):
    manager.acquire("BUS1", "D1", "T1")

    lease = manager.release_held("BUS1", "D1", "T1")

    assert lease.state is LeaseState.FREE
    assert manager.inspect("BUS1").state is LeaseState.FREE


def test_release_held_clears_expired_lease_of_anyone(manager: LockManager, clock: FakeClock):
    manager.acquire("BUS1", "D1", "T1", ttl=300)
    clock.advance(301)

    lease = manager.release_held("BUS1", "D2", "T2")

    assert lease.state is LeaseState.FREE
