from __future__ import annotations

from deepclick_mcp.protocols.session_registry import SessionRegistry, generate_session_id

from .conftest import ExplodingSink, FakeClock, FakeSink


def test_create_registers_session_with_current_time(registry: SessionRegistry, clock: FakeClock) -> None:
    sink = FakeSink()

    session_id = registry.create(sink)

    session = registry.get(session_id)
    assert session is not None
    assert session.sink is sink
    assert session.last_activity == clock.now
    assert session_id in registry
    assert len(registry) == 1


def test_create_regenerates_colliding_ids(clock: FakeClock) -> None:
    ids = iter(["session_a", "session_a", "session_b"])
    registry = SessionRegistry(clock=clock, id_factory=lambda: next(ids))

    first = registry.create(FakeSink())
    second = registry.create(FakeSink())

    assert (first, second) == ("session_a", "session_b")


def test_default_session_ids_are_distinct() -> None:
    ids = {generate_session_id() for _ in range(200)}

    assert len(ids) == 200
    assert all(session_id.startswith("session_") for session_id in ids)


def test_get_unknown_session_returns_none(registry: SessionRegistry) -> None:
    assert registry.get("missing") is None


def test_touch_refreshes_and_never_moves_backwards(registry: SessionRegistry, clock: FakeClock) -> None:
    session_id = registry.create(FakeSink())

    clock.advance(10)
    registry.touch(session_id)
    assert registry.get(session_id).last_activity == 1010.0

    clock.now = 900.0
    registry.touch(session_id)
    assert registry.get(session_id).last_activity == 1010.0


def test_touch_and_remove_ignore_absent_sessions(registry: SessionRegistry) -> None:
    registry.touch("missing")
    assert registry.remove("missing") is None


def test_remove_is_idempotent(registry: SessionRegistry) -> None:
    session_id = registry.create(FakeSink())

    assert registry.remove(session_id) is not None
    assert registry.remove(session_id) is None
    assert session_id not in registry


def test_sweep_removes_only_idle_sessions(registry: SessionRegistry, clock: FakeClock) -> None:
    idle_sink = FakeSink()
    idle = registry.create(idle_sink)
    clock.advance(200)
    active = registry.create(FakeSink())
    clock.advance(150)

    expired = registry.sweep()

    assert expired == [idle]
    assert idle not in registry
    assert active in registry
    assert idle_sink.closed


def test_sweep_boundary_is_strictly_greater_than_timeout(registry: SessionRegistry, clock: FakeClock) -> None:
    session_id = registry.create(FakeSink())
    clock.advance(300)

    assert registry.sweep() == []

    clock.advance(0.001)
    assert registry.sweep() == [session_id]


def test_sweep_accepts_explicit_now_and_timeout(registry: SessionRegistry, clock: FakeClock) -> None:
    session_id = registry.create(FakeSink())

    assert registry.sweep(now=clock.now + 5, timeout=10) == []
    assert registry.sweep(now=clock.now + 11, timeout=10) == [session_id]


def test_sweep_swallows_sink_close_errors(registry: SessionRegistry, clock: FakeClock) -> None:
    broken = registry.create(ExplodingSink())
    clock.advance(301)

    assert registry.sweep() == [broken]
    assert broken not in registry


def test_close_all_closes_every_sink(registry: SessionRegistry) -> None:
    sinks = [FakeSink(), FakeSink()]
    for sink in sinks:
        registry.create(sink)

    registry.close_all()

    assert len(registry) == 0
    assert all(sink.closed for sink in sinks)
