"""audit client unit tests."""

from pathfinder_featureflag import AuditEvent, InMemoryAuditClient


async def test_record_event() -> None:
    client = InMemoryAuditClient()
    await client.record(AuditEvent(actor_id="admin-1", action="flag_created", flag_key="beta"))
    events = await client.events_for("beta")
    assert len(events) == 1
    assert events[0].action == "flag_created"


async def test_events_for_filters_by_flag() -> None:
    client = InMemoryAuditClient()
    for key in ("beta", "gamma", "beta"):
        await client.record(AuditEvent(actor_id="admin-1", action="flag_updated", flag_key=key))
    assert len(await client.events_for("beta")) == 2
    assert len(await client.events_for("gamma")) == 1
    assert await client.events_for("delta") == []
    assert len(client.events) == 3


async def test_events_property_is_a_copy() -> None:
    client = InMemoryAuditClient()
    await client.record(AuditEvent(actor_id="a", action="override_set", flag_key="beta"))
    client.events.clear()
    assert len(client.events) == 1


async def test_event_has_id_and_timestamp() -> None:
    event = AuditEvent(actor_id="oncall", action="emergency_disable", flag_key="beta")
    other = AuditEvent(actor_id="oncall", action="emergency_disable", flag_key="beta")
    assert event.id
    assert event.id != other.id
    assert event.timestamp.tzinfo is not None
    assert event.severity == "info"
