from datetime import datetime, timedelta

import pytest

from pumpsim.core.errors import NoActiveBolusError
from pumpsim.core.events import (
    AlarmEvent,
    AlarmType,
    BasalChangeEvent,
    BolusEvent,
    BolusType,
    CGMReadingEvent,
    ErrorEvent,
    EventKind,
    EventLog,
    ProfileChangeEvent,
    ResumeEvent,
    SuspendEvent,
)

T0 = datetime(2024, 3, 1, 8, 0)


def at(minutes):
    return T0 + timedelta(minutes=minutes)


def test_events_carry_their_kind():
    assert BolusEvent(T0, BolusType.MANUAL, 2.0).kind is EventKind.BOLUS
    assert BasalChangeEvent(T0, 0.0, 0.5, "start").kind is EventKind.BASAL_CHANGE
    assert ProfileChangeEvent(T0, "A", "B").kind is EventKind.PROFILE_CHANGE
    assert SuspendEvent(T0, "x").kind is EventKind.SUSPEND
    assert ResumeEvent(T0, "x").kind is EventKind.RESUME
    assert CGMReadingEvent(T0, 5.5).kind is EventKind.CGM_READING
    assert AlarmEvent(T0, AlarmType.OCCLUSION, "x").kind is EventKind.ALARM
    assert ErrorEvent(T0, "E1", "boom").kind is EventKind.ERROR


def test_descriptions_are_readable():
    assert BolusEvent(T0, BolusType.EXTENDED, 3.0, 60).description() == "Extended bolus: 3.00 U over 60 min"
    assert "0.50 to 0.80" in BasalChangeEvent(T0, 0.5, 0.8, "Profile change").description()
    assert ProfileChangeEvent(T0, "A", "A").description() == "Profile 'A' updated"
    assert "5.5 mmol/L" in CGMReadingEvent(T0, 5.5).description()
    assert "low battery" in AlarmEvent(T0, AlarmType.LOW_BATTERY, "10%").description()


def test_non_bolus_events_are_immutable():
    event = SuspendEvent(T0, "User stopped insulin")

    with pytest.raises(AttributeError):
        event.reason = "changed"


def test_bolus_cancellation_happens_once():
    bolus = BolusEvent(T0, BolusType.MANUAL, 4.0)
    bolus.cancel()

    assert bolus.cancelled
    assert bolus.description().endswith("(cancelled)")
    with pytest.raises(ValueError):
        bolus.cancel()


def test_range_keeps_order_and_bounds():
    log = EventLog()
    events = [SuspendEvent(at(i), f"e{i}") for i in range(5)]
    for event in events:
        log.append(event)

    assert log.range(at(1), at(3)) == events[1:4]


def test_most_recent_is_newest_first():
    log = EventLog()
    for i in range(5):
        log.append(ResumeEvent(at(i), f"e{i}"))

    assert [e.reason for e in log.most_recent(3)] == ["e4", "e3", "e2"]
    assert len(log.most_recent(10)) == 5
    assert log.most_recent(0) == []


def test_find_latest_uncancelled_bolus_skips_cancelled():
    log = EventLog()
    first = log.append(BolusEvent(at(0), BolusType.MANUAL, 2.0))
    second = log.append(BolusEvent(at(1), BolusType.MANUAL, 3.0))
    log.append(SuspendEvent(at(2), "x"))
    second.cancel()

    assert log.find_latest_uncancelled_bolus() is first


def test_require_latest_uncancelled_bolus_raises_when_none():
    log = EventLog()
    log.append(SuspendEvent(at(0), "x"))

    assert log.find_latest_uncancelled_bolus() is None
    with pytest.raises(NoActiveBolusError):
        log.require_latest_uncancelled_bolus()


def test_of_kind_and_dataframe_export():
    log = EventLog()
    log.append(CGMReadingEvent(at(0), 6.0))
    log.append(BolusEvent(at(1), BolusType.QUICK, 1.0))

    assert [e.kind for e in log.of_kind(EventKind.BOLUS)] == [EventKind.BOLUS]
    frame = log.to_dataframe()
    assert frame["kind"].tolist() == ["cgm_reading", "bolus"]


def test_payload_excludes_timestamp():
    event = BasalChangeEvent(T0, 0.0, 0.5, "Basal started")

    assert event.payload() == {"old_rate": 0.0, "new_rate": 0.5, "reason": "Basal started"}
