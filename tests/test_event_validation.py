import json

import pytest

from moderation.domain.models import (
    NUDGE,
    CheckIn,
    ForceState,
    SetQuietSpeaker,
    SetTalkTime,
    Tick,
    ValidationError,
)
from moderation.domain.validators import EVENT_TYPES, event_from_dict, event_to_dict, load_events


def test_parse_tick():
    assert event_from_dict({"type": "TICK", "seconds": 1}) == Tick(seconds=1)


def test_parse_set_talk_time():
    event = event_from_dict({"type": "SET_TALK_TIME", "name": "A", "seconds": 4.5})
    assert event == SetTalkTime(name="A", seconds=4.5)


def test_parse_quiet_speaker_accepts_null():
    assert event_from_dict({"type": "SET_QUIET_SPEAKER", "name": None}) == SetQuietSpeaker(name=None)


def test_parse_force_state_accepts_state_key():
    assert event_from_dict({"type": "FORCE_STATE", "state": "nudge"}) == ForceState(phase=NUDGE)


def test_parse_reserved_checkin():
    assert event_from_dict({"type": "CHECKIN", "can_continue": False}) == CheckIn(can_continue=False)


@pytest.mark.parametrize(
    "payload",
    [
        {"seconds": 1},
        {"type": "JUMP"},
        {"type": ["TICK"]},
        {"type": "TICK"},
        {"type": "TICK", "seconds": "1"},
        {"type": "TICK", "seconds": True},
        {"type": "SPEAKER_SET", "name": ""},
        {"type": "SET_AUTO_MODE", "enabled": 1},
        {"type": "FORCE_STATE", "phase": "party"},
    ],
)
def test_invalid_events_raise(payload):
    with pytest.raises(ValidationError):
        event_from_dict(payload)


def test_every_tag_has_a_parser():
    assert set(EVENT_TYPES) == {
        "SPEAKER_SET",
        "SILENCE",
        "TICK",
        "NEXT_TURN",
        "SET_QUIET_SPEAKER",
        "SET_AUTO_MODE",
        "SET_QUIET_MODE",
        "ADD_SPEAKER",
        "REMOVE_SPEAKER",
        "SET_TALK_TIME",
        "SET_SILENCE",
        "FORCE_STATE",
        "TURNS_COMPLETE",
        "PAUSE_DONE",
        "CHECKIN",
    }


def test_event_to_dict_matches_wire_format():
    assert event_to_dict(ForceState(phase=NUDGE)) == {"type": "FORCE_STATE", "phase": NUDGE}
    assert event_to_dict(Tick(seconds=2)) == {"type": "TICK", "seconds": 2}


def test_load_events_list_and_object():
    items = [{"type": "SPEAKER_SET", "name": "A"}, {"type": "TICK", "seconds": 1}]
    assert len(load_events(json.dumps(items))) == 2
    assert len(load_events(json.dumps({"events": items}))) == 2


def test_load_events_reports_position():
    items = [{"type": "TICK", "seconds": 1}, {"type": "NOPE"}]
    with pytest.raises(ValidationError) as excinfo:
        load_events(json.dumps(items))
    assert "event #1" in str(excinfo.value)


def test_load_events_rejects_bad_json():
    with pytest.raises(ValidationError):
        load_events("{not json")
