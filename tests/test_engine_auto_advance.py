from moderation.domain.models import (
    CHECK_IN,
    IMBALANCE_DETECTED,
    MONITORING,
    NUDGE,
    REFLECTION_PAUSE,
    STRUCTURED_TURN_TAKING,
    ForceState,
    SetAutoMode,
    SetQuietMode,
    SetQuietSpeaker,
    SetTalkTime,
    Silence,
    SpeakerSet,
    Tick,
)


def test_grace_period_suppresses_flag(engine, run_ticks):
    engine.send(SpeakerSet(name="A"))
    snap = run_ticks(engine, 14)
    assert snap.context.total_seconds == 14
    assert snap.context.dominance_score > snap.context.imbalance_score_threshold
    assert snap.context.imbalance_flag is False
    assert snap.context.imbalance_since is None


def test_flag_turns_on_after_grace_period(engine, run_ticks):
    engine.send(SpeakerSet(name="A"))
    snap = run_ticks(engine, 15)
    assert snap.context.imbalance_flag is True
    assert snap.context.imbalance_since == 15
    assert snap.phase == MONITORING


def test_escalation_timeline(engine):
    engine.send(SpeakerSet(name="A"))
    phases = {}
    for _ in range(60):
        engine.send(Tick(seconds=1))
        snap = engine.snapshot()
        phases[snap.context.total_seconds] = snap.phase
    assert phases[29] == MONITORING
    assert phases[30] == IMBALANCE_DETECTED
    assert phases[44] == IMBALANCE_DETECTED
    assert phases[45] == NUDGE
    assert phases[59] == NUDGE
    assert phases[60] == STRUCTURED_TURN_TAKING
    ctx = engine.snapshot().context
    assert ctx.turn_order == ["A", "B"]
    assert ctx.turn_index == 0
    assert ctx.active_speaker == "A"
    assert ctx.turn_since == 60
    assert ctx.state_since == 60
    assert ctx.imbalance_flag is False


def test_flag_drop_resets_hold_timer(engine, run_ticks):
    engine.send(SpeakerSet(name="A"))
    run_ticks(engine, 20)
    # Rebalance so the flag clears, then let A dominate again.
    engine.send(SetTalkTime(name="B", seconds=20))
    engine.send(SpeakerSet(name="B"))
    snap = engine.snapshot()
    assert snap.context.imbalance_flag is False
    assert snap.context.imbalance_since is None
    engine.send(Silence())
    snap = run_ticks(engine, 20)
    assert snap.phase == MONITORING


def test_long_monologue_trips_flag_without_score(make_engine, run_ticks):
    engine = make_engine(imbalance_score_threshold=0.99)
    engine.send(SetTalkTime(name="B", seconds=100))
    engine.send(SetTalkTime(name="A", seconds=100))
    engine.send(SpeakerSet(name="A"))
    snap = run_ticks(engine, 15)
    assert snap.context.dominance_score < 0.99
    assert snap.context.current_monologue_seconds == 15
    assert snap.context.imbalance_flag is True


def test_quiet_mode_blocks_escalation(engine, run_ticks):
    engine.send(SpeakerSet(name="A"))
    run_ticks(engine, 20)
    assert engine.snapshot().context.imbalance_flag is True
    engine.send(SetQuietMode(enabled=True))
    assert engine.snapshot().context.imbalance_flag is False
    snap = run_ticks(engine, 60)
    assert snap.phase == MONITORING
    assert snap.context.imbalance_flag is False


def test_auto_mode_off_freezes_phase(make_engine, run_ticks):
    engine = make_engine(auto_mode=False)
    engine.send(SpeakerSet(name="A"))
    snap = run_ticks(engine, 120)
    assert snap.phase == MONITORING
    assert snap.context.imbalance_flag is True
    engine.send(SetAutoMode(enabled=True))
    engine.send(Tick(seconds=1))
    assert engine.phase == IMBALANCE_DETECTED


def test_custom_hold_times(make_engine, run_ticks):
    engine = make_engine(imbalance_hold_seconds=5, nudge_hold_seconds=3)
    engine.send(SpeakerSet(name="A"))
    assert run_ticks(engine, 20).phase == IMBALANCE_DETECTED
    assert run_ticks(engine, 15).phase == NUDGE
    assert run_ticks(engine, 3).phase == STRUCTURED_TURN_TAKING


def test_pause_and_check_in_timers(make_engine, run_ticks):
    engine = make_engine(auto_mode=True)
    engine.send(ForceState(phase=REFLECTION_PAUSE))
    assert run_ticks(engine, 19).phase == REFLECTION_PAUSE
    assert run_ticks(engine, 1).phase == CHECK_IN
    assert run_ticks(engine, 19).phase == CHECK_IN
    assert run_ticks(engine, 1).phase == MONITORING


def test_full_cycle_returns_to_fresh_monitoring(dominated_engine, run_ticks):
    engine = dominated_engine()
    # Two 60s turns, then 20s pause and 20s check-in.
    run_ticks(engine, 120)
    assert engine.phase == REFLECTION_PAUSE
    run_ticks(engine, 40)
    snap = engine.snapshot()
    assert snap.phase == MONITORING
    assert snap.context.total_seconds == 0
    assert snap.context.talk_time == {"A": 0, "B": 0}
    assert snap.context.total_talk_time == 0
    assert snap.context.dominance_score == 0
    assert snap.context.state_since == 0


def test_monitoring_from_check_in_resets_history(engine, run_ticks):
    engine.send(SpeakerSet(name="A"))
    run_ticks(engine, 10)
    engine.send(ForceState(phase=CHECK_IN))
    engine.send(ForceState(phase=MONITORING))
    snap = engine.snapshot()
    assert snap.context.talk_time == {"A": 0, "B": 0}
    assert snap.context.total_seconds == 0
    assert snap.context.silence_seconds == 0
    assert snap.context.imbalance_since is None
    assert snap.context.imbalance_flag is False


def test_monitoring_from_other_phase_keeps_history(engine, run_ticks):
    engine.send(SpeakerSet(name="A"))
    run_ticks(engine, 10)
    engine.send(ForceState(phase=NUDGE))
    engine.send(ForceState(phase=MONITORING))
    snap = engine.snapshot()
    assert snap.context.talk_time == {"A": 10, "B": 0}
    assert snap.context.total_seconds == 10
    assert snap.context.active_speaker is None
    assert snap.context.state_since == 10


def test_force_same_phase_is_noop(engine, run_ticks):
    engine.send(SpeakerSet(name="A"))
    run_ticks(engine, 5)
    engine.send(ForceState(phase=MONITORING))
    snap = engine.snapshot()
    assert snap.context.active_speaker == "A"
    assert snap.context.state_since == 0


def test_flag_suppressed_during_interventions(engine, run_ticks):
    engine.send(SpeakerSet(name="A"))
    run_ticks(engine, 20)
    for phase in (NUDGE, CHECK_IN, REFLECTION_PAUSE):
        engine.send(ForceState(phase=phase))
        engine.send(SpeakerSet(name="A"))
        engine.send(Tick(seconds=1))
        assert engine.snapshot().context.imbalance_flag is False


def test_fresh_monitoring_keeps_quiet_speaker(engine, run_ticks):
    engine.send(SetQuietSpeaker(name="B"))
    engine.send(SpeakerSet(name="A"))
    run_ticks(engine, 10)
    engine.send(ForceState(phase=CHECK_IN))
    engine.send(ForceState(phase=MONITORING))
    snap = engine.snapshot()
    assert snap.context.talk_time == {"A": 0, "B": 0}
    assert snap.context.quiet_speaker == "B"
