from cue_countdown.models.cue import CUE_OPTIONS
from cue_countdown.store.schedule import build_schedule, trigger_time, unreachable_cues


def test_catalog_cues_resolve_to_trigger_times():
    schedule = build_schedule([cue.id for cue in CUE_OPTIONS], 3600)
    assert schedule == {
        "40min": 2400,
        "30min": 1800,
        "10min": 600,
        "5min": 300,
        "blackout": 60,
        "gameover": 5,
    }


def test_minutes_pattern_accepts_any_non_negative_integer():
    assert trigger_time("0min") == 0
    assert trigger_time("1min") == 60
    assert trigger_time("90min") == 5400
    assert trigger_time("007min") == 420


def test_unknown_ids_are_skipped():
    schedule = build_schedule({"5min", "fanfare", "min", "-1min", "5 min", "5mins", "Blackout"}, 600)
    assert schedule == {"5min": 300}


def test_build_is_pure_and_deterministic():
    selection = {"gameover", "10min", "blackout"}
    first = build_schedule(selection, 1200)
    build_schedule({"30min"}, 60)
    second = build_schedule(set(selection), 1200)
    assert first == second
    assert selection == {"gameover", "10min", "blackout"}


def test_blackout_kept_but_reported_unreachable_for_short_runs():
    schedule = build_schedule({"blackout", "gameover"}, 30)
    assert schedule["blackout"] == 60
    assert unreachable_cues(schedule, 30) == ["blackout"]
    assert unreachable_cues(schedule, 60) == []


def test_cues_longer_than_run_are_unreachable():
    schedule = build_schedule({"40min", "5min"}, 600)
    assert unreachable_cues(schedule, 600) == ["40min"]
