from datetime import datetime, timedelta

from adspilot.models.rule import Rule
from adspilot.workers.scheduler import should_execute, time_matches

# 03:00 UTC = 10:00 Asia/Jakarta, samedi 17/10/2026
NOW = datetime(2026, 10, 17, 3, 0, 0)


def _rule(**fields):
    fields.setdefault("id", 1)
    fields.setdefault("name", "r")
    return Rule(**fields)


def test_continuous_without_history_runs():
    assert should_execute(_rule(execution_mode="continuous"), NOW) is True


def test_interval_respects_elapsed_time():
    recent = _rule(execution_mode="interval", selected_interval=3600, last_executed_at=NOW - timedelta(minutes=10))
    old = _rule(execution_mode="interval", selected_interval=3600, last_executed_at=NOW - timedelta(hours=2))

    assert should_execute(recent, NOW) is False
    assert should_execute(old, NOW) is True


def test_specific_time_runs_once_per_slot():
    rule = _rule(execution_mode="specific", selected_times=["10:00"],
                 last_executed_at=NOW - timedelta(days=1))
    assert should_execute(rule, NOW) is True

    rule.last_executed_at = NOW + timedelta(seconds=5)
    assert should_execute(rule, NOW + timedelta(seconds=30)) is False


def test_specific_time_catches_up_missed_slot_within_tolerance():
    rule = _rule(execution_mode="specific", selected_times=["10:00"],
                 last_executed_at=NOW - timedelta(days=1))

    assert should_execute(rule, NOW + timedelta(minutes=3), tolerance_seconds=300) is True
    assert should_execute(rule, NOW + timedelta(minutes=10), tolerance_seconds=300) is False


def test_selected_days():
    assert should_execute(_rule(execution_mode="specific", selected_days=["saturday"]), NOW) is True
    assert should_execute(_rule(execution_mode="specific", selected_days=["monday"]), NOW) is False


def test_overnight_range():
    assert time_matches(["RANGE", "22:00", "02:00"], datetime(2026, 10, 17, 23, 30)) is True
    assert time_matches(["RANGE", "22:00", "02:00"], datetime(2026, 10, 17, 1, 15)) is True
    assert time_matches(["RANGE", "22:00", "02:00"], datetime(2026, 10, 17, 12, 0)) is False


def test_specific_range_is_evaluated_in_local_time():
    rule = _rule(execution_mode="specific", selected_times=["RANGE", "09:00", "11:00"])
    assert should_execute(rule, NOW) is True
    assert should_execute(rule, NOW, timezone="UTC") is False


def test_unknown_mode_never_runs():
    assert should_execute(_rule(execution_mode="sometimes"), NOW) is False
