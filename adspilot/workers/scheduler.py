"""
Planification des règles : décide si une règle active doit tourner à ce tick.

Modes : `continuous`, `interval`, `specific` et `auto` (ancien mode). Les
heures et jours sont évalués dans le fuseau configuré (TIMEZONE) ; les
horodatages en base sont en UTC naïf.
"""
import json
import logging
from datetime import datetime, timedelta
from typing import Any, List, Optional

import pytz

from adspilot.core.database import utc_now
from adspilot.models.rule import Rule

logger = logging.getLogger(__name__)

DAY_NAMES = ["monday", "tuesday", "wednesday", "thursday", "friday", "saturday", "sunday"]
EXECUTION_MODES = ("continuous", "interval", "specific", "auto")


def _as_list(raw: Any) -> List[str]:
    if raw is None or raw == "":
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return [part.strip() for part in raw.split(",") if part.strip()]
    return [str(item) for item in raw] if isinstance(raw, list) else []


def to_local(moment: Optional[datetime], tz) -> Optional[datetime]:
    """UTC naïf -> heure locale naïve"""
    if moment is None:
        return None
    if moment.tzinfo is None:
        moment = pytz.utc.localize(moment)
    return moment.astimezone(tz).replace(tzinfo=None)


def is_range(selected_times: List[str]) -> bool:
    return len(selected_times) == 3 and selected_times[0].upper() == "RANGE"


def time_matches(selected_times: List[str], now: datetime) -> bool:
    """Heure exacte (HH:MM) ou plage ["RANGE", début, fin], y compris de nuit"""
    if not selected_times:
        return True
    current = now.strftime("%H:%M")
    if is_range(selected_times):
        start, end = selected_times[1], selected_times[2]
        if start <= end:
            return start <= current <= end
        return current >= start or current <= end
    return current in selected_times


def day_matches(selected_days: List[str], now: datetime) -> bool:
    if not selected_days:
        return True
    return DAY_NAMES[now.weekday()] in {d.lower() for d in selected_days}


def interval_elapsed(selected_interval: Optional[int], last_executed: Optional[datetime], now: datetime) -> bool:
    if not selected_interval or last_executed is None:
        return True
    return (now - last_executed).total_seconds() >= selected_interval


def missed_schedule(selected_times: List[str], last_executed: Optional[datetime],
                    now: datetime, tolerance_seconds: int) -> bool:
    """Un créneau HH:MM passé depuis la dernière exécution, en retard d'au plus `tolerance_seconds`"""
    if not selected_times or last_executed is None or is_range(selected_times):
        return False
    for slot in selected_times:
        try:
            hours, minutes = (int(part) for part in slot.split(":"))
        except ValueError:
            continue
        scheduled = now.replace(hour=hours, minute=minutes, second=0, microsecond=0)
        if last_executed < scheduled < now and now - scheduled <= timedelta(seconds=tolerance_seconds):
            return True
    return False


def should_execute(rule: Rule, now_utc: Optional[datetime] = None, timezone: str = "Asia/Jakarta",
                   tolerance_seconds: int = 300) -> bool:
    """Retourne True si la règle doit être évaluée au tick courant"""
    tz = pytz.timezone(timezone)
    now = to_local(now_utc or utc_now(), tz)
    last_executed = to_local(rule.last_executed_at, tz)

    mode = rule.execution_mode or "continuous"
    selected_times = _as_list(rule.selected_times)
    selected_days = _as_list(rule.selected_days)
    interval_ok = interval_elapsed(rule.selected_interval, last_executed, now)

    if mode in ("continuous", "interval"):
        return interval_ok

    if mode not in EXECUTION_MODES:
        logger.warning(f"Unknown execution mode: {mode} for rule {rule.id}")
        return False

    time_ok = time_matches(selected_times, now)
    day_ok = day_matches(selected_days, now)
    missed = missed_schedule(selected_times, last_executed, now, tolerance_seconds)
    if missed:
        logger.warning(f"[Rule: {rule.name} ({rule.id})] Executing missed schedule")

    if mode == "auto":
        return time_ok and day_ok and (interval_ok or missed)

    if selected_times and not is_range(selected_times):
        # Une seule exécution par créneau
        already_ran = last_executed is not None and last_executed.strftime("%Y-%m-%d %H:%M") == now.strftime("%Y-%m-%d %H:%M")
        return day_ok and ((time_ok and not already_ran) or missed)

    return day_ok and time_ok and interval_ok
