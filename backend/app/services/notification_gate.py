"""Quiet-hours gate deciding whether a notification may be surfaced right now."""

from datetime import datetime
from typing import Callable, Optional
import logging

from sqlalchemy.orm import Session

from app.services.preference_service import get_or_create_preferences
from app.utils.time_window import format_hhmm, is_within_window, now_in_zone, utc_now

log = logging.getLogger(__name__)


class NotificationGate:
    """
    Pure predicate over a user's quiet-hours preferences.

    The gate never creates, drops or queues notifications itself; callers
    decide what to do with a False answer. Any failure while evaluating
    answers True so that events are never silently lost.
    """

    def __init__(self, session_factory: Callable[[], Session], clock: Callable[[], datetime] = utc_now):
        self.session_factory = session_factory
        self.clock = clock

    def should_deliver_now(self, user_id: str, now: Optional[datetime] = None) -> bool:
        try:
            with self.session_factory() as db:
                preferences = get_or_create_preferences(db, user_id)
                enabled = preferences.quiet_hours_enabled
                start = preferences.quiet_hours_start
                end = preferences.quiet_hours_end
                tz_name = preferences.quiet_hours_timezone

            if not enabled:
                return True

            local_now = format_hhmm(now_in_zone(tz_name, now or self.clock()))
            if is_within_window(local_now, start, end):
                log.debug(f"Quiet hours active for user '{user_id}' ({start}-{end} {tz_name}, now {local_now})")
                return False
            return True
        except Exception as e:
            log.warning(f"Quiet-hours check failed for user '{user_id}', delivering anyway: {e}")
            return True
