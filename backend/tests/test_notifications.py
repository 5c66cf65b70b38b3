from datetime import timedelta

import pytest

from app.models.notification import Notification
from app.models.notification_preference import DEFAULT_EMAIL_NOTIFICATIONS
from app.services import notification_service, preference_service
from app.services.notification_gate import NotificationGate

from tests.conftest import NOW


def enable_quiet_hours(db, user_id="admin", start="22:00", end="08:00", tz="UTC"):
    preference_service.update_preferences(db, user_id, {"quiet_hours": {
        "enabled": True, "start_time": start, "end_time": end, "timezone": tz,
    }})


class TestNotificationGate:
    def test_delivers_when_quiet_hours_disabled(self, gate):
        assert gate.should_deliver_now("admin", NOW.replace(hour=23)) is True

    def test_creates_default_preferences_lazily(self, gate, db_session):
        gate.should_deliver_now("newcomer", NOW)
        preferences = preference_service.get_or_create_preferences(db_session, "newcomer")
        assert preferences.quiet_hours_enabled is False

    @pytest.mark.parametrize("hour,minute,expected", [
        (23, 0, False),
        (7, 59, False),
        (8, 0, True),
        (12, 0, True),
        (22, 0, False),
    ])
    def test_wrapping_window(self, gate, db_session, hour, minute, expected):
        enable_quiet_hours(db_session)
        assert gate.should_deliver_now("admin", NOW.replace(hour=hour, minute=minute)) is expected

    def test_window_is_evaluated_in_preference_zone(self, gate, db_session):
        # 21:30 UTC is 22:30 in Brussels (CET)
        enable_quiet_hours(db_session, tz="Europe/Brussels")
        assert gate.should_deliver_now("admin", NOW.replace(hour=21, minute=30)) is False
        assert gate.should_deliver_now("admin", NOW.replace(hour=20, minute=30)) is True

    def test_uses_clock_when_now_omitted(self, gate, db_session, clock):
        enable_quiet_hours(db_session)
        clock.now = NOW.replace(hour=2)
        assert gate.should_deliver_now("admin") is False

    def test_fails_open(self, clock):
        def broken_factory():
            raise RuntimeError("preferences store down")

        assert NotificationGate(broken_factory, clock=clock).should_deliver_now("admin", NOW) is True


class TestNotificationService:
    def test_create_truncates_and_surfaces(self, db_session):
        notification = notification_service.create_notification(
            db_session, "admin", "T" * 150, "M" * 600, type="success", category="update", now=NOW,
        )
        assert len(notification.title) == 100
        assert len(notification.message) == 500
        assert notification.surfaced is True
        assert notification.surfaced_at is not None

    def test_held_notifications_are_hidden(self, db_session):
        notification_service.create_notification(db_session, "admin", "Visible", "shown", now=NOW)
        notification_service.create_notification(db_session, "admin", "Held", "later", surfaced=False, now=NOW)

        items, total = notification_service.list_notifications(db_session, "admin")
        assert total == 1
        assert items[0].title == "Visible"
        assert notification_service.unread_count(db_session, "admin") == 1

        _, with_held = notification_service.list_notifications(db_session, "admin", include_held=True)
        assert with_held == 2

    def test_read_state(self, db_session):
        first = notification_service.create_notification(db_session, "admin", "One", "1", now=NOW)
        notification_service.create_notification(db_session, "admin", "Two", "2", now=NOW)
        notification_service.create_notification(db_session, "someone-else", "Three", "3", now=NOW)

        assert notification_service.mark_as_read(db_session, "admin", first.id).is_read is True
        assert notification_service.mark_as_read(db_session, "someone-else", first.id) is None
        assert notification_service.unread_count(db_session, "admin") == 1

        assert notification_service.mark_all_as_read(db_session, "admin") == 1
        assert notification_service.unread_count(db_session, "admin") == 0
        assert notification_service.unread_count(db_session, "someone-else") == 1

    def test_delete_is_owner_scoped(self, db_session):
        notification = notification_service.create_notification(db_session, "admin", "One", "1", now=NOW)
        assert notification_service.delete_notification(db_session, "intruder", notification.id) is False
        assert notification_service.delete_notification(db_session, "admin", notification.id) is True
        assert db_session.query(Notification).count() == 0

    def test_release_only_for_users_out_of_quiet_hours(self, session_factory, db_session, clock):
        enable_quiet_hours(db_session, user_id="sleeper", start="00:00", end="23:59")
        enable_quiet_hours(db_session, user_id="early-bird")
        notification_service.create_notification(db_session, "sleeper", "Held", "zzz", surfaced=False, now=NOW)
        notification_service.create_notification(db_session, "early-bird", "Held", "morning", surfaced=False, now=NOW)

        gate = NotificationGate(session_factory, clock=clock)
        released = notification_service.release_held_notifications(db_session, gate, NOW)

        assert released == 1
        db_session.expire_all()
        by_user = {n.user_id: n for n in db_session.query(Notification).all()}
        assert by_user["early-bird"].surfaced is True
        assert by_user["sleeper"].surfaced is False


class TestPreferences:
    def test_defaults(self, db_session):
        preferences = preference_service.get_or_create_preferences(db_session, "admin")
        assert preferences.email_notifications == DEFAULT_EMAIL_NOTIFICATIONS
        assert (preferences.quiet_hours_start, preferences.quiet_hours_end) == ("22:00", "08:00")
        assert preferences.quiet_hours_timezone == "UTC"

    def test_partial_merge(self, db_session):
        preference_service.update_preferences(db_session, "admin", {
            "email_notifications": {"daily_digest": True},
            "quiet_hours": {"enabled": True},
        })
        preferences = preference_service.get_or_create_preferences(db_session, "admin")
        assert preferences.email_notifications["daily_digest"] is True
        assert preferences.email_notifications["weekly_digest"] is True
        assert preferences.quiet_hours_enabled is True
        assert preferences.quiet_hours_start == "22:00"

    def test_reset(self, db_session):
        enable_quiet_hours(db_session, start="20:00")
        preferences = preference_service.reset_preferences(db_session, "admin")
        assert preferences.quiet_hours_enabled is False
        assert preferences.quiet_hours_start == "22:00"

    def test_preferences_are_per_user(self, db_session):
        enable_quiet_hours(db_session, user_id="a")
        assert preference_service.get_or_create_preferences(db_session, "b").quiet_hours_enabled is False


def test_hold_then_release_round_trip(session_factory, db_session, clock):
    enable_quiet_hours(db_session)
    gate = NotificationGate(session_factory, clock=clock)
    night = NOW.replace(hour=23, minute=15)

    surfaced = gate.should_deliver_now("admin", night)
    notification_service.create_notification(db_session, "admin", "Done", "ok", surfaced=surfaced, now=night)
    assert notification_service.release_held_notifications(db_session, gate, night + timedelta(minutes=30)) == 0

    morning = NOW.replace(day=16, hour=8, minute=1)
    assert notification_service.release_held_notifications(db_session, gate, morning) == 1
    assert notification_service.unread_count(db_session, "admin") == 1


def test_mark_all_read_leaves_held_notifications_unread(session_factory, db_session, clock):
    enable_quiet_hours(db_session)
    gate = NotificationGate(session_factory, clock=clock)
    night = NOW.replace(hour=23, minute=15)
    notification_service.create_notification(db_session, "admin", "Seen", "ok", now=night)
    held = notification_service.create_notification(db_session, "admin", "Held", "ok", surfaced=False, now=night)

    assert notification_service.mark_all_as_read(db_session, "admin") == 1

    morning = NOW.replace(day=16, hour=8, minute=1)
    assert notification_service.release_held_notifications(db_session, gate, morning) == 1
    db_session.expire_all()
    assert db_session.get(Notification, held.id).is_read is False
    assert notification_service.unread_count(db_session, "admin") == 1
