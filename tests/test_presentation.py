from datetime import datetime, timedelta, timezone

from app.chat.presentation import (
    format_inbox_time,
    format_message_time,
    group_messages,
    parse_timestamp,
    separator_label,
)

T0 = datetime(2026, 3, 10, 14, 0, tzinfo=timezone.utc)


def msg(sender, at, mid=None):
    return {"id": mid or f"{sender}-{at.isoformat()}", "sender_id": sender, "content": "hi", "created_at": at.isoformat()}


def test_same_sender_runs_group_within_five_minutes():
    thread = [msg("a", T0), msg("a", T0 + timedelta(minutes=4)), msg("a", T0 + timedelta(minutes=10))]

    first, second, third = group_messages(thread, "a")

    assert not first["is_grouped"]
    assert second["is_grouped"]
    assert not third["is_grouped"]

    assert not first["is_last"]
    assert second["is_last"]
    assert third["is_last"]

    assert not first["show_timestamp"]
    assert second["show_timestamp"]


def test_sender_change_closes_run():
    thread = [msg("a", T0), msg("b", T0 + timedelta(minutes=1))]

    first, second = group_messages(thread, "a")

    assert first["is_last"]
    assert first["show_delivered"]
    assert not second["is_grouped"]
    assert second["is_last"]
    assert not second["show_delivered"]
    assert not second["is_own"]


def test_separators():
    thread = [
        msg("a", T0),
        msg("b", T0 + timedelta(minutes=30)),
        msg("a", T0 + timedelta(minutes=95)),
        msg("a", datetime(2026, 3, 11, 0, 5, tzinfo=timezone.utc)),
    ]

    flags = [m["show_time_separator"] for m in group_messages(thread, "a")]

    assert flags == [True, False, True, True]


def test_new_day_is_judged_in_the_viewer_timezone():
    tz = timezone(timedelta(hours=-6))
    # 23:50 and 00:10 UTC are 17:50 and 18:10 the previous day at UTC-6
    thread = [
        msg("a", datetime(2026, 3, 10, 23, 50, tzinfo=timezone.utc)),
        msg("a", datetime(2026, 3, 11, 0, 10, tzinfo=timezone.utc)),
    ]

    assert [m["show_time_separator"] for m in group_messages(thread, "a", tz=tz)] == [True, False]
    assert [m["show_time_separator"] for m in group_messages(thread, "a")] == [True, True]


def test_empty_thread():
    assert group_messages([], "a") == []


def test_parse_timestamp_handles_z_and_naive():
    assert parse_timestamp("2026-03-10T14:00:00Z") == T0
    assert parse_timestamp("2026-03-10T14:00:00") == T0
    assert parse_timestamp(T0) == T0


def test_separator_labels():
    now = datetime(2026, 3, 10, 18, 0, tzinfo=timezone.utc)

    assert separator_label(T0, now=now) == "Today"
    assert separator_label(T0 - timedelta(days=1), now=now) == "Yesterday"
    assert separator_label(T0 - timedelta(days=3), now=now) == "Saturday"
    assert separator_label(datetime(2026, 1, 5, 9, 0, tzinfo=timezone.utc), now=now) == "Monday, January 5, 2026"


def test_message_and_inbox_times():
    now = T0 + timedelta(seconds=30)
    assert format_message_time(T0, now=now) == "now"
    assert format_message_time(T0 + timedelta(minutes=65) - timedelta(hours=3), now=T0) == "12:05 PM"
    assert format_message_time(T0 - timedelta(days=2), now=T0) == "Mar 8, 2:00 PM"

    assert format_inbox_time(None) == ""
    assert format_inbox_time(T0 - timedelta(hours=1), now=T0) == "1:00 PM"
    assert format_inbox_time(T0 - timedelta(days=2), now=T0) == "Sun"
    assert format_inbox_time(T0 - timedelta(days=30), now=T0) == "Feb 8"
