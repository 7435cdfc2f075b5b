"""
Display helpers for a chat thread.

Everything here is derived from the raw, ordered message list on every
render; nothing is stored.
"""

from datetime import datetime, timedelta, timezone, tzinfo

GROUP_WINDOW = timedelta(minutes=5)
TIMESTAMP_GAP = timedelta(minutes=30)
SEPARATOR_GAP = timedelta(minutes=60)


def parse_timestamp(value) -> datetime:
    """ISO-8601 string or datetime to an aware datetime (naive means UTC)."""
    if isinstance(value, datetime):
        parsed = value
    else:
        parsed = datetime.fromisoformat(str(value).replace("Z", "+00:00"))

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed


def _clock(dt: datetime) -> str:
    return f"{dt.strftime('%I').lstrip('0')}:{dt.strftime('%M %p')}"


def group_messages(messages: list[dict], current_user_id: str, tz: tzinfo = timezone.utc) -> list[dict]:
    """
    Annotate each message with the flags the thread view renders from:

    - `is_grouped`: same sender as the previous message, under 5 minutes later
    - `is_last`: closes a run (next message is another sender or > 5 minutes away)
    - `show_timestamp`: closes a run, or the next message is > 30 minutes away
    - `show_delivered`: own message that closes a run
    - `show_time_separator`: first message, a new calendar day, or > 60 minutes
      since the previous message
    """
    current_user_id = str(current_user_id)
    times = [parse_timestamp(m["created_at"]) for m in messages]
    grouped = []

    for index, message in enumerate(messages):
        sent_at = times[index]
        prev = messages[index - 1] if index > 0 else None
        nxt = messages[index + 1] if index + 1 < len(messages) else None
        prev_at = times[index - 1] if prev else None
        next_at = times[index + 1] if nxt else None

        is_grouped = bool(
            prev
            and prev["sender_id"] == message["sender_id"]
            and sent_at - prev_at < GROUP_WINDOW
        )

        is_last = (
            nxt is None
            or nxt["sender_id"] != message["sender_id"]
            or next_at - sent_at > GROUP_WINDOW
        )

        if prev is None:
            show_separator = True
        else:
            new_day = sent_at.astimezone(tz).date() != prev_at.astimezone(tz).date()
            show_separator = new_day or sent_at - prev_at > SEPARATOR_GAP

        is_own = str(message["sender_id"]) == current_user_id

        grouped.append(
            {
                **message,
                "is_own": is_own,
                "is_grouped": is_grouped,
                "is_last": is_last,
                "show_timestamp": is_last or (next_at is not None and next_at - sent_at > TIMESTAMP_GAP),
                "show_delivered": is_own and is_last,
                "show_time_separator": show_separator,
            }
        )

    return grouped


def separator_label(timestamp, now: datetime | None = None, tz: tzinfo = timezone.utc) -> str:
    day = parse_timestamp(timestamp).astimezone(tz)
    today = (now or datetime.now(timezone.utc)).astimezone(tz).date()
    diff_days = (today - day.date()).days

    if diff_days == 0:
        return "Today"
    if diff_days == 1:
        return "Yesterday"
    if 0 < diff_days <= 7:
        return day.strftime("%A")
    return f"{day.strftime('%A, %B')} {day.day}, {day.year}"


def format_message_time(timestamp, now: datetime | None = None, tz: tzinfo = timezone.utc) -> str:
    """Relative time for a bubble: "now", a clock time, or date and time."""
    sent_at = parse_timestamp(timestamp)
    now = now or datetime.now(timezone.utc)
    diff = now - sent_at
    local = sent_at.astimezone(tz)

    if diff < timedelta(minutes=1):
        return "now"
    if diff < timedelta(hours=24):
        return _clock(local)
    return f"{local.strftime('%b')} {local.day}, {_clock(local)}"


def format_inbox_time(timestamp, now: datetime | None = None, tz: tzinfo = timezone.utc) -> str:
    """Shorter variant for the chat list: clock, weekday, then date."""
    if not timestamp:
        return ""

    sent_at = parse_timestamp(timestamp)
    now = now or datetime.now(timezone.utc)
    diff = now - sent_at
    local = sent_at.astimezone(tz)

    if diff < timedelta(hours=24):
        return _clock(local)
    if diff < timedelta(days=7):
        return local.strftime("%a")
    return f"{local.strftime('%b')} {local.day}"
