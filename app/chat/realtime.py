"""
Keeps an open chat thread in sync with the `messages` table.

The thread subscribes to the Supabase realtime change feed for its chat and
merges inserted rows by id. If the channel cannot be established it degrades
to re-fetching the whole thread on a fixed interval.
"""

import asyncio
import logging
from enum import Enum
from typing import Awaitable, Callable, Optional

from realtime import RealtimeSubscribeStates

from app.core import config

from .presentation import parse_timestamp

logger = logging.getLogger(__name__)

FetchMessages = Callable[[], Awaitable[list[dict]]]
OnChange = Callable[[list[dict]], Awaitable[None]]
OnTyping = Callable[[bool], Awaitable[None]]
ResolveSender = Callable[[dict], Awaitable[dict]]


class SyncState(str, Enum):
    IDLE = "idle"
    SUBSCRIBING = "subscribing"
    SUBSCRIBED = "subscribed"
    DEGRADED = "degraded"
    POLLING = "polling"
    CLOSED = "closed"


def channel_name(chat_id: str) -> str:
    return f"messages:{chat_id}"


def extract_record(payload: dict) -> Optional[dict]:
    """Pull the inserted row out of a postgres_changes payload."""
    if not isinstance(payload, dict):
        return None

    data = payload.get("data")
    if isinstance(data, dict) and isinstance(data.get("record"), dict):
        return data["record"]

    for key in ("new", "record"):
        if isinstance(payload.get(key), dict):
            return payload[key]
    return None


class MessageThread:
    """Messages of one chat keyed by id, read back in created_at order."""

    def __init__(self, messages: list[dict] | None = None):
        self._by_id: dict[str, dict] = {}
        if messages:
            self.replace(messages)

    def replace(self, messages: list[dict]):
        self._by_id = {str(m["id"]): dict(m) for m in messages}

    def merge(self, message: dict) -> bool:
        """Insert or update by id. False when nothing changed."""
        key = str(message["id"])
        current = self._by_id.get(key)
        merged = {**current, **message} if current else dict(message)
        if not message.get("pending"):
            merged.pop("pending", None)

        if merged == current:
            return False
        self._by_id[key] = merged
        return True

    def echo(self, message: dict):
        """Optimistic copy of an outgoing message until the stored row arrives."""
        self._by_id[str(message["id"])] = {**message, "pending": True}

    def discard(self, message_id: str) -> bool:
        """Drop an unconfirmed echo. Stored rows are never removed."""
        key = str(message_id)
        if not self._by_id.get(key, {}).get("pending"):
            return False
        del self._by_id[key]
        return True

    def __contains__(self, message_id) -> bool:
        return str(message_id) in self._by_id

    def __len__(self) -> int:
        return len(self._by_id)

    @property
    def messages(self) -> list[dict]:
        return sorted(
            self._by_id.values(),
            key=lambda m: (parse_timestamp(m["created_at"]), str(m["id"])),
        )


class ChatThreadSync:
    """
    Realtime subscription for one chat thread, with polling fallback.

    `fetch_messages` returns the full thread oldest first. `on_change`
    receives the thread after every change, `on_typing` the synthetic
    typing indicator shown before another participant's message lands.
    Change-feed rows carry no profile, so `resolve_sender` attaches the
    `sender` before they are merged.
    """

    def __init__(
        self,
        client,
        chat_id: str,
        current_user_id: str,
        fetch_messages: FetchMessages,
        on_change: OnChange,
        on_typing: OnTyping | None = None,
        poll_interval: float | None = None,
        typing_delay: float | None = None,
        resolve_sender: ResolveSender | None = None,
    ):
        self.client = client
        self.chat_id = str(chat_id)
        self.current_user_id = str(current_user_id)
        self.fetch_messages = fetch_messages
        self.on_change = on_change
        self.on_typing = on_typing
        self.resolve_sender = resolve_sender
        self.poll_interval = poll_interval if poll_interval is not None else config.CHAT_POLL_INTERVAL_SECONDS
        self.typing_delay = typing_delay if typing_delay is not None else config.CHAT_TYPING_DELAY_SECONDS

        self.thread = MessageThread()
        self.state = SyncState.IDLE
        self._channel = None
        self._poll_task: asyncio.Task | None = None
        self._pending: set[asyncio.Task] = set()

    async def start(self):
        await self.refresh()
        if self.state == SyncState.CLOSED:
            return

        self.state = SyncState.SUBSCRIBING
        try:
            self._channel = self.client.channel(channel_name(self.chat_id))
            self._channel.on_postgres_changes(
                "INSERT",
                schema="public",
                table="messages",
                filter=f"chat_id=eq.{self.chat_id}",
                callback=self._on_insert,
            )
            await self._channel.subscribe(self._on_status)
        except Exception:
            logger.exception(f"Failed to set up realtime subscription for chat {self.chat_id}")
            self._degrade()

    async def stop(self):
        if self.state == SyncState.CLOSED:
            return
        self.state = SyncState.CLOSED

        if self._poll_task is not None:
            self._poll_task.cancel()
            self._poll_task = None

        for task in list(self._pending):
            task.cancel()
        self._pending.clear()

        if self._channel is not None:
            channel, self._channel = self._channel, None
            try:
                await self.client.remove_channel(channel)
            except Exception:
                logger.warning(f"Failed to remove realtime channel for chat {self.chat_id}", exc_info=True)

        logger.info(f"Stopped sync for chat {self.chat_id}")

    async def refresh(self):
        """Replace the thread with a full fetch."""
        try:
            messages = await self.fetch_messages()
        except Exception:
            logger.exception(f"Error fetching messages for chat {self.chat_id}")
            return

        self.thread.replace(messages)
        await self.on_change(self.thread.messages)

    async def echo(self, message: dict):
        self.thread.echo(message)
        await self.on_change(self.thread.messages)

    async def apply(self, message: dict):
        """Merge a stored row (own send result or change-feed insert)."""
        if self.thread.merge(message):
            await self.on_change(self.thread.messages)

    async def retract(self, message_id: str):
        """Drop an echo whose send failed."""
        if self.thread.discard(message_id):
            await self.on_change(self.thread.messages)

    def _on_status(self, status, err=None):
        logger.info(f"Realtime subscription status chat={self.chat_id}: {status}")

        if self.state == SyncState.CLOSED:
            return
        if status == RealtimeSubscribeStates.SUBSCRIBED:
            self.state = SyncState.SUBSCRIBED
        elif status in (RealtimeSubscribeStates.CHANNEL_ERROR, RealtimeSubscribeStates.TIMED_OUT):
            logger.warning(f"Realtime subscription failed for chat {self.chat_id} ({err}), falling back to polling")
            self._degrade()

    def _degrade(self):
        if self.state in (SyncState.CLOSED, SyncState.POLLING):
            return

        self.state = SyncState.DEGRADED
        if self._poll_task is not None:
            self._poll_task.cancel()
        self._poll_task = asyncio.ensure_future(self._poll())
        self.state = SyncState.POLLING

    async def _poll(self):
        while self.state == SyncState.POLLING:
            await asyncio.sleep(self.poll_interval)
            await self.refresh()

    def _on_insert(self, payload):
        if self.state == SyncState.CLOSED:
            return

        record = extract_record(payload)
        if record is None:
            logger.warning(f"Ignoring change event without a record on chat {self.chat_id}")
            return

        task = asyncio.ensure_future(self._deliver(record))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)

    async def _deliver(self, record: dict):
        from_other = str(record.get("sender_id")) != self.current_user_id

        if self.resolve_sender is not None and "sender" not in record:
            try:
                record = await self.resolve_sender(record)
            except Exception:
                logger.warning(f"Failed to resolve sender for message {record.get('id')}", exc_info=True)

        if from_other and self.on_typing is not None and self.typing_delay > 0:
            await self.on_typing(True)
            try:
                await asyncio.sleep(self.typing_delay)
            finally:
                if self.state != SyncState.CLOSED:
                    await self.on_typing(False)

        await self.apply(record)


class TypingDebouncer:
    """
    Composer typing state. Every keystroke replaces the pending "stopped
    typing" timer, so the indicator clears `timeout` seconds after the last one.
    """

    def __init__(self, on_typing: OnTyping, timeout: float | None = None):
        self.on_typing = on_typing
        self.timeout = timeout if timeout is not None else config.CHAT_TYPING_TIMEOUT_SECONDS
        self.is_typing = False
        self._timer: asyncio.Task | None = None

    async def keystroke(self, text: str):
        self._cancel_timer()

        if not text.strip():
            await self._set(False)
            return

        await self._set(True)
        self._timer = asyncio.ensure_future(self._expire())

    async def stop(self):
        self._cancel_timer()
        await self._set(False)

    def cancel(self):
        self._cancel_timer()

    async def _expire(self):
        await asyncio.sleep(self.timeout)
        self._timer = None
        await self._set(False)

    async def _set(self, typing: bool):
        if typing == self.is_typing:
            return
        self.is_typing = typing
        await self.on_typing(typing)

    def _cancel_timer(self):
        if self._timer is not None:
            self._timer.cancel()
            self._timer = None
