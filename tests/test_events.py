"""Tests for EventEmitter and Notifier."""
import pytest

from mediaintake.services.notifier import Notification, NotificationLevel, Notifier
from mediaintake.utils.events import NOTIFICATION, EventEmitter


class TestEventEmitter:
    @pytest.mark.asyncio
    async def test_sync_and_async_listeners(self):
        emitter = EventEmitter()
        calls = []

        def sync_listener(value):
            calls.append(("sync", value))

        async def async_listener(value):
            calls.append(("async", value))

        emitter.on("progress", sync_listener)
        emitter.on("progress", async_listener)
        await emitter.emit("progress", 40)

        assert calls == [("sync", 40), ("async", 40)]

    @pytest.mark.asyncio
    async def test_duplicate_subscription_is_ignored(self):
        emitter = EventEmitter()
        calls = []
        emitter.on("error", calls.append)
        emitter.on("error", calls.append)
        assert emitter.listener_count("error") == 1
        await emitter.emit("error", "x")
        assert calls == ["x"]

    @pytest.mark.asyncio
    async def test_off(self):
        emitter = EventEmitter()
        calls = []
        emitter.on("error", calls.append)
        emitter.off("error", calls.append)
        emitter.off("missing", calls.append)
        await emitter.emit("error", "x")
        assert calls == []
        assert emitter.listener_count("error") == 0

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_stop_others(self):
        emitter = EventEmitter()
        calls = []

        def broken(value):
            raise ValueError("bad listener")

        emitter.on("progress", broken)
        emitter.on("progress", calls.append)
        await emitter.emit("progress", 10)
        assert calls == [10]

    @pytest.mark.asyncio
    async def test_listener_may_unsubscribe_during_emit(self):
        emitter = EventEmitter()
        calls = []

        def once(value):
            calls.append(value)
            emitter.off("progress", once)

        emitter.on("progress", once)
        await emitter.emit("progress", 1)
        await emitter.emit("progress", 2)
        assert calls == [1]

    @pytest.mark.asyncio
    async def test_emit_without_listeners(self):
        await EventEmitter().emit("nothing", 1)


class TestNotifier:
    @pytest.mark.asyncio
    async def test_history_and_levels(self):
        notifier = Notifier()
        await notifier.success("2 files uploaded successfully")
        await notifier.error("a.pdf: Invalid file type")

        assert [n.level for n in notifier.history] == [
            NotificationLevel.SUCCESS,
            NotificationLevel.ERROR,
        ]
        assert [n.message for n in notifier.errors] == ["a.pdf: Invalid file type"]
        assert [n.message for n in notifier.successes] == ["2 files uploaded successfully"]

        notifier.clear()
        assert notifier.history == []

    @pytest.mark.asyncio
    async def test_emits_notification_event(self):
        received = []
        notifier = Notifier()
        notifier.events.on(NOTIFICATION, received.append)

        notification = await notifier.error("network down")

        assert received == [notification]
        assert isinstance(notification, Notification)
        assert notification.is_error
