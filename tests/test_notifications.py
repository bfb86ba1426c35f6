"""Tests for fire-and-forget notification delivery."""

import asyncio
import json

import httpx
import pytest

from job_autopilot.collaborators.notifications import (
    LoggingNotifier,
    NotificationDispatcher,
    WebhookNotifier,
)
from job_autopilot.core.models import Notification, NotificationKind

from conftest import RecordingNotifier


def make_notification(candidate_id: str = "cand-1") -> Notification:
    return Notification(
        kind=NotificationKind.MATCHES_FOUND,
        candidate_id=candidate_id,
        title="We Found 2 Jobs for You",
        message="2 new job matches are waiting for your review",
        data={"match_count": 2}
    )


class TestNotificationDispatcher:
    """Bounded background delivery with an error count."""

    @pytest.mark.asyncio
    async def test_submit_returns_before_delivery(self):
        release = asyncio.Event()

        class BlockingNotifier:
            def __init__(self):
                self.sent = []

            async def notify(self, notification):
                await release.wait()
                self.sent.append(notification)

        notifier = BlockingNotifier()
        dispatcher = NotificationDispatcher(notifier)

        dispatcher.submit(make_notification())

        assert dispatcher.pending_count == 1
        assert notifier.sent == []

        release.set()
        await dispatcher.drain()

        assert len(notifier.sent) == 1
        assert dispatcher.pending_count == 0
        assert dispatcher.sent_count == 1

    @pytest.mark.asyncio
    async def test_failures_are_counted_not_raised(self):
        dispatcher = NotificationDispatcher(RecordingNotifier(fail=True))

        task = dispatcher.submit(make_notification())
        await dispatcher.drain()

        assert task.exception() is None
        assert dispatcher.failed_count == 1
        assert dispatcher.sent_count == 0

    @pytest.mark.asyncio
    async def test_concurrency_is_bounded(self):
        active = 0
        peak = 0

        class CountingNotifier:
            async def notify(self, notification):
                nonlocal active, peak
                active += 1
                peak = max(peak, active)
                await asyncio.sleep(0.01)
                active -= 1

        dispatcher = NotificationDispatcher(CountingNotifier(), concurrency=2)
        for index in range(6):
            dispatcher.submit(make_notification(f"cand-{index}"))
        await dispatcher.drain()

        assert peak == 2
        assert dispatcher.sent_count == 6

    @pytest.mark.asyncio
    async def test_logging_notifier_accepts_notifications(self):
        dispatcher = NotificationDispatcher(LoggingNotifier())

        dispatcher.submit(make_notification())
        await dispatcher.drain()

        assert dispatcher.sent_count == 1


class TestWebhookNotifier:
    """JSON POST delivery."""

    @pytest.mark.asyncio
    async def test_posts_notification_json(self):
        received = []

        def handler(request: httpx.Request) -> httpx.Response:
            received.append(json.loads(request.content))
            return httpx.Response(204)

        client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
        notifier = WebhookNotifier("https://hooks.example.com/autopilot", client=client)

        await notifier.notify(make_notification())
        await notifier.close()

        assert received[0]["kind"] == "matches_found"
        assert received[0]["candidate_id"] == "cand-1"
        assert received[0]["data"] == {"match_count": 2}

    @pytest.mark.asyncio
    async def test_error_status_counts_as_failed_delivery(self):
        client = httpx.AsyncClient(transport=httpx.MockTransport(lambda request: httpx.Response(500)))
        dispatcher = NotificationDispatcher(WebhookNotifier("https://hooks.example.com/x", client=client))

        dispatcher.submit(make_notification())
        await dispatcher.drain()
        await client.aclose()

        assert dispatcher.failed_count == 1
