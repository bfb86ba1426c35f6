"""Fire-and-forget notification delivery."""

import asyncio
from typing import Optional, Protocol, Set

import httpx

from job_autopilot.core.models import Notification
from job_autopilot.utils.logging import get_logger

logger = get_logger(__name__)


class Notifier(Protocol):
    """Delivers one notification."""
    
    async def notify(self, notification: Notification) -> None:
        ...


class LoggingNotifier:
    """Writes notifications to the log."""
    
    def __init__(self):
        self.logger = logger.bind(component="logging_notifier")
    
    async def notify(self, notification: Notification) -> None:
        self.logger.info(
            "Notification",
            kind=notification.kind.value,
            candidate_id=notification.candidate_id,
            title=notification.title,
            message=notification.message
        )


class WebhookNotifier:
    """Posts notifications as JSON to a webhook."""
    
    def __init__(self, url: str, timeout: float = 10.0, client: Optional[httpx.AsyncClient] = None):
        self.url = url
        self._client = client or httpx.AsyncClient(timeout=timeout)
    
    async def notify(self, notification: Notification) -> None:
        response = await self._client.post(self.url, json=notification.model_dump(mode="json"))
        response.raise_for_status()
    
    async def close(self) -> None:
        await self._client.aclose()


class NotificationDispatcher:
    """
    Sends notifications in the background on a bounded pool.
    
    Delivery failures are logged and counted and never reach the caller,
    so a broken channel cannot block or roll back the pipeline.
    """
    
    def __init__(self, notifier: Notifier, concurrency: int = 4):
        self.notifier = notifier
        self.concurrency = concurrency
        self.sent_count = 0
        self.failed_count = 0
        self.logger = logger.bind(component="notification_dispatcher")
        self._semaphore: Optional[asyncio.Semaphore] = None
        self._pending: Set[asyncio.Task] = set()
    
    def submit(self, notification: Notification) -> asyncio.Task:
        """Schedule delivery and return immediately."""
        if self._semaphore is None:
            self._semaphore = asyncio.Semaphore(self.concurrency)
        
        task = asyncio.get_running_loop().create_task(self._deliver(notification))
        self._pending.add(task)
        task.add_done_callback(self._pending.discard)
        return task
    
    @property
    def pending_count(self) -> int:
        return len(self._pending)
    
    async def drain(self) -> None:
        """Wait for every submitted notification to finish."""
        while self._pending:
            await asyncio.gather(*list(self._pending), return_exceptions=True)
    
    async def _deliver(self, notification: Notification) -> None:
        async with self._semaphore:
            try:
                await self.notifier.notify(notification)
                self.sent_count += 1
            except Exception as e:
                self.failed_count += 1
                self.logger.error(
                    "Notification delivery failed",
                    kind=notification.kind.value,
                    candidate_id=notification.candidate_id,
                    error=str(e),
                    failed_total=self.failed_count
                )
