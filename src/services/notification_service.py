"""Best-effort email notifications for order lifecycle events."""

import asyncio
import base64
import logging
from dataclasses import dataclass, field
from typing import Any, Protocol

import resend
from tenacity import (
    AsyncRetrying,
    before_sleep_log,
    retry_if_exception_type,
    stop_after_attempt,
    wait_incrementing,
)

from src.api.middleware.error_handler import NotificationError

logger = logging.getLogger(__name__)


@dataclass
class EmailAttachment:
    """Binary file attached to an outgoing email."""

    filename: str
    content: bytes
    content_type: str | None = None


@dataclass
class EmailMessage:
    """A fully composed email ready for the transport."""

    to: str
    subject: str
    html: str
    attachments: list[EmailAttachment] = field(default_factory=list)
    kind: str = "generic"


class Mailer(Protocol):
    """Mail transport used by the dispatcher. Blocking calls are fine."""

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        attachments: list[EmailAttachment] | None = None,
    ) -> dict[str, Any]: ...


class ResendMailer:
    """Mail transport backed by the Resend API."""

    def __init__(self, api_key: str, from_email: str) -> None:
        """Initialize the transport with the Resend API key.

        Args:
            api_key: Resend API key.
            from_email: Sender address, optionally with a display name.
        """
        resend.api_key = api_key
        self.from_email = from_email

    def send(
        self,
        to: str,
        subject: str,
        html: str,
        attachments: list[EmailAttachment] | None = None,
    ) -> dict[str, Any]:
        """Send one email.

        Args:
            to: Recipient address.
            subject: Subject line.
            html: HTML body.
            attachments: Optional binary attachments.

        Returns:
            dict: ``{"id": <resend email id>}``.
        """
        params: dict[str, Any] = {
            "from": self.from_email,
            "to": [to],
            "subject": subject,
            "html": html,
        }
        if attachments:
            params["attachments"] = [_attachment_params(attachment) for attachment in attachments]

        response = resend.Emails.send(params)
        return {"id": response.get("id")}


def _attachment_params(attachment: EmailAttachment) -> dict[str, Any]:
    params: dict[str, Any] = {
        "filename": attachment.filename,
        "content": base64.b64encode(attachment.content).decode("ascii"),
    }
    if attachment.content_type:
        params["content_type"] = attachment.content_type
    return params


class NotificationDispatcher:
    """Sends emails through a bounded queue drained by background workers.

    ``submit`` never blocks or raises, so the operation that triggered a
    notification succeeds or fails on its own. Each send is bounded by a
    timeout and retried with a linear backoff; messages that still fail
    are logged and dropped.
    """

    def __init__(
        self,
        mailer: Mailer,
        workers: int = 2,
        queue_size: int = 100,
        timeout_seconds: float = 15.0,
        max_retries: int = 2,
        retry_backoff_seconds: float = 2.0,
    ) -> None:
        self.mailer = mailer
        self.worker_count = workers
        self.queue_size = queue_size
        self.timeout_seconds = timeout_seconds
        self.max_retries = max_retries
        self.retry_backoff_seconds = retry_backoff_seconds
        self._queue: asyncio.Queue[EmailMessage] | None = None
        self._workers: list[asyncio.Task] = []

    @property
    def is_running(self) -> bool:
        return bool(self._workers)

    async def start(self) -> None:
        """Create the queue and start worker tasks. Call at app startup."""
        if self._workers:
            return
        queue: asyncio.Queue[EmailMessage] = asyncio.Queue(maxsize=self.queue_size)
        self._queue = queue
        self._workers = [
            asyncio.create_task(self._worker_loop(queue), name=f"notification-worker-{index}")
            for index in range(self.worker_count)
        ]
        logger.info("Notification dispatcher started with %d workers", self.worker_count)

    async def stop(self, drain_timeout: float = 5.0) -> None:
        """Give queued messages a chance to go out, then stop the workers."""
        if not self._workers:
            return
        try:
            await asyncio.wait_for(self.drain(), timeout=drain_timeout)
        except asyncio.TimeoutError:
            pending = self._queue.qsize() if self._queue else 0
            logger.warning("Notification dispatcher stopping with %d unsent messages", pending)

        for task in self._workers:
            task.cancel()
        await asyncio.gather(*self._workers, return_exceptions=True)
        self._workers = []
        self._queue = None
        logger.info("Notification dispatcher stopped")

    async def drain(self) -> None:
        """Wait until every queued message has been processed."""
        if self._queue is not None:
            await self._queue.join()

    def submit(self, message: EmailMessage) -> bool:
        """Queue a message for background delivery.

        Args:
            message: Composed message.

        Returns:
            bool: True if queued, False if dropped.
        """
        if self._queue is None:
            logger.error("Dispatcher not running, dropping %s email to %s", message.kind, message.to)
            return False
        try:
            self._queue.put_nowait(message)
        except asyncio.QueueFull:
            logger.error("Notification queue full, dropping %s email to %s", message.kind, message.to)
            return False
        return True

    async def dispatch_now(self, message: EmailMessage) -> dict[str, Any]:
        """Send a message inline with the same timeout and retry policy.

        Args:
            message: Composed message.

        Returns:
            dict: Transport result.

        Raises:
            NotificationError: If every attempt failed.
        """
        return await self._send_with_retry(message)

    async def _send_once(self, message: EmailMessage) -> dict[str, Any]:
        return await asyncio.wait_for(
            asyncio.to_thread(
                self.mailer.send,
                message.to,
                message.subject,
                message.html,
                message.attachments or None,
            ),
            timeout=self.timeout_seconds,
        )

    async def _send_with_retry(self, message: EmailMessage) -> dict[str, Any]:
        """Send with timeout, retrying failed attempts with linear backoff.

        Raises:
            NotificationError: Once ``max_retries + 1`` attempts have failed.
        """
        attempts = self.max_retries + 1
        result: dict[str, Any] = {}
        try:
            async for attempt in AsyncRetrying(
                retry=retry_if_exception_type(Exception),
                stop=stop_after_attempt(attempts),
                wait=wait_incrementing(
                    start=self.retry_backoff_seconds,
                    increment=self.retry_backoff_seconds,
                ),
                before_sleep=before_sleep_log(logger, logging.WARNING),
                reraise=True,
            ):
                with attempt:
                    result = await self._send_once(message)
        except Exception as e:
            logger.warning(
                "Failed to send %s email to %s after %d attempts: %s",
                message.kind,
                message.to,
                attempts,
                type(e).__name__ if isinstance(e, asyncio.TimeoutError) else str(e),
            )
            raise NotificationError(f"Failed to send {message.kind} email") from e

        logger.info(
            "Sent %s email to %s, id: %s",
            message.kind,
            message.to,
            result.get("id") if isinstance(result, dict) else None,
        )
        return result

    async def _worker_loop(self, queue: asyncio.Queue[EmailMessage]) -> None:
        while True:
            message = await queue.get()
            try:
                await self._send_with_retry(message)
            except NotificationError as e:
                logger.error(
                    "Giving up on %s email to %s: %s",
                    message.kind,
                    message.to,
                    e.__cause__ or e,
                )
            finally:
                queue.task_done()
