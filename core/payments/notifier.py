"""
Notifier

Email delivery for the payment core, built on django.core.mail. Rendering of
rich templates is not done here: callers pass a subject and a plain body.

- send() retries transient failures with exponential backoff and never
  raises. It returns False when the message could not be delivered.
- send_many() fans messages out on a bounded thread pool and returns one
  result per message, in input order.

Author: Trafikskola Development Team
Version: 1.0.0
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from functools import wraps
from time import sleep
from typing import List, Optional, Sequence

from django.conf import settings
from django.core.mail import send_mail

from core.payments.exceptions import NotificationFailed

logger = logging.getLogger(__name__)


def retry_on_failure(max_retries: int = 2, base_delay: float = 0.5):
    """
    Decorator to retry a delivery on NotificationFailed.

    Args:
        max_retries: Maximum number of retry attempts
        base_delay: Base delay in seconds (doubled on every attempt)
    """

    def decorator(func):
        @wraps(func)
        def wrapper(*args, **kwargs):
            for attempt in range(max_retries + 1):
                try:
                    return func(*args, **kwargs)
                except NotificationFailed:
                    if attempt < max_retries:
                        delay = base_delay * (2**attempt)
                        logger.warning(
                            f"Notification failed on attempt {attempt + 1}/{max_retries + 1}. "
                            f"Retrying in {delay}s..."
                        )
                        sleep(delay)
                    else:
                        logger.error(f"Notification failed after {max_retries} retries")
                        raise

        return wrapper

    return decorator


@dataclass(frozen=True)
class Notification:
    to: str
    subject: str
    body: str
    kind: str
    related_user_id: Optional[int] = None


class EmailNotifier:
    def __init__(
        self,
        max_retries: Optional[int] = None,
        retry_delay: Optional[float] = None,
        max_workers: Optional[int] = None,
        from_email: Optional[str] = None,
    ):
        self.max_retries = (
            max_retries if max_retries is not None
            else getattr(settings, "NOTIFICATION_MAX_RETRIES", 2)
        )
        self.retry_delay = (
            retry_delay if retry_delay is not None
            else getattr(settings, "NOTIFICATION_RETRY_DELAY", 0.5)
        )
        self.max_workers = max_workers or getattr(settings, "NOTIFICATION_MAX_WORKERS", 4)
        self.from_email = from_email or settings.DEFAULT_FROM_EMAIL

    def deliver(self, notification: Notification) -> None:
        """Single delivery attempt. Raises NotificationFailed."""
        try:
            sent = send_mail(
                notification.subject,
                notification.body,
                self.from_email,
                [notification.to],
                fail_silently=False,
            )
        except Exception as e:
            raise NotificationFailed(
                f"Could not send {notification.kind} to {notification.to}: {e}"
            ) from e
        if not sent:
            raise NotificationFailed(f"Mail backend accepted no message for {notification.to}")

    def send(self, to, subject, body, kind, related_user_id=None) -> bool:
        """Deliver one message. Never raises."""
        return self._send(Notification(to, subject, body, kind, related_user_id))

    def _send(self, notification: Notification) -> bool:
        if not notification.to:
            logger.warning(f"Skipping {notification.kind} notification without recipient")
            return False

        deliver = retry_on_failure(self.max_retries, self.retry_delay)(self.deliver)
        try:
            deliver(notification)
        except NotificationFailed as e:
            logger.error(
                f"{notification.kind} notification to {notification.to} dropped: {e.message}"
            )
            return False
        except Exception:
            logger.exception(f"Unexpected error sending {notification.kind} notification")
            return False

        logger.info(f"Sent {notification.kind} notification to {notification.to}")
        return True

    def send_many(self, notifications: Sequence[Notification]) -> List[bool]:
        if not notifications:
            return []
        if len(notifications) == 1:
            return [self._send(notifications[0])]

        workers = min(self.max_workers, len(notifications))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            return list(pool.map(self._send, notifications))


def get_notifier() -> EmailNotifier:
    return EmailNotifier()
