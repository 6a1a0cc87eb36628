"""
Outbound notifications (password reset links, phone verification codes).

Delivery providers live outside this service. `LoggingNotifier` is the
development stand-in: it writes what would be sent to the log at INFO.
"""

import logging
from typing import Protocol

logger = logging.getLogger(__name__)


class Notifier(Protocol):
    async def send_password_reset(self, email: str, reset_url: str) -> None:
        ...

    async def send_phone_code(self, phone: str, code: str) -> None:
        ...


class LoggingNotifier:
    async def send_password_reset(self, email: str, reset_url: str) -> None:
        logger.info("Password reset link for %s: %s", email, reset_url)

    async def send_phone_code(self, phone: str, code: str) -> None:
        logger.info("Verification code for %s: %s", phone, code)


_notifier: Notifier = LoggingNotifier()


def get_notifier() -> Notifier:
    return _notifier
