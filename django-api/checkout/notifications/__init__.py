"""Notifier factory.

Defaults to LoggingNotifier; the email collaborator registers its own
implementation with set_notifier().
"""

from checkout.notifications.port import (
    InvoiceEmail,
    InvoiceLine,
    LoggingNotifier,
    MenuEmail,
    MenuEmailItem,
    Notifier,
    RecordingNotifier,
    TicketEmail,
)

_current_notifier: Notifier | None = None


def get_notifier() -> Notifier:
    global _current_notifier
    if _current_notifier is None:
        _current_notifier = LoggingNotifier()
    return _current_notifier


def set_notifier(notifier: Notifier) -> None:
    global _current_notifier
    _current_notifier = notifier


def reset_notifier() -> None:
    global _current_notifier
    _current_notifier = None


__all__ = [
    "InvoiceEmail",
    "InvoiceLine",
    "LoggingNotifier",
    "MenuEmail",
    "MenuEmailItem",
    "Notifier",
    "RecordingNotifier",
    "TicketEmail",
    "get_notifier",
    "reset_notifier",
    "set_notifier",
]
