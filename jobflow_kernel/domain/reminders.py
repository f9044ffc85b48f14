"""Payment reminder schedule for a drafted invoice."""

from dataclasses import dataclass
from datetime import date, timedelta
from typing import Iterable

DEFAULT_REMINDER_OFFSETS: tuple[int, ...] = (-3, 0, 7)


@dataclass(frozen=True)
class PaymentReminder:
    """
    One reminder relative to the invoice due date.

    offset_days < 0 is before the due date, > 0 is after it.
    """

    offset_days: int
    send_on: date
    label: str


def reminder_label(offset_days: int) -> str:
    if offset_days < 0:
        days = -offset_days
        return f"is due in {days} day{'s' if days != 1 else ''}"
    if offset_days == 0:
        return "is due today"
    return f"is {offset_days} day{'s' if offset_days != 1 else ''} overdue"


def build_reminder_schedule(
    due_date: date,
    offsets: Iterable[int] = DEFAULT_REMINDER_OFFSETS,
) -> list[PaymentReminder]:
    """Reminders ordered by send date."""
    return [
        PaymentReminder(
            offset_days=offset,
            send_on=due_date + timedelta(days=offset),
            label=reminder_label(offset),
        )
        for offset in sorted(offsets)
    ]
