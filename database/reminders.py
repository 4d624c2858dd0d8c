"""
🔔 REMINDER HELPERS
===================
Reminders belong to exactly one Lead or Event and only change through their
parent. These helpers return new lists; the repositories persist them.
"""

from datetime import date, timedelta
from typing import List, Optional, Union

from database.models import Reminder, ReminderType, new_id


def make_reminder(
    reminder_date: Union[str, date],
    note: str,
    type: ReminderType = ReminderType.FOLLOW_UP
) -> Reminder:
    if isinstance(reminder_date, date):
        reminder_date = reminder_date.isoformat()
    return Reminder(
        id=new_id("rem"),
        date=reminder_date,
        type=type,
        note=note,
        is_completed=False,
    )


def follow_up_in(days: int, note: str, today: Optional[date] = None) -> Reminder:
    """Follow-up reminder ``days`` days after ``today``."""
    today = today or date.today()
    return make_reminder(today + timedelta(days=days), note, ReminderType.FOLLOW_UP)


def add_reminder(reminders: List[Reminder], reminder: Reminder) -> List[Reminder]:
    return [*reminders, reminder]


def toggle_reminder(reminders: List[Reminder], reminder_id: str) -> List[Reminder]:
    """Flip ``is_completed`` on one reminder."""
    return [
        Reminder(r.id, r.date, r.type, r.note, not r.is_completed) if r.id == reminder_id else r
        for r in reminders
    ]


def delete_reminder(reminders: List[Reminder], reminder_id: str) -> List[Reminder]:
    return [r for r in reminders if r.id != reminder_id]
