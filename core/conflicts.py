"""
Controllo sovrapposizioni: evita che la stessa camera sia prenotata due volte.

Intervalli semiaperti [inizio, fine): un check-out e un check-in nello stesso
giorno non sono in conflitto.
"""

from datetime import date
from typing import Iterable, List, Optional

from core.models import Booking


def overlaps(start: date, end: date, other_start: date, other_end: date) -> bool:
    return start < other_end and end > other_start


def conflicting_bookings(
    bookings: Iterable[Booking],
    room_id: str,
    start: date,
    end: date,
    exclude_id: Optional[str] = None,
) -> List[Booking]:
    """Prenotazioni della stessa camera che si sovrappongono all'intervallo."""
    return [
        b for b in bookings
        if b.room_id == room_id
        and (exclude_id is None or b.id != exclude_id)
        and overlaps(start, end, b.start_date, b.end_date)
    ]


def has_conflict(
    bookings: Iterable[Booking],
    room_id: str,
    start: date,
    end: date,
    exclude_id: Optional[str] = None,
) -> bool:
    """True se una prenotazione esistente (diversa da exclude_id) si sovrappone."""
    return any(
        b.room_id == room_id
        and (exclude_id is None or b.id != exclude_id)
        and overlaps(start, end, b.start_date, b.end_date)
        for b in bookings
    )
