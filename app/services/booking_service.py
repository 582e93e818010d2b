import threading
from typing import Callable, List, NamedTuple, Optional, Sequence

from fastapi import BackgroundTasks

from app.core.errors import ValidationError
from app.core.logger import logger
from app.models.db_models import BookingRecord, SUBJECT_DELIMITER
from app.services.db_service import RecordStore

UNIT_PRICE = 300

Notifier = Callable[[BookingRecord], object]


class BookingResult(NamedTuple):
    id: int
    total: int


class BookingService:
    def __init__(self, store: RecordStore, unit_price: int = UNIT_PRICE, notifier: Optional[Notifier] = None):
        self.store = store
        self.unit_price = unit_price
        self.notifier = notifier

    def normalize_subjects(self, subjects: Optional[Sequence[str]]) -> List[str]:
        if not subjects:
            return []
        return [s.strip() for s in subjects if s and s.strip()]

    def calculate_total(self, subjects: Sequence[str]) -> int:
        return len(subjects) * self.unit_price

    def submit(
        self,
        name: str,
        email: str,
        subjects: Optional[Sequence[str]],
        background_tasks: Optional[BackgroundTasks] = None,
    ) -> BookingResult:
        """
        Validates and stores a booking.
        Raises ValidationError for missing fields; PersistenceError from the
        store is passed through untouched.
        """
        name = (name or "").strip()
        email = (email or "").strip()
        subjects = self.normalize_subjects(subjects)

        missing = [field for field, value in (("name", name), ("email", email), ("subjects", subjects)) if not value]
        if missing:
            logger.info(f"🚫 Booking rejected, missing: {', '.join(missing)}")
            raise ValidationError(f"Missing required field(s): {', '.join(missing)}")

        # Subjects are stored as delimited text; an embedded delimiter would split on read
        unsplittable = [s for s in subjects if SUBJECT_DELIMITER in s]
        if unsplittable:
            logger.info(f"🚫 Booking rejected, subject contains '{SUBJECT_DELIMITER}': {unsplittable}")
            raise ValidationError(f"Subject names may not contain '{SUBJECT_DELIMITER}': {', '.join(unsplittable)}")

        total = self.calculate_total(subjects)
        logger.info(f"📥 Booking Request - {name} <{email}>, subjects: {subjects}, total: {total}")

        record = self.store.insert_record(name, email, subjects, total)

        if self.notifier is not None:
            self._dispatch_notification(record, background_tasks)

        return BookingResult(id=record.id, total=record.total)

    def list_bookings(self) -> List[BookingRecord]:
        return self.store.list_all()

    def _dispatch_notification(self, record: BookingRecord, background_tasks: Optional[BackgroundTasks]):
        # Runs after the response is sent (BackgroundTasks) or on its own thread
        if background_tasks is not None:
            background_tasks.add_task(self._notify, record)
        else:
            threading.Thread(target=self._notify, args=(record,), daemon=True).start()

    def _notify(self, record: BookingRecord):
        try:
            self.notifier(record)
        except Exception as e:
            logger.error(f"❌ Error sending notification for booking {record.id}: {e}")
