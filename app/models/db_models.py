from typing import List
from datetime import datetime
from pydantic import BaseModel, Field

SUBJECT_DELIMITER = ", "

class BookingRecord(BaseModel):
    id: int
    name: str
    email: str
    subjects: List[str] = Field(default_factory=list)
    total: int
    timestamp: datetime

    @classmethod
    def from_row(cls, row) -> "BookingRecord":
        """Builds a record from a sqlite3.Row of the bookings table."""
        raw_subjects = row["subjects"] or ""
        subjects = [s for s in raw_subjects.split(SUBJECT_DELIMITER) if s]
        return cls(
            id=row["id"],
            name=row["name"],
            email=row["email"],
            subjects=subjects,
            total=row["total"],
            timestamp=datetime.fromisoformat(row["timestamp"]),
        )

    def subjects_text(self) -> str:
        return SUBJECT_DELIMITER.join(self.subjects)
