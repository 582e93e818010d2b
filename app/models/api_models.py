from pydantic import BaseModel, Field, field_validator
from typing import List, Union

# --- Incoming Request Models ---

class BookingRequest(BaseModel):
    name: str = ""
    email: str = ""
    subjects: List[str] = Field(default_factory=list)

    @field_validator("subjects", mode="before")
    @classmethod
    def coerce_subjects(cls, value: Union[str, List[str], None]) -> List[str]:
        # A form with a single ticked checkbox posts a plain string
        if value is None:
            return []
        if isinstance(value, str):
            return [value]
        return list(value)


# --- Outgoing Response Models ---

class BookingResponse(BaseModel):
    id: int
    total: int
    message: str = "Booking successful!"
