"""Domain models for uh_user — pure dataclasses, no business logic."""

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    id: str
    first_name: str
    last_name: str | None
    email: str
    mobile_no: str | None
    password_hash: str
    status: int
    created_at: datetime
    updated_at: datetime
    deleted_at: datetime | None = None

    @property
    def is_active(self) -> bool:
        return self.status == 1
