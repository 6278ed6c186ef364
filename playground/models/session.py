"""Session models."""

from pydantic import BaseModel


class SessionEntry(BaseModel):
    """A persisted conversation thread as listed by the backend."""

    session_id: str
    title: str | None = None
    created_at: int | float | None = None

    class Config:
        extra = "ignore"
        frozen = True
