from datetime import date
from enum import Enum
from typing import Any, Optional
from email_validator import validate_email
from pydantic import BaseModel, ConfigDict, Field, field_validator

MAX_PHOTO_BYTES = 5 * 1024 * 1024


class UpstreamStatus(str, Enum):
    PUBLISH = "publish"
    PENDING = "pending"
    DRAFT = "draft"
    TRASH = "trash"


class PhotoAttachment(BaseModel):
    filename: str
    content_type: str
    content: bytes

    @property
    def size(self) -> int:
        return len(self.content)


class ReviewSubmission(BaseModel):
    """A submission that has passed validation: trimmed, email normalized."""

    model_config = ConfigDict(str_strip_whitespace=True)

    author_name: str = Field(..., min_length=2, max_length=100)
    author_email: str
    rating: int = Field(..., ge=1, le=5)
    review_text: str = Field(..., min_length=10, max_length=1000)
    photo: Optional[PhotoAttachment] = None

    @field_validator("author_email")
    @classmethod
    def check_email_syntax(cls, value: str) -> str:
        # Syntax only: reserved domains such as .test are valid addresses here.
        return validate_email(value, check_deliverability=False, test_environment=True).normalized


class Review(BaseModel):
    id: int
    author_name: str
    # Kept for backend use only, never serialized to API consumers.
    author_email: str = Field("", exclude=True)
    rating: int
    review_text: str
    submission_date: Optional[date] = None
    status: str
    experience_photo_url: Optional[str] = None
    title: Optional[str] = None


class CreatedReview(BaseModel):
    id: int
    status: str
    title: str


class ReviewStatusUpdate(BaseModel):
    # Any JSON value is accepted here; the router checks it against UpstreamStatus.
    status: Any = None


class StatusChange(BaseModel):
    id: int
    status: str
