import logging
from datetime import datetime, timezone
from typing import Optional

from fastapi import APIRouter, Depends, File, Form, UploadFile

from ..crm_client import ContactTagger, dispatch_review_tag
from ..dependencies import get_contact_tagger, get_review_backend
from ..errors import FieldError, ReviewNotFoundError, ReviewValidationError
from ..schemas.reviews import MAX_PHOTO_BYTES, PhotoAttachment, ReviewStatusUpdate, UpstreamStatus
from ..utils.logging import submission_log_context
from ..validation import validate_submission
from ..wordpress_client import ReviewBackend

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/reviews", tags=["reviews"])

SUBMITTED_LIVE_MESSAGE = "Thank you! Your review has been submitted and is pending approval."
SUBMITTED_MOCK_MESSAGE = "Thank you! Your review has been submitted (demo mode)."
VALID_STATUSES = ", ".join(status.value for status in UpstreamStatus)


def _parse_review_id(review_id: str) -> int:
    try:
        value = int(review_id)
    except ValueError:
        value = 0
    if value < 1:
        raise ReviewValidationError([FieldError(field="id", message="Invalid review ID provided")])
    return value


async def _read_photo(photo: Optional[UploadFile]) -> Optional[PhotoAttachment]:
    if photo is None or not photo.filename:
        return None
    # One byte past the limit is enough to reject an oversized upload.
    content = await photo.read(MAX_PHOTO_BYTES + 1)
    return PhotoAttachment(filename=photo.filename, content_type=photo.content_type or "", content=content)


@router.get("/test-connection")
async def test_connection(backend: ReviewBackend = Depends(get_review_backend)):
    connected = await backend.test_connection()
    return {
        "success": True,
        "connected": connected,
        "mockMode": backend.mock_mode,
        "message": "WordPress connection successful" if connected else "WordPress connection failed",
        "timestamp": datetime.now(timezone.utc).isoformat(),
    }


@router.get("")
async def list_reviews(backend: ReviewBackend = Depends(get_review_backend)):
    """List approved reviews, newest first."""
    reviews = await backend.list_approved_reviews()
    return {
        "success": True,
        "data": [review.model_dump(mode="json", exclude_none=True) for review in reviews],
        "count": len(reviews),
        "message": "Reviews loaded successfully" if reviews else "No reviews found",
        "source": backend.source,
    }


@router.post("", status_code=201)
async def submit_review(
    author_name: Optional[str] = Form(None),
    author_email: Optional[str] = Form(None),
    rating: Optional[str] = Form(None),
    review_text: Optional[str] = Form(None),
    photo: Optional[UploadFile] = File(None),
    backend: ReviewBackend = Depends(get_review_backend),
    tagger: ContactTagger = Depends(get_contact_tagger),
):
    """
    Submit a new review. It is stored as pending until a moderator
    publishes it; the CRM contact is tagged in the background.
    """
    attachment = await _read_photo(photo)
    logger.info(
        "Submitting new review: %s",
        submission_log_context(author_name, author_email, rating, review_text, attachment is not None),
    )
    submission = validate_submission(author_name, author_email, rating, review_text, attachment)

    created = await backend.create_review(submission)
    dispatch_review_tag(tagger, submission.author_email)

    return {
        "success": True,
        "message": SUBMITTED_MOCK_MESSAGE if backend.mock_mode else SUBMITTED_LIVE_MESSAGE,
        "data": created.model_dump(),
    }


@router.get("/{review_id}")
async def get_review(review_id: str, backend: ReviewBackend = Depends(get_review_backend)):
    parsed_id = _parse_review_id(review_id)
    review = await backend.get_review_by_id(parsed_id)
    if review is None:
        raise ReviewNotFoundError(f"Review with ID {parsed_id} not found")
    return {
        "success": True,
        "data": review.model_dump(mode="json", exclude_none=True),
        "message": "Review retrieved successfully",
    }


@router.put("/{review_id}/status")
async def update_review_status(
    review_id: str,
    payload: Optional[ReviewStatusUpdate] = None,
    backend: ReviewBackend = Depends(get_review_backend),
):
    """Move a review between moderation states. Any state may follow any other."""
    parsed_id = _parse_review_id(review_id)
    requested = payload.status if payload else None
    try:
        status = UpstreamStatus(requested)
    except (ValueError, TypeError):
        raise ReviewValidationError(
            [FieldError(field="status", message=f"Invalid status. Must be one of: {VALID_STATUSES}")]
        ) from None

    result = await backend.update_review_status(parsed_id, status)
    return {
        "success": True,
        "data": result.model_dump(),
        "message": f"Review status updated to {status.value}",
    }
