from typing import Any, Optional

from pydantic import ValidationError

from .errors import FieldError, ReviewValidationError
from .schemas.reviews import MAX_PHOTO_BYTES, PhotoAttachment, ReviewSubmission

FIELD_ORDER = ("author_name", "author_email", "rating", "review_text", "photo")

FIELD_MESSAGES = {
    "author_name": "Name must be between 2 and 100 characters",
    "author_email": "Please provide a valid email address",
    "rating": "Rating must be a number between 1 and 5",
    "review_text": "Review text must be between 10 and 1000 characters",
}


def _photo_errors(photo: PhotoAttachment) -> list[FieldError]:
    errors = []
    if not (photo.content_type or "").lower().startswith("image/"):
        errors.append(FieldError(field="photo", message="Only image files are allowed for photos"))
    if photo.size > MAX_PHOTO_BYTES:
        errors.append(FieldError(field="photo", message="Photo must be 5 MB or smaller"))
    return errors


def validate_submission(
    author_name: Any,
    author_email: Any,
    rating: Any,
    review_text: Any,
    photo: Optional[PhotoAttachment] = None,
) -> ReviewSubmission:
    """
    Check a candidate submission and return it normalized.

    Every violated field is collected; raises ReviewValidationError listing
    them in form order.
    """
    errors: list[FieldError] = []
    submission = None
    try:
        submission = ReviewSubmission.model_validate(
            {
                "author_name": author_name,
                "author_email": author_email,
                "rating": rating,
                "review_text": review_text,
            }
        )
    except ValidationError as exc:
        failed = {str(error["loc"][0]) for error in exc.errors() if error.get("loc")}
        errors.extend(FieldError(field=field, message=FIELD_MESSAGES[field]) for field in failed if field in FIELD_MESSAGES)

    if photo is not None:
        errors.extend(_photo_errors(photo))

    if errors or submission is None:
        errors.sort(key=lambda error: FIELD_ORDER.index(error.field))
        raise ReviewValidationError(errors)

    return submission.model_copy(update={"photo": photo})
