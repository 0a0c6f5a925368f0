import logging
from typing import Any, Optional

REDACTED = "[REDACTED]"

LOG_FORMAT = "%(asctime)s %(levelname)s %(name)s: %(message)s"


def configure_logging(level: str = "INFO") -> None:
    """Install the root handler once; later calls only adjust the level."""
    root = logging.getLogger()
    if not root.handlers:
        logging.basicConfig(format=LOG_FORMAT)
    root.setLevel(level.upper())


def redact_email(email: Optional[str]) -> str:
    return REDACTED if email else "Not provided"


def submission_log_context(
    author_name: Optional[str],
    author_email: Optional[str],
    rating: Any,
    review_text: Optional[str],
    has_photo: bool,
) -> dict:
    """
    Summary of an incoming submission that is safe to write to logs.
    The email is never included and the text is reduced to its length.
    """
    return {
        "author_name": author_name,
        "author_email": redact_email(author_email),
        "rating": rating,
        "review_text_length": len(review_text or ""),
        "has_photo": has_photo,
    }
