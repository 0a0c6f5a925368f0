import logging
from typing import Any, Optional

import httpx
from pydantic import BaseModel

from ..schemas.reviews import Review
from .api_client import ReviewApiClient, ReviewFormData

logger = logging.getLogger(__name__)

FETCH_ERROR_MESSAGE = "Failed to load reviews. Please check your connection and try again."
SUBMIT_ERROR_MESSAGE = "Failed to submit review. Please try again."
SUBMIT_IN_PROGRESS_MESSAGE = "A review submission is already in progress."


class SubmissionResult(BaseModel):
    success: bool
    message: Optional[str] = None
    data: Optional[dict[str, Any]] = None
    error: Optional[str] = None


def _server_message(exc: Exception) -> Optional[str]:
    if not isinstance(exc, httpx.HTTPStatusError):
        return None
    try:
        body = exc.response.json()
    except ValueError:
        return None
    return body.get("message") if isinstance(body, dict) else None


class ReviewStore:
    """
    UI state behind the review form and list.

    Holds the loaded reviews, the loading and submitting flags, and at most
    one error message. Every operation clears the previous error.
    """

    def __init__(self, api: ReviewApiClient):
        self._api = api
        self.reviews: list[Review] = []
        self.is_loading = False
        self.is_submitting = False
        self.error: Optional[str] = None

    async def fetch_reviews(self) -> None:
        self.is_loading = True
        self.error = None
        try:
            body = await self._api.get_reviews()
            reviews = [Review.model_validate(item) for item in body.get("data") or []] if body.get("success") else []
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Error fetching reviews: %s", exc)
            self.error = FETCH_ERROR_MESSAGE
        else:
            self.reviews = reviews
        finally:
            self.is_loading = False

    async def submit_review(self, form: ReviewFormData) -> SubmissionResult:
        if self.is_submitting:
            return SubmissionResult(success=False, error=SUBMIT_IN_PROGRESS_MESSAGE)

        self.is_submitting = True
        self.error = None
        try:
            body = await self._api.submit_review(form)
        except (httpx.HTTPError, ValueError) as exc:
            logger.warning("Error submitting review: %s", exc)
            self.error = _server_message(exc) or SUBMIT_ERROR_MESSAGE
            return SubmissionResult(success=False, error=self.error)
        finally:
            self.is_submitting = False

        await self.fetch_reviews()
        return SubmissionResult(
            success=True,
            message=body.get("message") or "Review submitted successfully!",
            data=body.get("data"),
        )

    def clear_error(self) -> None:
        self.error = None
