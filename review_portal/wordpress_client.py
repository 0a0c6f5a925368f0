"""
Upstream content store adapter.

WordPress holds every review as a post of the ``reviews`` custom post type,
with the review itself kept in ACF custom fields. This module is the only
place that knows those field names; everything else sees ``Review``.

Two interchangeable backends implement ``ReviewBackend``:

- ``WordPressReviewBackend`` talks to the WordPress REST API.
- ``MockReviewBackend`` serves canned data without any network I/O.

``build_review_backend`` picks one from the settings at startup.
"""

import logging
import time
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Optional

import httpx

from .config import Settings
from .errors import (
    UnknownUpstreamError,
    UpstreamAuthenticationError,
    UpstreamError,
    UpstreamNotFoundError,
    UpstreamPermissionError,
    UpstreamTransportError,
    UpstreamValidationError,
)
from .schemas.reviews import (
    CreatedReview,
    PhotoAttachment,
    Review,
    ReviewSubmission,
    StatusChange,
    UpstreamStatus,
)

logger = logging.getLogger(__name__)

REVIEW_FIELDS = "id,date,status,title,acf,meta"
LIST_PAGE_SIZE = 100


def public_status(upstream_status: Optional[str]) -> str:
    if upstream_status == UpstreamStatus.PUBLISH.value:
        return "approved"
    return upstream_status or UpstreamStatus.PENDING.value


def _rendered(value: Any) -> str:
    if isinstance(value, dict):
        return value.get("rendered") or ""
    return value or ""


def _rating(value: Any) -> int:
    try:
        return int(value or 5)
    except (TypeError, ValueError):
        return 5


def review_from_post(post: dict) -> Review:
    """Map a WordPress review post to the public review shape."""
    acf = post.get("acf")
    if not isinstance(acf, dict):
        # ACF serializes an empty field group as a list.
        acf = {}

    photo = acf.get("photo_upload")
    photo_url = photo.get("url") if isinstance(photo, dict) else None
    author_name = acf.get("customer_name") or "Anonymous"
    created_at = post.get("date") or ""

    return Review(
        id=post["id"],
        author_name=author_name,
        author_email=acf.get("customer_email") or "",
        rating=_rating(acf.get("star_rating")),
        review_text=acf.get("review_message") or _rendered(post.get("content")),
        submission_date=created_at.split("T")[0] or None,
        status=public_status(post.get("status")),
        experience_photo_url=photo_url or acf.get("experience_photo_url") or None,
        title=_rendered(post.get("title")) or f"Review from {author_name}",
    )


def post_from_submission(submission: ReviewSubmission, photo_url: Optional[str]) -> dict:
    """Build the WordPress payload for a new review. New reviews always await moderation."""
    return {
        "title": f"Review from {submission.author_name}",
        "status": UpstreamStatus.PENDING.value,
        "content": submission.review_text,
        "acf": {
            "customer_name": submission.author_name,
            "customer_email": submission.author_email,
            "star_rating": submission.rating,
            "review_message": submission.review_text,
            "experience_photo_url": photo_url,
        },
    }


def _upstream_message(response: httpx.Response) -> Optional[str]:
    try:
        body = response.json()
    except ValueError:
        return None
    return body.get("message") if isinstance(body, dict) else None


def classify_response(response: httpx.Response, action: str) -> UpstreamError:
    """Turn a non-2xx WordPress response into the matching upstream error."""
    status = response.status_code
    if status == 401:
        return UpstreamAuthenticationError("WordPress authentication failed. Please check your credentials.")
    if status == 403:
        return UpstreamPermissionError(f"Permission denied. The WordPress user may not have rights to {action}.")
    if status == 404:
        return UpstreamNotFoundError(
            "WordPress resource not found. Please ensure the Reviews custom post type is properly configured."
        )
    if status == 400:
        return UpstreamValidationError(f"WordPress validation error: {_upstream_message(response) or 'Invalid review data'}")
    if status == 413:
        return UpstreamValidationError("WordPress rejected the upload: file too large.")
    if status == 415:
        return UpstreamValidationError("WordPress rejected the upload: unsupported file format.")
    return UnknownUpstreamError(f"WordPress API error ({status}) while trying to {action}.")


def _json(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise UnknownUpstreamError("WordPress returned a response that is not valid JSON.") from exc


class ReviewBackend(ABC):
    """Storage strategy behind the review API."""

    mock_mode: bool
    source: str

    @abstractmethod
    async def list_approved_reviews(self) -> list[Review]: ...

    @abstractmethod
    async def create_review(self, submission: ReviewSubmission) -> CreatedReview: ...

    @abstractmethod
    async def get_review_by_id(self, review_id: int) -> Optional[Review]: ...

    @abstractmethod
    async def update_review_status(self, review_id: int, status: UpstreamStatus) -> StatusChange: ...

    @abstractmethod
    async def test_connection(self) -> bool: ...

    async def aclose(self) -> None:
        return None


class WordPressReviewBackend(ReviewBackend):
    mock_mode = False
    source = "upstream"

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._upload_timeout = settings.WORDPRESS_UPLOAD_TIMEOUT
        self._client = httpx.AsyncClient(
            base_url=f"{settings.WORDPRESS_URL.rstrip('/')}/wp-json/wp/v2",
            auth=httpx.BasicAuth(settings.WORDPRESS_USER, settings.WORDPRESS_APP_PASSWORD),
            timeout=settings.WORDPRESS_TIMEOUT,
            transport=transport,
            event_hooks={"request": [self._log_request], "response": [self._log_response]},
        )
        logger.info("WordPress backend initialized for %s", settings.WORDPRESS_URL)

    @staticmethod
    async def _log_request(request: httpx.Request) -> None:
        logger.debug("WordPress API request: %s %s", request.method, request.url.path)

    @staticmethod
    async def _log_response(response: httpx.Response) -> None:
        logger.debug("WordPress API response: %s %s", response.status_code, response.request.url.path)

    async def _request(self, method: str, path: str, action: str, **kwargs) -> httpx.Response:
        try:
            response = await self._client.request(method, path, **kwargs)
        except httpx.TimeoutException as exc:
            logger.error("WordPress %s %s timed out", method, path)
            raise UpstreamTransportError(f"WordPress did not respond in time while trying to {action}.") from exc
        except httpx.TransportError as exc:
            logger.error("WordPress %s %s failed: %s", method, path, exc)
            raise UpstreamTransportError("Cannot connect to WordPress. Please check the WordPress URL.") from exc

        if response.is_error:
            logger.error(
                "WordPress API error: status=%s url=%s message=%s",
                response.status_code,
                response.request.url.path,
                _upstream_message(response),
            )
            raise classify_response(response, action)
        return response

    async def list_approved_reviews(self) -> list[Review]:
        response = await self._request(
            "GET",
            "/reviews",
            "read reviews",
            params={
                "status": UpstreamStatus.PUBLISH.value,
                "per_page": LIST_PAGE_SIZE,
                "orderby": "date",
                "order": "desc",
                "_fields": REVIEW_FIELDS,
            },
        )
        posts = _json(response)
        if not isinstance(posts, list):
            raise UnknownUpstreamError("WordPress returned an unexpected reviews payload.")
        logger.info("Fetched %d reviews from WordPress", len(posts))
        return [review_from_post(post) for post in posts]

    async def upload_photo(self, photo: PhotoAttachment) -> Optional[str]:
        """
        Upload a photo to the media library and return its public URL.

        Returns None on any failure; a missing photo never blocks a review.
        """
        suffix = Path(photo.filename).suffix or ".jpg"
        filename = f"review-photo-{int(time.time() * 1000)}{suffix}"
        try:
            response = await self._request(
                "POST",
                "/media",
                "upload media",
                files={"file": (filename, photo.content, photo.content_type)},
                timeout=self._upload_timeout,
            )
            media = _json(response)
        except UpstreamError as exc:
            logger.warning("WordPress photo upload failed, continuing without photo: %s", exc.message)
            return None

        source_url = media.get("source_url") if isinstance(media, dict) else None
        if not source_url:
            logger.warning("WordPress media response had no source_url, continuing without photo")
            return None
        logger.info("Photo uploaded to WordPress media library: %s", source_url)
        return source_url

    async def create_review(self, submission: ReviewSubmission) -> CreatedReview:
        photo_url = None
        if submission.photo is not None:
            photo_url = await self.upload_photo(submission.photo)

        payload = post_from_submission(submission, photo_url)
        logger.info("Creating review in WordPress: %s (photo=%s)", payload["title"], bool(photo_url))
        response = await self._request("POST", "/reviews", "create reviews", json=payload)
        data = _json(response)
        logger.info("Review created with ID %s", data.get("id"))
        return CreatedReview(
            id=data["id"],
            status=data.get("status") or UpstreamStatus.PENDING.value,
            title=_rendered(data.get("title")) or payload["title"],
        )

    async def get_review_by_id(self, review_id: int) -> Optional[Review]:
        try:
            response = await self._request(
                "GET", f"/reviews/{review_id}", "read reviews", params={"_fields": REVIEW_FIELDS}
            )
        except UpstreamNotFoundError:
            logger.info("Review with ID %s not found", review_id)
            return None
        return review_from_post(_json(response))

    async def update_review_status(self, review_id: int, status: UpstreamStatus) -> StatusChange:
        response = await self._request(
            "POST", f"/reviews/{review_id}", "update reviews", json={"status": status.value}
        )
        data = _json(response)
        logger.info("Review %s status updated to %s", review_id, data.get("status"))
        return StatusChange(id=data.get("id", review_id), status=data.get("status") or status.value)

    async def test_connection(self) -> bool:
        try:
            await self._request("GET", "/", "reach the REST API")
            await self._request("GET", "/reviews", "read reviews", params={"per_page": 1, "_fields": "id"})
        except UpstreamError as exc:
            logger.warning("WordPress connection test failed: %s", exc.message)
            return False
        logger.info("WordPress connection test succeeded")
        return True

    async def aclose(self) -> None:
        await self._client.aclose()


MOCK_POSTS = [
    {
        "id": 1,
        "date": "2025-01-16T10:00:00",
        "status": "publish",
        "title": {"rendered": "Review from Dr. Pamela Bynum"},
        "acf": {
            "customer_name": "Dr. Pamela Bynum",
            "customer_email": "pamela@example.com",
            "star_rating": 5,
            "review_message": (
                "The team at mytCreative is truly dedicated to their mission. Their innovative approach "
                "to technology and education is making a real impact in the community."
            ),
            "photo_upload": {
                "url": "https://images.pexels.com/photos/3184291/pexels-photo-3184291.jpeg?auto=compress&cs=tinysrgb&w=400"
            },
        },
    },
    {
        "id": 2,
        "date": "2025-01-15T14:30:00",
        "status": "publish",
        "title": {"rendered": "Review from Denzel The Intern"},
        "acf": {
            "customer_name": "Denzel The Intern",
            "customer_email": "denzel@example.com",
            "star_rating": 5,
            "review_message": (
                "Working here has been an amazing learning experience. I get to work on real projects "
                "that help businesses and learn about cutting-edge technology."
            ),
        },
    },
    {
        "id": 3,
        "date": "2025-01-14T09:15:00",
        "status": "publish",
        "title": {"rendered": "Review from Sarah Johnson"},
        "acf": {
            "customer_name": "Sarah Johnson",
            "customer_email": "sarah@example.com",
            "star_rating": 4,
            "review_message": (
                "Great service and professional team. They delivered exactly what we needed for our "
                "business. Highly recommend their expertise."
            ),
            "photo_upload": {
                "url": "https://images.pexels.com/photos/3184338/pexels-photo-3184338.jpeg?auto=compress&cs=tinysrgb&w=400"
            },
        },
    },
]


class MockReviewBackend(ReviewBackend):
    """Deterministic in-memory stand-in used when WordPress is not configured."""

    mock_mode = True
    source = "mock"

    def __init__(self, clock=time.time):
        self._clock = clock
        self._last_id = 0

    async def list_approved_reviews(self) -> list[Review]:
        logger.info("Using mock reviews data")
        return [review_from_post(post) for post in MOCK_POSTS]

    async def create_review(self, submission: ReviewSubmission) -> CreatedReview:
        # Ids follow the clock but must stay unique across back-to-back submissions.
        review_id = max(int(self._clock() * 1000), self._last_id + 1)
        self._last_id = review_id
        logger.info("Mock: created review %s from %s", review_id, submission.author_name)
        return CreatedReview(
            id=review_id,
            status=UpstreamStatus.PENDING.value,
            title=f"Review from {submission.author_name}",
        )

    async def get_review_by_id(self, review_id: int) -> Optional[Review]:
        for post in MOCK_POSTS:
            if post["id"] == review_id:
                return review_from_post(post)
        return None

    async def update_review_status(self, review_id: int, status: UpstreamStatus) -> StatusChange:
        logger.info("Mock: updating review %s status to %s", review_id, status.value)
        return StatusChange(id=review_id, status=status.value)

    async def test_connection(self) -> bool:
        logger.info("WordPress backend in mock mode, connection test skipped")
        return True


def build_review_backend(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> ReviewBackend:
    if settings.wordpress_configured:
        return WordPressReviewBackend(settings, transport=transport)
    logger.warning("WordPress credentials not configured. Using mock mode.")
    return MockReviewBackend()
