"""
HTTP client for the review API, as used by the submission form.
"""

import logging
from typing import Optional

import httpx
from pydantic import BaseModel

logger = logging.getLogger(__name__)


class PhotoFile(BaseModel):
    filename: str
    content_type: str
    content: bytes


class ReviewFormData(BaseModel):
    """Draft held by the form until it is submitted or discarded."""

    author_name: str
    author_email: str
    rating: int
    review_text: str
    photo: Optional[PhotoFile] = None


class ReviewApiClient:
    def __init__(
        self,
        base_url: str = "http://localhost:3001",
        timeout: float = 10.0,
        transport: Optional[httpx.AsyncBaseTransport] = None,
    ):
        self._client = httpx.AsyncClient(base_url=f"{base_url.rstrip('/')}/api", timeout=timeout, transport=transport)

    async def get_reviews(self) -> dict:
        response = await self._client.get("/reviews")
        response.raise_for_status()
        return response.json()

    async def submit_review(self, form: ReviewFormData) -> dict:
        data = {
            "author_name": form.author_name,
            "author_email": form.author_email,
            "rating": str(form.rating),
            "review_text": form.review_text,
        }
        files = None
        if form.photo is not None:
            files = {"photo": (form.photo.filename, form.photo.content, form.photo.content_type)}

        logger.debug("Submitting review for %s (photo=%s)", form.author_name, files is not None)
        response = await self._client.post("/reviews", data=data, files=files)
        response.raise_for_status()
        return response.json()

    async def aclose(self) -> None:
        await self._client.aclose()
