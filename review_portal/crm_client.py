"""
CRM tagging side-channel.

After a review is stored, the submitter's CRM contact is tagged as
"review received". The tag is best effort: ``dispatch_review_tag`` starts it
as a detached task and nothing ever waits for it.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Optional

import httpx
from pydantic import BaseModel

from .config import Settings
from .errors import CrmError
from .utils.logging import redact_email

logger = logging.getLogger(__name__)

REVIEW_RECEIVED_TAG = "review received"

# Detached tasks are referenced here until they finish so they are not
# garbage collected mid-flight.
_background_tasks: set[asyncio.Task] = set()


class TagResult(BaseModel):
    success: bool
    contact_id: Optional[str] = None
    reason: Optional[str] = None


class ContactTagger(ABC):
    mock_mode: bool

    @abstractmethod
    async def tag_review_received(self, email: str) -> TagResult: ...

    async def aclose(self) -> None:
        return None


class GhlContactTagger(ContactTagger):
    mock_mode = False

    def __init__(self, settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None):
        self._client = httpx.AsyncClient(
            base_url=settings.GHL_BASE_URL,
            headers={"Authorization": f"Bearer {settings.GHL_API_KEY}"},
            timeout=settings.GHL_TIMEOUT,
            transport=transport,
        )

    async def find_contact_id(self, email: str) -> Optional[str]:
        response = await self._client.get("/contacts/lookup", params={"email": email})
        if response.status_code == 404:
            return None
        response.raise_for_status()
        contacts = response.json().get("contacts") or []
        return contacts[0].get("id") if contacts else None

    async def tag_review_received(self, email: str) -> TagResult:
        try:
            contact_id = await self.find_contact_id(email)
            if contact_id is None:
                logger.info("No CRM contact found for %s", redact_email(email))
                return TagResult(success=False, reason="Contact not found")

            response = await self._client.post(
                f"/contacts/{contact_id}/tags", json={"tags": [REVIEW_RECEIVED_TAG]}
            )
            response.raise_for_status()
        except (httpx.HTTPError, ValueError) as exc:
            raise CrmError(f"Failed to update CRM contact ({type(exc).__name__})") from exc

        logger.info("Tagged CRM contact %s as %r", contact_id, REVIEW_RECEIVED_TAG)
        return TagResult(success=True, contact_id=contact_id)

    async def aclose(self) -> None:
        await self._client.aclose()


class MockContactTagger(ContactTagger):
    mock_mode = True

    async def tag_review_received(self, email: str) -> TagResult:
        logger.info("Mock: adding %r tag to CRM contact %s", REVIEW_RECEIVED_TAG, redact_email(email))
        return TagResult(success=True, contact_id="mock-contact-id")


def build_contact_tagger(settings: Settings, transport: Optional[httpx.AsyncBaseTransport] = None) -> ContactTagger:
    if settings.crm_configured:
        return GhlContactTagger(settings, transport=transport)
    logger.warning("CRM API key not configured. Using mock mode.")
    return MockContactTagger()


async def _tag_quietly(tagger: ContactTagger, email: str) -> Optional[TagResult]:
    try:
        return await tagger.tag_review_received(email)
    except Exception as exc:
        # The lookup URL carries the email, so the traceback is not logged.
        logger.error("Non-critical CRM update failed for %s: %s", redact_email(email), exc)
        return None


def dispatch_review_tag(tagger: ContactTagger, email: str) -> asyncio.Task:
    """Start tagging in the background and return immediately."""
    task = asyncio.create_task(_tag_quietly(tagger, email))
    _background_tasks.add(task)
    task.add_done_callback(_background_tasks.discard)
    return task


def pending_tag_tasks() -> set[asyncio.Task]:
    return set(_background_tasks)
