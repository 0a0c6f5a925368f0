import asyncio
import json
import re

import httpx
import pytest
from fastapi import FastAPI
from httpx import ASGITransport, AsyncClient

from review_portal.config import Settings
from review_portal.crm_client import ContactTagger, TagResult, pending_tag_tasks
from review_portal.dependencies import get_contact_tagger, get_review_backend
from review_portal.main import create_app
from review_portal.wordpress_client import MockReviewBackend, WordPressReviewBackend

WORDPRESS_URL = "https://wp.test"
REVIEW_PATH = re.compile(r"^/reviews/(\d+)$")


class FakeWordPress:
    """In-memory stand-in for the WordPress REST API, served through httpx.MockTransport."""

    def __init__(self):
        self.posts: dict[int, dict] = {}
        self.next_id = 100
        self.requests: list[httpx.Request] = []
        self.forced_status: int | None = None
        self.forced_error: Exception | None = None
        self.media_status: int | None = None
        self.media_error: Exception | None = None

    def add_post(self, post_id, status="publish", date="2025-01-10T08:00:00", acf=None, **extra):
        self.posts[post_id] = {
            "id": post_id,
            "date": date,
            "status": status,
            "title": {"rendered": f"Review {post_id}"},
            "acf": acf if acf is not None else {},
            **extra,
        }
        return self.posts[post_id]

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.forced_error is not None:
            raise self.forced_error
        if self.forced_status is not None:
            return httpx.Response(self.forced_status, json={"code": "forced", "message": "Forced failure"})

        path = request.url.path.removeprefix("/wp-json/wp/v2")
        if path == "/":
            return httpx.Response(200, json={"name": "Test Site", "description": "Reviews"})
        if path == "/media":
            return self._upload(request)
        if path == "/reviews":
            if request.method == "GET":
                return self._list(request)
            return self._create(request)

        match = REVIEW_PATH.match(path)
        if match:
            post = self.posts.get(int(match.group(1)))
            if post is None:
                return httpx.Response(404, json={"code": "rest_post_invalid_id", "message": "Invalid post ID."})
            if request.method == "POST":
                post["status"] = json.loads(request.content)["status"]
            return httpx.Response(200, json=post)

        return httpx.Response(404, json={"code": "rest_no_route", "message": "No route was found."})

    def _list(self, request):
        status = request.url.params.get("status")
        posts = [post for post in self.posts.values() if status is None or post["status"] == status]
        posts.sort(key=lambda post: post["date"], reverse=True)
        per_page = int(request.url.params.get("per_page", 10))
        return httpx.Response(200, json=posts[:per_page])

    def _create(self, request):
        body = json.loads(request.content)
        post = self.add_post(
            self.next_id,
            status=body["status"],
            date="2025-02-01T12:00:00",
            acf=body["acf"],
            content={"rendered": body["content"]},
        )
        post["title"] = {"rendered": body["title"]}
        self.next_id += 1
        return httpx.Response(201, json=post)

    def _upload(self, request):
        if self.media_error is not None:
            raise self.media_error
        if self.media_status is not None:
            return httpx.Response(self.media_status, json={"code": "upload_error", "message": "Upload failed"})
        return httpx.Response(201, json={"id": 900, "source_url": f"{WORDPRESS_URL}/uploads/review-photo.jpg"})

    def requests_to(self, path):
        return [r for r in self.requests if r.url.path == f"/wp-json/wp/v2{path}"]


class RecordingTagger(ContactTagger):
    mock_mode = True

    def __init__(self, error: Exception | None = None, gate: asyncio.Event | None = None):
        self.emails: list[str] = []
        self.error = error
        self.gate = gate

    async def tag_review_received(self, email: str) -> TagResult:
        self.emails.append(email)
        if self.gate is not None:
            await self.gate.wait()
        if self.error is not None:
            raise self.error
        return TagResult(success=True, contact_id="contact-1")


async def drain_tag_tasks():
    await asyncio.gather(*pending_tag_tasks())


@pytest.fixture
def settings() -> Settings:
    return Settings(_env_file=None, WORDPRESS_URL=None, GHL_API_KEY=None, DEBUG=False)


@pytest.fixture
def live_settings() -> Settings:
    return Settings(
        _env_file=None,
        WORDPRESS_URL=WORDPRESS_URL,
        WORDPRESS_USER="editor",
        WORDPRESS_APP_PASSWORD="app-pass",
        GHL_API_KEY=None,
        DEBUG=False,
    )


@pytest.fixture
def fake_wordpress() -> FakeWordPress:
    return FakeWordPress()


@pytest.fixture
async def wordpress_backend(live_settings, fake_wordpress):
    backend = WordPressReviewBackend(live_settings, transport=httpx.MockTransport(fake_wordpress))
    yield backend
    await backend.aclose()


@pytest.fixture
def mock_backend() -> MockReviewBackend:
    return MockReviewBackend()


@pytest.fixture
def tagger() -> RecordingTagger:
    return RecordingTagger()


@pytest.fixture
def app(settings) -> FastAPI:
    return create_app(settings)


async def _client_for(app: FastAPI, backend, tagger):
    app.dependency_overrides[get_review_backend] = lambda: backend
    app.dependency_overrides[get_contact_tagger] = lambda: tagger
    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as client:
        yield client
    app.dependency_overrides = {}


@pytest.fixture
async def async_client(app, mock_backend, tagger):
    """Client for the app running in mock mode."""
    async for client in _client_for(app, mock_backend, tagger):
        yield client
    await drain_tag_tasks()


@pytest.fixture
async def live_client(app, wordpress_backend, tagger):
    """Client for the app backed by the fake WordPress."""
    async for client in _client_for(app, wordpress_backend, tagger):
        yield client
    await drain_tag_tasks()


@pytest.fixture
def make_tagger():
    """Factory for recording CRM taggers, optionally failing or blocked on a gate."""
    return RecordingTagger


@pytest.fixture
def drain_tags():
    """Awaits every CRM tagging task dispatched so far."""
    return drain_tag_tasks


@pytest.fixture
def client_for():
    """Async generator yielding a client for an app with the given backend and tagger."""
    return _client_for
