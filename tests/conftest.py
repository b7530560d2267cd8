"""Shared test fixtures for the template studio tests."""
import os
import tempfile

# module-level app in studio.main must not reach for Mongo or write into the repo
os.environ.setdefault("TEMPLATE_STORE", "memory")
os.environ.setdefault("LOCAL_MEDIA_ROOT", tempfile.mkdtemp(prefix="studio-media-"))

import pytest
from fastapi.testclient import TestClient

from studio.config.settings import Settings
from studio.main import create_app
from studio.models.template_model import Placeholder


class FakeHandle:
    def __init__(self, due, callback):
        self.due = due
        self.callback = callback
        self.cancelled = False

    def cancel(self):
        self.cancelled = True


class FakeScheduler:
    """Manual clock standing in for the event loop's call_later."""

    def __init__(self):
        self.now = 0.0
        self.handles = []

    def call_later(self, delay, callback):
        handle = FakeHandle(self.now + delay, callback)
        self.handles.append(handle)
        return handle

    def live(self):
        return [h for h in self.handles if not h.cancelled]

    def advance(self, seconds):
        target = self.now + seconds
        while True:
            due = [h for h in self.live() if h.due <= target + 1e-9]
            if not due:
                break
            handle = min(due, key=lambda h: h.due)
            self.handles.remove(handle)
            self.now = handle.due
            handle.callback()
        self.now = target


@pytest.fixture
def scheduler():
    return FakeScheduler()


@pytest.fixture
def settings(tmp_path):
    return Settings(
        template_store="memory",
        local_media_root=str(tmp_path / "media"),
        base_url="http://testserver",
        templates_api_url="http://testserver/templates",
        preview_url="http://localhost:3000/preview",
    )


@pytest.fixture
def app(settings):
    return create_app(settings)


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


@pytest.fixture
def placeholders():
    return [
        Placeholder(id="p-title", name="Title", x=50, y=20),
        Placeholder(id="p-price", name="Price", type="price", x=80, y=80, fontSize=32, color="#ff0000"),
        Placeholder(id="p-photo", name="Photo", type="image", x=20, y=50, width=150, height=150, objectFit="cover"),
    ]


@pytest.fixture(autouse=True)
def no_provider_env(monkeypatch):
    # Settings reads the process environment; keys on the host must not leak in
    for name in ("RENDER_PROVIDER", "SHOTSTACK_API_KEY", "CREATOMATE_API_KEY", "CREATOMATE_TEMPLATE_ID"):
        monkeypatch.delenv(name, raising=False)
