"""Shared fixtures. Points configuration at a throwaway SQLite file and directories before anything imports config."""

import os
import sys
import tempfile

TEST_ROOT = tempfile.mkdtemp(prefix="adgen-tests-")
os.environ["DATABASE_URL"] = f"sqlite:///{os.path.join(TEST_ROOT, 'test.db')}"
os.environ["VIDEOS_DIR"] = os.path.join(TEST_ROOT, "videos")
os.environ["AUDIO_DIR"] = os.path.join(TEST_ROOT, "audio")
os.environ["REMOTION_PROJECT_DIR"] = os.path.join(TEST_ROOT, "video-templates")
os.environ["LLM_API_KEY"] = "test-key"
os.environ["LLM_PROVIDER"] = "openai"
os.environ["ON_RENDER_FAILURE"] = "propagate"

# Add the parent directory to the Python path so we can import from it
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

import pytest

from database import Base, SessionLocal, engine
from models import Job
from schemas import AdScript, ProductData


@pytest.fixture
def db():
    Base.metadata.create_all(bind=engine)
    session = SessionLocal()
    try:
        yield session
    finally:
        session.close()
        cleanup = SessionLocal()
        cleanup.query(Job).delete()
        cleanup.commit()
        cleanup.close()


@pytest.fixture
def product():
    return ProductData(
        url="https://shop.example.com/products/headphones",
        title="Wireless Bluetooth Headphones",
        description="High-quality wireless headphones with noise cancellation.",
        price="$99.99",
        images=["https://shop.example.com/img/product-1.jpg"],
        features=["30-hour battery life", "Active noise cancellation"],
        category="generic",
    )


@pytest.fixture
def script():
    return AdScript(
        hook="Hear every beat",
        problem="Noisy commutes drown out your music.",
        solution="Our headphones cancel the noise so you hear only what matters.",
        benefits=["All-day battery", "Crystal clear calls", "Featherweight fit"],
        call_to_action="Order yours today",
        duration=30,
    )


class FakeScriptProvider:
    def __init__(self, script=None, error=None):
        self.script = script
        self.error = error
        self.calls = []

    def generate(self, product):
        self.calls.append(product)
        if self.error is not None:
            raise self.error
        return self.script


@pytest.fixture
def fake_provider(script):
    return FakeScriptProvider(script=script)
