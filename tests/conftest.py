"""
Pytest configuration and fixtures for the listing pipeline tests
"""
import asyncio
import io
import json

import pytest
from PIL import Image

from dal.credential_dal import CredentialDAL
from dal.draft_dal import DraftDAL
from models.listing_models import EnhancedImage
from models.stream_events import StreamEvent
from services.pipeline.orchestrator import ListingOrchestrator
from services.pricing.pricing_estimator import PricingEstimator
from utils.database_init import AsyncDatabaseInitializer

VALID_LISTING = {
    "brand": "Nike",
    "category": "Hoodie",
    "title": "Nike Club Fleece Hoodie Grey M",
    "material": "80% cotton, 20% polyester",
    "condition": "Very good",
    "conditionScore": "Very Good - light pilling on cuffs",
    "flaws": "Light pilling on both cuffs",
    "description": "• Brand: Nike\n• Size: M",
}


class FakeEnhancer:
    """Enhancer double. Photos listed in `fail_on` raise; `gate` holds every call open."""

    def __init__(self, fail_on=(), gate=None):
        self.fail_on = set(fail_on)
        self.gate = gate
        self.calls = []

    async def enhance(self, raw):
        self.calls.append(raw)
        if self.gate is not None:
            await self.gate.wait()
        if raw in self.fail_on:
            raise ValueError("enhancement endpoint returned 500")
        return EnhancedImage(enhanced_bytes=b"enhanced-" + raw, normalized_original=raw)


class FakeGateway:
    """Gateway double that replays a fixed list of stream events."""

    def __init__(self, events=None):
        self.events = list(events or [])
        self.requests = []

    async def stream_analysis(self, images, credential):
        self.requests.append((list(images), credential))
        for event in self.events:
            await asyncio.sleep(0)
            yield event


class StaticCredentials:
    def __init__(self, value="sk-test"):
        self.value = value

    async def get(self):
        return self.value


def listing_events(listing=None, chunk_size=20):
    """Stream events for a listing split into text deltas, then the parsed result."""
    listing = VALID_LISTING if listing is None else listing
    text = json.dumps(listing)
    deltas = [StreamEvent.text(text[i:i + chunk_size]) for i in range(0, len(text), chunk_size)]
    return deltas + [StreamEvent.completed(dict(listing))]


def make_jpeg(color=(120, 90, 60), size=(64, 48)):
    buf = io.BytesIO()
    Image.new("RGB", size, color).save(buf, format="JPEG")
    return buf.getvalue()


@pytest.fixture
def db_initializer(tmp_path):
    return AsyncDatabaseInitializer(tmp_path / "db")


@pytest.fixture
def draft_dal(db_initializer):
    return DraftDAL(db_initializer)


@pytest.fixture
def credential_dal(db_initializer):
    return CredentialDAL(db_initializer)


@pytest.fixture
def fake_enhancer():
    return FakeEnhancer()


@pytest.fixture
def fake_gateway():
    return FakeGateway(listing_events())


@pytest.fixture
async def orchestrator(fake_gateway, fake_enhancer, draft_dal):
    orch = ListingOrchestrator(
        gateway=fake_gateway,
        enhancer=fake_enhancer,
        drafts=draft_dal,
        credentials=StaticCredentials(),
        pricing=PricingEstimator(),
    )
    yield orch
    await orch.aclose()
