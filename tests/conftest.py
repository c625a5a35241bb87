"""Shared fixtures and fake collaborators for the Gadget Scout tests."""

import asyncio
import json
from pathlib import Path
from typing import List, Optional

import numpy as np
import pytest

from gadget_scout.audio.devices import AudioSource
from gadget_scout.audio.playback import AudioSink, PlaybackHandle
from gadget_scout.catalog.repository import CatalogRepository, parse_catalog
from gadget_scout.core.exceptions import LLMAPIException, MissingCredentialException
from gadget_scout.core.prompts import PromptComposer
from gadget_scout.retrieval.retriever import KeywordRetriever, Retriever
from gadget_scout.retrieval.ranker import RetrievalResult
from gadget_scout.services.llm import ModelConversation, ModelReply, ToolCall
from gadget_scout.tools.recommend import RecommendationProtocol, build_tool_registry

DATA_DIR = Path(__file__).parent.parent / "data"

P1_RECORD = {
    "id": "p1",
    "name": "Nexus Pro Mic-Set",
    "category": "Audio",
    "description": "Studio-grade USB microphone kit for podcasters.",
    "price": 129,
    "imageUrl": "https://example.com/p1.jpg",
    "affiliateUrl": "https://example.com/buy/p1",
    "features": ["cardioid pattern", "pop filter", "boom arm"]
}


# ==================
# Catalog fixtures
# ==================

@pytest.fixture
def catalog_records() -> List[dict]:
    return json.loads((DATA_DIR / "products.json").read_text(encoding="utf-8"))["products"]


@pytest.fixture
def catalog(catalog_records) -> CatalogRepository:
    return parse_catalog(catalog_records)


@pytest.fixture
def single_catalog() -> CatalogRepository:
    """Catalog with only the Nexus Pro Mic-Set."""
    return parse_catalog([P1_RECORD])


@pytest.fixture
def registry():
    return build_tool_registry()


@pytest.fixture
def protocol(catalog, registry):
    return RecommendationProtocol(catalog, registry)


@pytest.fixture
def composer(catalog):
    return PromptComposer(catalog, promo_code="GADGETS15", promo_discount_percent=15)


# ==================
# Fake model collaborators
# ==================

def recommend(product_id, reasoning, call_id="call-1") -> ToolCall:
    return ToolCall(
        name="recommend_product",
        arguments={"productId": product_id, "reasoning": reasoning},
        id=call_id
    )


class FakeConversation(ModelConversation):
    """Scripted conversation: each send pops the next reply (or raises it)."""

    provider = "fake"

    def __init__(self, replies=None):
        self.replies = list(replies or [])
        self.sent: List[str] = []
        self.acknowledged = []
        self.gate: Optional[asyncio.Event] = None

    async def send(self, message: str) -> ModelReply:
        self.sent.append(message)
        if self.gate is not None:
            await self.gate.wait()
        reply = self.replies.pop(0) if self.replies else ModelReply(text="Sure thing.")
        if isinstance(reply, Exception):
            raise reply
        return reply

    def acknowledge(self, call, result):
        self.acknowledged.append((call, result))


class FakeLLMService:
    """Hands out one shared FakeConversation."""

    provider = "fake"

    def __init__(self, conversation: Optional[FakeConversation] = None, configured: bool = True):
        self.conversation = conversation or FakeConversation()
        self.configured = configured
        self.created = 0
        self.system_instructions = []

    @property
    def is_configured(self) -> bool:
        return self.configured

    async def create_conversation(self, system_instruction, tools):
        if not self.configured:
            raise MissingCredentialException("GEMINI_API_KEY", "fake chat")
        self.created += 1
        self.system_instructions.append(system_instruction)
        return self.conversation

    async def cleanup(self):
        pass


class FakeEmbeddingService:
    """Deterministic bag-of-words embeddings over a small vocabulary."""

    VOCAB = ["podcast", "noisy", "room", "microphone", "mic", "keyboard", "type", "battery",
             "phone", "light", "video", "earbuds", "music", "voice", "studio", "desk"]

    def __init__(self, fail: bool = False):
        self.fail = fail
        self.calls: List[List[str]] = []

    @property
    def is_configured(self) -> bool:
        return True

    async def embed(self, texts):
        self.calls.append(list(texts))
        if self.fail:
            raise LLMAPIException("embedding backend down", "fake")
        return np.asarray(
            [[float(text.lower().count(word)) for word in self.VOCAB] for text in texts],
            dtype=np.float32
        )


class StaticRetriever(Retriever):
    """Returns fixed results (or raises) regardless of the query."""

    kind = "static"

    def __init__(self, catalog, results=None, error: Optional[Exception] = None):
        super().__init__(catalog)
        self.results = results or []
        self.error = error
        self.queries: List[str] = []

    async def retrieve(self, query):
        self.queries.append(query)
        if self.error:
            raise self.error
        return list(self.results)


def result_for(product, score=0.9, rank=1) -> RetrievalResult:
    return RetrievalResult(product=product, score=score, rank=rank)


# ==================
# Fake audio collaborators
# ==================

class FakeSource(AudioSource):
    def __init__(self, open_error: Optional[Exception] = None, open_gate: Optional[asyncio.Event] = None):
        self.open_error = open_error
        self.open_gate = open_gate
        self.opened = False
        self.closed = False
        self.queue: asyncio.Queue = asyncio.Queue()

    async def open(self):
        if self.open_gate is not None:
            await self.open_gate.wait()
        if self.open_error:
            raise self.open_error
        self.opened = True

    async def frames(self):
        while True:
            frame = await self.queue.get()
            if frame is None:
                return
            yield frame

    async def close(self):
        self.closed = True
        self.queue.put_nowait(None)


class FakeSink(AudioSink):
    sample_rate = 24000

    def __init__(self):
        self.clock = 0.0
        self.played: List[PlaybackHandle] = []
        self.opened = False
        self.closed = False

    @property
    def current_time(self) -> float:
        return self.clock

    async def open(self):
        self.opened = True

    def play(self, samples, start_time):
        handle = PlaybackHandle(samples, start_time, self.sample_rate)
        self.played.append(handle)
        return handle

    async def close(self):
        self.closed = True


class FakeChannel:
    """Live channel whose downlink is fed by the test."""

    def __init__(self):
        self.incoming: asyncio.Queue = asyncio.Queue()
        self.sent_audio: List[bytes] = []
        self.tool_responses = []
        self.closed = False

    async def send_audio(self, pcm: bytes):
        self.sent_audio.append(pcm)

    async def send_tool_response(self, call, result):
        self.tool_responses.append((call, result))

    async def events(self):
        while True:
            event = await self.incoming.get()
            if isinstance(event, Exception):
                raise event
            if event is None:
                return
            yield event

    async def close(self):
        self.closed = True
        self.incoming.put_nowait(None)


class FakeLiveService:
    def __init__(self, channel: Optional[FakeChannel] = None, error: Optional[Exception] = None):
        self.channel = channel or FakeChannel()
        self.error = error
        self.connects = 0

    @property
    def is_configured(self) -> bool:
        return True

    async def connect(self, system_instruction, tools):
        self.connects += 1
        if self.error:
            raise self.error
        return self.channel


async def settle(rounds: int = 20):
    """Let background tasks run."""
    for _ in range(rounds):
        await asyncio.sleep(0)


@pytest.fixture
def keyword_retriever(catalog):
    return KeywordRetriever(catalog)
