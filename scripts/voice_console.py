"""
Voice Console.
Talk to the Gadget Scout through the local microphone and speakers.

Usage:
    GEMINI_API_KEY=... python scripts/voice_console.py

Press Ctrl+C to leave voice mode.
"""

import asyncio
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).parent.parent))

from gadget_scout.audio.devices import PyAudioMicrophone, PyAudioSpeaker
from gadget_scout.catalog.repository import load_catalog
from gadget_scout.config import get_settings
from gadget_scout.core.events import SessionEvent, SessionEventType
from gadget_scout.core.orchestrator import ConversationOrchestrator
from gadget_scout.core.prompts import PromptComposer
from gadget_scout.core.session import ChatMode, ChatSession
from gadget_scout.retrieval.retriever import KeywordRetriever
from gadget_scout.services.llm import LLMService
from gadget_scout.services.realtime import LiveService
from gadget_scout.tools.recommend import RecommendationProtocol, build_tool_registry

settings = get_settings()

logging.basicConfig(
    level=logging.WARNING,
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s"
)


async def print_event(event: SessionEvent):
    if event.type == SessionEventType.MESSAGE_APPENDED:
        message = event.data["message"]
        rec = message.get("recommendation")
        if rec:
            product = rec["product"]
            print(f"\n  🛍️  {product['name']} (${product['price']})")
            print(f"      {rec['reasoning']}")
            print(f"      {product['affiliateUrl']}")
        elif message["content"]:
            print(f"\n  🤖 {message['content']}")
    elif event.type == SessionEventType.VOICE_STATE:
        print(f"  [{event.data['state']}]")
    elif event.type == SessionEventType.NOTICE:
        print(f"\n  ⚠️  {event.data['message']} ({event.data.get('reason')})")


async def main():
    catalog = await load_catalog(
        settings.CATALOG_SOURCE,
        featured_id=settings.FEATURED_PRODUCT_ID,
        timeout=settings.CATALOG_TIMEOUT_SECONDS
    )
    registry = build_tool_registry()

    orchestrator = ConversationOrchestrator(
        catalog=catalog,
        retriever=KeywordRetriever(catalog, settings.RETRIEVAL_TOP_K),
        composer=PromptComposer(
            catalog,
            store_name=settings.STORE_NAME,
            promo_code=settings.PROMO_CODE,
            promo_discount_percent=settings.PROMO_DISCOUNT_PERCENT
        ),
        llm_service=LLMService(),
        protocol=RecommendationProtocol(catalog, registry),
        registry=registry,
        live_service=LiveService()
    )
    orchestrator.events.subscribe(print_event)

    print("\n╔══════════════════════════════════════════╗")
    print(f"║  {settings.STORE_NAME:^38}  ║")
    print("║  Speak naturally. Ctrl+C to end.         ║")
    print("╚══════════════════════════════════════════╝")
    print(f"  Model: {settings.LIVE_MODEL_ID} | Voice: {settings.VOICE_NAME}")
    print(f"  Catalog: {len(catalog)} products\n")

    session = ChatSession()
    started = await orchestrator.enter_voice_mode(session, PyAudioMicrophone(), PyAudioSpeaker())
    if not started:
        print("  ❌ Could not start voice mode.")
        return

    try:
        while session.mode == ChatMode.VOICE:
            await asyncio.sleep(0.5)
    finally:
        await orchestrator.close_session(session)
        print("\n✓ Voice session ended.")


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except KeyboardInterrupt:
        print("\n\n✓ Session ended by user.")
