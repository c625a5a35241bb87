"""
Test Client for the Gadget Scout API.
Simple script to exercise the REST endpoints against a running server.
"""

import asyncio
import sys

import httpx


BASE_URL = "http://localhost:8000"


def print_message(message):
    if not message:
        print("   🤖 Scout: (no reply)")
        return
    if message["content"]:
        print(f"   🤖 Scout: {message['content'][:200]}")
    rec = message.get("recommendation")
    if rec:
        product = rec["product"]
        print(f"   🛍️  Recommends: {product['name']} (${product['price']}) [{product['id']}]")
        print(f"      Why: {rec['reasoning']}")


async def test_health(client: httpx.AsyncClient):
    """Test health endpoints."""
    print("\n🏥 Testing Health Endpoints...")

    response = await client.get(f"{BASE_URL}/health")
    print(f"   /health: {response.status_code}")
    print(f"   {response.json()}")

    response = await client.get(f"{BASE_URL}/health/ready")
    print(f"   /health/ready: {response.status_code}")
    print(f"   {response.json()}")


async def test_catalog(client: httpx.AsyncClient):
    """List the catalog."""
    print("\n📦 Testing Catalog Endpoint...")

    response = await client.get(f"{BASE_URL}/api/v1/catalog")
    data = response.json()
    print(f"   {data['count']} products (version {data['version']}, featured {data['featured_id']})")
    for product in data["products"]:
        print(f"   - {product['id']}: {product['name']} ${product['price']}")


async def test_conversation(client: httpx.AsyncClient):
    """Open a session and chat through a short discovery flow."""
    print("\n💬 Testing Conversation Endpoints...")

    response = await client.post(f"{BASE_URL}/api/v1/conversation/sessions")
    if response.status_code != 201:
        print(f"   ❌ Error: {response.status_code}")
        print(f"   {response.text}")
        return

    session = response.json()
    session_id = session["session_id"]
    print(f"   Session: {session_id}")
    for message in session["messages"]:
        print_message(message)

    test_messages = [
        "I need something for a noisy room podcast.",
        "My desk is tiny and I type all day.",
        "Anything to keep my phone alive on a long trip?",
    ]

    for text in test_messages:
        print(f"\n   📤 User: {text}")
        response = await client.post(
            f"{BASE_URL}/api/v1/conversation/sessions/{session_id}/messages",
            json={"text": text}
        )

        if response.status_code == 200:
            data = response.json()
            print_message(data["message"])
            print(f"   ⏱️  Latency: {data['latency_ms']}ms")
        else:
            print(f"   ❌ Error: {response.status_code}")
            print(f"   {response.text}")

    response = await client.delete(f"{BASE_URL}/api/v1/conversation/sessions/{session_id}")
    print(f"\n   Session closed: {response.status_code}")


async def main():
    """Run all checks."""
    print("=" * 60)
    print("🧪 Gadget Scout API Test Client")
    print("=" * 60)
    print(f"Target: {BASE_URL}")

    try:
        async with httpx.AsyncClient(timeout=60.0) as client:
            await test_health(client)
            await test_catalog(client)
            await test_conversation(client)

        print("\n" + "=" * 60)
        print("✅ All checks completed!")
        print("=" * 60)

    except httpx.ConnectError:
        print("\n❌ Cannot connect to server. Make sure it's running:")
        print("   uvicorn gadget_scout.main:app --reload")
        sys.exit(1)


if __name__ == "__main__":
    if len(sys.argv) > 1:
        BASE_URL = sys.argv[1].rstrip("/")
    asyncio.run(main())
