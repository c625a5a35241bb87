"""
Gadget Scout
============
A conversational product-discovery assistant for a small gadget catalog.

Features:
- Typed chat with retrieval-augmented recommendations
- Live voice mode with barge-in handling
- Structured recommendation cards resolved against the catalog

Tech Stack:
- FastAPI (async backend)
- Google Gemini (chat, embeddings, live audio)
- Groq API (alternative text model)
"""

__version__ = "1.0.0"
__author__ = "Gadget Scout Team"
