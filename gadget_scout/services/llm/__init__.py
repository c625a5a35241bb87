"""
LLM Service.
Persistent model conversations with function calling, backed by Gemini (default) or Groq.
"""

import json
import logging
import time
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from gadget_scout.config import LLM_PROVIDERS, get_settings
from gadget_scout.core.exceptions import (
    ConfigurationException,
    LLMAPIException,
    LLMException,
    LLMRateLimitException,
    MissingCredentialException
)
from gadget_scout.tools.registry import ToolRegistry

logger = logging.getLogger(__name__)
settings = get_settings()


@dataclass
class ToolCall:
    """A structured action requested by the model."""
    name: str
    arguments: Any
    id: Optional[str] = None


@dataclass
class ModelReply:
    """Response from one conversation turn."""
    text: str = ""
    tool_calls: List[ToolCall] = field(default_factory=list)
    processing_time_ms: Optional[float] = None


class ModelConversation:
    """
    A persistent conversation with the model.

    Tool calls returned by `send` are acknowledged with `acknowledge`; the
    acknowledgements reach the model ahead of the next message.
    """

    provider = "none"

    async def send(self, message: str) -> ModelReply:
        raise NotImplementedError

    def acknowledge(self, call: ToolCall, result: Dict[str, Any]):
        raise NotImplementedError


class GeminiConversation(ModelConversation):
    """Conversation over google-genai async chats."""

    provider = "gemini"

    def __init__(self, chat):
        self._chat = chat
        self._pending_responses: list = []

    async def send(self, message: str) -> ModelReply:
        from google.genai import errors, types

        start_time = time.time()
        parts = self._pending_responses + [types.Part.from_text(text=message)]

        try:
            response = await self._chat.send_message(parts)
        except errors.APIError as e:
            if getattr(e, "code", None) == 429:
                raise LLMRateLimitException(self.provider)
            raise LLMAPIException(str(e), self.provider)
        except Exception as e:
            raise LLMAPIException(str(e), self.provider)

        self._pending_responses = []
        return ModelReply(
            text=self._extract_text(response),
            tool_calls=[
                ToolCall(name=fc.name, arguments=fc.args, id=fc.id)
                for fc in (response.function_calls or [])
            ],
            processing_time_ms=(time.time() - start_time) * 1000
        )

    def acknowledge(self, call: ToolCall, result: Dict[str, Any]):
        from google.genai import types

        self._pending_responses.append(
            types.Part(function_response=types.FunctionResponse(
                id=call.id,
                name=call.name,
                response=result
            ))
        )

    @staticmethod
    def _extract_text(response) -> str:
        if not response.candidates or not response.candidates[0].content:
            return ""
        parts = response.candidates[0].content.parts or []
        return "".join(p.text for p in parts if p.text and not p.thought).strip()


class GroqConversation(ModelConversation):
    """Conversation over Groq chat completions; history is kept locally."""

    provider = "groq"

    def __init__(self, client, model: str, system_instruction: str, tools: List[Dict[str, Any]]):
        self._client = client
        self._model = model
        self._tools = tools
        self._messages: List[Dict[str, Any]] = [{"role": "system", "content": system_instruction}]
        self._unacknowledged: Dict[str, ToolCall] = {}

    async def send(self, message: str) -> ModelReply:
        from groq import RateLimitError

        # Every tool call needs a tool message before the next user message
        for call in list(self._unacknowledged.values()):
            self.acknowledge(call, {"result": "ignored"})

        self._messages.append({"role": "user", "content": message})
        start_time = time.time()

        kwargs = {
            "model": self._model,
            "messages": self._messages,
            "temperature": settings.LLM_TEMPERATURE,
            "max_tokens": settings.LLM_MAX_TOKENS
        }
        if self._tools:
            kwargs["tools"] = self._tools
            kwargs["tool_choice"] = "auto"

        try:
            response = await self._client.chat.completions.create(**kwargs)
        except RateLimitError:
            self._messages.pop()
            raise LLMRateLimitException(self.provider)
        except Exception as e:
            self._messages.pop()
            raise LLMAPIException(str(e), self.provider)

        choice = response.choices[0]
        tool_calls = []
        raw_calls = []
        for tc in choice.message.tool_calls or []:
            try:
                arguments = json.loads(tc.function.arguments or "{}")
            except json.JSONDecodeError:
                logger.warning(f"Failed to parse tool call arguments: {tc.function.arguments}")
                arguments = None
            call = ToolCall(name=tc.function.name, arguments=arguments, id=tc.id)
            tool_calls.append(call)
            self._unacknowledged[tc.id] = call
            raw_calls.append({
                "id": tc.id,
                "type": "function",
                "function": {"name": tc.function.name, "arguments": tc.function.arguments}
            })

        assistant_message: Dict[str, Any] = {"role": "assistant", "content": choice.message.content or ""}
        if raw_calls:
            assistant_message["tool_calls"] = raw_calls
        self._messages.append(assistant_message)

        return ModelReply(
            text=(choice.message.content or "").strip(),
            tool_calls=tool_calls,
            processing_time_ms=(time.time() - start_time) * 1000
        )

    def acknowledge(self, call: ToolCall, result: Dict[str, Any]):
        if call.id not in self._unacknowledged:
            return
        del self._unacknowledged[call.id]
        self._messages.append({
            "role": "tool",
            "tool_call_id": call.id,
            "content": json.dumps(result)
        })


class LLMService:
    """
    Factory for model conversations.

    Features:
    - Gemini chats with function declarations (default provider)
    - Groq chat completions with OpenAI-style tool schemas
    - Missing credentials surface as configuration errors, never retried
    """

    def __init__(
        self,
        provider: Optional[str] = None,
        gemini_api_key: Optional[str] = None,
        groq_api_key: Optional[str] = None
    ):
        self.provider = (provider or settings.LLM_PROVIDER).lower()
        self._gemini_api_key = gemini_api_key if gemini_api_key is not None else settings.GEMINI_API_KEY
        self._groq_api_key = groq_api_key if groq_api_key is not None else settings.GROQ_API_KEY
        self._client = None
        self._is_initialized = False

        if self.provider not in LLM_PROVIDERS:
            raise ConfigurationException(f"Unknown LLM_PROVIDER '{self.provider}'")

    @property
    def is_configured(self) -> bool:
        return bool(self._gemini_api_key if self.provider == "gemini" else self._groq_api_key)

    async def initialize(self):
        """Initialize the provider client if its key is configured."""
        if not self.is_configured:
            logger.warning(f"No API key for LLM provider '{self.provider}'; chat is unavailable")
            return

        if self.provider == "gemini":
            from google import genai
            self._client = genai.Client(api_key=self._gemini_api_key)
            model = settings.CHAT_MODEL_ID
        else:
            from groq import AsyncGroq
            self._client = AsyncGroq(api_key=self._groq_api_key)
            model = settings.GROQ_MODEL_ID

        self._is_initialized = True
        logger.info(f"LLM service initialized: {self.provider} / {model}")

    async def create_conversation(self, system_instruction: str, tools: ToolRegistry) -> ModelConversation:
        """
        Open a persistent conversation.

        Raises:
            MissingCredentialException: the provider's key is not configured
        """
        if not self.is_configured:
            key = "GEMINI_API_KEY" if self.provider == "gemini" else "GROQ_API_KEY"
            raise MissingCredentialException(key, f"{self.provider} chat")
        if not self._is_initialized:
            await self.initialize()

        try:
            if self.provider == "gemini":
                from google.genai import types

                chat = self._client.aio.chats.create(
                    model=settings.CHAT_MODEL_ID,
                    config=types.GenerateContentConfig(
                        system_instruction=system_instruction,
                        tools=[types.Tool(function_declarations=tools.get_declarations())],
                        temperature=settings.LLM_TEMPERATURE,
                        automatic_function_calling=types.AutomaticFunctionCallingConfig(disable=True)
                    )
                )
                return GeminiConversation(chat)

            return GroqConversation(
                self._client,
                settings.GROQ_MODEL_ID,
                system_instruction,
                tools.get_tool_schemas()
            )
        except LLMException:
            raise
        except Exception as e:
            raise LLMAPIException(str(e), self.provider)

    async def cleanup(self):
        """Cleanup resources."""
        self._client = None
        self._is_initialized = False
        logger.info("LLM service cleaned up")


__all__ = [
    "ToolCall",
    "ModelReply",
    "ModelConversation",
    "GeminiConversation",
    "GroqConversation",
    "LLMService"
]
