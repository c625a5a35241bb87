"""
Recommendation Protocol.
Schema and validation for the recommend_product action returned by the model.
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError

from gadget_scout.catalog.repository import CatalogRepository
from gadget_scout.config import RECOMMEND_PRODUCT_TOOL_NAME
from gadget_scout.core.exceptions import ToolException, ToolValidationException
from gadget_scout.core.session import Message, Recommendation, Role
from gadget_scout.services.llm import ModelReply, ToolCall
from gadget_scout.tools.registry import Tool, ToolRegistry

logger = logging.getLogger(__name__)


RECOMMEND_PRODUCT_TOOL = Tool(
    name=RECOMMEND_PRODUCT_TOOL_NAME,
    description="Call this function to visually recommend a specific gadget to the user with a specific reason.",
    parameters={
        "productId": {
            "type": "string",
            "description": "The unique ID of the product from the catalog."
        },
        "reasoning": {
            "type": "string",
            "description": "Contextual reasoning for why this gadget fits the user's specific situation."
        }
    },
    required_params=["productId", "reasoning"]
)


class RecommendProductArgs(BaseModel):
    """Validated recommend_product payload."""

    model_config = ConfigDict(populate_by_name=True, str_strip_whitespace=True)

    product_id: str = Field(..., alias="productId", min_length=1)
    reasoning: str = Field(..., min_length=1)


def build_tool_registry() -> ToolRegistry:
    """Registry holding every tool the model is offered."""
    registry = ToolRegistry()
    registry.register(RECOMMEND_PRODUCT_TOOL)
    return registry


@dataclass
class Interpretation:
    """What one model reply turns into: an optional message plus tool acknowledgements."""
    message: Optional[Message] = None
    acknowledgements: List[Tuple[ToolCall, Dict[str, Any]]] = field(default_factory=list)


class RecommendationProtocol:
    """
    Resolves recommend_product calls against the current catalog.

    A call that fails validation or names an unknown product is treated as if
    it never happened; the accompanying text is kept.
    """

    def __init__(self, catalog: CatalogRepository, registry: ToolRegistry):
        self.catalog = catalog
        self.registry = registry

    def parse(self, call: ToolCall) -> RecommendProductArgs:
        """
        Validate a call's shape.

        Raises:
            ToolNotFoundException, ToolValidationException
        """
        arguments = self.registry.validate(call.name, call.arguments)
        try:
            return RecommendProductArgs.model_validate(arguments)
        except ValidationError as e:
            raise ToolValidationException(call.name, [err["msg"] for err in e.errors()])

    def resolve(self, call: ToolCall) -> Optional[Recommendation]:
        """Recommendation for a valid call, else None."""
        if call.name != RECOMMEND_PRODUCT_TOOL_NAME:
            return None

        try:
            args = self.parse(call)
        except ToolException as e:
            logger.warning(f"Dropping malformed tool call: {e.message}")
            return None

        product = self.catalog.get_by_id(args.product_id)
        if product is None:
            logger.warning(f"Dropping recommendation for unknown product '{args.product_id}'")
            return None

        return Recommendation(product=product, reasoning=args.reasoning)

    @staticmethod
    def acknowledgement(recommendation: Optional[Recommendation]) -> Dict[str, Any]:
        """Tool response sent back to the model."""
        if recommendation is None:
            return {"result": "not_displayed", "reason": "unknown or invalid product"}
        return {"result": "displayed", "productId": recommendation.product.id}

    def interpret(self, reply: ModelReply) -> Interpretation:
        """
        Turn a text-mode reply into at most one assistant message.

        The first valid recommendation is attached; a reply with no text and
        no valid recommendation yields no message.
        """
        recommendation = None
        acknowledgements = []

        for call in reply.tool_calls:
            resolved = self.resolve(call) if recommendation is None else None
            if resolved is not None:
                recommendation = resolved
            acknowledgements.append((call, self.acknowledgement(resolved)))

        message = Message(role=Role.ASSISTANT, content=reply.text or "", recommendation=recommendation)
        return Interpretation(
            message=None if message.is_empty else message,
            acknowledgements=acknowledgements
        )

    def interpret_call(self, call: ToolCall) -> Interpretation:
        """
        Turn a single streamed (voice-mode) tool call into a message.

        The reasoning doubles as the message text, since spoken replies have
        no text of their own.
        """
        recommendation = self.resolve(call)
        message = None
        if recommendation is not None:
            message = Message(
                role=Role.ASSISTANT,
                content=recommendation.reasoning,
                recommendation=recommendation
            )
        return Interpretation(
            message=message,
            acknowledgements=[(call, self.acknowledgement(recommendation))]
        )
