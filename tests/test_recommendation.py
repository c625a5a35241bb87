"""Tests for recommend_product validation and reply interpretation."""

from gadget_scout.services.llm import ModelReply, ToolCall
from gadget_scout.tools.recommend import RECOMMEND_PRODUCT_TOOL

from conftest import recommend


def test_tool_declaration_shapes(registry):
    declaration = registry.get_declarations()[0]
    assert declaration["name"] == "recommend_product"
    assert declaration["parameters"]["type"] == "OBJECT"
    assert declaration["parameters"]["properties"]["productId"]["type"] == "STRING"
    assert set(declaration["parameters"]["required"]) == {"productId", "reasoning"}

    schema = registry.get_tool_schemas()[0]
    assert schema["type"] == "function"
    assert schema["function"]["parameters"]["properties"]["reasoning"]["type"] == "string"
    assert RECOMMEND_PRODUCT_TOOL.name in registry.names


def test_valid_call_attaches_recommendation(protocol):
    reply = ModelReply(
        text="Try this one.",
        tool_calls=[recommend("p1", "cardioid pattern isolates your voice")]
    )

    interpretation = protocol.interpret(reply)

    message = interpretation.message
    assert message.content == "Try this one."
    assert message.recommendation.product.id == "p1"
    assert message.recommendation.reasoning == "cardioid pattern isolates your voice"
    assert interpretation.acknowledgements[0][1] == {"result": "displayed", "productId": "p1"}


def test_unknown_product_keeps_text_drops_recommendation(protocol):
    reply = ModelReply(text="Here's an idea.", tool_calls=[recommend("missing", "because")])

    interpretation = protocol.interpret(reply)

    assert interpretation.message.content == "Here's an idea."
    assert interpretation.message.recommendation is None
    assert interpretation.acknowledgements[0][1]["result"] == "not_displayed"


def test_missing_reasoning_is_rejected(protocol):
    call = ToolCall(name="recommend_product", arguments={"productId": "p1"}, id="c1")
    assert protocol.resolve(call) is None


def test_blank_fields_are_rejected(protocol):
    assert protocol.resolve(recommend("p1", "   ")) is None
    assert protocol.resolve(recommend("", "reason")) is None


def test_non_object_arguments_are_rejected(protocol):
    assert protocol.resolve(ToolCall(name="recommend_product", arguments="p1", id="c1")) is None
    assert protocol.resolve(ToolCall(name="recommend_product", arguments=None, id="c1")) is None


def test_unknown_tool_is_ignored(protocol):
    reply = ModelReply(text="", tool_calls=[ToolCall(name="buy_now", arguments={"productId": "p1"})])

    interpretation = protocol.interpret(reply)

    assert interpretation.message is None
    assert len(interpretation.acknowledgements) == 1


def test_empty_reply_is_suppressed(protocol):
    assert protocol.interpret(ModelReply(text="")).message is None
    assert protocol.interpret(ModelReply(text="   \n")).message is None


def test_empty_text_with_valid_recommendation_is_kept(protocol):
    interpretation = protocol.interpret(ModelReply(text="", tool_calls=[recommend("p3", "charges everything")]))

    assert interpretation.message is not None
    assert interpretation.message.content == ""
    assert interpretation.message.recommendation.product.id == "p3"


def test_only_first_valid_recommendation_is_attached(protocol):
    reply = ModelReply(
        text="Two picks.",
        tool_calls=[
            recommend("missing", "nope", "c1"),
            recommend("p2", "for typing", "c2"),
            recommend("p4", "for lighting", "c3"),
        ]
    )

    interpretation = protocol.interpret(reply)

    assert interpretation.message.recommendation.product.id == "p2"
    assert len(interpretation.acknowledgements) == 3


def test_voice_call_uses_reasoning_as_text(protocol):
    interpretation = protocol.interpret_call(recommend("p5", "blocks the open-office chatter"))

    assert interpretation.message.content == "blocks the open-office chatter"
    assert interpretation.message.recommendation.product.id == "p5"


def test_invalid_voice_call_produces_no_message_but_is_acknowledged(protocol):
    interpretation = protocol.interpret_call(recommend("missing", "whatever"))

    assert interpretation.message is None
    assert len(interpretation.acknowledgements) == 1
