"""
Prompt Composition.
Builds the system instruction, the greeting instruction and retrieval-augmented user prompts.
"""

from typing import Optional, Sequence

from gadget_scout.catalog.models import Product
from gadget_scout.catalog.repository import CatalogRepository
from gadget_scout.config import RECOMMEND_PRODUCT_TOOL_NAME
from gadget_scout.retrieval.ranker import RetrievalResult


def _format_price(price: float) -> str:
    return f"${price:g}" if float(price).is_integer() else f"${price:.2f}"


class PromptComposer:
    """Text sent to the model, built from the catalog snapshot and store persona."""

    def __init__(
        self,
        catalog: CatalogRepository,
        store_name: str = "Gadgets and Those",
        promo_code: Optional[str] = None,
        promo_discount_percent: int = 0
    ):
        self.catalog = catalog
        self.store_name = store_name
        self.promo_code = promo_code
        self.promo_discount_percent = promo_discount_percent

    def catalog_listing(self) -> str:
        return "\n".join(
            f"- ID: {p.id} | Name: {p.name} | Category: {p.category} | "
            f"Price: {_format_price(p.price)} | Features: {', '.join(p.features)} | "
            f"Desc: {p.description}"
            for p in self.catalog
        )

    def system_instruction(self) -> str:
        """Persona, directives and the full catalog. Shared by text and voice mode."""
        featured = self.catalog.featured()
        featured_name = featured.name if featured else "today's featured gadget"

        sections = [
            f'You are the "{self.store_name}" Discovery Scout, a gadget-obsessed consultant '
            "who helps visitors find the right tools for their lifestyle.",
            "",
            "PERSONALITY RULES:",
            "- NOT A SALESPERSON: you are a tech scout. Be objective, friendly and analytical.",
            "- REASONING FIRST: never just drop a link. Tie every suggestion to what the user told you.",
            "- PROACTIVE: lead the conversation and suggest gadgets that fit the context so far.",
            "",
            "CORE DIRECTIVES:",
            f"1. GREETING: if the chat just started, lead with the Deal of the Day ({featured_name}) "
            "or a question about the user's current setup.",
            '2. DISCOVERY: ask clarifying questions such as "desk aesthetics or pure performance?"',
            f"3. RECOMMENDATION: use the '{RECOMMEND_PRODUCT_TOOL_NAME}' tool to present a gadget. "
            "Only use product IDs from the catalog below and always give a 'reasoning' that explains why.",
            "4. FRIENDLY UP-SELL: when the user likes a product, suggest one complementary item.",
            "",
            "CATALOG OF AVAILABLE PRODUCTS:",
            self.catalog_listing() or "(the catalog is empty)",
        ]

        if self.promo_code and featured:
            sections += [
                "",
                "CURRENT PROMO:",
                f"{featured.name} - {self.promo_discount_percent}% off with code {self.promo_code}.",
            ]

        return "\n".join(sections)

    def greeting_prompt(self) -> str:
        """Synthetic system-initiated first turn."""
        featured = self.catalog.featured()
        deal = f" Present {featured.name} (ID: {featured.id}) as the Deal of the Day." if featured else ""
        return (
            "Initiate discovery mode. Greet the user with the Deal of the Day and a scout-like welcome."
            f"{deal} Mention that you have {len(self.catalog)} gadgets ready to discover."
        )

    def augment(self, user_text: str, results: Sequence[RetrievalResult]) -> str:
        """
        Prepend retrieved products to the user's text.

        With no results the user's text is returned unchanged.
        """
        if not results:
            return user_text

        context = "\n".join(self._context_line(r.product) for r in results)
        return (
            "Based on my query, I found these potentially relevant products in your catalog:\n"
            f"{context}\n\n"
            "Consider this context when answering, but do not simply repeat it back; "
            "recommend only what genuinely fits.\n"
            f'My query: "{user_text}"'
        )

    @staticmethod
    def _context_line(product: Product) -> str:
        return f"- ID: {product.id}, Name: {product.name}, Desc: {product.description}"
