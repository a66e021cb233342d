import logging
from typing import List, Optional, Protocol

from .knowledge_base import KnowledgeBase
from .models import CatalogEntry

logger = logging.getLogger(__name__)

# Character budgets that bound prompt cost
CONTEXT_CHAR_BUDGET = 5000
PRODUCTS_CHAR_BUDGET = 10000
PROMPT_DESCRIPTION_CHARS = 200

SYSTEM_PROMPT = """
You are the official assistant for Zenberry, a company specialized in high-quality CBD products.

# CRITICAL RULES
⚠️ NEVER make medical diagnoses or prescribe treatments
⚠️ NEVER claim that CBD treats, cures, or prevents diseases
⚠️ ALWAYS recommend consulting a qualified healthcare professional
⚠️ Use ONLY information from the provided context

# HOW TO RESPOND
✅ Be cordial, professional, and helpful
✅ Explain GENERAL benefits of CBD (relaxation, wellness)
✅ Provide information about products, prices, ingredients
✅ Reinforce that CBD is not a medication
✅ ALWAYS respond in English, regardless of the language used in the question
✅ When mentioning a product, ALWAYS include its link in markdown format: [Product Name](product_url)
✅ Use the product links provided in the catalog to help users navigate directly to products

# COMPANY INFORMATION
{context}

# AVAILABLE PRODUCT CATALOG
{products}"""

CATEGORY_CLAUSE = """

# CATEGORY FILTER (IMPORTANT)
The user clicked on the "{category}" category card.
PRIORITIZE recommending products that match this category.
Look for products with tags, titles, or descriptions related to: {category}
Focus your recommendations on products most relevant to this specific need.
"""


class CatalogReader(Protocol):
    async def get_all(self) -> List[CatalogEntry]: ...


def render_catalog(products: List[CatalogEntry]) -> str:
    blocks = []
    for p in products:
        description = p.description[:PROMPT_DESCRIPTION_CHARS]
        if len(p.description) > PROMPT_DESCRIPTION_CHARS:
            description += "..."
        blocks.append(
            f"\n📦 {p.title}\n"
            f"   Category: {p.product_type or 'N/A'}\n"
            f"   Price: {p.price_display}\n"
            f"   {'✅ Available' if p.available else '❌ Unavailable'}\n"
            f"   🔗 Link: {p.url}\n"
            f"   {description}\n"
            f"   Tags: {', '.join(p.tags)}"
        )
    return "\n---".join(blocks)


class PromptBuilder:
    def __init__(self, knowledge_base: KnowledgeBase, catalog: CatalogReader):
        self.knowledge_base = knowledge_base
        self.catalog = catalog

    async def build_system_prompt(self, category: Optional[str] = None) -> str:
        # Hard cuts, not word-aware: the budgets are the contract
        context = self.knowledge_base.get_context()[:CONTEXT_CHAR_BUDGET]
        products = render_catalog(await self.catalog.get_all())[:PRODUCTS_CHAR_BUDGET]

        # Products first, so placeholder-like text inside the context is left alone
        prompt = SYSTEM_PROMPT.replace("{products}", products, 1).replace("{context}", context, 1)
        if category:
            logger.info("Priming prompt for category: %s", category)
            prompt += CATEGORY_CLAUSE.format(category=category)
        return prompt
