import logging
import math
from enum import Enum
from typing import Any, Dict, Literal

from pydantic import BaseModel, Field

from .catalog import ProductCatalog
from .exceptions import ValidationError
from .knowledge_base import KnowledgeBase

logger = logging.getLogger(__name__)

FULL_CONTEXT_LIMIT = 10000
BASE_DOSE_MG_PER_KG = 0.25

# concentration -> (label, mg of CBD per drop)
OIL_STRENGTHS = {
    "low": ("CBD Oil 10%", 5),
    "medium": ("CBD Oil 20%", 10),
    "high": ("CBD Oil 30%", 15),
}


class Capability(str, Enum):
    SEARCH_PRODUCTS = "search_products"
    GET_SITE_SECTION = "get_site_section"
    CALCULATE_DOSAGE_HINT = "calculate_dosage_hint"
    GET_FULL_CONTEXT = "get_full_context"


class SearchProductsArgs(BaseModel):
    keywords: str = Field(min_length=1)


class SiteSectionArgs(BaseModel):
    section: str = Field(min_length=1)


class DosageArgs(BaseModel):
    weight_kg: float = Field(gt=0, le=500)
    concentration: Literal["low", "medium", "high"]


class FullContextArgs(BaseModel):
    reason: str = ""


def calculate_dosage_hint(weight_kg: float, concentration: str) -> str:
    base_dose_mg = weight_kg * BASE_DOSE_MG_PER_KG
    product, mg_per_drop = OIL_STRENGTHS[concentration]
    drops = math.ceil(base_dose_mg / mg_per_drop)
    return (
        f"Based on a weight of {weight_kg:g}kg, a conservative starting dose would be "
        f"approximately {base_dose_mg:.1f}mg of CBD.\n\n"
        f"With {product}, that is about {drops} drop(s) taken under the tongue.\n\n"
        "⚠️ IMPORTANT: This is only a GENERAL and conservative suggestion. "
        "The right amount varies a lot from person to person. "
        "ALWAYS consult a doctor or qualified healthcare professional before starting CBD, "
        "especially if you take other medications."
    )


class ChatTools:
    """Fixed table of named capabilities the assistant can invoke by name."""

    def __init__(self, knowledge_base: KnowledgeBase, catalog: ProductCatalog):
        self.knowledge_base = knowledge_base
        self.catalog = catalog

    @staticmethod
    def parse(name: str) -> Capability:
        try:
            return Capability(name)
        except ValueError:
            known = ", ".join(c.value for c in Capability)
            raise ValidationError(f"Unknown tool '{name}'. Available tools: {known}.")

    async def dispatch(self, name: str, arguments: Dict[str, Any]) -> str:
        capability = self.parse(name)
        try:
            if capability is Capability.SEARCH_PRODUCTS:
                args = SearchProductsArgs(**arguments)
                return await self.search_products(args.keywords)
            if capability is Capability.GET_SITE_SECTION:
                args = SiteSectionArgs(**arguments)
                return self.knowledge_base.get_section(args.section)
            if capability is Capability.CALCULATE_DOSAGE_HINT:
                args = DosageArgs(**arguments)
                return calculate_dosage_hint(args.weight_kg, args.concentration)
            if capability is Capability.GET_FULL_CONTEXT:
                args = FullContextArgs(**arguments)
                return self.full_context(args.reason)
        except ValueError as e:
            # pydantic's ValidationError subclasses ValueError
            raise ValidationError(f"Invalid arguments for '{capability.value}': {e}") from e
        raise AssertionError(f"Unhandled capability: {capability}")

    async def search_products(self, keywords: str) -> str:
        try:
            return await self.catalog.search(keywords)
        except Exception:
            logger.exception("Error in search_products")
            return "Error searching products. Please try again."

    def full_context(self, reason: str = "") -> str:
        logger.info("Full context requested. Reason: %s", reason or "n/a")
        context = self.knowledge_base.get_context()
        if len(context) > FULL_CONTEXT_LIMIT:
            return context[:FULL_CONTEXT_LIMIT] + "\n\n[... context truncated ...]"
        return context
