"""
Pytest configuration and fixtures

Every external collaborator (Shopify, Groq, knowledge files) is stubbed.
"""
import os
import sys

import pytest

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from stubs import FakeClock, StubEngine, StubFetcher, StubSource, product_node  # noqa: E402

from zenberry_assistant.catalog import ProductCatalog  # noqa: E402
from zenberry_assistant.chat_service import ChatService  # noqa: E402
from zenberry_assistant.knowledge_base import DOCUMENT_MANIFEST, KnowledgeBase  # noqa: E402
from zenberry_assistant.prompt_builder import PromptBuilder  # noqa: E402
from zenberry_assistant.tools import ChatTools  # noqa: E402

STOREFRONT_URL = "https://shop.example.com"


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def documents():
    return {
        DOCUMENT_MANIFEST[0]: "# Science\n\n## What is CBD?\nCBD is a cannabinoid.",
        DOCUMENT_MANIFEST[5]: (
            "# About Zenberry\n\n## Shipping\nFree shipping over $50.\n\n"
            "### Express\nNext day.\n\n## Contact\nsupport@zenberry.com"
        ),
    }


@pytest.fixture
def knowledge_base(documents):
    return KnowledgeBase(StubSource(documents))


@pytest.fixture
def catalog_nodes():
    return [
        product_node("Calm Gummies", description="Chamomile and CBD gummies.", tags=["sleep", "gummies"]),
        product_node(
            "Relief Balm",
            description="Cooling balm for tired muscles.",
            tags=["recovery"],
            amount="35.5",
            product_type="Topicals",
            variants=[
                {"title": "1 oz", "amount": "35.5", "available": True},
                {"title": "2 oz", "amount": "60.0", "available": False},
            ],
        ),
    ]


@pytest.fixture
def fetcher(catalog_nodes):
    return StubFetcher(catalog_nodes)


@pytest.fixture
def catalog(fetcher, clock):
    return ProductCatalog(fetcher, STOREFRONT_URL, clock=clock)


@pytest.fixture
def engine():
    return StubEngine(reply="Our Calm Gummies are a popular evening choice for relaxation.")


@pytest.fixture
def chat_service(knowledge_base, catalog, engine):
    return ChatService(PromptBuilder(knowledge_base, catalog), engine, tools=ChatTools(knowledge_base, catalog))
