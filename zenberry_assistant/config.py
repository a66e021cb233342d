import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import List

from dotenv import load_dotenv

load_dotenv()

logger = logging.getLogger(__name__)

DEFAULT_KNOWLEDGE_DIR = Path(__file__).resolve().parent / "knowledge"

DEFAULT_MODEL_CASCADE = [
    "llama-3.3-70b-versatile",
    "llama-3.1-8b-instant",
]


def _split_csv(raw: str) -> List[str]:
    return [item.strip() for item in raw.split(",") if item.strip()]


@dataclass
class Settings:
    """Runtime configuration, read from the environment (and `.env`)."""

    shopify_domain: str = ""
    shopify_token: str = ""
    shopify_api_version: str = "2024-01"
    app_url: str = "http://localhost:3000"

    groq_api_key: str = ""
    model_cascade: List[str] = field(default_factory=lambda: list(DEFAULT_MODEL_CASCADE))
    temperature: float = 0.7
    max_tokens: int = 2048
    llm_timeout: float = 30.0

    knowledge_dir: Path = DEFAULT_KNOWLEDGE_DIR
    catalog_ttl: float = 300.0
    catalog_fetch_limit: int = 50

    chat_rate_limit: int = 10
    chat_rate_window: int = 60
    trust_proxy_headers: bool = False

    cors_origins: List[str] = field(default_factory=lambda: ["*"])
    log_level: str = "INFO"

    @classmethod
    def from_env(cls) -> "Settings":
        return cls(
            shopify_domain=os.getenv("SHOPIFY_STORE_DOMAIN", ""),
            shopify_token=os.getenv("SHOPIFY_STOREFRONT_ACCESS_TOKEN", ""),
            shopify_api_version=os.getenv("SHOPIFY_API_VERSION", "2024-01"),
            app_url=os.getenv("APP_URL", "http://localhost:3000"),
            groq_api_key=os.getenv("GROQ_API_KEY", ""),
            model_cascade=_split_csv(os.getenv("GROQ_MODELS", "")) or list(DEFAULT_MODEL_CASCADE),
            temperature=float(os.getenv("LLM_TEMPERATURE", "0.7")),
            max_tokens=int(os.getenv("LLM_MAX_TOKENS", "2048")),
            llm_timeout=float(os.getenv("LLM_TIMEOUT_SECONDS", "30")),
            knowledge_dir=Path(os.getenv("KNOWLEDGE_DIR", str(DEFAULT_KNOWLEDGE_DIR))),
            catalog_ttl=float(os.getenv("CATALOG_TTL_SECONDS", "300")),
            catalog_fetch_limit=int(os.getenv("CATALOG_FETCH_LIMIT", "50")),
            chat_rate_limit=int(os.getenv("CHAT_RATE_LIMIT", "10")),
            chat_rate_window=int(os.getenv("CHAT_RATE_WINDOW_SECONDS", "60")),
            trust_proxy_headers=os.getenv("TRUST_PROXY_HEADERS", "false").lower() in ("1", "true", "yes"),
            cors_origins=_split_csv(os.getenv("CORS_ORIGINS", "*")) or ["*"],
            log_level=os.getenv("LOG_LEVEL", "INFO").upper(),
        )

    def validate(self) -> List[str]:
        """Returns the list of configuration problems. Never raises."""
        problems = []
        if not self.groq_api_key:
            problems.append("GROQ_API_KEY missing - chat answers will fall back to the generic error.")
        if not self.shopify_domain or not self.shopify_token:
            problems.append("Shopify Storefront credentials missing - the product catalog will stay empty.")
        if not self.knowledge_dir.is_dir():
            problems.append(f"Knowledge directory not found: {self.knowledge_dir}")
        for problem in problems:
            logger.warning(problem)
        return problems
