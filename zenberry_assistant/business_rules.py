import re
from typing import Any, List
from .exceptions import ValidationError
from .models import ConversationTurn

MIN_MESSAGE_LENGTH = 2
MAX_MESSAGE_LENGTH = 2000
LOW_QUALITY_THRESHOLD = 20
ALLOWED_ROLES = ("user", "assistant")

FALLBACK_RESPONSE = (
    "Sorry, I couldn't process your question properly. "
    "Could you rephrase it or give me a few more details? "
    "I'm here to help with information about our CBD wellness products, "
    "pricing, ingredients, and Zenberry policies. 😊"
)

class ConversationPolicy:

    # ---------------------------------------------------------
    # 1. INPUT SANITIZATION
    # ---------------------------------------------------------
    # Same character repeated 11+ times, or any embedded URL
    SPAM_PATTERNS = [
        re.compile(r"(.)\1{10,}"),
        re.compile(r"https?://[^\s]+", re.IGNORECASE),
    ]

    @staticmethod
    def _strip(text: str) -> str:
        return re.sub(r"[<>]", "", (text or "").strip())

    @staticmethod
    def sanitize(text: str) -> str:
        """Trims, drops literal angle brackets, caps at MAX_MESSAGE_LENGTH."""
        return ConversationPolicy._strip(text)[:MAX_MESSAGE_LENGTH]

    # ---------------------------------------------------------
    # 2. INPUT VALIDATION
    # ---------------------------------------------------------
    @staticmethod
    def validate(text: str) -> None:
        stripped = ConversationPolicy._strip(text)
        if len(stripped) < MIN_MESSAGE_LENGTH:
            raise ValidationError(f"Message too short. Minimum {MIN_MESSAGE_LENGTH} characters.")
        if len(stripped) > MAX_MESSAGE_LENGTH:
            raise ValidationError(f"Message too long. Maximum {MAX_MESSAGE_LENGTH} characters.")
        if any(p.search(stripped) for p in ConversationPolicy.SPAM_PATTERNS):
            raise ValidationError("Invalid content detected.")

    @staticmethod
    def check_question(text: str) -> str:
        """Validates the raw question and returns its sanitized form."""
        ConversationPolicy.validate(text)
        return ConversationPolicy.sanitize(text)

    # ---------------------------------------------------------
    # 3. HISTORY RULES
    # ---------------------------------------------------------
    @staticmethod
    def validate_history(history: Any) -> bool:
        if not isinstance(history, list):
            return False
        return all(
            isinstance(msg, dict)
            and msg.get("role") in ALLOWED_ROLES
            and isinstance(msg.get("content"), str)
            for msg in history
        )

    @staticmethod
    def to_turns(history: List[dict]) -> List[ConversationTurn]:
        """Original order is preserved; windowing is the caller's job."""
        return [ConversationTurn(role=msg["role"], content=msg["content"]) for msg in history]


class ResponseQuality:

    # ---------------------------------------------------------
    # 4. RESPONSE QUALITY GATE
    # ---------------------------------------------------------
    BAD_PATTERNS = [
        re.compile(r"^\s*(yes|no|ok|okay|maybe)[.!]?\s*$", re.IGNORECASE),
        re.compile(r"^.{1,5}$", re.DOTALL),
        re.compile(r"\berro(r|rs)?\b", re.IGNORECASE),
        re.compile(
            r"\b(sorry|apologi[sz]e),?\s+(but\s+)?(i\s+)?(can't|cannot|couldn't|could not|don't|do not|am unable|no)\b",
            re.IGNORECASE,
        ),
    ]

    @staticmethod
    def is_low_quality(response: str) -> bool:
        if not response or len(response.strip()) < LOW_QUALITY_THRESHOLD:
            return True
        return any(p.search(response) for p in ResponseQuality.BAD_PATTERNS)

    @staticmethod
    def fallback() -> str:
        return FALLBACK_RESPONSE
