from pydantic import BaseModel
from typing import List, Optional, Dict, Any, Literal

class ConversationTurn(BaseModel):
    role: Literal["user", "assistant"]
    content: str

class AskQuestionRequest(BaseModel):
    question: str
    # Loosely typed on purpose: shape is checked by ConversationPolicy.validate_history
    history: Optional[List[Any]] = None
    category: Optional[str] = None

class ChatResponse(BaseModel):
    answer: str
    timestamp: str

class ToolCallRequest(BaseModel):
    name: str
    arguments: Dict[str, Any] = {}

class ToolCallResponse(BaseModel):
    name: str
    output: str

class CatalogVariant(BaseModel):
    id: str
    title: str
    price_display: str
    available: bool

class CatalogEntry(BaseModel):
    id: str
    title: str
    description: str = ""
    price_display: str
    available: bool
    tags: List[str] = []
    product_type: str = ""
    handle: str
    url: str
    variants: List[CatalogVariant] = []

    def searchable_text(self) -> str:
        return f"{self.title} {self.description} {' '.join(self.tags)}".lower()

class CatalogSnapshot(BaseModel):
    entries: List[CatalogEntry]
    # Monotonic clock reading of the successful fetch
    fetched_at: float
    fetched_at_wall: str = ""
