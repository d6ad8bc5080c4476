"""API request/response models."""
from typing import List, Optional
from pydantic import BaseModel, Field


class ImagePayload(BaseModel):
    """Inline image attached to a chat question."""
    base64: str
    mime_type: str = "image/jpeg"


class QueryRequest(BaseModel):
    question: str = ""
    manual_id: Optional[str] = None
    image: Optional[ImagePayload] = None


class TokenUsage(BaseModel):
    input: int
    output: int


class ResponseMetadata(BaseModel):
    model_used: str
    category: str
    context_source: str
    context_tokens: int
    tokens: TokenUsage
    latency_ms: int


class QueryResponse(BaseModel):
    answer: str
    metadata: ResponseMetadata


class ManualSummary(BaseModel):
    id: str
    name: str
    page_count: int
    date_added: str
    status: str
    total_items: int
    last_error: str = ""
    total_queries: int = 0
    resolved_queries: int = 0


class KnowledgeItemModel(BaseModel):
    page: int
    text: str


class CategoryView(BaseModel):
    key: str
    label: str
    color: str
    instruction: str
    state: str
    items: List[KnowledgeItemModel] = Field(default_factory=list)


class KnowledgeResponse(BaseModel):
    manual_id: str
    status: str
    total_items: int
    categories: List[CategoryView]


class SearchResultModel(BaseModel):
    manual_id: str
    manual_name: str
    page_num: int
    snippet: str
    image_ref: Optional[str] = None


class SearchResponse(BaseModel):
    query: str
    total: int
    results: List[SearchResultModel]


class TroubleshootRequest(BaseModel):
    issue: str


class ErrorLookupRequest(BaseModel):
    code: str


class AssistMetadata(BaseModel):
    model_used: str
    context_items: int
    tokens: TokenUsage
    latency_ms: int


class TroubleshootResponse(BaseModel):
    issue: str
    label: str
    guide: str
    metadata: AssistMetadata


class ErrorLookupResponse(BaseModel):
    code: str
    answer: str
    metadata: AssistMetadata
