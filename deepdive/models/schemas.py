from __future__ import annotations

from typing import Literal

from pydantic import BaseModel, Field, field_validator

CredibilityLabel = Literal["Reliable", "Mixed", "Low", "Unknown"]
ClaimStatus = Literal["Confirmed", "Partially Confirmed", "Uncertain", "Contradicted"]


# --- Requests ---


class SourceMetadata(BaseModel):
    title: str | None = None
    author: str | None = None
    published_at: str | None = None
    source: str | None = None
    channel: str | None = None

    model_config = {"extra": "ignore"}


class AnalyzeRequest(BaseModel):
    """Scrape payload from the extension.

    ``url`` and ``content`` are optional here so the route can answer 400
    rather than a schema-level 422 when either is missing.
    """

    url: str | None = None
    content: str | None = None
    type: Literal["article", "video"] = "article"
    metadata: SourceMetadata = Field(default_factory=SourceMetadata)

    model_config = {"frozen": True}

    @field_validator("url", "content", mode="before")
    @classmethod
    def empty_str_to_none(cls, v):
        if isinstance(v, str) and not v.strip():
            return None
        return v

    @field_validator("type", mode="before")
    @classmethod
    def default_type(cls, v):
        return v or "article"

    @field_validator("metadata", mode="before")
    @classmethod
    def null_metadata(cls, v):
        return v or {}


class ChatRequest(BaseModel):
    conversation_id: str | None = None
    user_message: str | None = None
    response_length: str | None = "auto"


# --- Analysis result ---


class ScoreBreakdown(BaseModel):
    website_score: float | None = None
    author_score: float | None = None
    content_score: float | None = None
    explanation: str = ""


class WebsiteAnalysis(BaseModel):
    type: str = ""
    reputation: str = ""
    editorial_standards: str = ""
    potential_conflicts: str = ""


class AuthorAnalysis(BaseModel):
    expertise: str = ""
    background: str = ""
    reputation_signals: str = ""
    potential_bias: str = ""


class ContentAnalysis(BaseModel):
    evidence_quality: str = ""
    tone: str = ""
    fact_vs_opinion: str = ""
    logical_reasoning: str = ""
    balance: str = ""


class SourceRef(BaseModel):
    index: int
    title: str = ""
    url: str = ""


class FactCheckSource(BaseModel):
    index: int
    title: str = ""
    url: str = ""
    snippet: str = ""


class CredibilityAssessment(BaseModel):
    score: float = Field(default=0.5, ge=0.0, le=1.0)
    label: CredibilityLabel = "Unknown"
    overall_assessment: str = ""
    score_breakdown: ScoreBreakdown | None = None
    website_analysis: WebsiteAnalysis | None = None
    author_analysis: AuthorAnalysis | None = None
    content_analysis: ContentAnalysis | None = None
    author_sources: list[SourceRef] = Field(default_factory=list)
    fact_check_sources: list[FactCheckSource] | None = None


class FactCheckClaim(BaseModel):
    claim: str
    status: ClaimStatus = "Uncertain"
    assessment: str = ""
    reliability: float = Field(default=0.5, ge=0.0, le=1.0)
    search_queries: list[str] = Field(default_factory=list)


class FactCheckReport(BaseModel):
    claims: list[FactCheckClaim] = Field(default_factory=list)
    sources: list[FactCheckSource] = Field(default_factory=list)


class SummaryResult(BaseModel):
    summary: str
    bullets: list[str] = Field(default_factory=list)


class SourceMeta(BaseModel):
    title: str | None = None
    author: str | None = None
    published_at: str | None = None
    source: str | None = None
    channel: str | None = None
    type: str = "article"
    word_count: int = 0
    reading_time: int = 0


class AnalysisResult(BaseModel):
    summary: str
    bullets: list[str]
    credibility: CredibilityAssessment
    fact_check: FactCheckReport
    source_meta: SourceMeta
    conversation_id: str


# --- Responses ---


class ChatResponse(BaseModel):
    assistant_message: str


class ChatMessage(BaseModel):
    role: Literal["user", "assistant"]
    text: str


class ConversationResponse(BaseModel):
    conversation_id: str
    url: str
    messages: list[ChatMessage]


class ArticleOut(BaseModel):
    url: str
    title: str | None = None
    author: str | None = None
    source: str | None = None
    published_at: str | None = None
    analyzed_at: str
    summary: str = ""
    bullets: list[str] = Field(default_factory=list)
    topics: list[str] = Field(default_factory=list)
    credibility_score: float | None = None
    credibility_label: str | None = None


class HistoryResponse(BaseModel):
    articles: list[ArticleOut]
    total: int


class ConnectionOut(ArticleOut):
    connectionReason: str
    strength: int


class ConnectionsResponse(BaseModel):
    connections: list[ConnectionOut]
    totalArticles: int


class HealthResponse(BaseModel):
    status: str
    timestamp: str
