from __future__ import annotations

from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

OutputFormat = Literal["text", "html", "json"]
Language = Literal["es", "en"]


class GenerateRequest(BaseModel):
    """Prompt sent to a text generation provider."""
    prompt: str = Field("", description="User prompt")
    max_tokens: int = Field(1000, ge=1, le=8000)
    temperature: float = Field(0.2, ge=0, le=2)
    format: OutputFormat = "text"
    system_prompt: Optional[str] = Field(None, description="Overrides the format-derived system message")


class GenerateResponse(BaseModel):
    """Provider answer, mostly passed through."""
    provider: str
    model: str
    content: str
    usage: Dict[str, Any] = Field(default_factory=dict)
    raw: Dict[str, Any] = Field(default_factory=dict)


class ProviderStatus(BaseModel):
    provider: str
    available: bool
    model: str


class ImageAnalysisRequest(BaseModel):
    image_url: Optional[str] = Field(None, description="Public URL of the image")
    image: Optional[str] = Field(None, description="Base64 data, without the data: prefix")
    mime_type: str = Field("image/jpeg")
    language: Language = "es"


class ImageAnalysis(BaseModel):
    description: str
    tags: List[str] = Field(default_factory=list)
    alt_text: str


class AppccAnalysisRequest(BaseModel):
    request_type: Literal["summary", "recommendations", "compliance", "trends"] = "summary"
    language: Language = "es"


class AppccAnalysisResponse(BaseModel):
    """AI review of a control record."""
    analysis: str
    recommendations: List[str] = Field(default_factory=list)
    compliance_score: Optional[float] = None
    risk_level: Optional[str] = Field(None, description="low, medium or high")


class TrendsRequest(BaseModel):
    timeframe: Literal["week", "month", "quarter", "year"] = "month"
    language: Language = "es"


class TrendsResponse(BaseModel):
    location_id: str
    timeframe: str
    total_records: int
    by_category: Dict[str, int] = Field(default_factory=dict)
    by_status: Dict[str, int] = Field(default_factory=dict)
    analysis: AppccAnalysisResponse
