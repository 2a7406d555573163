from __future__ import annotations

from uuid import UUID

from fastapi import APIRouter, Depends, HTTPException, Path
from sqlalchemy.ext.asyncio import AsyncSession

from shieldcuisine_api.core.deps import get_current_active_user, get_tenant_session
from shieldcuisine_api.schemas.ai import (
    AppccAnalysisRequest,
    AppccAnalysisResponse,
    GenerateRequest,
    GenerateResponse,
    ImageAnalysis,
    ImageAnalysisRequest,
    ProviderStatus,
    TrendsRequest,
    TrendsResponse,
)
from shieldcuisine_api.services.ai import OpenAIProvider, ProviderRegistry, get_ai_providers
from shieldcuisine_api.services.appcc_analysis import AppccAnalysisService

router = APIRouter(tags=["AI"], dependencies=[Depends(get_current_active_user)])


# PUBLIC_INTERFACE
@router.post(
    "/ai/{provider}/generate",
    response_model=GenerateResponse,
    summary="Generate content",
    description=(
        "Sends the prompt to the provider (openai or perplexity). An empty prompt is a 400, "
        "a provider without API key a 503 and upstream failures a 502."
    ),
)
async def generate(
    payload: GenerateRequest,
    provider: str = Path(..., description="openai | perplexity"),
    registry: ProviderRegistry = Depends(get_ai_providers),
) -> GenerateResponse:
    return await registry.get(provider).generate(payload)


# PUBLIC_INTERFACE
@router.get("/ai/{provider}/status", response_model=ProviderStatus, summary="Provider availability")
async def provider_status(
    provider: str = Path(..., description="openai | perplexity"),
    registry: ProviderRegistry = Depends(get_ai_providers),
) -> ProviderStatus:
    client = registry.get(provider)
    return ProviderStatus(provider=client.name, available=client.available, model=client.model)


# PUBLIC_INTERFACE
@router.post("/ai/openai/analyze-image", response_model=ImageAnalysis, summary="Describe an image")
async def analyze_image(
    payload: ImageAnalysisRequest,
    registry: ProviderRegistry = Depends(get_ai_providers),
) -> ImageAnalysis:
    client = registry.get("openai")
    if not isinstance(client, OpenAIProvider):
        raise HTTPException(status_code=501, detail="Image analysis is not supported by this provider")
    return await client.analyze_image(
        image=payload.image,
        image_url=payload.image_url,
        mime_type=payload.mime_type,
        language=payload.language,
    )


# PUBLIC_INTERFACE
@router.post(
    "/analyze/appcc/{record_id}",
    response_model=AppccAnalysisResponse,
    summary="AI review of a control record",
)
async def analyze_record(
    payload: AppccAnalysisRequest,
    record_id: UUID = Path(..., description="Control record ID"),
    session: AsyncSession = Depends(get_tenant_session),
    registry: ProviderRegistry = Depends(get_ai_providers),
) -> AppccAnalysisResponse:
    service = AppccAnalysisService(session, registry.get())
    return await service.analyze_record(record_id, payload.request_type, payload.language)


# PUBLIC_INTERFACE
@router.post(
    "/analyze/appcc/trends/{location_id}",
    response_model=TrendsResponse,
    summary="AI trend analysis for a location",
)
async def analyze_trends(
    payload: TrendsRequest,
    location_id: UUID = Path(..., description="Location ID"),
    session: AsyncSession = Depends(get_tenant_session),
    registry: ProviderRegistry = Depends(get_ai_providers),
) -> TrendsResponse:
    service = AppccAnalysisService(session, registry.get())
    return await service.analyze_trends(location_id, payload.timeframe, payload.language)
