"""
Text generation providers.

Both providers speak the OpenAI-style chat completions protocol over HTTP with
`requests`. The blocking call is executed in the threadpool so request handlers
stay async.
"""
from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from starlette.concurrency import run_in_threadpool

from shieldcuisine_api.core.errors import NotFoundError, ProviderUnavailable, UpstreamError, ValidationFailed
from shieldcuisine_api.core.settings import AppSettings, get_app_settings
from shieldcuisine_api.schemas.ai import GenerateRequest, GenerateResponse, ImageAnalysis

logger = logging.getLogger(__name__)

BASE_SYSTEM_MESSAGE = (
    "Eres un asistente experto en la creación de contenido para restaurantes y empresas alimentarias."
)
FORMAT_INSTRUCTIONS = {
    "html": " Responde usando HTML bien formado con etiquetas semánticas adecuadas.",
    "json": " Responde con JSON válido exclusivamente.",
}


# PUBLIC_INTERFACE
def build_system_message(output_format: str) -> str:
    """Return the system message matching the requested output format."""
    return BASE_SYSTEM_MESSAGE + FORMAT_INSTRUCTIONS.get(output_format, "")


# PUBLIC_INTERFACE
def parse_json_content(content: str) -> Dict[str, Any]:
    """
    Parse a JSON object returned by a model, tolerating a surrounding ```json fence.

    Raises:
        UpstreamError: when the content is not a JSON object.
    """
    text = (content or "").strip()
    if text.startswith("```"):
        text = text.strip("`")
        if text.lower().startswith("json"):
            text = text[4:]
    try:
        data = json.loads(text)
    except ValueError as exc:
        raise UpstreamError("The AI provider returned invalid JSON", details=str(exc))
    if not isinstance(data, dict):
        raise UpstreamError("The AI provider returned JSON that is not an object")
    return data


class AIProvider:
    """Chat-completions client for one provider."""

    name = "base"
    extra_payload: Dict[str, Any] = {}

    def __init__(self, api_key: Optional[str], model: str, base_url: str, timeout: float = 60.0) -> None:
        self.api_key = api_key
        self.model = model
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout

    @property
    def available(self) -> bool:
        return bool(self.api_key)

    def _post(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        """Blocking HTTP call to the chat completions endpoint."""
        url = f"{self.base_url}/chat/completions"
        headers = {"Authorization": f"Bearer {self.api_key}", "Content-Type": "application/json"}
        try:
            response = requests.post(url, json=payload, headers=headers, timeout=self.timeout)
        except requests.exceptions.RequestException as exc:
            logger.error("%s request failed: %s", self.name, exc)
            raise UpstreamError(f"Could not reach {self.name}", details=str(exc))
        try:
            data = response.json()
        except ValueError:
            data = {}
        if not response.ok:
            message = (data.get("error") or {}).get("message") if isinstance(data, dict) else None
            logger.warning("%s answered %s: %s", self.name, response.status_code, message or response.text[:200])
            raise UpstreamError(message or f"{self.name} returned HTTP {response.status_code}")
        return data

    # PUBLIC_INTERFACE
    async def chat(
        self,
        messages: List[Dict[str, Any]],
        *,
        max_tokens: int = 1000,
        temperature: float = 0.2,
        json_output: bool = False,
    ) -> GenerateResponse:
        """Send chat messages and return the first choice as a GenerateResponse."""
        if not self.available:
            raise ProviderUnavailable(f"The {self.name} API key is not configured")
        payload: Dict[str, Any] = {
            "model": self.model,
            "messages": messages,
            "max_tokens": max_tokens,
            "temperature": temperature,
        }
        payload.update(self.extra_payload)
        if json_output:
            payload.update(self.json_payload())
        logger.info("Sending request to %s model=%s", self.name, self.model)
        data = await run_in_threadpool(self._post, payload)
        choices = data.get("choices") or []
        if not choices:
            raise UpstreamError(f"{self.name} returned no choices")
        content = (choices[0].get("message") or {}).get("content") or ""
        return GenerateResponse(
            provider=self.name,
            model=data.get("model") or self.model,
            content=content,
            usage=data.get("usage") or {},
            raw=data,
        )

    def json_payload(self) -> Dict[str, Any]:
        """Extra request fields asking the model for a JSON object."""
        return {}

    # PUBLIC_INTERFACE
    async def generate(self, request: GenerateRequest) -> GenerateResponse:
        """Generate content for a user prompt in the requested format."""
        if not request.prompt or not request.prompt.strip():
            raise ValidationFailed("The prompt is required")
        messages = [
            {"role": "system", "content": request.system_prompt or build_system_message(request.format)},
            {"role": "user", "content": request.prompt},
        ]
        return await self.chat(
            messages,
            max_tokens=request.max_tokens,
            temperature=request.temperature,
            json_output=request.format == "json",
        )

    # PUBLIC_INTERFACE
    async def complete_json(self, system_prompt: str, user_prompt: str, temperature: float = 0.2) -> Dict[str, Any]:
        """Ask for a JSON object and return it parsed."""
        result = await self.chat(
            [
                {"role": "system", "content": system_prompt},
                {"role": "user", "content": user_prompt},
            ],
            max_tokens=1500,
            temperature=temperature,
            json_output=True,
        )
        return parse_json_content(result.content)


class OpenAIProvider(AIProvider):
    name = "openai"

    def json_payload(self) -> Dict[str, Any]:
        return {"response_format": {"type": "json_object"}}

    # PUBLIC_INTERFACE
    async def analyze_image(
        self,
        *,
        image: Optional[str] = None,
        image_url: Optional[str] = None,
        mime_type: str = "image/jpeg",
        language: str = "es",
    ) -> ImageAnalysis:
        """Describe an image and suggest alt text and tags."""
        if not image and not image_url:
            raise ValidationFailed("An image or image_url is required")
        url = image_url or f"data:{mime_type};base64,{image}"
        if language == "es":
            system = (
                "Eres un experto en análisis de imágenes para CMS. Analiza la imagen y proporciona una "
                "descripción detallada, sugerencias de texto alternativo (alt text) conciso, y etiquetas "
                "relevantes para categorizar la imagen. Responde en formato JSON con los campos "
                "'description', 'altText', y 'tags'."
            )
            ask = "Analiza esta imagen y proporciona información detallada sobre ella."
        else:
            system = (
                "You are an image analysis expert for a CMS. Analyze the image and provide a detailed "
                "description, a concise alt text suggestion and relevant tags to categorize it. Answer in "
                "JSON with the fields 'description', 'altText' and 'tags'."
            )
            ask = "Analyze this image and provide detailed information about it."
        result = await self.chat(
            [
                {"role": "system", "content": system},
                {
                    "role": "user",
                    "content": [
                        {"type": "text", "text": ask},
                        {"type": "image_url", "image_url": {"url": url}},
                    ],
                },
            ],
            max_tokens=800,
            json_output=True,
        )
        data = parse_json_content(result.content)
        tags = data.get("tags") or []
        return ImageAnalysis(
            description=str(data.get("description") or ""),
            tags=[str(t) for t in tags] if isinstance(tags, list) else [],
            alt_text=str(data.get("altText") or data.get("alt_text") or ""),
        )


class PerplexityProvider(AIProvider):
    name = "perplexity"
    extra_payload = {"search_recency_filter": "month"}


class ProviderRegistry:
    """Named collection of configured providers."""

    def __init__(self, providers: List[AIProvider], default: str = "openai") -> None:
        self._providers = {p.name: p for p in providers}
        self.default = default

    # PUBLIC_INTERFACE
    def get(self, name: Optional[str] = None) -> AIProvider:
        """Return the provider called name (or the default one)."""
        key = (name or self.default).lower()
        provider = self._providers.get(key)
        if provider is None:
            raise NotFoundError(f"Unknown AI provider '{key}'")
        return provider

    def names(self) -> List[str]:
        return sorted(self._providers)


# PUBLIC_INTERFACE
def build_registry(settings: AppSettings) -> ProviderRegistry:
    """Create the provider registry from application settings."""
    timeout = settings.AI_REQUEST_TIMEOUT_SECONDS
    return ProviderRegistry(
        [
            OpenAIProvider(settings.OPENAI_API_KEY, settings.OPENAI_MODEL, settings.OPENAI_BASE_URL, timeout),
            PerplexityProvider(
                settings.PERPLEXITY_API_KEY, settings.PERPLEXITY_MODEL, settings.PERPLEXITY_BASE_URL, timeout
            ),
        ],
        default=settings.AI_ANALYSIS_PROVIDER,
    )


# PUBLIC_INTERFACE
def get_ai_providers() -> ProviderRegistry:
    """FastAPI dependency returning the provider registry."""
    return build_registry(get_app_settings())
