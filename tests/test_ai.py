from __future__ import annotations

import json
from datetime import datetime, timezone

import pytest

from shieldcuisine_api.core.errors import UpstreamError
from shieldcuisine_api.services.ai import build_system_message, parse_json_content
from shieldcuisine_api.services.appcc_analysis import build_system_prompt, to_analysis

ANALYSIS = {
    "analysis": "La cámara supera el límite de 5 °C.",
    "recommendations": ["Revisar el termostato", "Repetir la medición en 1 hora"],
    "complianceScore": 62,
    "riskLevel": "medium",
}


def test_parse_json_content_accepts_fenced_answers():
    assert parse_json_content('```json\n{"a": 1}\n```') == {"a": 1}
    assert parse_json_content(' {"a": 1} ') == {"a": 1}


@pytest.mark.parametrize("content", ["no es json", "[1, 2]", ""])
def test_parse_json_content_rejects_non_objects(content):
    with pytest.raises(UpstreamError):
        parse_json_content(content)


def test_system_message_follows_format():
    assert "HTML" in build_system_message("html")
    assert "JSON" in build_system_message("json")
    assert build_system_message("text").startswith("Eres un asistente")


def test_system_prompt_language_and_type():
    assert "HACCP" in build_system_prompt("compliance", "en")
    assert "complianceScore" in build_system_prompt("compliance", "es")
    # Unknown languages fall back to Spanish
    assert build_system_prompt("summary", "fr").startswith("Eres un experto")


def test_to_analysis_maps_camel_case_fields():
    result = to_analysis(ANALYSIS)
    assert result.compliance_score == 62.0
    assert result.risk_level == "medium"
    assert len(result.recommendations) == 2

    with pytest.raises(UpstreamError):
        to_analysis({"recommendations": []})


# Content generation


async def test_generate_with_openai(client, staff_headers, ai_registry):
    res = await client.post(
        "/api/ai/openai/generate",
        json={"prompt": "Describe nuestra paella", "format": "html"},
        headers=staff_headers,
    )
    assert res.status_code == 200
    body = res.json()
    assert body["provider"] == "openai"
    assert body["content"] == "Contenido generado"
    assert body["usage"]["total_tokens"] == 15

    sent = ai_registry.get("openai").payloads[0]
    assert sent["messages"][0]["role"] == "system"
    assert "HTML" in sent["messages"][0]["content"]
    assert sent["messages"][1]["content"] == "Describe nuestra paella"


async def test_json_format_asks_openai_for_json_object(client, staff_headers, ai_registry):
    await client.post("/api/ai/openai/generate", json={"prompt": "Menú", "format": "json"}, headers=staff_headers)
    assert ai_registry.get("openai").payloads[0]["response_format"] == {"type": "json_object"}


async def test_empty_prompt_is_rejected(client, staff_headers, ai_registry):
    res = await client.post("/api/ai/openai/generate", json={"prompt": "   "}, headers=staff_headers)
    assert res.status_code == 400
    assert ai_registry.get("openai").payloads == []


async def test_provider_without_key_is_unavailable(client, staff_headers):
    status = await client.get("/api/ai/perplexity/status", headers=staff_headers)
    assert status.json() == {"provider": "perplexity", "available": False, "model": "sonar-test"}

    res = await client.post("/api/ai/perplexity/generate", json={"prompt": "Hola"}, headers=staff_headers)
    assert res.status_code == 503
    assert res.json()["error"]["type"] == "provider_unavailable"


async def test_unknown_provider(client, staff_headers):
    res = await client.post("/api/ai/gemini/generate", json={"prompt": "Hola"}, headers=staff_headers)
    assert res.status_code == 404


async def test_ai_requires_authentication(client, tenant_id):
    res = await client.post(
        "/api/ai/openai/generate", json={"prompt": "Hola"}, headers={"X-Tenant-ID": str(tenant_id)}
    )
    assert res.status_code == 401


async def test_image_analysis(client, staff_headers, ai_registry):
    ai_registry.get("openai").content = json.dumps(
        {"description": "Un plato de paella", "altText": "Paella", "tags": ["arroz", "marisco"]}
    )
    res = await client.post(
        "/api/ai/openai/analyze-image",
        json={"image_url": "https://cdn.example.com/paella.jpg"},
        headers=staff_headers,
    )
    assert res.status_code == 200
    assert res.json() == {"description": "Un plato de paella", "tags": ["arroz", "marisco"], "alt_text": "Paella"}

    user_content = ai_registry.get("openai").payloads[0]["messages"][1]["content"]
    assert user_content[1]["image_url"]["url"] == "https://cdn.example.com/paella.jpg"


# APPCC analysis


async def _completed_record(client, headers, location_id, temperature) -> dict:
    template = await client.post(
        "/api/appcc/templates",
        json={
            "name": "Cámara 1",
            "category": "temperatures",
            "fields": [{"name": "t", "label": "Temperatura", "type": "temperature", "required": True, "max": 5}],
        },
        headers=headers,
    )
    record = await client.post(
        "/api/appcc/records",
        json={
            "template_id": template.json()["id"],
            "location_id": location_id,
            "scheduled_for": datetime.now(tz=timezone.utc).isoformat(),
        },
        headers=headers,
    )
    await client.post(f"/api/appcc/records/{record.json()['id']}/complete", json={"data": {"t": temperature}}, headers=headers)
    return record.json()


async def test_analyze_record(client, admin_headers, location_id, ai_registry):
    record = await _completed_record(client, admin_headers, location_id, temperature=8)
    provider = ai_registry.get("openai")
    provider.content = json.dumps(ANALYSIS)

    res = await client.post(
        f"/api/analyze/appcc/{record['id']}",
        json={"request_type": "compliance", "language": "es"},
        headers=admin_headers,
    )
    assert res.status_code == 200
    assert res.json()["compliance_score"] == 62.0
    assert res.json()["risk_level"] == "medium"

    prompt = provider.payloads[-1]["messages"][1]["content"]
    assert "Cámara 1" in prompt
    assert "Cocina central" in prompt
    assert "❌ Temperatura: 8.0" in prompt


async def test_analysis_with_invalid_answer_is_bad_gateway(client, admin_headers, location_id, ai_registry):
    record = await _completed_record(client, admin_headers, location_id, temperature=3)
    ai_registry.get("openai").content = "Lo siento, no puedo ayudar."

    res = await client.post(f"/api/analyze/appcc/{record['id']}", json={}, headers=admin_headers)
    assert res.status_code == 502


async def test_trends_for_a_location(client, admin_headers, location_id, ai_registry):
    await _completed_record(client, admin_headers, location_id, temperature=3)
    await _completed_record(client, admin_headers, location_id, temperature=9)
    ai_registry.get("openai").content = json.dumps({"analysis": "Dos controles, uno fallido."})

    res = await client.post(
        f"/api/analyze/appcc/trends/{location_id}", json={"timeframe": "week"}, headers=admin_headers
    )
    assert res.status_code == 200
    body = res.json()
    assert body["total_records"] == 2
    assert body["by_status"] == {"completed": 1, "failed": 1}
    assert body["by_category"] == {"temperatures": 2}
    assert body["analysis"]["analysis"] == "Dos controles, uno fallido."


async def test_trends_without_data(client, admin_headers, location_id):
    res = await client.post(f"/api/analyze/appcc/trends/{location_id}", json={}, headers=admin_headers)
    assert res.status_code == 404
