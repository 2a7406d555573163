"""
AI review of APPCC control records.

Prompts are written in Spanish or English. The model is asked for a JSON object
shaped like AppccAnalysisResponse.
"""
from __future__ import annotations

import logging
from collections import Counter
from datetime import timedelta
from typing import Any, Dict, List
from uuid import UUID

from shieldcuisine_api.core.errors import NotFoundError, UpstreamError
from shieldcuisine_api.db.base import utcnow
from shieldcuisine_api.db.models.appcc import ControlRecord, ControlTemplate
from shieldcuisine_api.db.models.tenancy import Location
from shieldcuisine_api.repositories.appcc import ControlRecordRepository, ControlTemplateRepository
from shieldcuisine_api.repositories.security import LocationRepository, SecurityRepository
from shieldcuisine_api.schemas.ai import AppccAnalysisResponse, TrendsResponse
from shieldcuisine_api.services.ai import AIProvider
from shieldcuisine_api.services.base import BaseService

logger = logging.getLogger(__name__)

TIMEFRAME_DAYS = {"week": 7, "month": 30, "quarter": 90, "year": 365}

_BASE_PROMPT = {
    "es": (
        "Eres un experto en seguridad alimentaria y sistemas APPCC (Análisis de Peligros y Puntos de "
        "Control Crítico). Tu tarea es analizar los datos de controles APPCC proporcionados y generar "
        "información útil para los usuarios. Responde siempre en formato JSON con la siguiente estructura:\n"
        '{ "analysis": "Texto principal del análisis", "recommendations": ["Recomendación 1", ...], '
        '"complianceScore": número entre 0 y 100 (opcional), "riskLevel": "low", "medium" o "high" (opcional) }\n'
        "Usa un tono profesional pero accesible y asegúrate de que tus respuestas sean específicas para el "
        "control analizado."
    ),
    "en": (
        "You are an expert in food safety and HACCP (Hazard Analysis Critical Control Points) systems. "
        "Your task is to analyze the provided HACCP control data and generate useful insights for users. "
        "Always respond in JSON format with the following structure:\n"
        '{ "analysis": "Main analysis text", "recommendations": ["Recommendation 1", ...], '
        '"complianceScore": number between 0 and 100 (optional), "riskLevel": "low", "medium", or "high" (optional) }\n'
        "Use a professional but accessible tone and ensure your responses are specific to the control being "
        "analyzed."
    ),
}

_TYPE_PROMPT = {
    ("summary", "es"): (
        "Para este tipo de análisis, proporciona un resumen conciso (3-5 párrafos) del control APPCC. "
        "Identifica si hay problemas críticos, áreas que funcionan bien y conclusiones generales. "
        'No incluyas los campos "complianceScore" o "riskLevel" en tu respuesta JSON.'
    ),
    ("summary", "en"): (
        "For this type of analysis, provide a concise summary (3-5 paragraphs) of the HACCP control. "
        "Identify if there are any critical issues, areas that are working well, and general conclusions. "
        'Do not include the "complianceScore" or "riskLevel" fields in your JSON response.'
    ),
    ("recommendations", "es"): (
        "Para este tipo de análisis, enfócate en generar recomendaciones prácticas y específicas basadas en "
        "los datos del control. Proporciona al menos 3-5 recomendaciones priorizadas. El campo \"analysis\" "
        "debe explicar brevemente por qué estas recomendaciones son importantes, y el campo "
        "\"recommendations\" debe contener las recomendaciones como un array de strings. "
        'No incluyas los campos "complianceScore" o "riskLevel" en tu respuesta JSON.'
    ),
    ("recommendations", "en"): (
        "For this type of analysis, focus on generating practical and specific recommendations based on the "
        "control data. Provide at least 3-5 prioritized recommendations. The \"analysis\" field should "
        "briefly explain why these recommendations are important, and the \"recommendations\" field should "
        "contain them as an array of strings. "
        'Do not include the "complianceScore" or "riskLevel" fields in your JSON response.'
    ),
    ("compliance", "es"): (
        "Para este tipo de análisis, evalúa el nivel de cumplimiento del control APPCC. Proporciona una "
        "puntuación estimada (complianceScore) entre 0 y 100, donde 100 representa el cumplimiento perfecto. "
        'Asigna también un nivel de riesgo (riskLevel) como "low", "medium" o "high". En el campo '
        '"analysis", explica los factores que influyen en tu evaluación. Incluye todos los campos en tu '
        "respuesta JSON."
    ),
    ("compliance", "en"): (
        "For this type of analysis, assess the compliance level of the HACCP control. Provide an estimated "
        "score (complianceScore) between 0 and 100, where 100 represents perfect compliance. Also assign a "
        'risk level (riskLevel) as "low", "medium", or "high". In the "analysis" field, explain the factors '
        "influencing your assessment. Include all fields in your JSON response."
    ),
    ("trends", "es"): (
        "Para este tipo de análisis, identifica patrones y tendencias en los controles APPCC para la "
        "ubicación especificada. Destaca fortalezas consistentes y áreas que requieren atención. "
        'No incluyas los campos "complianceScore" o "riskLevel" en tu respuesta JSON.'
    ),
    ("trends", "en"): (
        "For this type of analysis, identify patterns and trends in HACCP controls for the specified "
        "location. Highlight consistent strengths and areas requiring attention. "
        'Do not include the "complianceScore" or "riskLevel" fields in your JSON response.'
    ),
}

_REQUEST_LINE = {
    ("summary", "es"): "Por favor, proporciona un resumen conciso de este control APPCC, destacando los puntos clave y cualquier área de preocupación.",
    ("summary", "en"): "Please provide a concise summary of this HACCP control, highlighting key points and any areas of concern.",
    ("recommendations", "es"): "Basándote en estos datos, proporciona recomendaciones específicas para mejorar el cumplimiento de seguridad alimentaria.",
    ("recommendations", "en"): "Based on this data, provide specific recommendations to improve food safety compliance.",
    ("compliance", "es"): "Evalúa el nivel de cumplimiento de este control APPCC según los datos proporcionados. Incluye una puntuación estimada (0-100%) y un nivel de riesgo (bajo, medio, alto).",
    ("compliance", "en"): "Assess the compliance level of this HACCP control based on the provided data. Include an estimated score (0-100%) and risk level (low, medium, high).",
    ("trends", "es"): "Analiza las tendencias generales de los controles APPCC para esta ubicación, identificando patrones, fortalezas y áreas que requieren atención.",
    ("trends", "en"): "Analyze the general trends of HACCP controls for this location, identifying patterns, strengths, and areas requiring attention.",
}

_LABELS = {
    "es": {
        "header": "Datos del control APPCC",
        "type": "Tipo",
        "status": "Estado",
        "location": "Ubicación",
        "date": "Fecha",
        "responsible": "Responsable",
        "values": "Valores registrados",
        "notes": "Notas",
        "limits": "límites",
    },
    "en": {
        "header": "HACCP Control Data",
        "type": "Type",
        "status": "Status",
        "location": "Location",
        "date": "Date",
        "responsible": "Responsible",
        "values": "Recorded values",
        "notes": "Notes",
        "limits": "limits",
    },
}


# PUBLIC_INTERFACE
def build_system_prompt(request_type: str, language: str) -> str:
    """System prompt for the requested analysis type and language."""
    lang = language if language in _BASE_PROMPT else "es"
    return _BASE_PROMPT[lang] + "\n\n" + _TYPE_PROMPT.get((request_type, lang), "")


def _item_marker(field: Dict[str, Any], value: Any) -> str:
    if value is None or value == "":
        return "⚠️"
    if field.get("type") in ("number", "temperature"):
        try:
            number = float(value)
        except (TypeError, ValueError):
            return "⚠️"
        low, high = field.get("min"), field.get("max")
        if (low is not None and number < low) or (high is not None and number > high):
            return "❌"
    if field.get("type") == "boolean" and value is False:
        return "⚠️"
    return "✅"


# PUBLIC_INTERFACE
def build_record_prompt(
    record: ControlRecord,
    template: ControlTemplate,
    location: Location,
    responsible: str,
    request_type: str,
    language: str,
) -> str:
    """Describe a control record (template, location, captured values) for the model."""
    lang = language if language in _LABELS else "es"
    labels = _LABELS[lang]
    when = record.completed_at or record.scheduled_for
    lines = [
        f'{labels["header"]} #{record.id}: "{template.name}"',
        "",
        f'{labels["type"]}: {template.category}',
        f'{labels["status"]}: {record.status}',
        f'{labels["location"]}: {location.name}',
        f'{labels["date"]}: {when.isoformat() if when else "-"}',
        f'{labels["responsible"]}: {responsible}',
        "",
        f'### {labels["values"]}',
        "",
    ]
    data = record.data or {}
    for field in template.fields or []:
        value = data.get(field.get("name"))
        line = f'{_item_marker(field, value)} {field.get("label") or field.get("name")}: {value if value is not None else "-"}'
        if field.get("min") is not None or field.get("max") is not None:
            line += f' ({labels["limits"]} {field.get("min", "-")}..{field.get("max", "-")}{field.get("unit") or ""})'
        lines.append(line)
    if record.comments:
        lines += ["", f'{labels["notes"]}: {record.comments}']
    lines += ["", _REQUEST_LINE.get((request_type, lang), _REQUEST_LINE[("summary", lang)])]
    return "\n".join(lines)


# PUBLIC_INTERFACE
def to_analysis(data: Dict[str, Any]) -> AppccAnalysisResponse:
    """
    Map the model's JSON answer onto AppccAnalysisResponse.

    Raises:
        UpstreamError: when the answer has no `analysis` field.
    """
    analysis = data.get("analysis")
    if not analysis:
        raise UpstreamError('Invalid AI response format: missing "analysis" field')
    recommendations = data.get("recommendations") or []
    if not isinstance(recommendations, list):
        recommendations = [str(recommendations)]
    score = data.get("complianceScore", data.get("compliance_score"))
    try:
        score = float(score) if score is not None else None
    except (TypeError, ValueError):
        score = None
    risk = data.get("riskLevel", data.get("risk_level"))
    return AppccAnalysisResponse(
        analysis=str(analysis),
        recommendations=[str(r) for r in recommendations],
        compliance_score=score,
        risk_level=str(risk) if risk else None,
    )


class AppccAnalysisService(BaseService):
    """Gathers control data and asks an AI provider for an analysis."""

    def __init__(self, session, provider: AIProvider) -> None:
        super().__init__(session)
        self.provider = provider
        self.records = ControlRecordRepository(session)
        self.templates = ControlTemplateRepository(session)
        self.locations = LocationRepository(session)

    # PUBLIC_INTERFACE
    async def analyze_record(self, record_id: UUID, request_type: str, language: str) -> AppccAnalysisResponse:
        record = await self.records.get_record(record_id)
        if record is None:
            raise NotFoundError("Control record not found")
        template = await self.templates.get_template(record.template_id)
        if template is None:
            raise NotFoundError("Control template not found")
        location = await self.locations.get_location(record.location_id)
        if location is None:
            raise NotFoundError("Location not found")

        responsible = "-"
        user_id = record.completed_by or record.created_by
        if user_id:
            user = await SecurityRepository(self.session).get_user_by_id(user_id)
            if user:
                responsible = user.full_name or user.username

        prompt = build_record_prompt(record, template, location, responsible, request_type, language)
        logger.info("Requesting %s analysis of control record %s from %s", request_type, record.id, self.provider.name)
        data = await self.provider.complete_json(build_system_prompt(request_type, language), prompt)
        return to_analysis(data)

    # PUBLIC_INTERFACE
    async def analyze_trends(self, location_id: UUID, timeframe: str, language: str) -> TrendsResponse:
        """Summarize completed controls of a location over a timeframe and ask for trends."""
        location = await self.locations.get_location(location_id)
        if location is None:
            raise NotFoundError("Location not found")
        since = utcnow() - timedelta(days=TIMEFRAME_DAYS.get(timeframe, 30))
        records = await self.records.completed_since(location_id, since)
        if not records:
            raise NotFoundError("No controls found for this location and timeframe")

        templates = await self.templates.get_templates(list({r.template_id for r in records}))
        by_category: Counter = Counter(
            templates[r.template_id].category if r.template_id in templates else "unknown" for r in records
        )
        by_status: Counter = Counter(r.status for r in records)

        lang = language if language in _LABELS else "es"
        lines: List[str] = [
            f"{_LABELS[lang]['location']}: {location.name}",
            f"{'Periodo' if lang == 'es' else 'Timeframe'}: {timeframe} ({len(records)})",
            "",
        ]
        lines += [f"- {cat}: {n}" for cat, n in sorted(by_category.items())]
        lines.append("")
        lines += [f"- {status}: {n}" for status, n in sorted(by_status.items())]
        for record in records[-20:]:
            name = templates[record.template_id].name if record.template_id in templates else record.template_id
            lines.append(f"* {name} [{record.status}] {record.completed_at.isoformat() if record.completed_at else ''}")
        lines += ["", _REQUEST_LINE[("trends", lang)]]

        data = await self.provider.complete_json(build_system_prompt("trends", lang), "\n".join(lines))
        return TrendsResponse(
            location_id=str(location_id),
            timeframe=timeframe,
            total_records=len(records),
            by_category=dict(by_category),
            by_status=dict(by_status),
            analysis=to_analysis(data),
        )
