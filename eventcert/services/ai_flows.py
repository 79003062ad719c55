"""Generative AI helpers backed by the Gemini REST API.

Every helper is a single request/response round trip. Failures are raised as
``AIFlowError`` for the caller to surface; nothing here retries or falls back
to a default template or image.
"""

from __future__ import annotations

import json
import logging
from typing import NamedTuple

import requests
from flask import current_app

from ..constants import CERTIFICATE_TEMPLATES, TEMPLATES_BY_ID

logger = logging.getLogger("eventcert.ai")

API_ROOT = "https://generativelanguage.googleapis.com/v1beta"
DESIGN_ASPECT_RATIO = "16:9"

__all__ = [
    "AIConfigError",
    "AIFlowError",
    "TemplateSuggestion",
    "clean_name",
    "generate_certificate_design",
    "suggest_certificate_template",
]


class AIFlowError(RuntimeError):
    """Raised when a generative call fails or returns unusable output."""


class AIConfigError(AIFlowError):
    """Raised when no API key is configured."""


class TemplateSuggestion(NamedTuple):
    template_id: str
    template_name: str
    reasoning: str


def _api_key() -> str:
    key = current_app.config.get("GEMINI_API_KEY")
    if not key:
        raise AIConfigError(
            "AI service is not configured. Set GEMINI_API_KEY to enable AI features."
        )
    return key


def _post(model: str, method: str, payload: dict, *, flow: str) -> dict:
    url = f"{API_ROOT}/models/{model}:{method}"
    headers = {"x-goog-api-key": _api_key(), "Content-Type": "application/json"}
    timeout = current_app.config.get("AI_TIMEOUT", 60)
    try:
        response = requests.post(url, json=payload, headers=headers, timeout=timeout)
    except requests.Timeout as exc:
        logger.warning("[AI-FAIL] flow=%s model=%s reason=timeout", flow, model)
        raise AIFlowError("The AI service timed out. Please try again.") from exc
    except requests.RequestException as exc:
        logger.warning("[AI-FAIL] flow=%s model=%s reason=%s", flow, model, exc)
        raise AIFlowError(f"Could not reach the AI service: {exc}") from exc

    if not response.ok:
        logger.warning(
            "[AI-FAIL] flow=%s model=%s status=%s body=%s",
            flow,
            model,
            response.status_code,
            response.text[:500],
        )
        raise AIFlowError(f"AI service returned HTTP {response.status_code}.")
    try:
        data = response.json()
    except ValueError as exc:
        logger.warning("[AI-FAIL] flow=%s model=%s reason=invalid-json", flow, model)
        raise AIFlowError("AI service returned an unreadable response.") from exc
    if not isinstance(data, dict):
        logger.warning("[AI-FAIL] flow=%s model=%s reason=not-an-object", flow, model)
        raise AIFlowError("AI service returned an unreadable response.")
    return data


def _generate_json(prompt: str, *, flow: str) -> dict:
    """Run a text prompt that must answer with a JSON object."""

    model = current_app.config.get("AI_TEXT_MODEL", "gemini-2.5-flash")
    payload = {
        "contents": [{"role": "user", "parts": [{"text": prompt}]}],
        "generationConfig": {"responseMimeType": "application/json"},
    }
    data = _post(model, "generateContent", payload, flow=flow)
    try:
        parts = data["candidates"][0]["content"]["parts"]
        text = "".join(part.get("text", "") for part in parts)
        result = json.loads(text)
    except (AttributeError, KeyError, IndexError, TypeError, ValueError) as exc:
        logger.warning("[AI-FAIL] flow=%s model=%s reason=no-output", flow, model)
        raise AIFlowError("AI service returned no usable output.") from exc
    if not isinstance(result, dict):
        raise AIFlowError("AI service returned no usable output.")
    logger.info("[AI-OK] flow=%s model=%s", flow, model)
    return result


def resolve_template_id(value: str | None) -> str | None:
    """Map a model answer (id or display name) onto a catalog template id."""

    candidate = (value or "").strip().lower()
    if not candidate:
        return None
    if candidate in TEMPLATES_BY_ID:
        return candidate
    for template in CERTIFICATE_TEMPLATES:
        if template.name.lower() == candidate:
            return template.id
    for template in CERTIFICATE_TEMPLATES:
        if template.name.lower() in candidate or candidate in template.name.lower():
            return template.id
    return None


def suggest_certificate_template(
    event_title: str, event_description: str
) -> TemplateSuggestion:
    options = "\n".join(
        f"- {tmpl.id}: {tmpl.name} ({tmpl.description})"
        for tmpl in CERTIFICATE_TEMPLATES
    )
    prompt = (
        "You are an AI assistant that suggests the best certificate template "
        "based on the event title and description.\n\n"
        f"You must choose one of the following templates:\n{options}\n\n"
        "Based on the event title and description, suggest the most appropriate "
        "template and provide a brief reasoning for your choice. Answer with a "
        'JSON object {"templateSuggestion": <template id>, "reasoning": <text>}.\n\n'
        f"Event Title: {event_title}\n"
        f"Event Description: {event_description}\n"
    )
    result = _generate_json(prompt, flow="suggest-template")
    template_id = resolve_template_id(result.get("templateSuggestion"))
    if not template_id:
        raise AIFlowError(
            f"AI suggested an unknown template: {result.get('templateSuggestion')!r}"
        )
    return TemplateSuggestion(
        template_id=template_id,
        template_name=TEMPLATES_BY_ID[template_id].name,
        reasoning=str(result.get("reasoning") or "").strip(),
    )


def clean_name(name: str) -> str:
    prompt = (
        "Clean and standardize the following name by applying proper title case "
        'capitalization. For example, "aNupAM yaDaV" should become "Anupam Yadav". '
        'Answer with a JSON object {"cleanedName": <name>}.\n'
        f'Name: "{name}"'
    )
    result = _generate_json(prompt, flow="clean-name")
    cleaned = str(result.get("cleanedName") or "").strip()
    if not cleaned:
        raise AIFlowError("AI returned an empty name.")
    return cleaned


def generate_certificate_design(prompt: str) -> str:
    """Return a ``data:`` URL holding a text-free 16:9 certificate background."""

    model = current_app.config.get("AI_IMAGE_MODEL", "imagen-4.0-fast-generate-001")
    final_prompt = (
        "A visually appealing certificate background for an event. The design "
        "should be abstract and professional, suitable for a certificate of "
        "achievement. Do not include any text, letters, or numbers in the image. "
        f"Theme: {prompt}"
    )
    payload = {
        "instances": [{"prompt": final_prompt}],
        "parameters": {"sampleCount": 1, "aspectRatio": DESIGN_ASPECT_RATIO},
    }
    data = _post(model, "predict", payload, flow="design")
    predictions = data.get("predictions")
    first = predictions[0] if isinstance(predictions, list) and predictions else None
    encoded = first.get("bytesBase64Encoded") if isinstance(first, dict) else None
    if not encoded:
        logger.warning("[AI-FAIL] flow=design model=%s reason=no-image", model)
        raise AIFlowError(
            "AI failed to generate a design. Please try a different prompt."
        )
    mime_type = first.get("mimeType") or "image/png"
    logger.info("[AI-OK] flow=design model=%s mime=%s", model, mime_type)
    return f"data:{mime_type};base64,{encoded}"
