"""
Script structure generation.

Asks the LLM to split a transcript into typed persuasion sections
(hook, problem, solution, cta, ...) with timings.
"""

import json
from typing import Any, Dict, List, Optional, Union
from uuid import UUID

from openai import AsyncOpenAI
from openai import APIError, RateLimitError, APITimeoutError

from shared.config import settings
from shared.errors import ConfigError, GenerationError, RetryableError, UnstructuredContentError
from shared.logging import get_logger
from shared.models import Section, SectionType, sections_from_payload
from shared.retry import retry_with_backoff

logger = get_logger("script_generator")

_openai_client: Optional[AsyncOpenAI] = None

SYSTEM_PROMPT = "You analyse short-form video ads. You answer with valid JSON only."

BRAND_FIELDS = (
    ("name", "Brand"),
    ("product_description", "Product"),
    ("tone_of_voice", "Tone of voice"),
    ("main_promise", "Main promise"),
    ("main_benefit", "Main benefit"),
    ("ideal_customer", "Ideal customer"),
    ("main_objection", "Main objection"),
)


def get_openai_client() -> AsyncOpenAI:
    """Get or create OpenAI async client."""
    global _openai_client
    if _openai_client is None:
        if not settings.openai_api_key:
            raise ConfigError("OPENAI_API_KEY is required for structure generation")
        _openai_client = AsyncOpenAI(api_key=settings.openai_api_key)
    return _openai_client


def _build_brand_context(brand: Optional[Dict[str, Any]]) -> str:
    if not brand:
        return "No brand context provided."
    lines = [f"- {label}: {brand.get(key) or 'not specified'}" for key, label in BRAND_FIELDS]
    return "\n".join(lines)


def _build_user_prompt(transcript: str, brand: Optional[Dict[str, Any]]) -> str:
    section_types = ", ".join(t.value for t in SectionType)
    return f"""BRAND CONTEXT:
{_build_brand_context(brand)}

VIDEO TRANSCRIPT:
{transcript}

TASK:
Split the transcript into the ordered sections of a direct-response ad.
Use only these section types: {section_types}.
Every section quotes or closely paraphrases the transcript and carries its
start and end time in seconds.

Respond with JSON in exactly this shape:
{{
  "duration": 30,
  "sections": [
    {{"type": "hook", "text": "...", "start_time": 0, "end_time": 3}},
    {{"type": "problem", "text": "...", "start_time": 3, "end_time": 8}}
  ]
}}"""


def parse_structure(payload: Dict[str, Any]) -> List[Section]:
    """
    Turn the model's JSON into ordered Sections.

    A top-level "hook" object is put in front of the section list, and
    indexes are reassigned in list order.
    """
    items: List[Dict[str, Any]] = []
    hook = payload.get("hook")
    if isinstance(hook, dict) and hook.get("text"):
        items.append({**hook, "type": "hook"})
    for item in payload.get("sections") or []:
        if isinstance(item, dict):
            items.append(item)

    for index, item in enumerate(items):
        item.pop("id", None)
        item["order_index"] = index
    sections = sections_from_payload(items)
    return [s.model_copy(update={"order_index": i}) for i, s in enumerate(sections)]


@retry_with_backoff(max_attempts=3, base_delay=2)
async def generate_structure(
    transcript: str,
    brand: Optional[Dict[str, Any]] = None,
    job_id: Optional[Union[UUID, str]] = None
) -> List[Section]:
    """
    Generate the section structure of a transcript.

    Args:
        transcript: Transcribed speech
        brand: Optional brand record used as context
        job_id: Analysis id, for logging and errors

    Returns:
        Ordered, non-empty list of Sections

    Raises:
        UnstructuredContentError: If no sections were detected
        GenerationError: If the model call fails permanently
        RetryableError: On rate limits, timeouts and invalid JSON
    """
    model = settings.structure_model
    try:
        client = get_openai_client()
        response = await client.chat.completions.create(
            model=model,
            messages=[
                {"role": "system", "content": SYSTEM_PROMPT},
                {"role": "user", "content": _build_user_prompt(transcript, brand)}
            ],
            response_format={"type": "json_object"},
            temperature=0.7,
            timeout=90.0
        )
    except RateLimitError as e:
        logger.warning(f"Rate limit error: {str(e)}", extra={"analysis_id": str(job_id)})
        raise RetryableError(f"Rate limit error: {str(e)}", job_id=job_id) from e
    except APITimeoutError as e:
        logger.warning(f"API timeout: {str(e)}", extra={"analysis_id": str(job_id)})
        raise RetryableError(f"API timeout: {str(e)}", job_id=job_id) from e
    except APIError as e:
        logger.error(f"OpenAI API error: {str(e)}", extra={"analysis_id": str(job_id)})
        status_code = getattr(e, "status_code", None)
        if status_code and status_code >= 500:
            raise RetryableError(f"Retryable API error: {str(e)}", job_id=job_id) from e
        raise GenerationError(f"OpenAI API error: {str(e)}", job_id=job_id) from e

    content = response.choices[0].message.content
    if not content:
        raise GenerationError("Empty response from LLM", job_id=job_id)

    try:
        payload = json.loads(content)
    except json.JSONDecodeError as e:
        logger.warning(
            f"Invalid JSON from LLM: {str(e)}",
            extra={"analysis_id": str(job_id), "response_preview": content[:500]}
        )
        raise RetryableError(f"Invalid JSON from LLM: {str(e)}", job_id=job_id) from e

    sections = parse_structure(payload if isinstance(payload, dict) else {})
    if not sections:
        raise UnstructuredContentError(
            "No ad structure could be detected in this video",
            job_id=job_id
        )

    logger.info(
        "Structure generated",
        extra={
            "analysis_id": str(job_id),
            "model": model,
            "section_count": len(sections),
            "section_types": ",".join(s.type.value for s in sections),
        }
    )
    return sections
