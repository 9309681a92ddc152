"""Anthropic client wrapper producing schema-validated structured output.

Every artifact is generated through one forced tool call whose input schema
is the artifact's pydantic JSON schema. The returned tool input is validated
against the same model; anything else is a GenerationError.
"""

import json
import logging
import re

import anthropic
from pydantic import ValidationError as SchemaError

from ..config import settings
from ..errors import GenerationError
from ..generation.artifacts import ArtifactSpec
from ..prompts import SYSTEM_PROMPT

logger = logging.getLogger(__name__)


def _clean_json_text(text: str) -> str:
    """Fix common LLM JSON output issues."""
    # Remove trailing commas before } or ]
    text = re.sub(r",\s*([}\]])", r"\1", text)
    # Replace NaN/Infinity (not valid JSON) with null
    text = re.sub(r"\bNaN\b", "null", text)
    text = re.sub(r"-?\bInfinity\b", "null", text)
    return text


def _strip_markdown_wrapper(text: str) -> str:
    """Remove markdown code block wrappers (```json ... ``` or ``` ... ```)."""
    text = text.strip()
    if text.startswith("```"):
        text = text.split("\n", 1)[1] if "\n" in text else text[3:]
        if "```" in text:
            text = text.rsplit("```", 1)[0]
        text = text.strip()
    return text


def _extract_and_parse_json(raw_text: str) -> dict:
    """Parse a JSON object out of free text.

    Only used when the model answers in text instead of calling the tool.
    """
    text = _strip_markdown_wrapper(raw_text)
    try:
        return json.loads(text)
    except json.JSONDecodeError:
        pass

    start, end = text.find("{"), text.rfind("}")
    if start != -1 and end > start:
        try:
            return json.loads(_clean_json_text(text[start : end + 1]))
        except json.JSONDecodeError:
            pass

    raise json.JSONDecodeError("No valid JSON found in AI response", text[:200], 0)


def _tool_definition(spec: ArtifactSpec) -> dict:
    return {
        "name": spec.tool_name,
        "description": spec.description,
        "input_schema": spec.schema.model_json_schema(by_alias=True),
    }


def _raw_output(message, spec: ArtifactSpec) -> dict:
    for block in message.content:
        if block.type == "tool_use" and block.name == spec.tool_name:
            return block.input

    text = "".join(block.text for block in message.content if block.type == "text")
    logger.warning("Model answered without calling %s (stop_reason=%s)", spec.tool_name, message.stop_reason)
    try:
        return _extract_and_parse_json(text)
    except json.JSONDecodeError as exc:
        raise GenerationError() from exc


class StructuredGenerator:
    """Single-attempt structured generation against one fixed model."""

    def __init__(self, client: anthropic.Anthropic, model: str):
        self.client = client
        self.model = model

    def generate(self, spec: ArtifactSpec, prompt: str) -> dict:
        try:
            message = self.client.messages.create(
                model=self.model,
                max_tokens=spec.max_tokens,
                system=SYSTEM_PROMPT.format(language=settings.output_language),
                tools=[_tool_definition(spec)],
                tool_choice={"type": "tool", "name": spec.tool_name},
                messages=[{"role": "user", "content": prompt}],
            )
        except anthropic.APIError as exc:
            logger.error("Generation request failed (kind=%s): %s", spec.kind, exc)
            raise GenerationError() from exc

        usage = message.usage
        logger.info(
            "Generated %s (model=%s, input_tokens=%d, output_tokens=%d)",
            spec.kind,
            self.model,
            usage.input_tokens,
            usage.output_tokens,
        )

        raw = _raw_output(message, spec)
        try:
            validated = spec.schema.model_validate(raw)
        except SchemaError as exc:
            logger.error("Generated %s failed schema validation: %s", spec.kind, exc)
            raise GenerationError() from exc

        return spec.finalize(validated.model_dump(mode="json", by_alias=True))


def create_generator() -> StructuredGenerator:
    client = anthropic.Anthropic(
        api_key=settings.anthropic_api_key,
        timeout=settings.generation_timeout_seconds,
        max_retries=0,
    )
    return StructuredGenerator(client, settings.anthropic_model)
