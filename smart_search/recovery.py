"""
Recover a JSON value from free-text model output.

Gemini does not always follow "return ONLY JSON": answers arrive wrapped in
markdown fences or surrounded by prose. parse_model_output tries three
increasingly lenient stages and returns None when nothing can be recovered.
"""
import json
import logging
import re
from typing import Any, Optional

logger = logging.getLogger(__name__)

OBJECT_SPAN = re.compile(r"\{[\s\S]*\}")
ARRAY_SPAN = re.compile(r"\[[\s\S]*\]")
ANY_SPAN = re.compile(r"(\{[\s\S]*\}|\[[\s\S]*\])")


def clean_model_output(text: str) -> str:
    """Strip markdown code fences and keep the outermost object (or array) span"""
    cleaned = text.strip()

    if cleaned.startswith("```json"):
        cleaned = cleaned[len("```json"):]
    elif cleaned.startswith("```"):
        cleaned = cleaned[len("```"):]
    if cleaned.endswith("```"):
        cleaned = cleaned[:-len("```")]

    cleaned = cleaned.strip()

    # Objects win over arrays: an object answer usually contains arrays too
    match = OBJECT_SPAN.search(cleaned) or ARRAY_SPAN.search(cleaned)
    if match:
        cleaned = match.group(0)
    return cleaned


def parse_model_output(text: Optional[str]) -> Optional[Any]:
    """Parse model output as JSON, first success wins; None if all stages fail"""
    if not text:
        return None

    try:
        return json.loads(text)
    except json.JSONDecodeError as e:
        direct_error = e

    try:
        return json.loads(clean_model_output(text))
    except json.JSONDecodeError as e:
        cleaned_error = e

    match = ANY_SPAN.search(text)
    if match:
        try:
            return json.loads(match.group(1))
        except json.JSONDecodeError as e:
            logger.error("All JSON parsing attempts failed")
            logger.debug(f"Direct: {direct_error} | cleaned: {cleaned_error} | pattern: {e}")
            logger.debug(f"Original response: {text[:500]}")
            return None

    logger.error("All JSON parsing attempts failed: no JSON object or array in response")
    logger.debug(f"Original response: {text[:500]}")
    return None
