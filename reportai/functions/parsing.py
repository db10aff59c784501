"""Turn free-form model output into the analysis / comparison structure.

The model is asked for strict JSON but does not always comply, so parsing
goes through three steps:

1. ``sanitize_response`` strips code fences and isolates a ``{...}`` span.
2. ``extract_structured`` decodes it, or falls back to bullet-line heuristics.
3. ``normalize_result`` enforces array caps and the confidence range.

``reconcile`` chains the three.
"""

import json
import logging
import math
import re
from dataclasses import dataclass
from typing import Any, Dict, List

logger = logging.getLogger(__name__)

DEFAULT_CONFIDENCE = 0.6
FALLBACK_SUMMARY_CHARS = 600
SUMMARY_MAX_CHARS = 2000

_OPENING_FENCE = re.compile(r"^```[A-Za-z0-9_+-]*[ \t]*\r?\n")
_CLOSING_FENCE = re.compile(r"```\s*$")
_FENCED_BLOCK = re.compile(r"```[\s\S]*?```")
# Greedy: first "{" to last "}". Nested braces inside string values can
# still produce a span that fails to decode; the fallback covers that.
_BRACE_SPAN = re.compile(r"\{[\s\S]*\}")
_BULLET = re.compile(r"^[-•*]\s*")


@dataclass(frozen=True)
class FieldSpec:
    """Shape differences between the analyze and compare results."""

    array_field: str
    cap: int
    unavailable_summary: str


ANALYSIS_FIELDS = FieldSpec("keyPoints", 5, "Summary unavailable.")
COMPARISON_FIELDS = FieldSpec("keyDifferences", 7, "Comparison summary unavailable.")


def strip_outer_fence(text: str) -> str:
    """Trim and drop a surrounding markdown fence, if any."""
    cleaned = (text or "").strip()
    if cleaned.startswith("```"):
        if _OPENING_FENCE.match(cleaned):
            cleaned = _OPENING_FENCE.sub("", cleaned, count=1)
        else:
            cleaned = cleaned[3:]
        cleaned = _CLOSING_FENCE.sub("", cleaned).strip()
    return cleaned


def sanitize_response(text: str) -> str:
    """Strip markdown fences and isolate the JSON-looking part of the model text."""
    cleaned = strip_outer_fence(text)
    if not (cleaned.startswith("{") and cleaned.endswith("}")):
        match = _BRACE_SPAN.search(cleaned)
        if match:
            cleaned = match.group(0)
    return cleaned


def bullet_lines(text: str) -> List[str]:
    """Lines starting with ``-``, ``•`` or ``*``, marker removed, in order."""
    bullets = []
    for line in (text or "").splitlines():
        line = line.strip()
        if _BULLET.match(line):
            item = _BULLET.sub("", line, count=1).strip()
            if item:
                bullets.append(item)
    return bullets


def fallback_result(model_text: str, spec: FieldSpec) -> Dict[str, Any]:
    """Minimal structure synthesized from non-JSON model output."""
    text = strip_outer_fence(model_text)
    summary = _FENCED_BLOCK.sub("", text)[:FALLBACK_SUMMARY_CHARS]
    if not summary.strip():
        summary = spec.unavailable_summary
    return {
        "summary": summary,
        spec.array_field: bullet_lines(text)[:spec.cap],
        "confidence": DEFAULT_CONFIDENCE,
    }


def extract_structured(candidate: str, model_text: str, spec: FieldSpec) -> Dict[str, Any]:
    """Strictly decode ``candidate``; fall back to heuristics on ``model_text``."""
    try:
        data = json.loads(candidate)
    except (TypeError, ValueError):
        data = None

    if isinstance(data, dict):
        return data

    logger.warning(
        "Model output is not a JSON object; using bullet-line fallback (%d chars)",
        len(model_text or ""),
    )
    return fallback_result(model_text, spec)


def _normalize_items(items: Any, cap: int) -> List[str]:
    if not isinstance(items, list):
        return []
    cleaned = []
    for item in items:
        if not item:
            continue
        if not isinstance(item, str):
            item = str(item)
        if not item.strip():
            continue
        cleaned.append(item)
    return cleaned[:cap]


def _normalize_confidence(value: Any) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return DEFAULT_CONFIDENCE
    try:
        value = float(value)
    except OverflowError:
        # integer too large for a float
        return 1.0 if value > 0 else 0.0
    if not math.isfinite(value):
        return DEFAULT_CONFIDENCE
    return min(max(value, 0.0), 1.0)


def normalize_result(data: Dict[str, Any], spec: FieldSpec) -> Dict[str, Any]:
    """Enforce the output invariants on a decoded or fallback structure.

    Idempotent: normalizing an already normalized result returns an equal dict.
    Out-of-range numeric confidence is clamped to [0, 1]; missing or
    non-numeric confidence becomes 0.6.
    """
    result = dict(data)
    result[spec.array_field] = _normalize_items(result.get(spec.array_field), spec.cap)
    result["confidence"] = _normalize_confidence(result.get("confidence"))
    if "summary" in result:
        summary = result["summary"]
        if summary is None:
            summary = ""
        elif not isinstance(summary, str):
            summary = str(summary)
        result["summary"] = summary[:SUMMARY_MAX_CHARS]
    return result


def reconcile(model_text: str, spec: FieldSpec) -> Dict[str, Any]:
    candidate = sanitize_response(model_text)
    return normalize_result(extract_structured(candidate, model_text, spec), spec)
