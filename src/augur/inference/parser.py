"""
Staged Inference Response Parser

Free-form answers are reduced to an ExternalOpinion by trying, in order:

1. strict JSON of the whole text
2. the first fenced code block (```json ... ```)
3. brace scanning for the first balanced {...} that decodes

The first stage yielding a JSON object wins. The object is then
normalized: ``direction`` (or ``prediction``) maps onto UP/DOWN/NEUTRAL,
``confidence`` is read as a fraction, or as a percentage when it lies in
(1, 100].
"""

import json
import math
import re
from typing import Any, Callable, Dict, List, Optional, Tuple

from ..exceptions import MalformedExternalResponseError
from ..logger import get_inference_logger
from ..models.signals import Direction, ExternalOpinion, PredictionSignal, SignalSource


logger = get_inference_logger()

FENCE_PATTERN = re.compile(r"```(?:json|JSON)?\s*(.*?)```", re.DOTALL)
# answers are a few hundred characters; anything far larger is not worth scanning
MAX_SCAN_CHARS = 32_768

_DECODER = json.JSONDecoder()

DIRECTION_ALIASES = {
    "UP": Direction.UP,
    "BUY": Direction.UP,
    "LONG": Direction.UP,
    "BULLISH": Direction.UP,
    "HIGHER": Direction.UP,
    "DOWN": Direction.DOWN,
    "SELL": Direction.DOWN,
    "SHORT": Direction.DOWN,
    "BEARISH": Direction.DOWN,
    "LOWER": Direction.DOWN,
    "NEUTRAL": Direction.NEUTRAL,
    "HOLD": Direction.NEUTRAL,
    "SIDEWAYS": Direction.NEUTRAL,
    "FLAT": Direction.NEUTRAL,
}


def _as_object(text: str) -> Optional[Dict[str, Any]]:
    try:
        value = json.loads(text)
    except (json.JSONDecodeError, TypeError, RecursionError):
        return None
    return value if isinstance(value, dict) else None


def parse_strict(text: str) -> Optional[Dict[str, Any]]:
    return _as_object(text.strip())


def parse_fenced(text: str) -> Optional[Dict[str, Any]]:
    for block in FENCE_PATTERN.findall(text):
        found = _as_object(block.strip())
        if found is not None:
            return found
    return None


def parse_brace_scan(text: str) -> Optional[Dict[str, Any]]:
    """
    First balanced {...} span that decodes to an object; string-aware.

    One pass records every balanced span with a stack of open braces, then
    spans are decoded in place in order of their opening brace. Text past
    MAX_SCAN_CHARS is not scanned.
    """
    if len(text) > MAX_SCAN_CHARS:
        logger.warning(f"Inference response has {len(text)} chars, brace scan limited to {MAX_SCAN_CHARS}")
        text = text[:MAX_SCAN_CHARS]

    open_braces: List[int] = []
    spans: List[Tuple[int, int]] = []
    in_string = False
    escaped = False
    for i, ch in enumerate(text):
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"' and open_braces:
            in_string = True
        elif ch == "{":
            open_braces.append(i)
        elif ch == "}" and open_braces:
            spans.append((open_braces.pop(), i + 1))

    for start, end in sorted(spans):
        try:
            value, stop = _DECODER.raw_decode(text, start)
        except (json.JSONDecodeError, RecursionError):
            continue
        if stop == end and isinstance(value, dict):
            return value
    return None


STAGES: List[Callable[[str], Optional[Dict[str, Any]]]] = [
    parse_strict,
    parse_fenced,
    parse_brace_scan,
]


def extract_object(text: str) -> Dict[str, Any]:
    """Run the stages in order; raise when none yields an object."""
    if not isinstance(text, str) or not text.strip():
        raise MalformedExternalResponseError("Empty inference response")
    for stage in STAGES:
        found = stage(text)
        if found is not None:
            logger.debug(f"Inference response decoded by {stage.__name__}")
            return found
    raise MalformedExternalResponseError("No JSON object found in inference response")


def normalize_direction(value: Any) -> Direction:
    if not isinstance(value, str):
        raise MalformedExternalResponseError(f"Direction must be a string, got {value!r}")
    direction = DIRECTION_ALIASES.get(value.strip().upper())
    if direction is None:
        raise MalformedExternalResponseError(f"Unknown direction {value!r}")
    return direction


def normalize_confidence(value: Any) -> float:
    """Fraction in [0, 1]; values in (1, 100] are read as percentages."""
    if isinstance(value, bool):
        raise MalformedExternalResponseError("Confidence must be numeric")
    if isinstance(value, str):
        value = value.strip().rstrip("%")
    try:
        confidence = float(value)
    except (TypeError, ValueError) as e:
        raise MalformedExternalResponseError(f"Confidence must be numeric, got {value!r}") from e
    if math.isnan(confidence) or confidence < 0 or confidence > 100:
        raise MalformedExternalResponseError(f"Confidence out of range: {confidence}")
    if confidence > 1:
        confidence /= 100.0
    return confidence


def _optional_price(value: Any) -> Optional[float]:
    if value is None or isinstance(value, bool):
        return None
    try:
        price = float(value)
    except (TypeError, ValueError):
        return None
    if math.isnan(price) or math.isinf(price) or price <= 0:
        return None
    return price


def parse_inference_response(text: str) -> ExternalOpinion:
    """
    Parse a raw inference answer.
    
    Raises:
        MalformedExternalResponseError: no stage yields an object, or the
            object lacks a usable direction or confidence
    """
    data = extract_object(text)
    
    raw_direction = data.get("direction", data.get("prediction"))
    if raw_direction is None:
        raise MalformedExternalResponseError("Response has no direction or prediction key")
    if "confidence" not in data:
        raise MalformedExternalResponseError("Response has no confidence key")
    
    reasoning = data.get("reasoning", data.get("rationale", ""))
    if not isinstance(reasoning, str):
        reasoning = str(reasoning)
    
    signal = PredictionSignal(
        direction=normalize_direction(raw_direction),
        confidence=normalize_confidence(data["confidence"]),
        rationale=reasoning.strip(),
        source=SignalSource.EXTERNAL,
    )
    return ExternalOpinion(
        signal=signal,
        entry_price=_optional_price(data.get("entry_price")),
        stop_loss=_optional_price(data.get("stop_loss")),
        take_profit=_optional_price(data.get("take_profit")),
    )
