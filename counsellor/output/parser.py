"""
Response Parser for Model Output

Turns whatever a vendor sent back into a JSON value:
- Already-structured objects/arrays pass straight through
- Markdown code fences are stripped
- The first balanced top-level object or array is extracted
- Trailing commas before } or ] are repaired, once

Never raises on malformed input. Failures come back as a ParseResult
carrying an UnparseableResponse with a truncated preview, so callers
choose their own fallback and logs stay bounded.
"""

import json
import math
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, Optional

logger = logging.getLogger(__name__)

EXPECT_OBJECT = "object"
EXPECT_ARRAY = "array"
EXPECT_ANY = "any"

_OPENERS = {EXPECT_OBJECT: "{", EXPECT_ARRAY: "["}
_CLOSERS = {"{": "}", "[": "]"}

_FENCE_RE = re.compile(r"```(?:json|JSON)?[ \t]*\n?")
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")


@dataclass
class UnparseableResponse:
    """Why a response could not be turned into JSON."""
    reason: str
    preview: str = ""

    def __str__(self) -> str:
        return f"{self.reason}: {self.preview!r}"


@dataclass
class ParseResult:
    """Outcome of parsing one model response."""
    success: bool
    value: Any = None
    parse_method: str = "none"  # "passthrough", "strict", "repaired", "none"
    error: Optional[UnparseableResponse] = None


class ResponseParser:
    """
    Bounded repair pass for model output.

    Usage:
        parser = ResponseParser()
        result = parser.parse(raw, expect="array")
        if result.success:
            rows = result.value
    """

    def __init__(self, preview_chars: int = 200, log_failures: bool = True):
        self.preview_chars = preview_chars
        self.log_failures = log_failures

    def parse(
        self,
        raw: Any,
        expect: str = EXPECT_OBJECT,
        shape_check: Optional[Callable[[Any], bool]] = None,
    ) -> ParseResult:
        """
        Parse raw model output into a JSON value.

        Args:
            raw: Structured value or text from a provider
            expect: "object", "array" or "any"
            shape_check: Predicate an already-structured value must satisfy
                to be returned unchanged

        Returns:
            ParseResult (never raises for malformed input)
        """
        if expect not in (EXPECT_OBJECT, EXPECT_ARRAY, EXPECT_ANY):
            raise ValueError(f"Unknown expect mode: {expect}")

        if isinstance(raw, (dict, list)):
            if self._matches(raw, expect) and self._shape_ok(raw, shape_check):
                return ParseResult(success=True, value=raw, parse_method="passthrough")
            # Structured but wrong shape; fall back to any text it carries
            text = raw.get("text") if isinstance(raw, dict) else None
            if not isinstance(text, str):
                return self._fail("Structured value failed shape check", raw)
            raw = text

        if not isinstance(raw, str):
            return self._fail(f"Unsupported response type {type(raw).__name__}", raw)

        cleaned = strip_code_fences(raw)
        candidate = extract_balanced(cleaned, expect)
        if candidate is None:
            return self._fail(f"No JSON {expect} found", cleaned)

        try:
            value = json.loads(candidate)
            method = "strict"
        except json.JSONDecodeError:
            repaired = _TRAILING_COMMA_RE.sub(r"\1", candidate)
            try:
                value = json.loads(repaired)
                method = "repaired"
            except json.JSONDecodeError as e:
                return self._fail(f"Invalid JSON ({e.msg})", candidate)

        if not self._matches(value, expect):
            return self._fail(f"Parsed value is not a JSON {expect}", candidate)

        logger.debug(f"Parsed model output with {method} method")
        return ParseResult(success=True, value=value, parse_method=method)

    def _fail(self, reason: str, source: Any) -> ParseResult:
        text = source if isinstance(source, str) else repr(source)
        error = UnparseableResponse(reason=reason, preview=text[:self.preview_chars])
        if self.log_failures:
            logger.warning(f"Unparseable model response - {error}")
        return ParseResult(success=False, error=error)

    @staticmethod
    def _matches(value: Any, expect: str) -> bool:
        if expect == EXPECT_OBJECT:
            return isinstance(value, dict)
        if expect == EXPECT_ARRAY:
            return isinstance(value, list)
        return isinstance(value, (dict, list))

    @staticmethod
    def _shape_ok(value: Any, shape_check: Optional[Callable[[Any], bool]]) -> bool:
        if shape_check is None:
            return True
        try:
            return bool(shape_check(value))
        except Exception:
            return False


def strip_code_fences(text: str) -> str:
    """Remove ```json / ``` markers anywhere in the text."""
    return _FENCE_RE.sub("", text).replace("```", "").strip()


def extract_balanced(text: str, expect: str = EXPECT_OBJECT) -> Optional[str]:
    """
    Find the first balanced top-level object or array in text.

    Brackets inside JSON strings are ignored. Returns None when no
    opener exists or the first one is never closed.
    """
    if expect == EXPECT_ANY:
        positions = [p for p in (text.find("{"), text.find("[")) if p != -1]
        if not positions:
            return None
        start = min(positions)
    else:
        start = text.find(_OPENERS[expect])
        if start == -1:
            return None

    stack = []
    in_string = False
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if in_string:
            if escaped:
                escaped = False
            elif ch == "\\":
                escaped = True
            elif ch == '"':
                in_string = False
            continue
        if ch == '"':
            in_string = True
        elif ch in _CLOSERS:
            stack.append(_CLOSERS[ch])
        elif ch in ("}", "]"):
            if not stack or stack.pop() != ch:
                return None
            if not stack:
                return text[start:i + 1]
    return None


def parse_number(value: Any) -> Optional[float]:
    """
    Coerce a model-supplied number.

    Handles estimates like "~2000" or "12,500"; anything else is None.
    """
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if isinstance(value, str):
        cleaned = re.sub(r"[~,\s$%]", "", value)
        try:
            number = float(cleaned)
        except ValueError:
            return None
        return number if math.isfinite(number) else None
    return None


def coerce_index(value: Any) -> Optional[int]:
    """Read a model-supplied batch index: 2, 2.0 and "2" are all 2."""
    if value is None or isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value) if value.is_integer() else None
    if isinstance(value, str):
        text = value.strip()
        try:
            return int(text)
        except ValueError:
            try:
                number = float(text)
            except ValueError:
                return None
            return int(number) if number.is_integer() else None
    return None


def map_by_index(elements: Any, count: int, label: str = "batch") -> Dict[int, Dict[str, Any]]:
    """
    Correlate a batch response array back to input positions.

    Each element must carry a 1-based "index" within [1, count]. Returns
    {0-based position: element without "index"}. Non-object elements,
    missing, non-integer, out-of-range and duplicate indices are dropped
    and logged; the caller fills those positions with defaults.
    """
    mapped: Dict[int, Dict[str, Any]] = {}
    if not isinstance(elements, list):
        return mapped

    for element in elements:
        if not isinstance(element, dict):
            logger.warning(f"{label}: dropped non-object element {str(element)[:80]!r}")
            continue
        raw_index = element.get("index")
        index = coerce_index(raw_index)
        if index is None or not 1 <= index <= count:
            logger.warning(f"{label}: dropped element with invalid index {raw_index!r}")
            continue
        if index - 1 in mapped:
            logger.warning(f"{label}: dropped duplicate index {index}")
            continue
        mapped[index - 1] = {k: v for k, v in element.items() if k != "index"}

    return mapped
