"""content.parsing

Lenient JSON parsing for LLM replies.

Models wrap JSON in prose or fences and get quoting wrong. We never execute
anything; the cleanup pipeline is:
- drop ``` fences
- cut to the outermost {...} span
- straighten typographic quotes
- escape raw line breaks inside strings
- drop trailing commas
- json.loads, then ast.literal_eval on a Python-literal rewrite
"""

from __future__ import annotations

import ast
import json
import re
from dataclasses import dataclass
from typing import Any, Dict, Optional

_FENCE_RE = re.compile(r"```(?:json)?\s*(.*?)```", re.DOTALL | re.IGNORECASE)
_TRAILING_COMMA_RE = re.compile(r",\s*([}\]])")
_QUOTES = {"\u201c": '"', "\u201d": '"', "\u2018": "'", "\u2019": "'", "\u00a0": " "}


@dataclass(frozen=True)
class ParseResult:
    data: Optional[Dict[str, Any]]
    raw: str
    cleaned: str
    error: str = ""


def strip_code_fences(s: str) -> str:
    s = (s or "").strip()
    m = _FENCE_RE.search(s)
    return (m.group(1) or "").strip() if m else s


def extract_first_object(s: str) -> str:
    s = (s or "").strip()
    start = s.find("{")
    if start < 0:
        return s
    end = s.rfind("}")
    return s[start:] if end <= start else s[start : end + 1]


def normalize_smart_quotes(s: str) -> str:
    return "".join(_QUOTES.get(ch, ch) for ch in (s or ""))


def remove_trailing_commas(s: str) -> str:
    return _TRAILING_COMMA_RE.sub(r"\1", s)


def escape_newlines_in_json_strings(s: str) -> str:
    """Replace raw CR/LF inside quoted strings by their escapes."""
    out = []
    quote = ""
    escaped = False
    for ch in s or "":
        if not quote:
            if ch in ('"', "'"):
                quote = ch
            out.append(ch)
            continue
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == quote:
            quote = ""
        elif ch == "\n":
            ch = "\\n"
        elif ch == "\r":
            ch = "\\r"
        out.append(ch)
    return "".join(out)


def _clean(raw: str) -> str:
    s = extract_first_object(strip_code_fences(raw))
    s = normalize_smart_quotes(s)
    s = escape_newlines_in_json_strings(s)
    return remove_trailing_commas(s)


def _as_python_literal(s: str) -> str:
    for src, dst in (("true", "True"), ("false", "False"), ("null", "None")):
        s = re.sub(rf"\b{src}\b", dst, s, flags=re.IGNORECASE)
    return s


def try_parse_json(raw: str) -> ParseResult:
    """Best-effort parse; data is None and error is set on failure."""
    raw = (raw or "").strip()
    cleaned = _clean(raw)

    try:
        obj = json.loads(cleaned)
    except ValueError as e:
        json_err = f"json.loads: {e}"
    else:
        if isinstance(obj, dict):
            return ParseResult(data=obj, raw=raw, cleaned=cleaned)
        return ParseResult(data=None, raw=raw, cleaned=cleaned, error="JSON root is not an object")

    try:
        obj = ast.literal_eval(_as_python_literal(cleaned))
    except (ValueError, SyntaxError, TypeError, MemoryError, RecursionError) as e:
        return ParseResult(data=None, raw=raw, cleaned=cleaned, error=f"{json_err} | literal_eval: {type(e).__name__}: {e}")
    if not isinstance(obj, dict):
        return ParseResult(data=None, raw=raw, cleaned=cleaned, error=f"literal root is not an object; {json_err}")
    # round-trip so tuples/sets become JSON types
    return ParseResult(data=json.loads(json.dumps(obj, default=list)), raw=raw, cleaned=cleaned)


def must_parse_json(raw: str) -> Dict[str, Any]:
    res = try_parse_json(raw)
    if res.data is None:
        raise ValueError(res.error or "JSON parse failed")
    return res.data
