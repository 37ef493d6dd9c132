"""
Resilient Review Response Parser

Turns raw model output into a ReviewResult. The expected payload is a JSON
object with an ``issues`` array and an optional ``diffs`` array, but models
routinely break strict JSON: they put literal newlines inside diff strings,
wrap the answer in markdown fences, prepend reasoning, or leave trailing
commas. Recovery runs as a linear chain of stages; each stage only runs if
the previous one produced nothing usable.

Stages:
1. Preface strip: drop everything up to and including ``</think>``
2. Fence strip: unwrap a single enclosing fenced code block
3. Literal repair: escape control characters inside string literals and
   drop trailing commas
4. Strict decode against the payload schema
5. Lenient extraction of titles, explanations and file diffs
6. Empty result
"""

import re

import structlog
from pydantic import BaseModel, ValidationError

from .errors import ResponseParseError
from .models import FileDiff, Issue, ReviewResult

logger = structlog.get_logger(__name__)

THINK_END_TAG = "</think>"

_FENCED_BLOCK = re.compile(r"^```[\w+.-]*[ \t]*\r?\n(.*?)\r?\n?[ \t]*```$", re.DOTALL)

# Literal control characters and their two-character JSON escapes.
_CONTROL_ESCAPES = {
    "\n": "\\n",
    "\t": "\\t",
    "\r": "\\r",
    "\b": "\\b",
    "\f": "\\f",
}

_UNESCAPES = {
    "n": "\n",
    "t": "\t",
    "r": "\r",
    '"': '"',
    "\\": "\\",
    "b": "\b",
    "f": "\f",
    "/": "/",
}

_JSON_STRING_BODY = r'((?:\\.|[^"\\])*)'
_LENIENT_ISSUE = re.compile(
    r'"title"\s*:\s*"' + _JSON_STRING_BODY + r'".*?"explanation"\s*:\s*"' + _JSON_STRING_BODY + r'"',
    re.DOTALL,
)
_LENIENT_FILE = re.compile(r'"file"\s*:\s*"' + _JSON_STRING_BODY + r'"', re.DOTALL)
_LENIENT_DIFF_MARKER = re.compile(r'"diff"\s*:\s*"')


# =============================================================================
# PAYLOAD SCHEMA
# =============================================================================


class _IssuePayload(BaseModel):
    title: str | None = None
    explanation: str | None = None
    file: str | None = None
    diff: str | None = None


class _DiffPayload(BaseModel):
    file: str | None = None
    diff: str | None = None


class _ReviewPayload(BaseModel):
    issues: list[_IssuePayload] | None = None
    diffs: list[_DiffPayload] | None = None

    def to_result(self) -> ReviewResult:
        return ReviewResult(
            issues=[
                Issue(
                    title=i.title or "",
                    explanation=i.explanation or "",
                    file=i.file or "",
                    diff=i.diff or "",
                )
                for i in self.issues or []
            ],
            diffs=[FileDiff(file=d.file or "", diff=d.diff or "") for d in self.diffs or []],
        )


# =============================================================================
# PUBLIC API
# =============================================================================


def parse_review(response: str) -> ReviewResult:
    """
    Parse a model response into a ReviewResult.

    Never raises. Anything that cannot be recovered is reported as an empty
    result, which callers treat as "no issues found".
    """
    try:
        return parse_json_review(response)
    except ResponseParseError as e:
        logger.debug("Review response could not be parsed", error=str(e))
        return e.result


def parse_json_review(response: str) -> ReviewResult:
    """
    Parse a model response, distinguishing "empty" from "unparseable".

    Returns:
        The normalized ReviewResult. Empty input returns an empty result.

    Raises:
        ResponseParseError: no stage recovered any issue or diff
    """
    if not response or not response.strip():
        return ReviewResult()

    text = strip_fences(strip_preface(response))

    result = _decode_strict(repair_json_literals(text))
    stage = "strict"
    if result is None:
        result = _extract_lenient(text)
        stage = "lenient"

    if result is None:
        raise ResponseParseError(
            f"no issues or diffs recovered from response ({len(response)} chars)"
        )

    result = _post_process(result)
    logger.debug(
        "Parsed review response",
        stage=stage,
        issues=result.issue_count,
        diffs=result.diff_count,
    )
    return result


# =============================================================================
# STAGES
# =============================================================================


def strip_preface(text: str) -> str:
    """Discard reasoning that ends with a closing think tag."""
    end = text.find(THINK_END_TAG)
    if end == -1:
        return text
    return text[end + len(THINK_END_TAG):].strip()


def strip_fences(text: str) -> str:
    """Remove the markers of a fenced code block wrapping the whole text."""
    trimmed = text.strip()
    match = _FENCED_BLOCK.match(trimmed)
    if match:
        return match.group(1).strip()
    return trimmed


def repair_json_literals(text: str) -> str:
    """
    Make near-JSON decodable without touching its structure.

    Walks the text tracking whether we are inside a string literal and
    whether the previous character was an unconsumed backslash. Inside
    strings, literal control characters become their escape sequences.
    Outside strings, a comma directly followed (after whitespace) by a
    closing brace or bracket is dropped.
    """
    out: list[str] = []
    in_string = False
    escaped = False
    n = len(text)
    i = 0

    while i < n:
        ch = text[i]

        if in_string:
            if escaped:
                # Backslash followed by a raw control char: keep the escape letter.
                out.append(_CONTROL_ESCAPES[ch][1] if ch in _CONTROL_ESCAPES else ch)
                escaped = False
            elif ch == "\\":
                out.append(ch)
                escaped = True
            elif ch == '"':
                out.append(ch)
                in_string = False
            else:
                out.append(_CONTROL_ESCAPES.get(ch, ch))
        elif ch == '"':
            out.append(ch)
            in_string = True
        elif ch == ",":
            j = i + 1
            while j < n and text[j] in " \t\r\n":
                j += 1
            if j >= n or text[j] not in "}]":
                out.append(ch)
        else:
            out.append(ch)

        i += 1

    return "".join(out)


def _decode_strict(text: str) -> ReviewResult | None:
    """Decode against the payload schema; None unless something usable came out."""
    candidates = [text]

    # Conversational text around an otherwise valid object.
    start = text.find("{")
    end = text.rfind("}")
    if start != -1 and end > start and (start > 0 or end < len(text) - 1):
        candidates.append(text[start:end + 1])

    for candidate in candidates:
        try:
            payload = _ReviewPayload.model_validate_json(candidate)
        except ValidationError as e:
            logger.debug("Strict decode failed", errors=e.error_count())
            continue
        result = payload.to_result()
        if not result.is_empty:
            return result

    return None


def _extract_lenient(text: str) -> ReviewResult | None:
    """Last-resort field extraction from text that is not decodable JSON."""
    issues = [
        Issue(title=_unescape(m.group(1)).strip(), explanation=_unescape(m.group(2)).strip())
        for m in _LENIENT_ISSUE.finditer(text)
    ]
    diffs = _extract_lenient_diffs(text)

    if not issues and not diffs:
        return None

    logger.debug("Lenient extraction recovered fields", issues=len(issues), diffs=len(diffs))
    return ReviewResult(issues=issues, diffs=diffs)


def _extract_lenient_diffs(text: str) -> list[FileDiff]:
    """
    Pair every ``"file"`` field with the ``"diff"`` string that follows it.

    The diff marker must appear before the next ``"file"`` field so an
    issue's file is not paired with a later entry's diff.
    """
    file_matches = list(_LENIENT_FILE.finditer(text))
    diffs: list[FileDiff] = []

    for idx, match in enumerate(file_matches):
        bound = file_matches[idx + 1].start() if idx + 1 < len(file_matches) else len(text)
        marker = _LENIENT_DIFF_MARKER.search(text, match.end(), bound)
        if marker is None:
            continue

        span = _scan_string_body(text, marker.end())
        if span is None:
            continue

        diffs.append(FileDiff(file=_unescape(match.group(1)).strip(), diff=_unescape(span)))

    return diffs


def _scan_string_body(text: str, start: int) -> str | None:
    """
    Return the raw string body beginning at ``start``, up to the first
    unescaped quote. None if the string is never closed.
    """
    escaped = False
    for i in range(start, len(text)):
        ch = text[i]
        if escaped:
            escaped = False
        elif ch == "\\":
            escaped = True
        elif ch == '"':
            return text[start:i]
    return None


def _unescape(raw: str) -> str:
    """Undo JSON string escapes in a recovered span."""
    if "\\" not in raw:
        return raw

    out: list[str] = []
    i = 0
    n = len(raw)
    while i < n:
        ch = raw[i]
        if ch != "\\" or i + 1 >= n:
            out.append(ch)
            i += 1
            continue

        nxt = raw[i + 1]
        if nxt in _UNESCAPES:
            out.append(_UNESCAPES[nxt])
            i += 2
        elif nxt == "u" and i + 6 <= n and _is_hex(raw[i + 2:i + 6]):
            out.append(chr(int(raw[i + 2:i + 6], 16)))
            i += 6
        else:
            out.append(ch)
            i += 1

    return "".join(out)


def _is_hex(value: str) -> bool:
    return all(c in "0123456789abcdefABCDEF" for c in value)


def _post_process(result: ReviewResult) -> ReviewResult:
    """Apply field defaults and keep only the first diff per file."""
    seen: set[str] = set()
    diffs: list[FileDiff] = []
    for file_diff in result.diffs:
        if file_diff.file in seen:
            logger.debug("Dropping duplicate diff", file=file_diff.file)
            continue
        seen.add(file_diff.file)
        diffs.append(file_diff)

    return ReviewResult(issues=[i.normalized() for i in result.issues], diffs=diffs)
