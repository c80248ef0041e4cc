"""Response normalizer — turns raw model text into an AnalysisResult, never raising.

Unparseable output is an expected outcome, not an error: it is reported as a
Degraded parse carrying an UNCERTAIN result so callers always get a status.
"""
import json
import logging
from dataclasses import dataclass

from allergen_bot.constants import LOG_DEGRADED, MSG_PARSE_FALLBACK
from allergen_bot.models import AnalysisResult, Status

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Validated:
    result: AnalysisResult


@dataclass(frozen=True)
class Degraded:
    result: AnalysisResult
    reason: str


ParseOutcome = Validated | Degraded


def _fallback(raw: str, reason: str, keep_raw: bool) -> Degraded:
    logger.warning(LOG_DEGRADED, reason)
    return Degraded(
        result=AnalysisResult(
            status=Status.UNCERTAIN,
            flagged_ingredients=(),
            explanation=MSG_PARSE_FALLBACK,
            extracted_text=raw if keep_raw else None,
        ),
        reason=reason,
    )


def _parse_status(value: object) -> Status | None:
    match value:
        case str() as s if s.strip().upper() in Status.__members__:
            return Status[s.strip().upper()]
        case _:
            return None


def _coerce_item(item: object) -> str | None:
    match item:
        case bool() | None | list() | dict():
            return None
        case str() as text:
            return text
        case other:
            return str(other)


def _coerce_flagged(value: object) -> tuple[str, ...]:
    """Keep string items and stringify numbers. Anything that is not a list yields ()."""
    match value:
        case list() as items:
            return tuple(filter(lambda i: i is not None, map(_coerce_item, items)))
        case _:
            return ()


def _coerce_explanation(value: object) -> str:
    match value:
        case str() as text:
            return text
        case None:
            return ""
        case other:
            return str(other)


def parse_completion(raw: str, *, keep_raw: bool = False) -> ParseOutcome:
    """Strictly parse a completion. keep_raw marks the image variant, which keeps extractedText.

    Only unparseable JSON or an unrecognized status degrades. Once the status is
    known, the other fields are coerced so the verdict is never discarded.
    """
    try:
        data = json.loads(raw)
    except (ValueError, TypeError, RecursionError) as exc:
        return _fallback(raw, f"invalid JSON: {exc}", keep_raw)

    match data:
        case dict():
            pass
        case _:
            return _fallback(raw, "not a JSON object", keep_raw)

    match _parse_status(data.get("status")):
        case None:
            return _fallback(raw, f"unknown status {data.get('status')!r}", keep_raw)
        case status:
            pass

    match (keep_raw, data.get("extractedText")):
        case (True, str() as text):
            extracted_text = text
        case _:
            extracted_text = None

    return Validated(
        AnalysisResult(
            status=status,
            flagged_ingredients=_coerce_flagged(data.get("flaggedIngredients")),
            explanation=_coerce_explanation(data.get("explanation")),
            extracted_text=extracted_text,
        )
    )


def normalize(raw: str, *, keep_raw: bool = False) -> AnalysisResult:
    return parse_completion(raw, keep_raw=keep_raw).result
