"""Insight records and the builder that turns an upload into one."""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import TYPE_CHECKING, Any, Dict, Optional, Tuple, Union

from analyzer import top_frequent_words

if TYPE_CHECKING:  # pragma: no cover
    from store import InsightStore

logger = logging.getLogger(__name__)

AI_SUMMARY = "ai_summary"
WORD_FREQUENCY = "word_frequency"
DEFAULT_TOP_WORDS = 5


class MalformedRecordError(ValueError):
    """A persisted record does not have the expected shape."""


@dataclass(frozen=True)
class AiSummary:
    text: str

    type = AI_SUMMARY


@dataclass(frozen=True)
class WordFrequency:
    words: Tuple[str, ...]

    type = WORD_FREQUENCY


Insight = Union[AiSummary, WordFrequency]


@dataclass(frozen=True)
class InsightRecord:
    id: str
    filename: str
    upload_date: datetime
    insight: Insight

    @property
    def type(self) -> str:
        return self.insight.type

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {
            "id": self.id,
            "filename": self.filename,
            "uploadDate": format_timestamp(self.upload_date),
            "type": self.insight.type,
        }
        if isinstance(self.insight, AiSummary):
            payload["summary"] = self.insight.text
        else:
            payload["topWords"] = list(self.insight.words)
        return payload

    @classmethod
    def from_dict(cls, payload: Any) -> "InsightRecord":
        if not isinstance(payload, dict):
            raise MalformedRecordError(f"expected an object, got {type(payload).__name__}")
        try:
            record_id = payload["id"]
            filename = payload["filename"]
            raw_date = payload["uploadDate"]
            kind = payload["type"]
        except KeyError as exc:
            raise MalformedRecordError(f"missing field {exc.args[0]!r}") from exc

        if not isinstance(record_id, str) or not record_id:
            raise MalformedRecordError("id must be a non-empty string")
        if not isinstance(filename, str):
            raise MalformedRecordError(f"filename of {record_id} must be a string")

        insight: Insight
        if kind == AI_SUMMARY:
            summary = payload.get("summary")
            if not isinstance(summary, str):
                raise MalformedRecordError(f"{record_id} is an ai_summary without summary text")
            insight = AiSummary(summary)
        elif kind == WORD_FREQUENCY:
            words = payload.get("topWords")
            if not isinstance(words, list) or not all(isinstance(word, str) for word in words):
                raise MalformedRecordError(f"{record_id} is a word_frequency without topWords")
            insight = WordFrequency(tuple(words))
        else:
            raise MalformedRecordError(f"unknown insight type {kind!r} for {record_id}")

        return cls(
            id=record_id,
            filename=filename,
            upload_date=parse_timestamp(raw_date),
            insight=insight,
        )


def utc_now() -> datetime:
    now = datetime.now(timezone.utc)
    return now.replace(microsecond=(now.microsecond // 1000) * 1000)


def format_timestamp(value: datetime) -> str:
    """ISO-8601 in UTC with millisecond precision and a ``Z`` suffix."""
    if value.tzinfo is None:
        value = value.replace(tzinfo=timezone.utc)
    value = value.astimezone(timezone.utc)
    return value.isoformat(timespec="milliseconds").replace("+00:00", "Z")


def parse_timestamp(raw: Any) -> datetime:
    if not isinstance(raw, str):
        raise MalformedRecordError(f"uploadDate must be a string, got {type(raw).__name__}")
    text = raw.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise MalformedRecordError(f"unparsable uploadDate {raw!r}") from exc
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)
    return parsed.astimezone(timezone.utc)


# --- Markdown cleanup ----------------------------------------------------------

_MARKDOWN_RULES = (
    (re.compile(r"\*+"), ""),
    (re.compile(r"^[ \t]*#{1,6}[ \t]+", re.MULTILINE), ""),
    (re.compile(r"`{1,3}"), ""),
    (re.compile(r"^[ \t]*[-•][ \t]*", re.MULTILINE), ""),
)


def clean_ai_summary(text: str) -> str:
    """Strip emphasis, heading, code and bullet markers left by the model."""
    if not text:
        return ""
    cleaned = text
    for pattern, replacement in _MARKDOWN_RULES:
        cleaned = pattern.sub(replacement, cleaned)
    return cleaned.strip()


def build_record(
    document_id: str,
    filename: str,
    extracted_text: str,
    ai_summary: Optional[str],
    *,
    top_words_count: int = DEFAULT_TOP_WORDS,
    now: Optional[datetime] = None,
) -> InsightRecord:
    """Assemble the record for one processed upload.

    A usable AI summary wins; ``None`` or a summary that is empty once the
    markdown is stripped falls back to the most frequent words of
    ``extracted_text``.
    """
    insight: Insight
    cleaned = clean_ai_summary(ai_summary or "")
    if cleaned:
        insight = AiSummary(cleaned)
    else:
        if ai_summary:
            logger.info("AI summary for %s was empty after cleanup; using word frequency", filename)
        insight = WordFrequency(tuple(top_frequent_words(extracted_text or "", top_words_count)))

    return InsightRecord(
        id=document_id,
        filename=filename,
        upload_date=now or utc_now(),
        insight=insight,
    )


def record_insight(
    store: "InsightStore",
    document_id: str,
    filename: str,
    extracted_text: str,
    ai_summary: Optional[str],
    *,
    top_words_count: int = DEFAULT_TOP_WORDS,
) -> InsightRecord:
    """Build the record for an upload and append it to ``store``.

    ``StorageError`` from the store propagates; the record is not stored then.
    """
    record = build_record(
        document_id,
        filename,
        extracted_text,
        ai_summary,
        top_words_count=top_words_count,
    )
    store.append(record)
    logger.info("Stored %s insight %s for %s", record.type, record.id, filename)
    return record
