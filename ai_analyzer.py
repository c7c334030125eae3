import logging
import re
from typing import Any, Dict, List, Optional

from openai import OpenAI

from config import settings

logger = logging.getLogger(__name__)


class SummarizationUnavailable(Exception):
    """No usable summary could be obtained from the language model."""


def _default_client() -> Optional[OpenAI]:
    api_key = settings.summary_api_key
    if not api_key:
        logger.warning("AI Analyzer: missing API key. Set SARVAM_API_KEY or OPENAI_API_KEY to enable summaries.")
        return None

    base_url = settings.summary_api_base_url
    try:
        client = OpenAI(
            api_key=api_key,
            base_url=base_url,
            timeout=settings.summary_timeout_seconds,
            max_retries=1,
        )
        logger.info("AI Analyzer: initialized OpenAI-compatible client for base_url=%s", base_url)
        return client
    except Exception as exc:  # pragma: no cover - best effort logging
        logger.exception("AI Analyzer: failed to initialize client: %s", exc)
        return None


CLIENT = _default_client()
MODEL_NAME = settings.summary_model


SUMMARY_PROMPT_TEMPLATE = """
You are a professional resume analyzer. Please analyze the following resume and provide a clean, well-structured summary without using markdown formatting, asterisks, or bullet points.
{name_hint}
Format your response as follows:

PROFESSIONAL SUMMARY:
[Write a 2-3 sentence overview of the candidate]

KEY SKILLS:
[List the main technical and soft skills in a flowing paragraph]

EXPERIENCE HIGHLIGHTS:
[Summarize the work experience in 2-3 sentences, mentioning key roles and achievements]

EDUCATION:
[Mention the educational background briefly]

CAREER LEVEL:
[Indicate if they are entry-level, mid-level, senior, or expert based on experience]

Please write in a professional, clean format without any special characters, markdown, or formatting symbols.

Resume to analyze:
{resume_text}
"""


def summarize_resume(
    text: str,
    filename: str = "",
    *,
    client: Optional[Any] = None,
    model: Optional[str] = None,
    max_chars: Optional[int] = None,
) -> str:
    """Ask the language model for a plain-text summary of ``text``.

    Raises ``SummarizationUnavailable`` when no client is configured, there
    is nothing to summarize, the call fails, or the model returns no content.
    """
    llm_client = client or CLIENT
    if llm_client is None:
        raise SummarizationUnavailable("AI client not initialised.")
    if not text or not text.strip():
        raise SummarizationUnavailable("No resume text to summarize.")

    excerpt = _prepare_resume_excerpt(text, max_chars or settings.summary_max_chars)
    prompt = SUMMARY_PROMPT_TEMPLATE.format(
        name_hint=_format_name_hint(candidate_name_from_filename(filename)),
        resume_text=excerpt,
    )
    request_kwargs: Dict[str, Any] = {
        "model": model or MODEL_NAME,
        "messages": [{"role": "user", "content": prompt}],
    }

    try:
        response = llm_client.chat.completions.create(**request_kwargs)
    except Exception as exc:
        logger.warning("AI summary request failed for %s: %s", filename or "<unnamed>", exc)
        raise SummarizationUnavailable(f"AI summary request failed: {exc}") from exc

    content = _first_message_content(response)
    logger.debug("AI Analyzer raw response (%s): %s", filename, content)
    if not content.strip():
        raise SummarizationUnavailable("AI summary response was empty.")
    return content


def _first_message_content(response: Any) -> str:
    choices = getattr(response, "choices", None) or []
    if not choices:
        return ""
    message = getattr(choices[0], "message", None)
    return getattr(message, "content", None) or ""


def candidate_name_from_filename(filename: str) -> str:
    """Guess a candidate name from e.g. ``Jane_Doe-Resume.pdf``."""
    if not filename:
        return ""
    name = re.sub(r"[_-]", " ", filename)
    name = re.sub(r"\.pdf$", "", name, flags=re.IGNORECASE)
    name = re.sub(r"resume", "", name, count=1, flags=re.IGNORECASE)
    return " ".join(name.split())


def _format_name_hint(name: str) -> str:
    if not name:
        return ""
    return f"\nNote: The candidate's name appears to be: {name}\n"


SECTION_PRIORITY = (
    "experience",
    "project",
    "employment",
    "work history",
    "technical",
    "technology",
    "skills",
    "summary",
    "objective",
    "profile",
)


def _prepare_resume_excerpt(resume_text: str, max_chars: int = 6000) -> str:
    if not resume_text:
        return ""
    cleaned = resume_text.strip()
    if len(cleaned) <= max_chars:
        return cleaned

    sections = re.split(r"\n{2,}", cleaned)
    prioritized: List[str] = []
    others: List[str] = []
    for section in sections:
        if not section.strip():
            continue
        first_line = section.splitlines()[0].lower()
        if any(keyword in first_line for keyword in SECTION_PRIORITY):
            prioritized.append(section.strip())
        else:
            others.append(section.strip())
    combined = "\n\n".join(prioritized + others)
    if len(combined) > max_chars:
        combined = combined[:max_chars]
    return combined
