# This project was developed with assistance from AI tools.
"""Checklist question extractor.

Two-stage extraction: text extraction (pymupdf for PDFs, UTF-8 decode for
text formats) then question listing (LLM). Raises ``QuestionExtractionError``
on any failure so the checklist store can park the checklist in ``error``.
"""

import json
import logging
import re

import fitz  # pymupdf

from ..inference.client import get_task_completion
from .answer_prompts import build_extraction_prompt

logger = logging.getLogger(__name__)

PDF_CONTENT_TYPE = "application/pdf"
TEXT_CONTENT_TYPES = {"text/plain", "text/markdown", "text/csv"}

# Matches ```json ... ``` or ``` ... ``` fences that LLMs often wrap around JSON.
_FENCE_RE = re.compile(r"^```(?:json)?\s*\n?(.*?)\n?\s*```$", re.DOTALL)


class QuestionExtractionError(Exception):
    """Raised when a checklist cannot be turned into questions."""


def _strip_json_fences(text: str) -> str:
    """Remove markdown code fences wrapping JSON output."""
    stripped = text.strip()
    m = _FENCE_RE.match(stripped)
    return m.group(1).strip() if m else stripped


def parse_json_reply(raw: str) -> dict:
    """Parse an LLM JSON reply, tolerating code fences.

    Raises ValueError when the reply is not a JSON object.
    """
    parsed = json.loads(_strip_json_fences(raw))
    if not isinstance(parsed, dict):
        raise ValueError("expected a JSON object")
    return parsed


class QuestionExtractor:
    """Turns an uploaded checklist file into an ordered list of question strings."""

    async def extract(self, file_data: bytes, content_type: str) -> list[str]:
        text = self._extract_text(file_data, content_type)
        if not text.strip():
            # Scanned PDFs and empty files have nothing to list.
            return []

        try:
            raw = await get_task_completion("question_extraction", build_extraction_prompt(text))
            payload = parse_json_reply(raw)
        except ValueError as exc:
            # json.JSONDecodeError is a ValueError
            raise QuestionExtractionError("Model returned malformed question list") from exc
        except Exception as exc:
            raise QuestionExtractionError(f"Question extraction call failed: {exc}") from exc

        questions = payload.get("questions")
        if not isinstance(questions, list):
            raise QuestionExtractionError("Model reply has no 'questions' list")

        cleaned = [str(q).strip() for q in questions if str(q).strip()]
        logger.info("Extracted %d questions from %d chars", len(cleaned), len(text))
        return cleaned

    def _extract_text(self, file_data: bytes, content_type: str) -> str:
        if content_type == PDF_CONTENT_TYPE:
            return self._extract_text_from_pdf(file_data)
        if content_type in TEXT_CONTENT_TYPES:
            return file_data.decode("utf-8", errors="replace")
        raise QuestionExtractionError(f"Unsupported checklist type: {content_type}")

    def _extract_text_from_pdf(self, file_data: bytes) -> str:
        """Use pymupdf to extract text from all pages."""
        try:
            pdf = fitz.open(stream=file_data, filetype="pdf")
            text_parts = [page.get_text() for page in pdf]
            pdf.close()
        except Exception as exc:
            raise QuestionExtractionError("Checklist PDF could not be opened") from exc
        return "\n".join(text_parts).strip()


# ---------------------------------------------------------------------------
# Module-level singleton
# ---------------------------------------------------------------------------

_extractor: QuestionExtractor | None = None


def init_question_extractor() -> QuestionExtractor:
    """Initialise the singleton (called once from app lifespan)."""
    global _extractor  # noqa: PLW0603
    _extractor = QuestionExtractor()
    logger.info("QuestionExtractor initialised")
    return _extractor


def get_question_extractor() -> QuestionExtractor:
    """Return the initialised QuestionExtractor singleton."""
    if _extractor is None:
        raise RuntimeError(
            "QuestionExtractor not initialised -- call init_question_extractor() first"
        )
    return _extractor
