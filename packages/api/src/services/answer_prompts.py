# This project was developed with assistance from AI tools.
"""Prompt templates for question extraction and answer generation.

Keeps prompt construction separate from the services so prompts can be
reviewed and iterated on independently.
"""

import json

# Characters of checklist text sent to the extraction model.
MAX_EXTRACTION_CHARS = 60_000

_EXTRACTION_SYSTEM = """\
You convert vendor security and compliance checklists into a list of questions.

Return ONLY a JSON object of the form:
{"questions": ["<question 1>", "<question 2>", ...]}

Rules:
- Keep the checklist's original order.
- One entry per question or requirement the vendor must answer.
- Rewrite fragments ("Encryption at rest?") as complete questions.
- Skip headings, instructions, signature blocks and page furniture.
- If the document contains no questions, return {"questions": []}.
"""

_ANSWER_SYSTEM = """\
You are a compliance analyst answering security questionnaire items on behalf
of a vendor. Answer concisely and factually, in the vendor's voice, using only
the supplied context. When the context does not support a confident answer,
say what evidence would be needed and lower your confidence.

Return ONLY a JSON object of the form:
{"answer": "<answer text>", "confidence": <number between 0 and 1>}
"""


def build_extraction_prompt(text: str) -> list[dict[str, str]]:
    """Build messages asking the model to list the checklist's questions."""
    return [
        {"role": "system", "content": _EXTRACTION_SYSTEM},
        {
            "role": "user",
            "content": f"Checklist text:\n\n{text[:MAX_EXTRACTION_CHARS]}",
        },
    ]


def build_answer_prompt(question_text: str, context: str) -> list[dict[str, str]]:
    """Build messages for a single answer request."""
    user_parts = []
    if context:
        user_parts.append(f"Context:\n{context}")
    user_parts.append(f"Question:\n{question_text}")
    return [
        {"role": "system", "content": _ANSWER_SYSTEM},
        {"role": "user", "content": "\n\n".join(user_parts)},
    ]


def build_generation_context(
    checklist_name: str | None,
    evidence: list[dict[str, str | int | None]],
) -> str:
    """Request-scoped context string: checklist name plus evidence descriptors.

    ``evidence`` items carry ``filename``, ``file_type`` and, when linked,
    ``question_id``. Nothing here is persisted.
    """
    lines = []
    if checklist_name:
        lines.append(f"Checklist: {checklist_name}")
    if evidence:
        lines.append("Available evidence files:")
        lines.extend(f"- {json.dumps(item, sort_keys=True)}" for item in evidence)
    return "\n".join(lines)
