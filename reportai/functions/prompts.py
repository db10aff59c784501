"""Instruction text sent to the model for each operation."""

from reportai.config import (
    ANALYZE_INPUT_CHARS,
    CHAT_COMPARE_DIFF_CHARS,
    CHAT_COMPARE_SIDE_CHARS,
    CHAT_CONTEXT_CHARS,
    COMPARE_INPUT_CHARS,
)


def truncate(text: str, limit: int) -> str:
    """Cut text to at most ``limit`` characters (None/empty becomes "")."""
    if not text:
        return ""
    return text[:limit]


def build_analyze_prompt(document_text: str, limit: int = ANALYZE_INPUT_CHARS) -> str:
    return (
        "You are a helpful analyst.\n"
        "Summarize the following report and return STRICT JSON ONLY with the shape:\n"
        '{"summary": string, "keyPoints": string[], "confidence": number}\n'
        "- Do not include markdown, code fences, or extra text.\n"
        "- Keep summary <= 120 words.\n"
        "- Provide up to 5 concise keyPoints.\n"
        "- confidence is a float between 0 and 1.\n\n"
        f"Report text:\n\n{truncate(document_text, limit)}"
    )


def build_compare_prompt(left_text: str, right_text: str, limit: int = COMPARE_INPUT_CHARS) -> str:
    return (
        "Compare the two reports and return STRICT JSON ONLY with shape:\n"
        '{"summary": string, "keyDifferences": string[], "confidence": number}\n'
        "- No markdown or code fences.\n"
        "- Keep summary <= 120 words.\n"
        "- Provide 3-7 concise keyDifferences focusing on changes in numbers, "
        "conclusions, scope, and timelines.\n"
        "- confidence is 0..1.\n\n"
        f"Report A:\n{truncate(left_text, limit)}\n\n"
        f"Report B:\n{truncate(right_text, limit)}"
    )


def build_chat_prompt(question: str, document_text: str, limit: int = CHAT_CONTEXT_CHARS) -> str:
    """Question answering grounded on a single document."""
    return (
        "Answer the user question using ONLY the provided document. "
        "If unknown, say you don't know. Return a concise answer.\n\n"
        f"Document:\n{truncate(document_text, limit)}\n\n"
        f"Question: {question}"
    )


def build_chat_compare_prompt(
    question: str,
    left_text: str,
    right_text: str,
    differences_text: str = "",
    side_limit: int = CHAT_COMPARE_SIDE_CHARS,
    diff_limit: int = CHAT_COMPARE_DIFF_CHARS,
) -> str:
    """Question answering grounded on two reports and their extracted differences."""
    return (
        "You are comparing two reports. Answer the user question using the differences "
        "and original texts. If unknown, say you don't know. Be concise.\n\n"
        f"Differences:\n{truncate(differences_text, diff_limit)}\n\n"
        f"Report A:\n{truncate(left_text, side_limit)}\n\n"
        f"Report B:\n{truncate(right_text, side_limit)}\n\n"
        f"Question: {question}"
    )
