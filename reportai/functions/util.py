# --- Utility Functions ---
import io
import logging
from typing import Any, Dict, List

from langchain_ollama import ChatOllama
from PyPDF2 import PdfReader
from PyPDF2.errors import PdfReadError

from reportai.config import Settings
from reportai.errors import UpstreamUnavailable

logger = logging.getLogger(__name__)


def get_text_from_pdf(data: bytes) -> str:
    """
    Extract text from PDF bytes. Pages whose extract_text() fails or returns
    None contribute nothing; an unreadable file raises UpstreamUnavailable.
    """
    try:
        pdf_reader = PdfReader(io.BytesIO(data))
        pages = pdf_reader.pages
    except (PdfReadError, ValueError, OSError) as e:
        raise UpstreamUnavailable(f"Failed to read PDF: {e}") from e

    text_parts = []
    for index, page in enumerate(pages):
        try:
            page_text = page.extract_text()
        except Exception:
            logger.warning("Could not extract text from page %d", index, exc_info=True)
            continue
        if page_text:
            text_parts.append(page_text)
    return "\n".join(text_parts)


def build_llm(settings: Settings) -> ChatOllama:
    """Create the chat model described by the settings."""
    kwargs: Dict[str, Any] = {
        "model": settings.llm_model,
        "client_kwargs": {"timeout": settings.llm_timeout_seconds},
    }
    if settings.llm_base_url:
        kwargs["base_url"] = settings.llm_base_url
    return ChatOllama(**kwargs)


def get_llm_response(llm, prompt: str) -> str:
    """Call the chat model and return its textual content (defensive)."""
    try:
        response = llm.invoke(prompt)
    except Exception as e:
        logger.exception("LLM call failed")
        raise UpstreamUnavailable("Model request failed") from e
    content = getattr(response, "content", response)
    if isinstance(content, list):
        # Some chat models return content blocks instead of a plain string.
        content = "".join(
            block.get("text", "") if isinstance(block, dict) else str(block)
            for block in content
        )
    return content if isinstance(content, str) else str(content or "")


def render_differences_text(summary: str, differences: List[str]) -> str:
    """Plain-text form of a comparison, reused as chat context."""
    return f"Summary of differences: {summary}\nKey differences:\n- " + "\n- ".join(differences)
