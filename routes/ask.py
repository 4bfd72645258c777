"""
Ask endpoint - the prototype posts a question about the selected lab result.

Forwards `{question, context, history}` to an OpenAI-compatible chat model
and returns `{reply}`. Entirely independent of the relay.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Request
from fastapi.responses import JSONResponse
from langchain_core.messages import AIMessage, BaseMessage, HumanMessage, SystemMessage
from langchain_openai import ChatOpenAI
from pydantic import BaseModel, ValidationError

from relay.config import LLMConfig

logger = logging.getLogger("relay.ask")

router = APIRouter(prefix="/api", tags=["Ask"])

SYSTEM_PROMPT = (
    "You are a diagnostic assistant for lab results. Use only the context "
    "provided (patient, selection, snippet). Do not invent data. Answer "
    "concisely and in plain language. If the context is about a specific lab "
    "result or trend, reference it."
)

# Set by the application factory; None means no credential configured
_chat_model = None


def init_ask_routes(chat_model) -> None:
    """Initialize route dependencies."""
    global _chat_model
    _chat_model = chat_model


def create_chat_model(config: LLMConfig) -> Optional[ChatOpenAI]:
    """Build the upstream chat model, or None when no API key is set."""
    if not config.configured:
        return None
    return ChatOpenAI(
        model=config.model,
        base_url=config.base_url,
        api_key=config.api_key,
    )


def is_llm_configured() -> bool:
    return _chat_model is not None


# =============================================================================
# Request Models
# =============================================================================

class Selection(BaseModel):
    label: Optional[str] = None


class AskContext(BaseModel):
    snippet: Optional[str] = None
    selection: Optional[Selection] = None


class HistoryMessage(BaseModel):
    role: str
    content: str


class AskRequest(BaseModel):
    question: str
    context: Optional[AskContext] = None
    history: Optional[List[HistoryMessage]] = None


def format_question(question: str, context: Optional[AskContext]) -> str:
    """Prefix the question with the selected label and snippet, if any."""
    label = context.selection.label if context and context.selection else None
    snippet = context.snippet if context else None
    ctx_text = "\nContext: ".join(part for part in (label, snippet) if part)
    if not ctx_text:
        return question
    return f"Context: {ctx_text}\n\nQuestion: {question}"


def build_messages(request: AskRequest) -> List[BaseMessage]:
    """System prompt, prior turns, then the formatted question."""
    messages: List[BaseMessage] = [SystemMessage(content=SYSTEM_PROMPT)]
    for turn in request.history or []:
        if turn.role == "assistant":
            messages.append(AIMessage(content=turn.content))
        else:
            messages.append(HumanMessage(content=turn.content))
    messages.append(HumanMessage(content=format_question(request.question, request.context)))
    return messages


def _error(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"error": message})


@router.post("/ask")
async def ask(request: Request) -> JSONResponse:
    """
    Answer a question about the current selection.

    Returns:
        {"reply": str} on success, {"error": str} otherwise
    """
    try:
        body = await request.json()
    except ValueError:
        return _error(400, "Invalid JSON body")

    if not isinstance(body, dict) or not isinstance(body.get("question"), str) or not body["question"]:
        return _error(400, "Missing or invalid question")

    try:
        ask_request = AskRequest.model_validate(body)
    except ValidationError as e:
        return _error(400, f"Invalid request: {e.errors()[0]['msg']}")

    if _chat_model is None:
        return _error(503, "LLM not configured. Set LLM_API_KEY in .env and restart the server.")

    try:
        result = await _chat_model.ainvoke(build_messages(ask_request))
        reply = str(result.content).strip()
    except Exception as e:
        logger.error(f"LLM error: {e}")
        status = getattr(e, "status_code", None) or 500
        return _error(status, str(e) or "Request to AI failed.")

    return JSONResponse(content={"reply": reply})
