"""
Health endpoint.
"""

from fastapi import APIRouter, Request

from .ask import is_llm_configured

router = APIRouter(prefix="/api", tags=["Health"])


@router.get("/health")
async def health(request: Request):
    """Health check: LLM credential presence and relay occupancy."""
    llm = is_llm_configured()
    manager = request.app.state.relay_manager
    return {
        "ok": True,
        "llm": llm,
        "message": "LLM configured" if llm else "Set LLM_API_KEY for real AI replies",
        "sessions": manager.session_count,
        "connections": manager.connection_count,
    }
