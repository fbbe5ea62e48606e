"""Chat endpoint — governed RAG question answering."""

import json
import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from src.api.client_ip import get_client_ip, rate_limit_headers, retry_after_seconds
from src.api.deps import get_pipeline
from src.api.models import ChatRequest, ChatResponse, ErrorResponse, RateLimitedResponse
from src.errors import TIMEOUT
from src.generation.model_catalog import AVAILABLE_MODELS
from src.request_pipeline import PipelineOutcome, PipelineResult, RequestPipeline

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/chat", tags=["chat"])

_STATUS = {
    PipelineOutcome.BLOCKED: 429,
    PipelineOutcome.RATE_LIMITED: 429,
    PipelineOutcome.INVALID: 400,
    PipelineOutcome.FAILED: 500,
}


@router.post(
    "",
    response_model=ChatResponse,
    responses={
        400: {"model": ErrorResponse},
        429: {"model": RateLimitedResponse},
        500: {"model": ErrorResponse},
        504: {"model": ErrorResponse},
    },
)
async def chat(request: Request, pipeline: RequestPipeline = Depends(get_pipeline)):
    """Answer a food question using RAG over the knowledge base."""
    client_ip = get_client_ip(request.headers)

    # Blocked and rate-limited clients are turned away before the body is read
    admission = await pipeline.admit(client_ip)
    if admission.outcome != PipelineOutcome.ADMITTED:
        return _respond(admission, client_ip)

    try:
        body = await request.json()
    except (json.JSONDecodeError, UnicodeDecodeError):
        body = None

    query = body.get("query") if isinstance(body, dict) else None
    if not query or not isinstance(query, str):
        return JSONResponse(
            {"error": "Missing or invalid 'query' parameter"},
            status_code=400,
            headers=rate_limit_headers(admission.rate_limit),
        )

    model_id = body.get("modelId")
    if model_id is not None and not isinstance(model_id, str):
        return JSONResponse(
            {"error": "Invalid 'modelId' parameter"},
            status_code=400,
            headers=rate_limit_headers(admission.rate_limit),
        )
    req = ChatRequest(query=query, model_id=model_id)

    result = await pipeline.answer(admission, req.query, req.model_id)
    return _respond(result, client_ip)


def _respond(result: PipelineResult, client_ip: str) -> JSONResponse:
    headers = rate_limit_headers(result.rate_limit) if result.rate_limit else {}

    if result.ok:
        headers["X-Cache"] = "HIT" if result.outcome == PipelineOutcome.CACHE_HIT else "MISS"
        return JSONResponse(result.payload, headers=headers)

    if result.outcome == PipelineOutcome.RATE_LIMITED:
        rate = result.rate_limit
        headers["Retry-After"] = str(retry_after_seconds(rate))
        return JSONResponse(
            {
                "error": result.error,
                "limit": rate.limit,
                "remaining": rate.remaining,
                "resetEpochSeconds": rate.reset_epoch_seconds,
            },
            status_code=429,
            headers=headers,
        )

    status = _STATUS[result.outcome]
    if result.outcome == PipelineOutcome.FAILED:
        logger.error("Chat request failed for %s: %s", client_ip, result.error)
        if result.error_category == TIMEOUT:
            status = 504
    return JSONResponse({"error": result.error}, status_code=status, headers=headers)


@router.get("")
def chat_usage():
    """Describe the chat endpoint (doubles as a liveness check)."""
    return {
        "status": "ok",
        "endpoint": "/api/chat",
        "method": "POST",
        "description": "RAG Food Knowledge Base Query API",
        "usage": {
            "query": "string (required) - Your food-related question",
            "modelId": "string (optional) - "
            + " or ".join(f"'{m.id}'" for m in AVAILABLE_MODELS),
        },
        "models": [
            {"id": m.id, "label": m.label, "description": m.description}
            for m in AVAILABLE_MODELS
        ],
    }
