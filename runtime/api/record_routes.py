"""HTTP routes exposing the content record to a host page.

Exposes endpoints like:

- POST /dac/init                      -> binds the log to the caller domain
- POST /dac/login                     -> warms the logs, registers the name
- POST /dac/record/new-content        -> records a content creation
- POST /dac/record/interaction        -> records a content interaction
- GET  /dac/index/{kind}              -> current index of a log
- GET  /dac/page/{kind}/{page_number} -> one page of a log
- GET  /dac/verify/{kind}             -> index/page consistency report

The record endpoints take `?wait=true` to await the write and return
{success, ref, error}; by default they answer {submitted: true} as soon
as the write has been started.
"""

import logging
from typing import Any, Dict, Optional, Union

from fastapi import APIRouter, HTTPException, Query

from core.log.models import AppendResult, ConsistencyReport, ContentInfo, Index, Page
from core.log.paths import LogKind
from exceptions.exceptions import NotInitializedError, StoreError

from ..agents.content_record_agent import ContentRecordAgent
from ..models.api_models import (
    InitRequest,
    InitResponse,
    LoginResponse,
    SubmitResponse,
)


logger = logging.getLogger(__name__)

# Router for all content record endpoints
router = APIRouter()


# Module-level reference, to be initialized by the server.
_AGENT: Optional[ContentRecordAgent] = None


def init_routes(agent: ContentRecordAgent) -> None:
    """Initialize the module-level agent used by the route handlers."""
    global _AGENT
    _AGENT = agent


def _require_agent() -> ContentRecordAgent:
    if _AGENT is None:
        raise HTTPException(
            status_code=500,
            detail="ContentRecordAgent is not configured on the server.",
        )
    return _AGENT


def _require_initialized() -> ContentRecordAgent:
    agent = _require_agent()
    if not agent.initialized:
        raise HTTPException(status_code=409, detail=str(NotInitializedError()))
    return agent


@router.post("/init", response_model=InitResponse)
async def init(request: InitRequest) -> InitResponse:
    """Bind the content record to the skapp that sent the request."""
    agent = _require_agent()
    try:
        context = await agent.init(request.referrer)
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))

    return InitResponse(
        domain=context.domain,
        index_paths=[context.paths.index_path(kind) for kind in context.paths.kinds],
    )


@router.post("/login", response_model=LoginResponse)
async def login() -> LoginResponse:
    agent = _require_initialized()
    await agent.on_user_login()
    return LoginResponse(scheduled=["ensure_hierarchy", "register_name"])


async def _record(kind: LogKind, info: ContentInfo, wait: bool) -> Union[SubmitResponse, AppendResult]:
    agent = _require_initialized()
    try:
        return await agent.record(kind, info, wait=wait)
    except Exception:
        # Log unexpected errors with a full traceback for debugging.
        logger.exception(
            "[DAC] Unexpected error recording %s entry content=%r",
            kind.value,
            info.content,
        )
        raise


@router.post("/record/new-content", response_model=Union[AppendResult, SubmitResponse])
async def record_new_content(
    info: ContentInfo,
    wait: bool = Query(False, description="Await the write and return its result"),
) -> Union[SubmitResponse, AppendResult]:
    return await _record(LogKind.NEWCONTENT, info, wait)


@router.post("/record/interaction", response_model=Union[AppendResult, SubmitResponse])
async def record_interaction(
    info: ContentInfo,
    wait: bool = Query(False, description="Await the write and return its result"),
) -> Union[SubmitResponse, AppendResult]:
    return await _record(LogKind.INTERACTIONS, info, wait)


@router.get("/index/{kind}")
async def get_index(kind: LogKind) -> Dict[str, Any]:
    agent = _require_initialized()
    try:
        index: Index = await agent.context.engine.read_index(kind)
    except StoreError as e:
        logger.warning("[DAC] Failed to read %s index: %s", kind.value, e)
        raise HTTPException(status_code=502, detail=str(e))
    return index.to_document()


@router.get("/page/{kind}/{page_number}")
async def get_page(kind: LogKind, page_number: int) -> Dict[str, Any]:
    if page_number < 0:
        raise HTTPException(status_code=400, detail="page_number must be non-negative")
    agent = _require_initialized()
    try:
        page: Page = await agent.context.engine.read_page(kind, page_number)
    except StoreError as e:
        logger.warning("[DAC] Failed to read %s page %d: %s", kind.value, page_number, e)
        raise HTTPException(status_code=502, detail=str(e))
    return page.to_document()


@router.get("/verify/{kind}", response_model=ConsistencyReport)
async def verify(kind: LogKind) -> ConsistencyReport:
    agent = _require_initialized()
    try:
        return await agent.context.engine.verify(kind)
    except StoreError as e:
        raise HTTPException(status_code=502, detail=str(e))


# --------------------------------------------------------
# Endpoint: GET /healthz
# --------------------------------------------------------
@router.get("/healthz")
def health_check():
    """
    Simple health check endpoint for uptime monitoring.
    """
    return {"status": "ok"}
