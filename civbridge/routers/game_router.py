import logging

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse
from pydantic import ValidationError

from civbridge.errors import EmptyActionBatch, InvalidSigner, NoSession, UnknownActionKind
from civbridge.schemas import (
    ErrorResponse,
    ForfeitRequest,
    GameSnapshot,
    SetupResponse,
    TurnRequest,
    TxAck,
)
from civbridge.services.session import SessionStore

logger = logging.getLogger(__name__)

router = APIRouter()

# caller mistakes; everything else is reported as a server-side failure
INPUT_ERRORS = (InvalidSigner, EmptyActionBatch, UnknownActionKind, NoSession, ValidationError)
ERROR_RESPONSES = {400: {"model": ErrorResponse}, 500: {"model": ErrorResponse}}


def get_store(request: Request) -> SessionStore:
    return request.app.state.store


def error_response(op: str, e: Exception) -> JSONResponse:
    if isinstance(e, INPUT_ERRORS):
        status = 400
        logger.info("%s rejected: %s", op, e)
    else:
        status = 500
        logger.error("%s error: %s", op, e, exc_info=not hasattr(e, "payload"))
    return JSONResponse(status_code=status, content={"error": str(e)})


@router.post("/setup", response_model=SetupResponse, responses=ERROR_RESPONSES)
async def setup(store: SessionStore = Depends(get_store)):
    try:
        return await store.setup()
    except Exception as e:
        return error_response("setup", e)


@router.get("/state", response_model=GameSnapshot, responses=ERROR_RESPONSES)
async def state(store: SessionStore = Depends(get_store)):
    try:
        return await store.state()
    except Exception as e:
        return error_response("state", e)


@router.post("/turn", response_model=TxAck, responses=ERROR_RESPONSES)
async def submit_turn(req: TurnRequest, store: SessionStore = Depends(get_store)):
    try:
        return await store.submit_turn(req.player, req.actions)
    except Exception as e:
        return error_response("turn", e)


@router.post("/actions", response_model=TxAck, responses=ERROR_RESPONSES)
async def submit_actions(req: TurnRequest, store: SessionStore = Depends(get_store)):
    try:
        return await store.submit_actions(req.player, req.actions)
    except Exception as e:
        return error_response("actions", e)


@router.post("/forfeit", response_model=TxAck, response_model_exclude_none=True, responses=ERROR_RESPONSES)
async def forfeit(req: ForfeitRequest, store: SessionStore = Depends(get_store)):
    try:
        return await store.forfeit(req.player)
    except Exception as e:
        return error_response("forfeit", e)
