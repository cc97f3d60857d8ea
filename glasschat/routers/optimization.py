import logging
from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Query

from glasschat.config import get_settings
from glasschat.models.domain import Message
from glasschat.models.schemas import CompressRequest, ContextRequest, PreviewRequest
from glasschat.services.chat_service import ChatService
from glasschat.services.optimization_service import CompressionError, OptimizationService
from glasschat.dependencies import get_chat_service, get_optimization_service

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/chats/{chat_id}", tags=["optimization"])


async def _load_messages(service: ChatService, chat_id: int) -> list[Message]:
    if not await service.get_chat(chat_id):
        raise HTTPException(status_code=404, detail="Chat not found")
    return await service.get_chat_messages(chat_id)


@router.get("/tokens")
async def get_chat_tokens(
    chat_id: int,
    provider: Optional[str] = Query(default=None),
    model: Optional[str] = Query(default=None),
    chat_service: ChatService = Depends(get_chat_service),
    optimizer: OptimizationService = Depends(get_optimization_service),
):
    settings = get_settings()
    messages = await _load_messages(chat_service, chat_id)
    return optimizer.get_chat_token_stats(
        messages,
        provider or settings.default_provider,
        model or settings.default_model,
    )


@router.post("/optimization/preview")
async def get_optimization_preview(
    chat_id: int,
    body: Optional[PreviewRequest] = None,
    chat_service: ChatService = Depends(get_chat_service),
    optimizer: OptimizationService = Depends(get_optimization_service),
):
    settings = get_settings()
    messages = await _load_messages(chat_service, chat_id)
    body = body or PreviewRequest()
    try:
        return optimizer.get_optimization_preview(
            messages,
            body.settings,
            body.fallback_provider or settings.default_provider,
            body.fallback_model or settings.default_model,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))


@router.post("/optimization/compress")
async def compress_chat_history(
    chat_id: int,
    body: Optional[CompressRequest] = None,
    chat_service: ChatService = Depends(get_chat_service),
    optimizer: OptimizationService = Depends(get_optimization_service),
):
    messages = await _load_messages(chat_service, chat_id)
    body = body or CompressRequest()
    try:
        result = await optimizer.compress_chat_history(messages, body.threshold, chat_service)
    except CompressionError as e:
        raise HTTPException(
            status_code=500,
            detail={"error": str(e), "operation": e.operation, "message_id": e.message_id},
        )
    return result.to_dict()


@router.post("/optimization/context")
async def plan_send_context(
    chat_id: int,
    body: Optional[ContextRequest] = None,
    chat_service: ChatService = Depends(get_chat_service),
    optimizer: OptimizationService = Depends(get_optimization_service),
):
    """Preview the context and input cost of sending ``text`` next."""
    settings = get_settings()
    history = await _load_messages(chat_service, chat_id)
    body = body or ContextRequest()
    new_message = None
    if body.text or body.image_path:
        new_message = Message(
            id=0, chat_id=chat_id, role="user", content=body.text, image_path=body.image_path
        )
    try:
        return optimizer.plan_send_context(
            history,
            body.settings,
            body.provider or settings.default_provider,
            body.model or settings.default_model,
            new_message=new_message,
        )
    except ValueError as e:
        raise HTTPException(status_code=400, detail=str(e))
