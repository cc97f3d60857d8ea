from fastapi import APIRouter, Depends, HTTPException
from glasschat.models.schemas import (
    ChatCreate,
    ChatListResponse,
    ChatResponse,
    ChatTitleUpdate,
    MessageCreate,
    MessageResponse,
    MessageUpdate,
)
from glasschat.services.chat_service import ChatService
from glasschat.dependencies import get_chat_service

router = APIRouter(tags=["chats"])


async def _require_chat(service: ChatService, chat_id: int) -> dict:
    chat = await service.get_chat(chat_id)
    if not chat:
        raise HTTPException(status_code=404, detail="Chat not found")
    return chat


@router.get("/chats", response_model=ChatListResponse)
async def list_chats(service: ChatService = Depends(get_chat_service)):
    chats = await service.list_chats()
    return ChatListResponse(chats=chats)


@router.post("/chats", response_model=ChatResponse)
async def create_chat(
    body: ChatCreate,
    service: ChatService = Depends(get_chat_service),
):
    chat = await service.create_chat(body.title)
    return {**chat, "message_count": 0}


@router.get("/chats/{chat_id}", response_model=ChatResponse)
async def get_chat(chat_id: int, service: ChatService = Depends(get_chat_service)):
    return await _require_chat(service, chat_id)


@router.put("/chats/{chat_id}/title")
async def update_chat_title(
    chat_id: int,
    body: ChatTitleUpdate,
    service: ChatService = Depends(get_chat_service),
):
    await _require_chat(service, chat_id)
    await service.update_chat_title(chat_id, body.title)
    return {"status": "updated"}


@router.delete("/chats/{chat_id}")
async def delete_chat(chat_id: int, service: ChatService = Depends(get_chat_service)):
    await service.delete_chat(chat_id)
    return {"status": "deleted"}


@router.get("/chats/{chat_id}/messages", response_model=list[MessageResponse])
async def get_messages(chat_id: int, service: ChatService = Depends(get_chat_service)):
    await _require_chat(service, chat_id)
    messages = await service.get_chat_messages(chat_id)
    return [m.to_dict() for m in messages]


@router.post("/chats/{chat_id}/messages", response_model=MessageResponse)
async def save_message(
    chat_id: int,
    body: MessageCreate,
    service: ChatService = Depends(get_chat_service),
):
    await _require_chat(service, chat_id)
    message = await service.save_message(chat_id=chat_id, **body.model_dump())
    return message.to_dict()


@router.patch("/messages/{message_id}", response_model=MessageResponse)
async def update_message(
    message_id: int,
    body: MessageUpdate,
    service: ChatService = Depends(get_chat_service),
):
    message = await service.update_message(
        message_id, content=body.content, image_path=body.image_path
    )
    if not message:
        raise HTTPException(status_code=404, detail="Message not found")
    return message.to_dict()


@router.delete("/messages/{message_id}")
async def delete_message(
    message_id: int,
    service: ChatService = Depends(get_chat_service),
):
    await service.delete_message(message_id)
    return {"status": "deleted"}
