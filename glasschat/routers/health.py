import logging

from fastapi import APIRouter
from glasschat.models.schemas import HealthResponse
from glasschat.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


@router.get("/health", response_model=HealthResponse)
async def health_check():
    """Return service health.  If the DB isn't ready yet, return a 200 with
    status="starting" so the desktop shell keeps polling instead of failing."""
    try:
        async with get_db() as db:
            chats = await db.execute("SELECT COUNT(*) FROM chats")
            chat_count = (await chats.fetchone())[0]
            messages = await db.execute("SELECT COUNT(*) FROM messages")
            message_count = (await messages.fetchone())[0]
        return HealthResponse(
            status="healthy",
            chat_count=chat_count,
            message_count=message_count,
        )
    except Exception as exc:
        logger.warning("Health check: DB not ready yet (%s)", exc)
        return HealthResponse(status="starting")
