from typing import Protocol

from glasschat.database import get_db
from glasschat.models.domain import Message, utc_now


class MessageStore(Protocol):
    """What the compression workflow needs from persistence."""

    async def save_message(
        self,
        chat_id: int,
        role: str,
        content: str,
        image_path: str | None = None,
        provider: str | None = None,
        model: str | None = None,
        timestamp: str | None = None,
        optimization_method: str | None = None,
        actual_input_tokens: int = 0,
        actual_cost: float = 0.0,
    ) -> Message:
        ...

    async def delete_message(self, message_id: int) -> None:
        ...


class ChatService:

    async def create_chat(self, title: str = "New Chat") -> dict:
        async with get_db() as db:
            cursor = await db.execute("INSERT INTO chats (title) VALUES (?)", (title,))
            await db.commit()
            chat_id = cursor.lastrowid
            cursor = await db.execute("SELECT * FROM chats WHERE id = ?", (chat_id,))
            row = await cursor.fetchone()
            return dict(row)

    async def list_chats(self) -> list[dict]:
        async with get_db() as db:
            cursor = await db.execute(
                """SELECT c.*, COUNT(m.id) as message_count
                   FROM chats c
                   LEFT JOIN messages m ON m.chat_id = c.id
                   GROUP BY c.id
                   ORDER BY c.updated_at DESC, c.id DESC"""
            )
            rows = await cursor.fetchall()
            return [dict(row) for row in rows]

    async def get_chat(self, chat_id: int) -> dict | None:
        async with get_db() as db:
            cursor = await db.execute(
                """SELECT c.*, COUNT(m.id) as message_count
                   FROM chats c
                   LEFT JOIN messages m ON m.chat_id = c.id
                   WHERE c.id = ?
                   GROUP BY c.id""",
                (chat_id,),
            )
            row = await cursor.fetchone()
            return dict(row) if row else None

    async def get_chat_messages(self, chat_id: int) -> list[Message]:
        async with get_db() as db:
            cursor = await db.execute(
                "SELECT * FROM messages WHERE chat_id = ? ORDER BY timestamp ASC, id ASC",
                (chat_id,),
            )
            rows = await cursor.fetchall()
            return [Message.from_row(row) for row in rows]

    async def get_message(self, message_id: int) -> Message | None:
        async with get_db() as db:
            cursor = await db.execute("SELECT * FROM messages WHERE id = ?", (message_id,))
            row = await cursor.fetchone()
            return Message.from_row(row) if row else None

    async def save_message(
        self,
        chat_id: int,
        role: str,
        content: str,
        image_path: str | None = None,
        provider: str | None = None,
        model: str | None = None,
        timestamp: str | None = None,
        optimization_method: str | None = None,
        actual_input_tokens: int = 0,
        actual_cost: float = 0.0,
    ) -> Message:
        async with get_db() as db:
            cursor = await db.execute(
                """INSERT INTO messages
                   (chat_id, role, content, image_path, provider, model, timestamp,
                    optimization_method, actual_input_tokens, actual_cost)
                   VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?)""",
                (chat_id, role, content, image_path, provider, model,
                 timestamp or utc_now(), optimization_method,
                 actual_input_tokens, actual_cost),
            )
            message_id = cursor.lastrowid
            await db.execute(
                """UPDATE chats SET
                   updated_at = strftime('%Y-%m-%dT%H:%M:%f', 'now'),
                   total_cost = total_cost + ?
                   WHERE id = ?""",
                (actual_cost, chat_id),
            )
            await db.commit()
            cursor = await db.execute("SELECT * FROM messages WHERE id = ?", (message_id,))
            row = await cursor.fetchone()
            return Message.from_row(row)

    async def update_message(
        self,
        message_id: int,
        content: str | None = None,
        image_path: str | None = None,
    ) -> Message | None:
        async with get_db() as db:
            if content is not None:
                await db.execute(
                    "UPDATE messages SET content = ? WHERE id = ?", (content, message_id)
                )
            if image_path is not None:
                # Empty string detaches the image
                await db.execute(
                    "UPDATE messages SET image_path = ? WHERE id = ?",
                    (image_path or None, message_id),
                )
            await db.commit()
            cursor = await db.execute("SELECT * FROM messages WHERE id = ?", (message_id,))
            row = await cursor.fetchone()
            return Message.from_row(row) if row else None

    async def delete_message(self, message_id: int) -> None:
        async with get_db() as db:
            await db.execute("DELETE FROM messages WHERE id = ?", (message_id,))
            await db.commit()

    async def update_chat_title(self, chat_id: int, title: str):
        async with get_db() as db:
            await db.execute(
                "UPDATE chats SET title = ?, updated_at = strftime('%Y-%m-%dT%H:%M:%f', 'now') "
                "WHERE id = ?",
                (title, chat_id),
            )
            await db.commit()

    async def delete_chat(self, chat_id: int):
        async with get_db() as db:
            await db.execute("DELETE FROM messages WHERE chat_id = ?", (chat_id,))
            await db.execute("DELETE FROM chats WHERE id = ?", (chat_id,))
            await db.commit()

    async def get_message_count(self, chat_id: int) -> int:
        async with get_db() as db:
            cursor = await db.execute(
                "SELECT COUNT(*) FROM messages WHERE chat_id = ?", (chat_id,)
            )
            row = await cursor.fetchone()
            return row[0] if row else 0
