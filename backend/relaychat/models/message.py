"""Message ORM model."""

from sqlalchemy import Boolean, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from relaychat.models.base import Base, CreatedAtMixin, IdMixin


class Message(Base, IdMixin, CreatedAtMixin):
    """Stored chat message from either the user or the bot."""

    __tablename__ = "messages"

    content: Mapped[str] = mapped_column(Text, nullable=False)
    is_bot: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    conversation_id: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)
    user_id: Mapped[str | None] = mapped_column(String(255), index=True, nullable=True)
