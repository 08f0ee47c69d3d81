"""ORM models package exports."""

from relaychat.models.base import Base
from relaychat.models.message import Message

__all__ = ["Base", "Message"]
