from moderation.models.message import Message

__all__ = [
    "Message",
]
