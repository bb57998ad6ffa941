from moderation.services.message_service import MessageService
from moderation.services.reply_workflow import ReplyWorkflow
from moderation.services.session_aggregator import SessionAggregator
from moderation.services.session_timeline import SessionTimeline

__all__ = [
    "MessageService",
    "ReplyWorkflow",
    "SessionAggregator",
    "SessionTimeline",
]
