from moderation.commands.reply.audit_draft_command import AuditDraftCommand
from moderation.commands.reply.send_reply_command import SendReplyCommand

__all__ = ["AuditDraftCommand", "SendReplyCommand"]
