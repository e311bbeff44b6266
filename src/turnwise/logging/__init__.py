"""
Conversation logging for Turnwise.

Provides JSONL logging of full conversation history for debugging and analysis.
"""

from turnwise.logging.conversation_logger import ConversationLogger
from turnwise.logging.reader import LogReader

__all__ = [
    "ConversationLogger",
    "LogReader",
]
