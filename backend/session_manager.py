import itertools
import logging
import os
import threading
from datetime import datetime
from enum import Enum
from typing import Dict, List, Optional, Tuple

from exceptions import ServiceNotInitialized, SessionBusy
from models import AssistantMessage, MessageRole, Source

# Set up logging
logger = logging.getLogger(__name__)


class SessionState(str, Enum):
    IDLE = "idle"
    SENDING = "sending"


def format_source_name(source: str) -> str:
    """Display name for a source: last path segment without its extension"""
    base = os.path.basename(source.replace("\\", "/").rstrip("/")) or source
    name, ext = os.path.splitext(base)
    return name if name and ext else base


class AssistantSession:
    """
    One conversation with the compliance assistant.

    Only one question is in flight at a time. Every user message is followed
    by exactly one assistant message: the answer with its sources, or a
    single error reply.
    """

    ERROR_MESSAGE = (
        "I apologize, but I encountered an error while processing your request. "
        "Please make sure the AI service is configured correctly and try again."
    )

    def __init__(self, orchestrator=None, session_id: Optional[str] = None, clock=datetime.now):
        self.session_id = session_id
        self.orchestrator = orchestrator
        self._clock = clock
        self._messages: List[AssistantMessage] = []
        self._ids = itertools.count(1)
        self._state = SessionState.IDLE
        self._lock = threading.Lock()

    @property
    def state(self) -> SessionState:
        return self._state

    @property
    def messages(self) -> Tuple[AssistantMessage, ...]:
        return tuple(self._messages)

    @property
    def input_enabled(self) -> bool:
        return self._state == SessionState.IDLE and self.orchestrator is not None

    def send(self, text: str) -> Optional[AssistantMessage]:
        """
        Ask a question and record the exchange.

        Returns:
            The assistant reply, or None when the input was blank

        Raises:
            SessionBusy: If a previous question is still being answered
        """
        if not text or not text.strip():
            return None

        with self._lock:
            if self._state == SessionState.SENDING:
                raise SessionBusy("A question is already being answered in this session")
            self._state = SessionState.SENDING
            self._append(MessageRole.USER, text)

        try:
            try:
                if self.orchestrator is None:
                    raise ServiceNotInitialized("AI service is not initialized")
                response = self.orchestrator.query(text)
            except Exception as e:
                logger.error(f"Error getting AI response: {e}")
                reply = self._append(MessageRole.ASSISTANT, self.ERROR_MESSAGE, is_error=True)
            else:
                reply = self._append(MessageRole.ASSISTANT, response.answer, sources=list(response.sources))
        finally:
            self._state = SessionState.IDLE

        return reply

    def _append(self, role: MessageRole, content: str,
                sources: Optional[List[Source]] = None,
                is_error: bool = False) -> AssistantMessage:
        message = AssistantMessage(
            id=next(self._ids),
            role=role,
            content=content,
            timestamp=self._clock(),
            sources=sources,
            is_error=is_error,
        )
        self._messages.append(message)
        return message

    def get_conversation_history(self, max_exchanges: int = 2) -> Optional[str]:
        """Format the most recent exchanges as 'User:/Assistant:' lines"""
        if not self._messages or max_exchanges <= 0:
            return None

        recent = self._messages[-max_exchanges * 2:]
        lines = []
        for message in recent:
            speaker = "User" if message.role == MessageRole.USER else "Assistant"
            lines.append(f"{speaker}: {message.content}")
        return "\n".join(lines)

    def render(self) -> str:
        """Plain-text transcript with timestamps and cited sources"""
        blocks = []
        for message in self._messages:
            speaker = "You" if message.role == MessageRole.USER else "Assistant"
            block = [f"[{message.timestamp.strftime('%H:%M:%S')}] {speaker}: {message.content}"]
            if message.sources:
                block.append(f"  Sources ({len(message.sources)}):")
                for source in message.sources:
                    line = f"  - {format_source_name(source.name)}"
                    if source.score is not None:
                        line += f" (score: {round(source.score * 100)}%)"
                    block.append(line)
            blocks.append("\n".join(block))
        return "\n\n".join(blocks)


class SessionManager:
    """Keeps the live assistant sessions, one per mounted conversation view"""

    def __init__(self):
        self.sessions: Dict[str, AssistantSession] = {}
        self.session_counter = 0
        self._lock = threading.Lock()

    def create_session(self, orchestrator=None) -> AssistantSession:
        with self._lock:
            self.session_counter += 1
            session_id = f"session_{self.session_counter}"
            session = AssistantSession(orchestrator, session_id=session_id)
            self.sessions[session_id] = session
        logger.debug(f"Created {session_id}")
        return session

    def get_session(self, session_id: str) -> Optional[AssistantSession]:
        return self.sessions.get(session_id)

    def close_session(self, session_id: str) -> bool:
        """Discard a session; returns False if it did not exist"""
        with self._lock:
            return self.sessions.pop(session_id, None) is not None
