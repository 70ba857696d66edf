import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, AsyncIterator, Dict, List, Optional

from allocation import validate_portfolio
from gemini_client import GeminiClient, GeminiError
from prompts import build_analysis_prompt, build_chat_instruction
from schemas import ChatMessage, Portfolio, PortfolioValidation

logger = logging.getLogger(__name__)

GREETING = "I'm ready to discuss your portfolio analysis. What would you like to know?"
CHAT_FAILURE = "I apologize, but I encountered an error processing your request."


class SessionError(Exception):
    pass


class SessionNotFoundError(SessionError):
    pass


class SessionBusyError(SessionError):
    """A request of the same kind is still outstanding for this session."""


class NotEditableError(SessionError):
    pass


class NotSubmittableError(SessionError):
    def __init__(self, validation: PortfolioValidation):
        super().__init__("Portfolio is not ready for analysis.")
        self.validation = validation


def _new_id() -> str:
    return uuid.uuid4().hex


class ChatSession:
    """Multi-turn conversation about one finished analysis.

    ``messages`` is append-only from the caller's point of view; the only
    removal is of an assistant reply whose stream failed or was abandoned.
    Nothing is recorded until the returned stream is first iterated, so a
    stream dropped before it starts leaves the session untouched.
    """

    def __init__(self, client: GeminiClient, system_instruction: str):
        self.chat = client.open_chat(system_instruction)
        self.messages: List[ChatMessage] = [ChatMessage(id="init", role="assistant", text=GREETING)]
        self.is_streaming = False

    def send_message_stream(self, text: str) -> AsyncIterator[str]:
        if not text.strip():
            raise ValueError("message is empty")
        if self.is_streaming:
            raise SessionBusyError("A reply is still streaming.")
        return self._stream(text)

    def _discard(self, msg: ChatMessage) -> None:
        self.messages = [m for m in self.messages if m is not msg]

    async def _stream(self, text: str) -> AsyncIterator[str]:
        if self.is_streaming:
            raise SessionBusyError("A reply is still streaming.")
        self.is_streaming = True
        self.messages.append(ChatMessage(id=_new_id(), role="user", text=text))
        reply = ChatMessage(id=_new_id(), role="assistant", text="")
        self.messages.append(reply)
        done = False
        try:
            async for chunk in self.chat.stream(text):
                reply.text += chunk
                yield chunk
            done = True
        except GeminiError:
            logger.warning("chat turn failed, dropping partial reply (%d chars)", len(reply.text))
            partial = bool(reply.text)
            self._discard(reply)
            done = True
            self.messages.append(ChatMessage(id=_new_id(), role="assistant", text=CHAT_FAILURE))
            # Streamed consumers already hold the partial text; start the notice on its own line
            yield ("\n\n" + CHAT_FAILURE) if partial else CHAT_FAILURE
        finally:
            if not done:
                logger.info("chat stream closed by consumer")
                self._discard(reply)
            self.is_streaming = False


@dataclass
class AdvisorySession:
    id: str
    portfolio: Portfolio = field(default_factory=Portfolio)
    step: str = "input"
    analysis: str = ""
    is_loading: bool = False
    chat: Optional[ChatSession] = None

    def ensure_editable(self) -> None:
        if self.is_loading:
            raise SessionBusyError("An analysis is in progress.")
        if self.step != "input":
            raise NotEditableError("Reset the session to edit inputs.")

    def update_portfolio(self, **changes: Any) -> Portfolio:
        self.ensure_editable()
        self.portfolio = Portfolio.model_validate({**self.portfolio.model_dump(), **changes})
        return self.portfolio

    def reset(self) -> None:
        self.step = "input"
        self.analysis = ""
        self.chat = None


# Held in process memory only; a restart discards every session.
_sessions: Dict[str, AdvisorySession] = {}


def create_session(portfolio: Optional[Portfolio] = None) -> AdvisorySession:
    session = AdvisorySession(id=_new_id(), portfolio=portfolio or Portfolio())
    _sessions[session.id] = session
    logger.info("session %s created", session.id)
    return session


def get_session(session_id: str) -> AdvisorySession:
    try:
        return _sessions[session_id]
    except KeyError:
        raise SessionNotFoundError(session_id) from None


def delete_session(session_id: str) -> bool:
    return _sessions.pop(session_id, None) is not None


async def run_analysis(session: AdvisorySession, client: GeminiClient) -> str:
    if session.is_loading:
        raise SessionBusyError("An analysis is already in progress.")
    validation = validate_portfolio(session.portfolio)
    if not validation.submittable:
        raise NotSubmittableError(validation)

    session.is_loading = True
    try:
        markdown = await client.generate(build_analysis_prompt(session.portfolio))
    finally:
        session.is_loading = False

    session.analysis = markdown
    session.step = "analysis"
    session.chat = ChatSession(client, build_chat_instruction(session.portfolio, markdown))
    logger.info("session %s analysis ready (%d chars)", session.id, len(markdown))
    return markdown
