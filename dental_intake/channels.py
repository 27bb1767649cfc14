"""
Outbound channels.

The Dialogue Manager only calls send_prompt() and present_choices().
Both are fire-and-forget: delivery errors are logged here and never
reach the state machine.
"""

import logging
import threading
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence

import requests

from dental_intake.contracts import ChoiceButton

logger = logging.getLogger(__name__)


class OutboundChannel(ABC):
    """Operator-facing output"""

    @abstractmethod
    def send_prompt(self, identity: str, text: str) -> None:
        ...

    @abstractmethod
    def present_choices(self, identity: str, text: str, buttons: Sequence[ChoiceButton]) -> None:
        ...


class TelegramChannel(OutboundChannel):
    """
    Telegram Bot API over HTTPS.

    Identities are Telegram user ids; the chat to reply to is learned
    from inbound updates (remember_chat). Private chats share the id,
    so the identity itself is the fallback chat id.
    """

    def __init__(
        self,
        token: str,
        api_base: str = "https://api.telegram.org",
        timeout: float = 10.0,
        http: Optional[requests.Session] = None
    ):
        if not token:
            raise ValueError("token must be non-empty string")

        self._base_url = f"{api_base.rstrip('/')}/bot{token}"
        self.timeout = timeout
        self.http = http or requests.Session()
        self._chats: Dict[str, int] = {}
        self._lock = threading.Lock()
        logger.info("Telegram channel initialized")

    def remember_chat(self, identity: str, chat_id: int) -> None:
        with self._lock:
            self._chats[identity] = chat_id

    def chat_for(self, identity: str):
        with self._lock:
            return self._chats.get(identity, identity)

    def send_prompt(self, identity: str, text: str) -> None:
        self._call("sendMessage", {"chat_id": self.chat_for(identity), "text": text})

    def present_choices(self, identity: str, text: str, buttons: Sequence[ChoiceButton]) -> None:
        keyboard = [[{"text": b.label, "callback_data": b.token}] for b in buttons]
        self._call("sendMessage", {
            "chat_id": self.chat_for(identity),
            "text": text,
            "reply_markup": {"inline_keyboard": keyboard},
        })

    def answer_callback(self, callback_query_id: str) -> None:
        """Acknowledge a button press so the client stops its spinner."""
        self._call("answerCallbackQuery", {"callback_query_id": callback_query_id})

    def _call(self, method: str, payload: dict) -> Optional[dict]:
        url = f"{self._base_url}/{method}"
        try:
            resp = self.http.post(url, json=payload, timeout=self.timeout)
            resp.raise_for_status()
            data = resp.json()
        except (requests.RequestException, ValueError) as e:
            logger.error(f"Telegram {method} failed: {e}")
            return None

        if not data.get("ok", False):
            logger.error(f"Telegram {method} rejected: {data.get('description')}")
            return None

        return data


@dataclass
class SentMessage:
    """One message captured by RecordingChannel."""
    identity: str
    text: str
    buttons: List[ChoiceButton] = field(default_factory=list)

    @property
    def tokens(self) -> List[str]:
        return [b.token for b in self.buttons]


class RecordingChannel(OutboundChannel):
    """Keeps every outbound message in memory (console harness and tests)."""

    def __init__(self):
        self.messages: List[SentMessage] = []

    def send_prompt(self, identity: str, text: str) -> None:
        self.messages.append(SentMessage(identity, text))

    def present_choices(self, identity: str, text: str, buttons: Sequence[ChoiceButton]) -> None:
        self.messages.append(SentMessage(identity, text, list(buttons)))

    @property
    def last(self) -> Optional[SentMessage]:
        return self.messages[-1] if self.messages else None

    def for_identity(self, identity: str) -> List[SentMessage]:
        return [m for m in self.messages if m.identity == identity]

    def clear(self) -> None:
        self.messages.clear()
