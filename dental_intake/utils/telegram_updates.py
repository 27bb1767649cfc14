"""
Telegram update demultiplexing.

Turns a raw Bot API update (webhook JSON) into one inbound event.
Identity is the sender's user id as a string. Messages starting with
'/' that are not known commands are dropped.
"""

import logging
from dataclasses import dataclass
from typing import Optional

from dental_intake.commands import Cancel, ChoiceSelected, Greet, InboundEvent, NewEntry, TextReceived

logger = logging.getLogger(__name__)

COMMANDS = {
    '/start': Greet,
    '/newpatient': NewEntry,
    '/exit': Cancel,
}


@dataclass(frozen=True)
class DemuxedUpdate:
    """
    Attributes:
        event: Inbound event for the Dialogue Manager
        chat_id: Chat to reply to
        callback_query_id: Set for button presses (must be acknowledged)
    """
    event: InboundEvent
    chat_id: Optional[int] = None
    callback_query_id: Optional[str] = None


def _command_name(text: str) -> str:
    # '/start@MyBot arg' -> '/start'
    return text.split()[0].split('@')[0].lower()


def demux_update(update: dict) -> Optional[DemuxedUpdate]:
    """
    Map a Telegram update to an inbound event.

    Args:
        update: Update object as delivered to the webhook

    Returns:
        DemuxedUpdate, or None for updates the bot does not handle
        (edited messages, stickers, channel posts)
    """
    if not isinstance(update, dict):
        return None

    callback = update.get('callback_query')
    if callback:
        sender = callback.get('from') or {}
        if 'id' not in sender:
            return None
        chat_id = ((callback.get('message') or {}).get('chat') or {}).get('id')
        return DemuxedUpdate(
            event=ChoiceSelected(identity=str(sender['id']), token=callback.get('data') or ''),
            chat_id=chat_id,
            callback_query_id=callback.get('id'),
        )

    message = update.get('message')
    if not message:
        logger.debug(f"Unhandled update type: {sorted(update.keys())}")
        return None

    sender = message.get('from') or {}
    text = message.get('text')
    if 'id' not in sender or text is None:
        return None

    identity = str(sender['id'])
    chat_id = (message.get('chat') or {}).get('id')

    if text.startswith('/'):
        command = COMMANDS.get(_command_name(text))
        if command is None:
            logger.debug(f"Unknown command {text.split()[0]!r} from {identity}, ignored")
            return None
        return DemuxedUpdate(event=command(identity=identity), chat_id=chat_id)

    return DemuxedUpdate(event=TextReceived(identity=identity, text=text), chat_id=chat_id)
