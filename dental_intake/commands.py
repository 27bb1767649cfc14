"""
Inbound event types for DialogueManager control flow.

Events are the ONLY public interface to DialogueManager.
The transport collaborator demultiplexes raw chat updates into these.

Choice tokens are decoded once, here, into a ChoiceToken. The Dialogue
Manager dispatches on (lifecycle_state, TokenKind) and never inspects
raw token strings.
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from dental_intake.utils.conversation_modes import TokenKind

TOKEN_SEPARATOR = ":"


# Event types

@dataclass(frozen=True)
class Greet:
    """
    Operator greeted the bot (/start).

    No session: create one and ask for the operator name.
    Session exists: offer resume-or-restart.
    """
    identity: str


@dataclass(frozen=True)
class NewEntry:
    """
    Explicit request to start a new submission (/newpatient).
    """
    identity: str


@dataclass(frozen=True)
class Cancel:
    """
    Explicit cancel (/exit). Valid from any state.
    """
    identity: str


@dataclass(frozen=True)
class TextReceived:
    """
    Free-text reply. Stored verbatim, never normalized.
    """
    identity: str
    text: str


@dataclass(frozen=True)
class ChoiceSelected:
    """
    Inline-button press carrying an opaque token.
    """
    identity: str
    token: str


# Event union type for type hints
InboundEvent = Greet | NewEntry | Cancel | TextReceived | ChoiceSelected


# Choice tokens

@dataclass(frozen=True)
class ChoiceToken:
    """
    Decoded inline-button token.

    Attributes:
        kind: Token namespace
        args: Remaining ':'-separated parts, in order

    Examples:
        >>> decode_token('field:kondisiGigi:karies')
        ChoiceToken(kind=<TokenKind.FIELD: 'field'>, args=('kondisiGigi', 'karies'))
        >>> decode_token('bogus') is None
        True
    """
    kind: TokenKind
    args: Tuple[str, ...] = ()

    def arg(self, index: int) -> Optional[str]:
        """Positional argument or None when absent."""
        if 0 <= index < len(self.args):
            return self.args[index]
        return None


def encode_token(kind: TokenKind, *args) -> str:
    """
    Build a token string.

    Args:
        kind: Token namespace
        *args: Parts appended after the namespace (converted with str())

    Returns:
        str: e.g. 'edit:tooth:0:kondisiGigi'
    """
    parts = [kind.value] + [str(a) for a in args]
    return TOKEN_SEPARATOR.join(parts)


def decode_token(token: str) -> Optional[ChoiceToken]:
    """
    Parse a token string.

    Args:
        token: Raw token from the transport

    Returns:
        ChoiceToken, or None if the namespace is unknown or the
        token is not a string
    """
    if not isinstance(token, str) or not token:
        return None

    head, *rest = token.split(TOKEN_SEPARATOR)
    try:
        kind = TokenKind(head)
    except ValueError:
        return None

    return ChoiceToken(kind=kind, args=tuple(rest))
