"""
Session Store - Keyed storage of in-progress sessions

Responsibilities:
- Hold at most one Session per identity
- Remember the operator name per identity across sessions

Design principles:
- Pure keyed store, no validation or traversal logic
- The at-most-one invariant is kept by callers (create overwrites)
- In-memory, single process; nothing survives a restart
- Injected into the Dialogue Manager (no module-level instance)
"""

import logging
from typing import Dict, Optional

from dental_intake.core.session_state import Session
from dental_intake.utils.conversation_modes import LifecycleState

logger = logging.getLogger(__name__)


class SessionStore:
    """In-memory map of identity -> Session"""

    def __init__(self):
        self._sessions: Dict[str, Session] = {}
        self._operator_names: Dict[str, str] = {}
        logger.info("Session Store initialized (in-memory)")

    def create(
        self,
        identity: str,
        carry_over_operator_name: Optional[str] = None,
        lifecycle_state: LifecycleState = LifecycleState.AWAITING_OPERATOR_NAME
    ) -> Session:
        """
        Insert a fresh session, replacing any existing one.

        Callers must check exists() first when replacement is not intended.

        Args:
            identity: Opaque user key
            carry_over_operator_name: Operator name to carry into the session
            lifecycle_state: Initial lifecycle state

        Returns:
            Session: The inserted session
        """
        if identity in self._sessions:
            logger.warning(f"Overwriting existing session for {identity}")

        session = Session(
            identity=identity,
            lifecycle_state=lifecycle_state,
            operator_name=carry_over_operator_name,
        )
        self._sessions[identity] = session

        logger.info(f"Created session for {identity} ({lifecycle_state.value})")
        return session

    def get(self, identity: str) -> Optional[Session]:
        return self._sessions.get(identity)

    def exists(self, identity: str) -> bool:
        return identity in self._sessions

    def delete(self, identity: str) -> bool:
        """
        Remove the session for an identity.

        Returns:
            bool: True if a session was removed
        """
        removed = self._sessions.pop(identity, None) is not None
        if removed:
            logger.info(f"Deleted session for {identity}")
        return removed

    def save(self, session: Session) -> None:
        """Put a session object back under its identity (used for rollback)."""
        self._sessions[session.identity] = session

    def remember_operator(self, identity: str, name: str) -> None:
        self._operator_names[identity] = name

    def operator_name(self, identity: str) -> Optional[str]:
        return self._operator_names.get(identity)

    def count(self) -> int:
        return len(self._sessions)
