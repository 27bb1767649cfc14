"""
Session State - One in-progress intake submission

Responsibilities:
- Store patient data, completed teeth, the in-progress tooth and
  examination data, each with its cursor
- Store the lifecycle state and the edit target
- Minimal API - pure data storage, no traversal logic

Design principles:
- Teeth as a list (not dict) - preserves entry order, which is row order
- Flat field structure inside each group (field key -> verbatim string)
- No validation of values (Session is a dumb container)

API Philosophy:
- Session = dumb data container
- Field Selector = which field comes next
- Dialogue Manager = smart coordinator (owns every transition)

CRITICAL: Tooth number vs list index
- Tooth numbers shown to the operator are 1-indexed: Gigi ke-1, ke-2, ...
- Session.teeth is 0-indexed storage; EditTarget.tooth_index is 0-indexed
    number = tooth_index + 1
"""

import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from dental_intake.contracts import EditTarget
from dental_intake.utils.conversation_modes import EditGroup, LifecycleState

logger = logging.getLogger(__name__)


@dataclass
class Session:
    """Mutable state of one identity's submission"""

    identity: str
    lifecycle_state: LifecycleState = LifecycleState.AWAITING_OPERATOR_NAME
    operator_name: Optional[str] = None

    # Patient group
    patient_data: Dict[str, str] = field(default_factory=dict)
    patient_cursor: int = 0

    # Tooth group (repeatable)
    teeth: List[Dict[str, str]] = field(default_factory=list)
    current_tooth: Dict[str, str] = field(default_factory=dict)
    tooth_cursor: int = 0

    # Examination group
    examination_data: Dict[str, str] = field(default_factory=dict)
    examination_cursor: int = 0

    edit_target: Optional[EditTarget] = None

    # ========================
    # Private Helpers
    # ========================

    def _validate_tooth_index(self, tooth_index: int) -> None:
        """
        Validate that a completed tooth exists.

        Raises:
            ValueError: If tooth_index is out of range
        """
        if tooth_index < 0 or tooth_index >= len(self.teeth):
            raise ValueError(f"Tooth {tooth_index + 1} does not exist")

    # ========================
    # Cursors
    # ========================

    def active_cursor(self) -> Optional[int]:
        """
        Cursor matching the lifecycle state.

        Returns:
            int for the three collecting states, None otherwise
        """
        if self.lifecycle_state == LifecycleState.COLLECTING_PATIENT:
            return self.patient_cursor
        if self.lifecycle_state == LifecycleState.COLLECTING_SUBRECORD:
            return self.tooth_cursor
        if self.lifecycle_state == LifecycleState.COLLECTING_EXAMINATION:
            return self.examination_cursor
        return None

    # ========================
    # Field writes
    # ========================

    def set_patient_field(self, field_key: str, value: str) -> None:
        self.patient_data[field_key] = value
        logger.debug(f"Session {self.identity}: patient.{field_key} = {value!r}")

    def set_examination_field(self, field_key: str, value: str) -> None:
        self.examination_data[field_key] = value
        logger.debug(f"Session {self.identity}: examination.{field_key} = {value!r}")

    def set_current_tooth_field(self, field_key: str, value: str) -> None:
        self.current_tooth[field_key] = value
        logger.debug(
            f"Session {self.identity}: tooth {len(self.teeth) + 1}.{field_key} = {value!r}"
        )

    def set_tooth_field(self, tooth_index: int, field_key: str, value: str) -> None:
        """
        Overwrite a field of a completed tooth.

        Args:
            tooth_index: 0-based index into teeth
            field_key: Tooth field key
            value: New value (verbatim)

        Raises:
            ValueError: If tooth_index doesn't exist
        """
        self._validate_tooth_index(tooth_index)
        self.teeth[tooth_index][field_key] = value
        logger.debug(f"Session {self.identity}: tooth {tooth_index + 1}.{field_key} = {value!r}")

    def get_tooth(self, tooth_index: int) -> Dict[str, str]:
        """
        Completed tooth data (copy).

        Raises:
            ValueError: If tooth_index doesn't exist
        """
        self._validate_tooth_index(tooth_index)
        return dict(self.teeth[tooth_index])

    def write(self, target: EditTarget, value: str) -> None:
        """
        Write a value at the location an edit target addresses.

        Raises:
            ValueError: If the target addresses a missing tooth
        """
        if target.group == EditGroup.PATIENT:
            self.set_patient_field(target.field_key, value)
        elif target.group == EditGroup.EXAMINATION:
            self.set_examination_field(target.field_key, value)
        else:
            self.set_tooth_field(target.tooth_index, target.field_key, value)

    def read(self, target: EditTarget, default: Any = None) -> Any:
        """Value stored at an edit target's location, or default."""
        if target.group == EditGroup.PATIENT:
            return self.patient_data.get(target.field_key, default)
        if target.group == EditGroup.EXAMINATION:
            return self.examination_data.get(target.field_key, default)
        if target.tooth_index is None or not 0 <= target.tooth_index < len(self.teeth):
            return default
        return self.teeth[target.tooth_index].get(target.field_key, default)

    # ========================
    # Tooth lifecycle
    # ========================

    def start_new_tooth(self) -> None:
        """Reset the in-progress tooth and its cursor."""
        self.current_tooth = {}
        self.tooth_cursor = 0

    def commit_current_tooth(self) -> Optional[int]:
        """
        Append the in-progress tooth to teeth (repeat-decision boundary only).

        Returns:
            int: 0-based index of the appended tooth, or None if the
                 in-progress tooth was empty and nothing was appended
        """
        if not self.current_tooth:
            self.start_new_tooth()
            return None

        self.teeth.append(self.current_tooth)
        tooth_index = len(self.teeth) - 1
        self.start_new_tooth()

        logger.info(f"Session {self.identity}: committed tooth {tooth_index + 1}")
        return tooth_index

    @property
    def tooth_count(self) -> int:
        return len(self.teeth)

    # ========================
    # Editing
    # ========================

    def begin_edit(self, target: EditTarget) -> None:
        self.edit_target = target
        self.lifecycle_state = LifecycleState.EDITING

    def finish_edit(self) -> None:
        self.edit_target = None
        self.lifecycle_state = LifecycleState.CONFIRMING

    # ========================
    # Utility Methods
    # ========================

    def get_summary_stats(self) -> Dict[str, Any]:
        """
        Get summary statistics (for debugging/logging).

        Returns:
            dict: Summary of current state
        """
        return {
            'identity': self.identity,
            'lifecycle_state': self.lifecycle_state.value,
            'patient_fields': len(self.patient_data),
            'teeth': len(self.teeth),
            'current_tooth_fields': len(self.current_tooth),
            'examination_fields': len(self.examination_data),
            'editing': self.edit_target is not None,
        }
