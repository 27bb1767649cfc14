"""
Summary Generator - Confirmation summary and edit menus

Responsibilities:
- Render the confirmation summary of a session as plain text
- Build button lists for the edit menu, a tooth's field menu and
  choice sets

Design principles:
- Deterministic assembly (catalog order, no reordering)
- Missing values shown as '-' (display only, never stored)
- Plain text; transports may add their own formatting
"""

import logging
from typing import Dict, List, Sequence

from dental_intake.commands import encode_token
from dental_intake.contracts import ChoiceButton, FieldDefinition
from dental_intake.core.field_catalog import (
    EXAMINATION_FIELDS,
    PATIENT_FIELDS,
    TOOTH_FIELDS,
    get_choice_set,
)
from dental_intake.core.session_state import Session
from dental_intake.utils.conversation_modes import EditGroup, TokenKind
from dental_intake.utils.messages import BUTTON_LABELS, MessageID, render

logger = logging.getLogger(__name__)

MISSING_VALUE = "-"


class SummaryGenerator:
    """Render session summaries and menus"""

    # ==================== PUBLIC API ====================

    def render_summary(self, session: Session) -> str:
        """
        Render the confirmation summary.

        Args:
            session: Session with all groups collected

        Returns:
            str: Summary text ending with the confirmation question
        """
        lines = [render(MessageID.SUMMARY_HEADER), ""]

        lines.append(render(MessageID.SUMMARY_PATIENT))
        lines.extend(self._format_fields(PATIENT_FIELDS, session.patient_data))

        for tooth_index, tooth in enumerate(session.teeth):
            lines.append("")
            lines.append(render(MessageID.SUMMARY_TOOTH, number=tooth_index + 1))
            lines.extend(self._format_fields(TOOTH_FIELDS, tooth))

        lines.append("")
        lines.append(render(MessageID.SUMMARY_EXAMINATION))
        lines.extend(self._format_fields(EXAMINATION_FIELDS, session.examination_data))

        lines.append("")
        lines.append(render(MessageID.SUMMARY_QUESTION))

        logger.debug(f"Rendered summary for {session.identity}: {len(session.teeth)} teeth")
        return "\n".join(lines)

    def confirm_buttons(self) -> List[ChoiceButton]:
        return self._fixed_buttons(TokenKind.CONFIRM, ("yes", "no", "change"))

    def resume_buttons(self) -> List[ChoiceButton]:
        return self._fixed_buttons(TokenKind.RESUME, ("continue", "restart"))

    def repeat_buttons(self) -> List[ChoiceButton]:
        return self._fixed_buttons(TokenKind.REPEAT, ("yes", "no"))

    def edit_menu(self, session: Session) -> List[ChoiceButton]:
        """
        Editable targets: patient fields, each tooth, examination fields.

        Returns:
            list[ChoiceButton]: One button per target, plus 'back'
        """
        buttons = [
            ChoiceButton(f.label, encode_token(TokenKind.EDIT, EditGroup.PATIENT.value, f.key))
            for f in PATIENT_FIELDS
        ]

        for tooth_index, tooth in enumerate(session.teeth):
            label = render(MessageID.SUMMARY_TOOTH, number=tooth_index + 1)
            tooth_name = tooth.get(TOOTH_FIELDS[0].key)
            if tooth_name:
                label = f"{label} ({tooth_name})"
            buttons.append(ChoiceButton(
                label, encode_token(TokenKind.EDIT, EditGroup.TOOTH.value, tooth_index)
            ))

        buttons.extend(
            ChoiceButton(f.label, encode_token(TokenKind.EDIT, EditGroup.EXAMINATION.value, f.key))
            for f in EXAMINATION_FIELDS
        )

        buttons.append(self._back_button())
        return buttons

    def tooth_edit_menu(
        self,
        tooth_index: int,
        fields: Sequence[FieldDefinition] = TOOTH_FIELDS
    ) -> List[ChoiceButton]:
        """
        Field menu for one completed tooth.

        Args:
            tooth_index: 0-based tooth index
            fields: Tooth fields currently editable (conditional fields
                    the tooth does not require are left out by the caller)

        Returns:
            list[ChoiceButton]: One button per given field, plus 'back'
        """
        buttons = [
            ChoiceButton(
                f.label,
                encode_token(TokenKind.EDIT, EditGroup.TOOTH.value, tooth_index, f.key)
            )
            for f in fields
        ]
        buttons.append(self._back_button())
        return buttons

    def field_choice_buttons(self, field_def: FieldDefinition) -> List[ChoiceButton]:
        """Choice set of a field during collection (field:<key>:<option>)."""
        return [
            ChoiceButton(option.label, encode_token(TokenKind.FIELD, field_def.key, option.key))
            for option in get_choice_set(field_def)
        ]

    def value_choice_buttons(self, field_def: FieldDefinition) -> List[ChoiceButton]:
        """Choice set of a field during editing (value:<option>)."""
        return [
            ChoiceButton(option.label, encode_token(TokenKind.VALUE, option.key))
            for option in get_choice_set(field_def)
        ]

    # ==================== PRIVATE ====================

    def _format_fields(self, fields: Sequence[FieldDefinition], data: Dict[str, str]) -> List[str]:
        lines = []
        for field_def in fields:
            value = data.get(field_def.key)
            if value is None or value == "":
                value = MISSING_VALUE
            lines.append(f"{field_def.label}: {value}")
        return lines

    def _fixed_buttons(self, kind: TokenKind, values: Sequence[str]) -> List[ChoiceButton]:
        buttons = []
        for value in values:
            token = encode_token(kind, value)
            buttons.append(ChoiceButton(BUTTON_LABELS[token], token))
        return buttons

    def _back_button(self) -> ChoiceButton:
        token = encode_token(TokenKind.EDIT, "back")
        return ChoiceButton(BUTTON_LABELS[token], token)
