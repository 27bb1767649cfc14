"""
Lifecycle and token enums for the intake conversation.

Invariants:
- Exactly one lifecycle state is active per session
- Lifecycle changes are made by the Dialogue Manager only
- edit_target is set if and only if the state is EDITING

Design:
- String-based enums so values survive JSON serialization unchanged
- TokenKind names the namespace of an inline-button token
  (the part before the first ':')
"""

from enum import Enum


class LifecycleState(str, Enum):
    """
    Lifecycle of one intake session.

    AWAITING_OPERATOR_NAME:
        Session created by a greeting, waiting for the dentist's name.
        Entry: greeting with no session and no remembered name
        Exit: explicit new-entry command -> COLLECTING_PATIENT

    COLLECTING_PATIENT:
        Walking PATIENT_FIELDS with patient_cursor.
        Exit: cursor exhausted -> COLLECTING_SUBRECORD

    COLLECTING_SUBRECORD:
        Walking TOOTH_FIELDS for current_tooth with tooth_cursor.
        When tooth_cursor is exhausted the session waits for the
        repeat decision (another tooth or not).
        Exit: repeat "no" -> COLLECTING_EXAMINATION

    COLLECTING_EXAMINATION:
        Walking EXAMINATION_FIELDS with examination_cursor.
        Exit: cursor exhausted -> CONFIRMING

    CONFIRMING:
        Summary shown, waiting for save / cancel / change.
        The edit menu is also presented from this state.

    EDITING:
        A concrete field is targeted (edit_target set), waiting for
        its new value.
        Exit: value written -> CONFIRMING
    """
    AWAITING_OPERATOR_NAME = "awaiting_operator_name"
    COLLECTING_PATIENT = "collecting_patient"
    COLLECTING_SUBRECORD = "collecting_subrecord"
    COLLECTING_EXAMINATION = "collecting_examination"
    CONFIRMING = "confirming"
    EDITING = "editing"


class EditGroup(str, Enum):
    """Field group addressed by an edit target."""
    PATIENT = "patient"
    TOOTH = "tooth"
    EXAMINATION = "examination"


class TokenKind(str, Enum):
    """
    Namespace of an inline-button token.

    Token layouts (':' separated):
        resume:continue | resume:restart
        confirm:yes | confirm:no | confirm:change
        repeat:yes | repeat:no
        field:<field_key>:<option_key>
        edit:patient:<field_key>
        edit:examination:<field_key>
        edit:tooth:<index>
        edit:tooth:<index>:<field_key>
        edit:back
        value:<option_key>
    """
    RESUME = "resume"
    CONFIRM = "confirm"
    REPEAT = "repeat"
    FIELD = "field"
    EDIT = "edit"
    VALUE = "value"

