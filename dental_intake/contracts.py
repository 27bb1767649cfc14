"""
Semantic contracts for the dental intake wizard.

This module defines immutable data structures that serve as contracts
between modules. These are NOT validators - they define shape and
semantics without enforcing rules.

Design principles:
- Frozen dataclasses (immutable after creation)
- No validation logic (contracts, not validators)
- No dependencies on other modules except the enums
- Definition layer only (no enforcement)

Contents:
- ChoiceOption: One selectable option of a choice set
- FieldDefinition: One form field of a field group
- ChoiceButton: Label/token pair handed to the outbound channel
- EditTarget: Address of the field being edited
- ImageAnnotation: Post-write enrichment of a persisted cell

Usage:
    from dental_intake.contracts import FieldDefinition, ChoiceOption
"""

from dataclasses import dataclass
from typing import Optional, Tuple

from dental_intake.utils.conversation_modes import EditGroup


FIELD_KIND_TEXT = "text"
FIELD_KIND_CHOICE = "choice"


@dataclass(frozen=True)
class ChoiceOption:
    """
    One option of an enumerated choice set.

    Selection happens by key (carried in the button token); the value
    stored in the session is the label.

    Attributes:
        key: Stable identifier used inside button tokens.
            Example: 'karies', 'D'
        label: Display text, also the stored value.
            Example: 'Karies', 'D-car'
        image_url: Optional image reference. When set, the persisted cell
            holding this label gets an image annotation after the write.
        requires: Keys of conditional fields that become applicable when
            this option is chosen. Tuple (not list) to stay immutable.
            Example: ('letakKaries',)

    Examples:
        >>> opt = ChoiceOption(key='karies', label='Karies', requires=('letakKaries',))
        >>> opt.label
        'Karies'
        >>> 'letakKaries' in opt.requires
        True
    """
    key: str
    label: str
    image_url: Optional[str] = None
    requires: Tuple[str, ...] = ()


@dataclass(frozen=True)
class FieldDefinition:
    """
    Immutable definition of one form field.

    The order of definitions inside a group is both the traversal order
    and the persisted column order.

    Attributes:
        key: Identifier, unique within its group.
        label: Human-readable name used in prompts and the summary.
        kind: 'text' (free text) or 'choice' (single choice).
        conditional: True if the field is only prompted when a prior
            choice in the same group lists it in ChoiceOption.requires.
        choice_set: Name of the backing choice set for 'choice' fields.
    """
    key: str
    label: str
    kind: str = FIELD_KIND_TEXT
    conditional: bool = False
    choice_set: Optional[str] = None

    @property
    def is_choice(self) -> bool:
        return self.kind == FIELD_KIND_CHOICE


@dataclass(frozen=True)
class ChoiceButton:
    """Label shown to the operator plus the opaque token sent back on press."""
    label: str
    token: str


@dataclass(frozen=True)
class EditTarget:
    """
    Address of the field being edited.

    Attributes:
        group: Field group (patient, tooth, examination)
        field_key: Key of the targeted field within the group
        tooth_index: 0-based index into Session.teeth (tooth group only)
    """
    group: EditGroup
    field_key: str
    tooth_index: Optional[int] = None


@dataclass(frozen=True)
class ImageAnnotation:
    """
    Secondary annotation for a persisted cell.

    Applied by the persistence sink after the rows are written. Failure
    to apply an annotation never fails the primary write.

    Attributes:
        row_offset: 0-based row index within the submission's rows
        column_index: 0-based column index in the persisted row layout
        image_url: Image reference to attach
    """
    row_offset: int
    column_index: int
    image_url: str
