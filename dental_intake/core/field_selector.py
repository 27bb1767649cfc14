"""
Field Selector - Stateless "next applicable field" lookup

Responsibilities:
- Find the next field to prompt for in a group, from a cursor position
- Apply the conditional-field policy (prompt only when a prior choice
  in the same group requires the field)
- Apply the pre-filled policy (skip fields that already hold a value)

Design principles:
- Stateless: all state comes from the group data passed in
- Deterministic: same input always produces same output
- Iterative: skipping is a loop, never recursion, so any number of
  skippable fields is safe
- Reports skipped conditional fields; the caller writes the sentinel
"""

import logging
from dataclasses import dataclass
from typing import Dict, Optional, Sequence, Tuple

from dental_intake.contracts import FieldDefinition
from dental_intake.core.field_catalog import find_option_by_label, get_choice_set

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class FieldStep:
    """
    Result of a selector walk.

    Attributes:
        index: Index of the next field to prompt for, or None when the
            group is exhausted
        not_applicable: Keys of conditional fields passed over because
            no prior choice required them (caller fills the sentinel)
    """
    index: Optional[int]
    not_applicable: Tuple[str, ...] = ()

    @property
    def exhausted(self) -> bool:
        return self.index is None


class FieldSelector:
    """
    Stateless field selector for one field group at a time.

    Does not track any state internally - all state comes from the
    group data and cursor passed to next_applicable().
    """

    def next_applicable(
        self,
        fields: Sequence[FieldDefinition],
        group_data: Dict[str, str],
        start_index: int,
        skip_prefilled: bool = False
    ) -> FieldStep:
        """
        Walk forward from start_index to the next field that needs a prompt.

        Args:
            fields: Field group in traversal order
            group_data: Values already stored for this group
            start_index: Cursor position to start from (inclusive)
            skip_prefilled: Skip fields that already hold a value

        Returns:
            FieldStep with the next index (or None) and the keys of
            conditional fields that were not applicable
        """
        index = max(start_index, 0)
        not_applicable = []

        while index < len(fields):
            field_def = fields[index]

            if skip_prefilled and field_def.key in group_data:
                logger.debug(f"Skipping pre-filled field '{field_def.key}'")
                index += 1
                continue

            if field_def.conditional and not self.is_required(field_def, fields, group_data):
                logger.debug(f"Skipping conditional field '{field_def.key}' (not required)")
                not_applicable.append(field_def.key)
                index += 1
                continue

            return FieldStep(index=index, not_applicable=tuple(not_applicable))

        return FieldStep(index=None, not_applicable=tuple(not_applicable))

    def is_required(
        self,
        field_def: FieldDefinition,
        fields: Sequence[FieldDefinition],
        group_data: Dict[str, str]
    ) -> bool:
        """
        Whether a conditional field is required by a choice already made.

        A conditional field is required when a choice field in the same
        group holds a label whose option lists the field in 'requires'.
        Non-conditional fields are always required.

        Args:
            field_def: Field to check
            fields: Its group
            group_data: Values stored so far

        Returns:
            bool: True if the field must be prompted
        """
        if not field_def.conditional:
            return True

        for other in fields:
            if other.key == field_def.key or not other.is_choice:
                continue

            stored = group_data.get(other.key)
            if stored is None:
                continue

            option = find_option_by_label(other, stored)
            if option is not None and field_def.key in option.requires:
                return True

        return False

    def dependents_of(
        self,
        field_def: FieldDefinition,
        fields: Sequence[FieldDefinition]
    ) -> Tuple[FieldDefinition, ...]:
        """
        Conditional fields whose applicability depends on a choice field.

        Used when a choice is edited after the fact, so the caller can
        bring dependents back in line with the new choice.
        """
        if not field_def.is_choice:
            return ()

        required_keys = set()
        for option in get_choice_set(field_def):
            required_keys.update(option.requires)

        return tuple(f for f in fields if f.conditional and f.key in required_keys)
