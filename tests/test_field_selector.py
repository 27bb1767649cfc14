"""
Test Field Selector - next applicable field, conditional and pre-filled skips
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))
from dataclasses import FrozenInstanceError

import pytest

from dental_intake.contracts import ChoiceOption, FieldDefinition, FIELD_KIND_CHOICE
from dental_intake.core.field_catalog import PATIENT_FIELDS, TOOTH_FIELDS
from dental_intake.core.field_selector import FieldSelector


def test_first_field_of_empty_group():
    selector = FieldSelector()
    step = selector.next_applicable(TOOTH_FIELDS, {}, 0)

    assert step.index == 0
    assert step.not_applicable == ()
    assert not step.exhausted


def test_conditional_skipped_when_not_required():
    """Non-caries condition: caries location reported as not applicable"""
    selector = FieldSelector()
    tooth = {'gigiDikeluhkan': '36', 'kondisiGigi': 'Normal'}

    step = selector.next_applicable(TOOTH_FIELDS, tooth, 2)

    assert step.index == 3
    assert step.not_applicable == ('letakKaries',)


def test_conditional_prompted_when_required():
    selector = FieldSelector()
    tooth = {'gigiDikeluhkan': '36', 'kondisiGigi': 'Karies'}

    step = selector.next_applicable(TOOTH_FIELDS, tooth, 2)

    assert step.index == 2
    assert step.not_applicable == ()


def test_exhausted_past_end():
    selector = FieldSelector()
    step = selector.next_applicable(TOOTH_FIELDS, {}, len(TOOTH_FIELDS))

    assert step.exhausted
    assert step.index is None


def test_prefilled_operator_field_skipped():
    """Pre-filled patient field is skipped only with skip_prefilled"""
    selector = FieldSelector()
    data = {'dokterPemeriksa': 'drg. Sari'}
    last = len(PATIENT_FIELDS) - 1

    assert selector.next_applicable(PATIENT_FIELDS, data, last).index == last
    assert selector.next_applicable(PATIENT_FIELDS, data, last, skip_prefilled=True).exhausted


def test_many_skippable_fields_do_not_recurse():
    """Long runs of conditional fields are walked iteratively"""
    selector = FieldSelector()
    fields = tuple(
        FieldDefinition(f'opt{i}', f'Optional {i}', FIELD_KIND_CHOICE, conditional=True,
                        choice_set='letak_karies')
        for i in range(1500)
    )

    step = selector.next_applicable(fields, {}, 0)

    assert step.exhausted
    assert len(step.not_applicable) == 1500


def test_is_required_follows_stored_label():
    selector = FieldSelector()
    letak = TOOTH_FIELDS[2]

    assert selector.is_required(letak, TOOTH_FIELDS, {'kondisiGigi': 'Karies'})
    assert not selector.is_required(letak, TOOTH_FIELDS, {'kondisiGigi': 'Fraktur'})
    assert not selector.is_required(letak, TOOTH_FIELDS, {})
    assert selector.is_required(TOOTH_FIELDS[0], TOOTH_FIELDS, {})


def test_dependents_of():
    selector = FieldSelector()

    dependents = selector.dependents_of(TOOTH_FIELDS[1], TOOTH_FIELDS)
    assert [f.key for f in dependents] == ['letakKaries']

    assert selector.dependents_of(TOOTH_FIELDS[0], TOOTH_FIELDS) == ()
    assert selector.dependents_of(TOOTH_FIELDS[3], TOOTH_FIELDS) == ()


def test_choice_option_is_immutable():
    option = ChoiceOption('x', 'X')
    with pytest.raises(FrozenInstanceError):
        option.label = 'Y'
