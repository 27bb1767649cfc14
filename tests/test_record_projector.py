"""
Test Record Projector - row layout, counters and image annotations
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from datetime import datetime

from dental_intake.core.field_catalog import (
    KARIES_TYPES,
    KONDISI_GIGI_TYPES,
    NOT_APPLICABLE,
    column_headers,
)
from dental_intake.core.record_projector import RecordProjector, SequenceCounters
from dental_intake.core.session_state import Session
from dental_intake.results import RecoveredCounters
from dental_intake.utils.conversation_modes import LifecycleState

CAPTURED = datetime(2024, 3, 5, 9, 7, 1)


def make_session(teeth):
    return Session(
        identity='42',
        lifecycle_state=LifecycleState.CONFIRMING,
        operator_name='drg. Sari',
        patient_data={'namaPasien': 'Ani', 'usia': '30', 'dokterPemeriksa': 'drg. Sari'},
        teeth=teeth,
        examination_data={'oklusi': 'Normal Bite', 'skorDMF': '4'},
    )


def make_projector(recovered=None):
    return RecordProjector(SequenceCounters(recovered), clock=lambda: CAPTURED)


def test_one_row_per_tooth():
    """N teeth -> N rows, shared patient/examination columns"""
    teeth = [
        {'gigiDikeluhkan': '36', 'kondisiGigi': 'Karies', 'letakKaries': 'O-car',
         'rekomendasiPerawatan': 'Tambal gigi'},
        {'gigiDikeluhkan': '11', 'kondisiGigi': 'Fraktur', 'letakKaries': NOT_APPLICABLE,
         'rekomendasiPerawatan': 'Cabut gigi'},
        {'gigiDikeluhkan': '48', 'kondisiGigi': 'Impaksi', 'letakKaries': NOT_APPLICABLE,
         'rekomendasiPerawatan': 'Odontektomi'},
    ]
    submission = make_projector().project(make_session(teeth))

    assert submission.row_count == 3
    width = len(column_headers())
    for row in submission.rows:
        assert len(row) == width
        assert row[4:12] == submission.rows[0][4:12]
        assert row[16:] == submission.rows[0][16:]

    assert [row[12] for row in submission.rows] == ['36', '11', '48']
    assert submission.rows[1][14] == NOT_APPLICABLE


def test_leading_columns():
    teeth = [{'gigiDikeluhkan': '36'}, {'gigiDikeluhkan': '37'}]
    submission = make_projector().project(make_session(teeth))

    first, second = submission.rows
    assert first[:4] == (1, 1, '05/03/2024', '09:07:01')
    assert second[:4] == (2, 1, '05/03/2024', '09:07:01')
    assert submission.record_id == 1
    assert submission.capture_date == '05/03/2024'
    assert submission.capture_time == '09:07:01'


def test_catalog_column_order_and_missing_values():
    """Absent values are empty strings, never None"""
    submission = make_projector().project(make_session([{'gigiDikeluhkan': '36'}]))
    row = submission.rows[0]

    assert row[4] == 'Ani'
    assert row[5] == ''          # nik
    assert row[7] == '30'        # usia
    assert row[11] == 'drg. Sari'
    assert row[12:16] == ('36', '', '', '')
    assert row[16] == 'Normal Bite'
    assert row[-1] == '4'
    assert None not in row
    assert submission.patient_fields == row[4:12]
    assert submission.examination_fields == row[16:]


def test_zero_teeth_zero_rows():
    submission = make_projector().project(make_session([]))

    assert submission.rows == ()
    assert submission.annotations == ()
    assert submission.record_id == 1


def test_counters_continue_from_recovered():
    projector = make_projector(RecoveredCounters(last_sequence=40, last_record_id=12))

    first = projector.project(make_session([{}, {}]))
    second = projector.project(make_session([{}]))

    assert [row[0] for row in first.rows] == [41, 42]
    assert first.record_id == 13
    assert [row[0] for row in second.rows] == [43]
    assert second.record_id == 14


def test_image_annotations():
    """Condition and caries-location labels with images are annotated"""
    normal = next(o for o in KONDISI_GIGI_TYPES if o.key == 'normal')
    distal = next(o for o in KARIES_TYPES if o.key == 'D')
    teeth = [
        {'gigiDikeluhkan': '36', 'kondisiGigi': 'Karies', 'letakKaries': 'D-car',
         'rekomendasiPerawatan': 'Tambal gigi'},
        {'gigiDikeluhkan': '11', 'kondisiGigi': 'Normal', 'letakKaries': NOT_APPLICABLE,
         'rekomendasiPerawatan': 'DHE'},
    ]

    submission = make_projector().project(make_session(teeth))

    located = {(a.row_offset, a.column_index): a.image_url for a in submission.annotations}
    assert located == {
        (0, 14): distal.image_url,
        (1, 13): normal.image_url,
    }


def test_free_text_matching_a_label_is_not_annotated():
    teeth = [{'gigiDikeluhkan': 'Normal'}]
    submission = make_projector().project(make_session(teeth))

    assert submission.annotations == ()


def test_sequence_counters_reserve_blocks():
    counters = SequenceCounters(RecoveredCounters(last_sequence=5, last_record_id=2))

    assert counters.next_sequences(3) == [6, 7, 8]
    assert counters.next_sequences(0) == []
    assert counters.next_record_id() == 3
    assert counters.last_sequence == 8
    assert counters.last_record_id == 3
