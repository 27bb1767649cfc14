"""
Test Session and SessionStore
"""

import sys
import os
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from dental_intake.contracts import EditTarget
from dental_intake.core.session_state import Session
from dental_intake.core.session_store import SessionStore
from dental_intake.utils.conversation_modes import EditGroup, LifecycleState


# ========================
# Session
# ========================

def test_new_session_defaults():
    session = Session(identity='42')

    assert session.lifecycle_state == LifecycleState.AWAITING_OPERATOR_NAME
    assert session.operator_name is None
    assert session.teeth == []
    assert session.current_tooth == {}
    assert session.edit_target is None
    assert session.active_cursor() is None


def test_active_cursor_matches_state():
    session = Session(identity='42', patient_cursor=3, tooth_cursor=1, examination_cursor=7)

    session.lifecycle_state = LifecycleState.COLLECTING_PATIENT
    assert session.active_cursor() == 3
    session.lifecycle_state = LifecycleState.COLLECTING_SUBRECORD
    assert session.active_cursor() == 1
    session.lifecycle_state = LifecycleState.COLLECTING_EXAMINATION
    assert session.active_cursor() == 7
    session.lifecycle_state = LifecycleState.CONFIRMING
    assert session.active_cursor() is None


def test_commit_current_tooth():
    """Tooth appended only at commit, in entry order"""
    session = Session(identity='42')
    session.set_current_tooth_field('gigiDikeluhkan', '11')
    session.tooth_cursor = 4

    assert session.tooth_count == 0
    assert session.commit_current_tooth() == 0
    assert session.teeth == [{'gigiDikeluhkan': '11'}]
    assert session.current_tooth == {}
    assert session.tooth_cursor == 0

    session.set_current_tooth_field('gigiDikeluhkan', '21')
    assert session.commit_current_tooth() == 1
    assert [t['gigiDikeluhkan'] for t in session.teeth] == ['11', '21']


def test_commit_empty_tooth_appends_nothing():
    session = Session(identity='42')
    assert session.commit_current_tooth() is None
    assert session.tooth_count == 0


def test_write_and_read_targets():
    session = Session(identity='42', teeth=[{'kondisiGigi': 'Normal'}])

    session.write(EditTarget(EditGroup.PATIENT, 'usia'), '30')
    session.write(EditTarget(EditGroup.EXAMINATION, 'palatum'), 'Dalam')
    session.write(EditTarget(EditGroup.TOOTH, 'kondisiGigi', 0), 'Fraktur')

    assert session.patient_data == {'usia': '30'}
    assert session.examination_data == {'palatum': 'Dalam'}
    assert session.read(EditTarget(EditGroup.TOOTH, 'kondisiGigi', 0)) == 'Fraktur'
    assert session.read(EditTarget(EditGroup.TOOTH, 'kondisiGigi', 5), 'none') == 'none'


def test_invalid_tooth_index():
    session = Session(identity='42')

    try:
        session.set_tooth_field(0, 'kondisiGigi', 'Normal')
        assert False, "Should have raised ValueError"
    except ValueError as e:
        assert "does not exist" in str(e)

    try:
        session.get_tooth(-1)
        assert False, "Should have raised ValueError"
    except ValueError:
        pass


def test_edit_target_set_iff_editing():
    session = Session(identity='42', lifecycle_state=LifecycleState.CONFIRMING)
    target = EditTarget(EditGroup.PATIENT, 'nik')

    session.begin_edit(target)
    assert session.lifecycle_state == LifecycleState.EDITING
    assert session.edit_target == target

    session.finish_edit()
    assert session.lifecycle_state == LifecycleState.CONFIRMING
    assert session.edit_target is None


def test_summary_stats():
    session = Session(identity='42', teeth=[{}, {}])
    stats = session.get_summary_stats()

    assert stats['identity'] == '42'
    assert stats['teeth'] == 2
    assert stats['editing'] is False


# ========================
# SessionStore
# ========================

def test_store_create_get_delete():
    store = SessionStore()

    assert not store.exists('a')
    assert store.get('a') is None

    session = store.create('a')
    assert store.exists('a')
    assert store.get('a') is session
    assert store.count() == 1

    assert store.delete('a') is True
    assert store.delete('a') is False
    assert store.count() == 0


def test_store_create_overwrites():
    """At most one session per identity"""
    store = SessionStore()
    first = store.create('a')
    second = store.create('a', carry_over_operator_name='drg. Budi',
                          lifecycle_state=LifecycleState.COLLECTING_PATIENT)

    assert store.get('a') is second
    assert store.get('a') is not first
    assert second.operator_name == 'drg. Budi'
    assert second.lifecycle_state == LifecycleState.COLLECTING_PATIENT
    assert store.count() == 1


def test_store_identities_independent():
    store = SessionStore()
    store.create('a').patient_data['namaPasien'] = 'Ani'
    store.create('b')

    assert store.get('b').patient_data == {}
    store.delete('a')
    assert store.exists('b')


def test_operator_name_survives_session_delete():
    store = SessionStore()
    store.create('a')
    store.remember_operator('a', 'drg. Sari')
    store.delete('a')

    assert store.operator_name('a') == 'drg. Sari'
    assert store.operator_name('b') is None
