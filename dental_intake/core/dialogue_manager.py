"""
Dialogue Manager - Dental intake conversation controller

Responsibilities:
- Own every lifecycle transition of a Session
- Drive patient -> teeth -> examination -> confirmation -> (edit | save | cancel)
- Prompt through the outbound channel, persist through the sink
- Roll back and apologise when a handler fails

Design principles:
- One entry point per inbound event kind
- Choice tokens dispatched on (lifecycle_state, TokenKind), never on
  raw string prefixes
- Unrecognized events for the current state are ignored (debug log,
  no reply, no mutation)
- Cursor skipping is a loop (FieldSelector), never recursion
- The session is only mutated after a save outcome is known
- Events for one identity are serialized by a per-identity lock;
  different identities run concurrently
"""

import copy
import logging
import threading
from collections import defaultdict
from typing import Callable, Dict, List, Optional, Tuple

from dental_intake.commands import (
    Cancel,
    ChoiceSelected,
    ChoiceToken,
    Greet,
    InboundEvent,
    NewEntry,
    TextReceived,
    decode_token,
)
from dental_intake.contracts import EditTarget, FieldDefinition
from dental_intake.core.field_catalog import (
    EXAMINATION_FIELDS,
    FIELD_GROUPS,
    NOT_APPLICABLE,
    OPERATOR_FIELD_KEY,
    PATIENT_FIELDS,
    TOOTH_FIELDS,
    find_option,
    get_field,
)
from dental_intake.core.field_selector import FieldSelector
from dental_intake.core.record_projector import RecordProjector
from dental_intake.core.session_state import Session
from dental_intake.core.session_store import SessionStore
from dental_intake.core.summary_generator import SummaryGenerator
from dental_intake.results import SaveResult
from dental_intake.utils.conversation_modes import EditGroup, LifecycleState, TokenKind
from dental_intake.utils.messages import MessageID, render

logger = logging.getLogger(__name__)


class DialogueManager:
    """
    Conversation controller for the intake wizard.

    Collaborators are injected; the manager holds no session state of
    its own beyond the store it is given.
    """

    def __init__(
        self,
        store: SessionStore,
        channel,
        sink,
        projector: RecordProjector,
        summary_generator: Optional[SummaryGenerator] = None,
        selector: Optional[FieldSelector] = None
    ):
        """
        Args:
            store: Keyed session store
            channel: OutboundChannel (send_prompt, present_choices)
            sink: SubmissionSink (append_submission)
            projector: RecordProjector for confirmed sessions
            summary_generator: Summary and menu builder
            selector: Field selector

        Raises:
            TypeError: If a collaborator is missing a required method
        """
        self._validate_collaborators(channel, sink, projector)

        self.store = store
        self.channel = channel
        self.sink = sink
        self.projector = projector
        self.summary = summary_generator or SummaryGenerator()
        self.selector = selector or FieldSelector()

        self._identity_locks: Dict[str, threading.Lock] = defaultdict(threading.Lock)
        self._locks_guard = threading.Lock()

        self._choice_handlers: Dict[
            Tuple[LifecycleState, TokenKind], Callable[[Session, ChoiceToken], None]
        ] = {
            (LifecycleState.COLLECTING_PATIENT, TokenKind.FIELD): self._on_field_choice,
            (LifecycleState.COLLECTING_SUBRECORD, TokenKind.FIELD): self._on_field_choice,
            (LifecycleState.COLLECTING_EXAMINATION, TokenKind.FIELD): self._on_field_choice,
            (LifecycleState.COLLECTING_SUBRECORD, TokenKind.REPEAT): self._on_repeat,
            (LifecycleState.CONFIRMING, TokenKind.CONFIRM): self._on_confirm,
            (LifecycleState.CONFIRMING, TokenKind.EDIT): self._on_edit_select,
            (LifecycleState.EDITING, TokenKind.VALUE): self._on_edit_value_choice,
            (LifecycleState.EDITING, TokenKind.EDIT): self._on_edit_back,
        }

        self._text_handlers: Dict[LifecycleState, Callable[[Session, str], None]] = {
            LifecycleState.AWAITING_OPERATOR_NAME: self._on_operator_name,
            LifecycleState.COLLECTING_PATIENT: self._on_field_text,
            LifecycleState.COLLECTING_SUBRECORD: self._on_field_text,
            LifecycleState.COLLECTING_EXAMINATION: self._on_field_text,
            LifecycleState.EDITING: self._on_edit_value_text,
        }

        logger.info("Dialogue Manager initialized")

    def _validate_collaborators(self, channel, sink, projector):
        """Validate collaborator interfaces"""
        for name in ('send_prompt', 'present_choices'):
            if not callable(getattr(channel, name, None)):
                raise TypeError(f"channel must have callable {name}() method")

        if not callable(getattr(sink, 'append_submission', None)):
            raise TypeError("sink must have callable append_submission() method")

        if not callable(getattr(projector, 'project', None)):
            raise TypeError("projector must have callable project() method")

    # ==================== ENTRY POINTS ====================

    def handle(self, event: InboundEvent) -> None:
        """
        Route an inbound event to its entry point.

        Raises:
            TypeError: If event is not a known event type
        """
        if isinstance(event, Greet):
            self.handle_greet(event.identity)
        elif isinstance(event, NewEntry):
            self.handle_new_entry(event.identity)
        elif isinstance(event, Cancel):
            self.handle_cancel(event.identity)
        elif isinstance(event, TextReceived):
            self.handle_text(event.identity, event.text)
        elif isinstance(event, ChoiceSelected):
            self.handle_choice(event.identity, event.token)
        else:
            raise TypeError(f"Unknown event type: {type(event).__name__}")

    def handle_greet(self, identity: str) -> None:
        self._guarded(identity, self._greet)

    def handle_new_entry(self, identity: str) -> None:
        self._guarded(identity, self._new_entry)

    def handle_cancel(self, identity: str) -> None:
        self._guarded(identity, self._cancel)

    def handle_text(self, identity: str, text: str) -> None:
        self._guarded(identity, lambda i: self._text(i, text))

    def handle_choice(self, identity: str, token: str) -> None:
        self._guarded(identity, lambda i: self._choice(i, token))

    # ==================== GUARD ====================

    def _guarded(self, identity: str, handler: Callable[[str], None]) -> None:
        """
        Run a handler with rollback.

        On any exception the session is restored to its pre-handler
        snapshot (or removed if the handler created it) and a generic
        apology is sent. Handlers for the same identity never overlap.
        """
        with self._lock_for(identity):
            existing = self.store.get(identity)
            snapshot = copy.deepcopy(existing) if existing is not None else None

            try:
                handler(identity)
            except Exception:
                logger.exception(f"Handler failed for {identity}, rolling back")
                if snapshot is None:
                    self.store.delete(identity)
                else:
                    self.store.save(snapshot)
                self.channel.send_prompt(identity, render(MessageID.ERROR_GENERIC))

    def _lock_for(self, identity: str) -> threading.Lock:
        with self._locks_guard:
            return self._identity_locks[identity]

    # ==================== COMMANDS ====================

    def _greet(self, identity: str) -> None:
        session = self.store.get(identity)

        if session is not None:
            logger.info(f"Greet with existing session for {identity} ({session.lifecycle_state.value})")
            self.channel.present_choices(
                identity, render(MessageID.CONTINUE_SESSION), self.summary.resume_buttons()
            )
            return

        operator_name = self.store.operator_name(identity)
        if operator_name:
            self.channel.send_prompt(identity, render(MessageID.WELCOME, name=operator_name))
            return

        self.store.create(identity)
        self.channel.send_prompt(identity, render(MessageID.ASK_OPERATOR_NAME))

    def _new_entry(self, identity: str) -> None:
        session = self.store.get(identity)

        if session is not None:
            if session.lifecycle_state != LifecycleState.AWAITING_OPERATOR_NAME:
                self.channel.send_prompt(identity, render(MessageID.ERROR_ALREADY_HAS_SESSION))
                return
            self._start_collecting(session)
            return

        session = self.store.create(
            identity,
            carry_over_operator_name=self.store.operator_name(identity),
            lifecycle_state=LifecycleState.COLLECTING_PATIENT,
        )
        self._start_collecting(session)

    def _cancel(self, identity: str) -> None:
        if not self.store.delete(identity):
            self.channel.send_prompt(identity, render(MessageID.ERROR_NO_ACTIVE_SESSION))
            return

        logger.info(f"Session cancelled for {identity}")
        self.channel.send_prompt(identity, render(MessageID.CANCELLED))

    # ==================== INBOUND DISPATCH ====================

    def _text(self, identity: str, text: str) -> None:
        session = self.store.get(identity)
        if session is None:
            logger.debug(f"Text from {identity} without session, ignored")
            return

        handler = self._text_handlers.get(session.lifecycle_state)
        if handler is None:
            logger.debug(f"Text ignored for {identity} in {session.lifecycle_state.value}")
            return

        handler(session, text)

    def _choice(self, identity: str, raw_token: str) -> None:
        token = decode_token(raw_token)
        if token is None:
            logger.warning(f"Undecodable token from {identity}: {raw_token!r}")
            return

        session = self.store.get(identity)
        if session is None:
            logger.debug(f"Choice {raw_token!r} from {identity} without session, ignored")
            return

        if token.kind == TokenKind.RESUME:
            self._on_resume(session, token)
            return

        handler = self._choice_handlers.get((session.lifecycle_state, token.kind))
        if handler is None:
            logger.debug(
                f"Choice {raw_token!r} ignored for {identity} in {session.lifecycle_state.value}"
            )
            return

        handler(session, token)

    # ==================== OPERATOR NAME / RESUME ====================

    def _on_operator_name(self, session: Session, text: str) -> None:
        session.operator_name = text
        self.store.remember_operator(session.identity, text)
        logger.info(f"Operator name stored for {session.identity}")
        self.channel.send_prompt(session.identity, render(MessageID.WELCOME, name=text))

    def _on_resume(self, session: Session, token: ChoiceToken) -> None:
        choice = token.arg(0)

        if choice == "continue":
            logger.info(f"Resuming session for {session.identity} ({session.lifecycle_state.value})")
            self._prompt_current(session)
        elif choice == "restart":
            operator_name = session.operator_name or self.store.operator_name(session.identity)
            self.store.delete(session.identity)
            if operator_name:
                fresh = self.store.create(
                    session.identity,
                    carry_over_operator_name=operator_name,
                    lifecycle_state=LifecycleState.COLLECTING_PATIENT,
                )
                self._start_collecting(fresh)
            else:
                self.store.create(session.identity)
                self.channel.send_prompt(session.identity, render(MessageID.ASK_OPERATOR_NAME))
        else:
            logger.debug(f"Unknown resume choice {choice!r} for {session.identity}")

    # ==================== COLLECTION ====================

    def _start_collecting(self, session: Session) -> None:
        """Enter the patient group and prompt its first applicable field."""
        session.lifecycle_state = LifecycleState.COLLECTING_PATIENT
        session.patient_cursor = 0
        if session.operator_name and OPERATOR_FIELD_KEY not in session.patient_data:
            session.set_patient_field(OPERATOR_FIELD_KEY, session.operator_name)

        logger.info(f"Collection started for {session.identity}")
        self._advance(session)

    def _current_field(self, session: Session) -> Optional[FieldDefinition]:
        """Field at the active cursor, or None (e.g. repeat decision pending)."""
        group = self._collecting_group(session)
        cursor = session.active_cursor()
        if group is None or cursor is None or cursor >= len(group):
            return None
        return group[cursor]

    def _collecting_group(self, session: Session):
        if session.lifecycle_state == LifecycleState.COLLECTING_PATIENT:
            return PATIENT_FIELDS
        if session.lifecycle_state == LifecycleState.COLLECTING_SUBRECORD:
            return TOOTH_FIELDS
        if session.lifecycle_state == LifecycleState.COLLECTING_EXAMINATION:
            return EXAMINATION_FIELDS
        return None

    def _on_field_text(self, session: Session, text: str) -> None:
        field_def = self._current_field(session)
        if field_def is None or field_def.is_choice:
            logger.debug(f"Text ignored for {session.identity}: no free-text field pending")
            return

        self._store_and_advance(session, field_def, text)

    def _on_field_choice(self, session: Session, token: ChoiceToken) -> None:
        field_def = self._current_field(session)
        field_key, option_key = token.arg(0), token.arg(1)

        if field_def is None or not field_def.is_choice or field_def.key != field_key:
            logger.warning(f"Stale choice for field {field_key!r} from {session.identity}, ignored")
            return

        option = find_option(field_def, option_key)
        if option is None:
            logger.warning(f"Unknown option {option_key!r} for {field_key!r}, ignored")
            return

        self._store_and_advance(session, field_def, option.label)

    def _store_and_advance(self, session: Session, field_def: FieldDefinition, value: str) -> None:
        state = session.lifecycle_state
        if state == LifecycleState.COLLECTING_PATIENT:
            session.set_patient_field(field_def.key, value)
            session.patient_cursor += 1
        elif state == LifecycleState.COLLECTING_SUBRECORD:
            session.set_current_tooth_field(field_def.key, value)
            session.tooth_cursor += 1
        else:
            session.set_examination_field(field_def.key, value)
            session.examination_cursor += 1

        self._advance(session)

    def _advance(self, session: Session) -> None:
        """
        Move the active cursor to the next applicable field, crossing
        group boundaries as groups are exhausted, then prompt.
        """
        while True:
            state = session.lifecycle_state

            if state == LifecycleState.COLLECTING_PATIENT:
                step = self.selector.next_applicable(
                    PATIENT_FIELDS, session.patient_data, session.patient_cursor,
                    skip_prefilled=True
                )
                for key in step.not_applicable:
                    session.set_patient_field(key, NOT_APPLICABLE)
                if not step.exhausted:
                    session.patient_cursor = step.index
                    break
                session.patient_cursor = len(PATIENT_FIELDS)
                session.lifecycle_state = LifecycleState.COLLECTING_SUBRECORD
                session.start_new_tooth()
                logger.info(f"Patient group complete for {session.identity}")
                continue

            if state == LifecycleState.COLLECTING_SUBRECORD:
                step = self.selector.next_applicable(
                    TOOTH_FIELDS, session.current_tooth, session.tooth_cursor
                )
                for key in step.not_applicable:
                    session.set_current_tooth_field(key, NOT_APPLICABLE)
                session.tooth_cursor = len(TOOTH_FIELDS) if step.exhausted else step.index
                break

            if state == LifecycleState.COLLECTING_EXAMINATION:
                step = self.selector.next_applicable(
                    EXAMINATION_FIELDS, session.examination_data, session.examination_cursor
                )
                for key in step.not_applicable:
                    session.set_examination_field(key, NOT_APPLICABLE)
                if not step.exhausted:
                    session.examination_cursor = step.index
                    break
                session.examination_cursor = len(EXAMINATION_FIELDS)
                session.lifecycle_state = LifecycleState.CONFIRMING
                logger.info(f"Examination group complete for {session.identity}")
                break

            break

        self._prompt_current(session)

    def _on_repeat(self, session: Session, token: ChoiceToken) -> None:
        if session.tooth_cursor < len(TOOTH_FIELDS):
            logger.warning(f"Repeat answer before tooth {session.tooth_count + 1} is complete, ignored")
            return

        answer = token.arg(0)
        if answer == "yes":
            session.commit_current_tooth()
        elif answer == "no":
            session.commit_current_tooth()
            session.lifecycle_state = LifecycleState.COLLECTING_EXAMINATION
            session.examination_cursor = 0
            logger.info(f"Tooth group complete for {session.identity}: {session.tooth_count} teeth")
        else:
            logger.debug(f"Unknown repeat answer {answer!r} for {session.identity}")
            return

        self._advance(session)

    # ==================== PROMPTING ====================

    def _prompt_current(self, session: Session) -> None:
        """Re-render the prompt for the current state and cursor (no mutation)."""
        identity = session.identity
        state = session.lifecycle_state

        if state == LifecycleState.AWAITING_OPERATOR_NAME:
            if session.operator_name:
                self.channel.send_prompt(identity, render(MessageID.WELCOME, name=session.operator_name))
            else:
                self.channel.send_prompt(identity, render(MessageID.ASK_OPERATOR_NAME))
            return

        if state == LifecycleState.CONFIRMING:
            self._present_summary(session)
            return

        if state == LifecycleState.EDITING:
            self._prompt_edit_target(session)
            return

        field_def = self._current_field(session)
        if field_def is None:
            if state == LifecycleState.COLLECTING_SUBRECORD:
                self.channel.present_choices(
                    identity, render(MessageID.ASK_ADD_MORE_TEETH), self.summary.repeat_buttons()
                )
            return

        text = self._field_prompt_text(field_def)
        if state == LifecycleState.COLLECTING_SUBRECORD and session.tooth_cursor == 0:
            header = render(MessageID.TOOTH_HEADER, number=session.tooth_count + 1)
            text = f"{header}\n\n{text}"

        if field_def.is_choice:
            self.channel.present_choices(identity, text, self.summary.field_choice_buttons(field_def))
        else:
            self.channel.send_prompt(identity, text)

    def _field_prompt_text(self, field_def: FieldDefinition) -> str:
        if field_def.is_choice:
            return render(MessageID.CHOICE_PROMPT, label=field_def.label)
        return render(MessageID.FIELD_PROMPT, label=field_def.label)

    def _present_summary(self, session: Session) -> None:
        logger.debug(f"Presenting summary: {session.get_summary_stats()}")
        self.channel.present_choices(
            session.identity,
            self.summary.render_summary(session),
            self.summary.confirm_buttons(),
        )

    # ==================== CONFIRMATION ====================

    def _on_confirm(self, session: Session, token: ChoiceToken) -> None:
        answer = token.arg(0)

        if answer == "yes":
            self._save(session)
        elif answer == "no":
            self.store.delete(session.identity)
            logger.info(f"Submission discarded by {session.identity}")
            self.channel.send_prompt(session.identity, render(MessageID.CANCELLED))
        elif answer == "change":
            self.channel.present_choices(
                session.identity,
                render(MessageID.SELECT_FIELD_TO_EDIT),
                self.summary.edit_menu(session),
            )
        else:
            logger.debug(f"Unknown confirm answer {answer!r} for {session.identity}")

    def _save(self, session: Session) -> None:
        """
        Project and persist. Success deletes the session; failure keeps
        it in the confirming state for a retry.
        """
        identity = session.identity
        self.channel.send_prompt(identity, render(MessageID.SAVING))

        submission = self.projector.project(session)

        try:
            result = self.sink.append_submission(submission)
        except Exception as e:
            logger.error(f"Sink raised for record {submission.record_id} ({identity}): {e}")
            result = SaveResult.failed(str(e))

        if not result.success:
            logger.error(f"Save failed for {identity}: {result.error}")
            self.channel.present_choices(
                identity, render(MessageID.ERROR_SAVE_FAILED), self.summary.confirm_buttons()
            )
            return

        for annotation_error in result.annotation_errors:
            logger.warning(f"Record {result.record_id}: {annotation_error}")

        self.store.delete(identity)
        logger.info(f"Saved record {result.record_id} for {identity} at {result.location}")
        self.channel.send_prompt(identity, render(MessageID.SUCCESS))

    # ==================== EDITING ====================

    def _on_edit_select(self, session: Session, token: ChoiceToken) -> None:
        group_name = token.arg(0)

        if group_name == "back":
            self._present_summary(session)
            return

        try:
            group = EditGroup(group_name)
        except ValueError:
            logger.warning(f"Unknown edit group {group_name!r} from {session.identity}")
            return

        if group == EditGroup.TOOTH:
            self._select_tooth_target(session, token)
            return

        field_key = token.arg(1)
        if get_field(group, field_key) is None:
            logger.warning(f"Unknown {group.value} field {field_key!r} from {session.identity}")
            return

        target = EditTarget(group, field_key)
        if not self._is_editable(session, target):
            logger.warning(f"{field_key!r} is not applicable for {session.identity}, ignored")
            return

        self._begin_edit(session, target)

    def _select_tooth_target(self, session: Session, token: ChoiceToken) -> None:
        try:
            tooth_index = int(token.arg(1))
        except (TypeError, ValueError):
            logger.warning(f"Bad tooth index in edit token from {session.identity}")
            return

        if not 0 <= tooth_index < session.tooth_count:
            logger.warning(f"Edit for missing tooth {tooth_index + 1} from {session.identity}")
            return

        field_key = token.arg(2)
        if field_key is None:
            self.channel.present_choices(
                session.identity,
                render(MessageID.SELECT_TOOTH_FIELD_TO_EDIT, number=tooth_index + 1),
                self.summary.tooth_edit_menu(tooth_index, self._editable_tooth_fields(session, tooth_index)),
            )
            return

        if get_field(EditGroup.TOOTH, field_key) is None:
            logger.warning(f"Unknown tooth field {field_key!r} from {session.identity}")
            return

        target = EditTarget(EditGroup.TOOTH, field_key, tooth_index)
        if not self._is_editable(session, target):
            logger.warning(
                f"{field_key!r} is not applicable to tooth {tooth_index + 1} for {session.identity}, ignored"
            )
            return

        self._begin_edit(session, target)

    def _begin_edit(self, session: Session, target: EditTarget) -> None:
        session.begin_edit(target)
        location = f"{target.group.value}.{target.field_key}"
        if target.tooth_index is not None:
            location = f"{location} (tooth {target.tooth_index + 1})"
        logger.info(f"Editing {location} for {session.identity}")
        self._prompt_edit_target(session)

    def _prompt_edit_target(self, session: Session) -> None:
        target = session.edit_target
        field_def = get_field(target.group, target.field_key)

        if field_def.is_choice:
            self.channel.present_choices(
                session.identity,
                render(MessageID.EDIT_CHOICE_PROMPT, label=field_def.label),
                self.summary.value_choice_buttons(field_def),
            )
        else:
            self.channel.send_prompt(
                session.identity, render(MessageID.EDIT_FIELD_PROMPT, label=field_def.label)
            )

    def _on_edit_value_text(self, session: Session, text: str) -> None:
        target = session.edit_target
        field_def = get_field(target.group, target.field_key)
        if field_def.is_choice:
            logger.debug(f"Text ignored for {session.identity}: editing a choice field")
            return

        session.write(target, text)
        self._finish_edit(session)

    def _on_edit_value_choice(self, session: Session, token: ChoiceToken) -> None:
        target = session.edit_target
        field_def = get_field(target.group, target.field_key)
        if not field_def.is_choice:
            logger.debug(f"Choice ignored for {session.identity}: editing a free-text field")
            return

        option = find_option(field_def, token.arg(0))
        if option is None:
            logger.warning(f"Unknown option {token.arg(0)!r} for {field_def.key!r}, ignored")
            return

        session.write(target, option.label)

        retarget = self._reconcile_dependents(session, target, field_def)
        if retarget is not None:
            self._begin_edit(session, retarget)
            return

        self._finish_edit(session)

    def _on_edit_back(self, session: Session, token: ChoiceToken) -> None:
        if token.arg(0) != "back":
            logger.debug(f"Edit token ignored for {session.identity} while editing")
            return
        self._finish_edit(session)

    def _finish_edit(self, session: Session) -> None:
        session.finish_edit()
        self._present_summary(session)

    def _reconcile_dependents(
        self,
        session: Session,
        target: EditTarget,
        field_def: FieldDefinition
    ) -> Optional[EditTarget]:
        """
        Bring conditional fields in line with an edited choice.

        Dependents no longer required are reset to the sentinel. The
        first dependent that became required without a real value is
        returned as the next edit target.
        """
        fields = FIELD_GROUPS[target.group]
        group_data = self._group_data(session, target)

        for dependent in self.selector.dependents_of(field_def, fields):
            dependent_target = EditTarget(target.group, dependent.key, target.tooth_index)
            current = group_data.get(dependent.key)

            if self.selector.is_required(dependent, fields, group_data):
                if current is None or current == NOT_APPLICABLE:
                    return dependent_target
            elif current != NOT_APPLICABLE:
                session.write(dependent_target, NOT_APPLICABLE)

        return None

    def _group_data(self, session: Session, target: EditTarget) -> Dict[str, str]:
        """Stored values of the group an edit target belongs to."""
        if target.group == EditGroup.PATIENT:
            return dict(session.patient_data)
        if target.group == EditGroup.EXAMINATION:
            return dict(session.examination_data)
        return session.get_tooth(target.tooth_index)

    def _is_editable(self, session: Session, target: EditTarget) -> bool:
        """A conditional field is editable only while a choice requires it."""
        field_def = get_field(target.group, target.field_key)
        return self.selector.is_required(
            field_def, FIELD_GROUPS[target.group], self._group_data(session, target)
        )

    def _editable_tooth_fields(self, session: Session, tooth_index: int) -> List[FieldDefinition]:
        return [
            f for f in TOOTH_FIELDS
            if self._is_editable(session, EditTarget(EditGroup.TOOTH, f.key, tooth_index))
        ]
