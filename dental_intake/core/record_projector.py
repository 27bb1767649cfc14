"""
Record Projector - Flatten a confirmed session into persisted rows

Responsibilities:
- Build one row per completed tooth, columns in catalog order
- Stamp every row with a sequence number, the shared record identifier
  and the capture date/time
- Collect image annotations for cells whose stored label carries an
  image reference

Design principles:
- Pure projection (no I/O); counters and clock are injected
- No type conversion: stored strings are written verbatim
- Absent values render as "" (the '-' placeholder is display-only)
- Zero teeth produce zero rows

Row layout (wire format, see field_catalog.CATALOG_VERSION):
    No | ID Rekam | Tanggal | Waktu | patient fields | tooth fields | examination fields
"""

import logging
import threading
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence

from dental_intake.contracts import FieldDefinition, ImageAnnotation
from dental_intake.core.field_catalog import (
    EXAMINATION_FIELDS,
    LEADING_COLUMNS,
    PATIENT_FIELDS,
    TOOTH_FIELDS,
    find_option_by_label,
)
from dental_intake.core.session_state import Session
from dental_intake.results import ProjectedSubmission, RecoveredCounters

logger = logging.getLogger(__name__)

DATE_FORMAT = "%d/%m/%Y"
TIME_FORMAT = "%H:%M:%S"

TOOTH_COLUMN_OFFSET = len(LEADING_COLUMNS) + len(PATIENT_FIELDS)


class SequenceCounters:
    """
    In-memory row sequence and record identifier counters.

    Seeded once from the sink's recovered counters, then advanced
    locally. Numbers handed out for a submission whose save later fails
    are not reused.
    """

    def __init__(self, recovered: Optional[RecoveredCounters] = None):
        recovered = recovered or RecoveredCounters()
        self._last_sequence = recovered.last_sequence
        self._last_record_id = recovered.last_record_id
        self._lock = threading.Lock()
        logger.info(
            f"Sequence counters seeded (sequence={self._last_sequence}, "
            f"record_id={self._last_record_id})"
        )

    def next_record_id(self) -> int:
        with self._lock:
            self._last_record_id += 1
            return self._last_record_id

    def next_sequences(self, count: int) -> List[int]:
        """Reserve count consecutive row sequence numbers."""
        with self._lock:
            start = self._last_sequence + 1
            self._last_sequence += count
            return list(range(start, start + count))

    @property
    def last_sequence(self) -> int:
        return self._last_sequence

    @property
    def last_record_id(self) -> int:
        return self._last_record_id


class RecordProjector:
    """
    Turns a Session into a ProjectedSubmission.

    Example:
        >>> projector = RecordProjector(SequenceCounters())
        >>> submission = projector.project(session)
        >>> submission.row_count == session.tooth_count
        True
    """

    def __init__(
        self,
        counters: SequenceCounters,
        clock: Callable[[], datetime] = datetime.now
    ):
        """
        Args:
            counters: Shared sequence/record counters
            clock: Returns the capture timestamp (local time)
        """
        self.counters = counters
        self.clock = clock

    def project(self, session: Session) -> ProjectedSubmission:
        """
        Flatten a session.

        Args:
            session: Session in the confirming state

        Returns:
            ProjectedSubmission with one row per tooth
        """
        captured_at = self.clock()
        capture_date = captured_at.strftime(DATE_FORMAT)
        capture_time = captured_at.strftime(TIME_FORMAT)

        record_id = self.counters.next_record_id()
        sequences = self.counters.next_sequences(len(session.teeth))

        patient_values = self._values(PATIENT_FIELDS, session.patient_data)
        examination_values = self._values(EXAMINATION_FIELDS, session.examination_data)

        rows = []
        annotations = []
        for row_offset, (sequence, tooth) in enumerate(zip(sequences, session.teeth)):
            row = [sequence, record_id, capture_date, capture_time]
            row.extend(patient_values)
            row.extend(self._values(TOOTH_FIELDS, tooth))
            row.extend(examination_values)
            rows.append(tuple(row))

            annotations.extend(self._annotations(row_offset, tooth))

        if not rows:
            logger.warning(f"Record {record_id} for {session.identity} has no teeth, no rows projected")

        logger.info(
            f"Projected record {record_id} for {session.identity}: "
            f"{len(rows)} rows, {len(annotations)} image annotations"
        )

        return ProjectedSubmission(
            record_id=record_id,
            capture_date=capture_date,
            capture_time=capture_time,
            rows=tuple(rows),
            annotations=tuple(annotations),
            patient_fields=tuple(patient_values),
            examination_fields=tuple(examination_values),
        )

    def _values(self, fields: Sequence[FieldDefinition], data: Dict[str, str]) -> List[str]:
        return [data.get(field_def.key, "") for field_def in fields]

    def _annotations(self, row_offset: int, tooth: Dict[str, str]) -> List[ImageAnnotation]:
        annotations = []
        for index, field_def in enumerate(TOOTH_FIELDS):
            stored = tooth.get(field_def.key)
            if not stored:
                continue
            option = find_option_by_label(field_def, stored)
            if option is None or not option.image_url:
                continue
            annotations.append(ImageAnnotation(
                row_offset=row_offset,
                column_index=TOOTH_COLUMN_OFFSET + index,
                image_url=option.image_url,
            ))
        return annotations
