"""
Result types exchanged between the Dialogue Manager, Record Projector
and persistence sinks.
"""

from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple

from dental_intake.contracts import ImageAnnotation


@dataclass(frozen=True)
class ProjectedSubmission:
    """
    Flattened submission ready to be appended.

    Returned by: RecordProjector.project()

    Attributes:
        record_id: Record identifier shared by every row
        capture_date: DD/MM/YYYY
        capture_time: HH:MM:SS
        rows: One row per tooth, columns in catalog order
        annotations: Image annotations to apply after the write
        patient_fields: Patient values in catalog order
        examination_fields: Examination values in catalog order
    """
    record_id: int
    capture_date: str
    capture_time: str
    rows: Tuple[Tuple[Any, ...], ...]
    annotations: Tuple[ImageAnnotation, ...] = ()
    patient_fields: Tuple[str, ...] = ()
    examination_fields: Tuple[str, ...] = ()

    @property
    def row_count(self) -> int:
        return len(self.rows)

    def rows_as_lists(self) -> List[List[Any]]:
        """Rows as plain lists (JSON / Sheets API payload)."""
        return [list(row) for row in self.rows]


@dataclass(frozen=True)
class SaveResult:
    """
    Outcome of appending a submission.

    Returned by: SubmissionSink.append_submission()

    Attributes:
        success: True if the rows were written
        record_id: Record identifier on success
        location: Backend-specific location (A1 range, file path)
        error: Human-readable failure reason
        annotation_errors: Enrichment failures (do not affect success)
    """
    success: bool
    record_id: Optional[int] = None
    location: Optional[str] = None
    error: Optional[str] = None
    annotation_errors: Tuple[str, ...] = field(default_factory=tuple)

    @staticmethod
    def failed(error: str) -> "SaveResult":
        return SaveResult(success=False, error=error)


@dataclass(frozen=True)
class RecoveredCounters:
    """
    Last persisted counters, read once at startup.

    Returned by: SubmissionSink.recover_counters()

    Attributes:
        last_sequence: Highest row sequence number found (0 if none)
        last_record_id: Highest record identifier found (0 if none)
    """
    last_sequence: int = 0
    last_record_id: int = 0
