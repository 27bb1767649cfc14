"""
Submission persistence.

Sinks append projected submissions to a tabular backend and recover
the last row sequence / record identifier once at startup.

Backends:
- SheetsSubmissionSink: Google Sheets (values.append, then =IMAGE()
  formulas for image annotations)
- JSONFileSubmissionSink: append-only JSON files, one per record
"""

import json
import logging
import re
from abc import ABC, abstractmethod
from datetime import datetime, timezone
from pathlib import Path
from typing import List, Optional, Tuple

from google.oauth2 import service_account
from googleapiclient.discovery import build

from dental_intake.core.field_catalog import CATALOG_VERSION, column_headers
from dental_intake.results import ProjectedSubmission, RecoveredCounters, SaveResult

logger = logging.getLogger(__name__)

SHEETS_SCOPES = ["https://www.googleapis.com/auth/spreadsheets"]

_UPDATED_RANGE = re.compile(r"^(?:(?P<sheet>.+)!)?[A-Z]+(?P<row>\d+)(?::[A-Z]+\d+)?$")


class SubmissionSink(ABC):
    """Append-only destination for confirmed submissions"""

    @abstractmethod
    def append_submission(self, submission: ProjectedSubmission) -> SaveResult:
        """
        Append all rows of a submission.

        Implementations report backend failures through
        SaveResult(success=False) rather than raising.
        """

    @abstractmethod
    def recover_counters(self) -> RecoveredCounters:
        """Read the last persisted sequence and record identifier (startup only)."""


def column_letter(column_index: int) -> str:
    """
    Convert a 0-based column index to A1 notation letters.

    Examples:
        >>> column_letter(0)
        'A'
        >>> column_letter(25)
        'Z'
        >>> column_letter(26)
        'AA'
    """
    if column_index < 0:
        raise ValueError(f"column_index must be >= 0, got {column_index}")

    letters = ""
    n = column_index + 1
    while n:
        n, remainder = divmod(n - 1, 26)
        letters = chr(65 + remainder) + letters
    return letters


def parse_updated_range(updated_range: str) -> Tuple[Optional[str], int]:
    """
    Sheet name and first row number of an A1 range such as 'Sheet1!A5:Z7'.

    Raises:
        ValueError: If the range cannot be parsed
    """
    match = _UPDATED_RANGE.match(updated_range or "")
    if match is None:
        raise ValueError(f"Unparseable updated range: {updated_range!r}")
    return match.group("sheet"), int(match.group("row"))


def counter_range_for(sheet_range: str) -> str:
    """
    Columns A:B on the same sheet as an append range.

    'Pemeriksaan!A:A' gives 'Pemeriksaan!A:B'; a range without a
    sheet name gives 'A:B' (first sheet).
    """
    if "!" in sheet_range:
        sheet = sheet_range.rsplit("!", 1)[0]
        return f"{sheet}!A:B"
    return "A:B"


def _as_int(value) -> Optional[int]:
    try:
        return int(str(value).strip())
    except (TypeError, ValueError):
        return None


class SheetsSubmissionSink(SubmissionSink):
    """
    Google Sheets backend.

    Layout: one row per tooth, columns as in field_catalog.column_headers().
    Column A holds the row sequence, column B the record identifier.
    """

    def __init__(self, service, spreadsheet_id: str, sheet_range: str = "A:A"):
        """
        Args:
            service: Sheets API v4 service (googleapiclient resource)
            spreadsheet_id: Target spreadsheet
            sheet_range: Append range (the API finds the table from it)
        """
        self.service = service
        self.spreadsheet_id = spreadsheet_id
        self.sheet_range = sheet_range
        self.counter_range = counter_range_for(sheet_range)
        logger.info(f"SheetsSubmissionSink initialized: {spreadsheet_id} ({sheet_range})")

    @classmethod
    def from_service_account_file(
        cls,
        key_path: str,
        spreadsheet_id: str,
        sheet_range: str = "A:A"
    ) -> "SheetsSubmissionSink":
        credentials = service_account.Credentials.from_service_account_file(
            key_path, scopes=SHEETS_SCOPES
        )
        service = build("sheets", "v4", credentials=credentials, cache_discovery=False)
        return cls(service, spreadsheet_id, sheet_range)

    def _values(self):
        return self.service.spreadsheets().values()

    def recover_counters(self) -> RecoveredCounters:
        """
        Last numeric row of columns A:B on the sheet rows are appended to.

        A header row or an empty sheet yields zeros. Read failures are
        logged and also yield zeros.
        """
        try:
            response = self._values().get(
                spreadsheetId=self.spreadsheet_id, range=self.counter_range
            ).execute()
        except Exception as e:
            logger.error(f"Counter recovery failed, starting from 0: {e}")
            return RecoveredCounters()

        for row in reversed(response.get("values", [])):
            sequence = _as_int(row[0]) if len(row) > 0 else None
            if sequence is None:
                continue
            record_id = _as_int(row[1]) if len(row) > 1 else None
            counters = RecoveredCounters(last_sequence=sequence, last_record_id=record_id or 0)
            logger.info(f"Recovered counters from sheet: {counters}")
            return counters

        logger.info("No persisted rows found, counters start from 0")
        return RecoveredCounters()

    def append_submission(self, submission: ProjectedSubmission) -> SaveResult:
        if submission.row_count == 0:
            logger.warning(f"Record {submission.record_id} has no rows, nothing appended")
            return SaveResult(success=True, record_id=submission.record_id)

        try:
            response = self._values().append(
                spreadsheetId=self.spreadsheet_id,
                range=self.sheet_range,
                valueInputOption="RAW",
                insertDataOption="INSERT_ROWS",
                body={"values": submission.rows_as_lists()},
            ).execute()
        except Exception as e:
            logger.error(f"Error appending record {submission.record_id} to Google Sheets: {e}")
            return SaveResult.failed(str(e))

        updated_range = response.get("updates", {}).get("updatedRange")
        logger.info(f"Appended record {submission.record_id}: {updated_range}")

        annotation_errors = self._apply_annotations(submission, updated_range)

        return SaveResult(
            success=True,
            record_id=submission.record_id,
            location=updated_range,
            annotation_errors=tuple(annotation_errors),
        )

    def _apply_annotations(self, submission: ProjectedSubmission, updated_range: str) -> List[str]:
        """Write =IMAGE() formulas; failures are collected, never raised."""
        if not submission.annotations:
            return []

        try:
            sheet, first_row = parse_updated_range(updated_range)
        except ValueError as e:
            logger.error(f"Cannot place image annotations: {e}")
            return [str(e)]

        errors = []
        for annotation in submission.annotations:
            cell = f"{column_letter(annotation.column_index)}{first_row + annotation.row_offset}"
            if sheet:
                cell = f"{sheet}!{cell}"
            try:
                self._values().update(
                    spreadsheetId=self.spreadsheet_id,
                    range=cell,
                    valueInputOption="USER_ENTERED",
                    body={"values": [[f'=IMAGE("{annotation.image_url}")']]},
                ).execute()
                logger.debug(f"Image formula inserted at {cell}")
            except Exception as e:
                logger.error(f"Error inserting image formula at {cell}: {e}")
                errors.append(f"{cell}: {e}")

        return errors


class JSONFileSubmissionSink(SubmissionSink):
    """
    Append-only JSON file backend.

    Layout:
        outputs/submissions/
            RECORD-000001.json
            RECORD-000002.json
            ...

    Design:
    - One file per record, never overwritten
    - Counters recovered from the highest saved record
    """

    FILE_PATTERN = "RECORD-*.json"

    def __init__(self, base_dir: str = "outputs/submissions"):
        self.base_dir = Path(base_dir)
        self.base_dir.mkdir(parents=True, exist_ok=True)
        logger.info(f"JSONFileSubmissionSink initialized: {self.base_dir}")

    def _record_path(self, record_id: int) -> Path:
        return self.base_dir / f"RECORD-{record_id:06d}.json"

    def append_submission(self, submission: ProjectedSubmission) -> SaveResult:
        filepath = self._record_path(submission.record_id)

        if filepath.exists():
            error = (
                f"Record file already exists: {filepath}. "
                f"This indicates a double-submit or counter error."
            )
            logger.error(error)
            return SaveResult.failed(error)

        payload = {
            "catalog_version": CATALOG_VERSION,
            "record_id": submission.record_id,
            "saved_at": datetime.now(timezone.utc).isoformat(),
            "columns": column_headers(),
            "rows": submission.rows_as_lists(),
            "annotations": [
                {
                    "row_offset": a.row_offset,
                    "column_index": a.column_index,
                    "image_url": a.image_url,
                }
                for a in submission.annotations
            ],
        }

        try:
            with open(filepath, 'x', encoding='utf-8') as f:
                json.dump(payload, f, indent=2, ensure_ascii=False)
        except OSError as e:
            logger.error(f"Error writing record {submission.record_id}: {e}")
            return SaveResult.failed(str(e))

        abs_path = str(filepath.absolute())
        logger.info(f"Saved record {submission.record_id}: {filepath.name} ({submission.row_count} rows)")
        return SaveResult(success=True, record_id=submission.record_id, location=abs_path)

    def recover_counters(self) -> RecoveredCounters:
        record_files = sorted(self.base_dir.glob(self.FILE_PATTERN), key=lambda p: p.name)

        last_sequence = 0
        last_record_id = 0
        for filepath in record_files:
            try:
                with open(filepath, 'r', encoding='utf-8') as f:
                    data = json.load(f)
            except (OSError, json.JSONDecodeError) as e:
                logger.warning(f"Skipping unreadable record file {filepath.name}: {e}")
                continue

            last_record_id = max(last_record_id, _as_int(data.get("record_id")) or 0)
            for row in data.get("rows", []):
                if row:
                    last_sequence = max(last_sequence, _as_int(row[0]) or 0)

        counters = RecoveredCounters(last_sequence=last_sequence, last_record_id=last_record_id)
        logger.info(f"Recovered counters from {len(record_files)} record files: {counters}")
        return counters
