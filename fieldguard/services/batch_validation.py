"""
Batch validation: run field constraints over every row of a DataFrame.

Each row becomes a LinkedRecord; constraint verdicts, rewritten values,
errors and infos are collected per row. Value changes are written back to
the frame and every change/annotation is logged as a ValidationLog entry.
"""

import logging
from datetime import datetime
from typing import Any, Dict, List, Optional

import numpy as np
import pandas as pd
from sqlalchemy.orm import Session

from fieldguard.models.validation_log import ValidationLog
from fieldguard.schemas.validation import FieldConstraint
from fieldguard.services.constraints import apply_constraints
from fieldguard.services.records import LinkedRecord

logger = logging.getLogger(__name__)


def to_python_value(value: Any) -> Any:
    """Convert pandas/numpy cell values to plain Python (NaN -> None)."""
    if value is None or value is pd.NaT:
        return None
    if isinstance(value, np.generic):
        value = value.item()
    if isinstance(value, pd.Timestamp):
        return value.to_pydatetime()
    if isinstance(value, float) and np.isnan(value):
        return None
    return value


class BatchValidator:
    """
    Applies field constraints to each record of a batch.
    """

    def __init__(
        self,
        job_id: str,
        df: pd.DataFrame,
        db: Optional[Session],
        constraints: Dict[str, List[FieldConstraint]],
    ):
        self.job_id = job_id
        self.df = df.copy()
        self.db = db
        self.constraints = constraints
        self.records: List[LinkedRecord] = []
        self.verdicts: List[Dict[str, bool]] = []
        self.summary = {
            "records_processed": 0,
            "records_valid": 0,
            "records_invalid": 0,
            "values_changed": 0,
            "errors": 0,
            "infos": 0,
        }

    def _validator_names(self, field: str) -> str:
        names = []
        for constraint in self.constraints.get(field, []):
            if constraint.validator.value not in names:
                names.append(constraint.validator.value)
        return ",".join(names)

    def _log(
        self,
        row_index: int,
        field: str,
        action: str,
        original_value: Any = None,
        new_value: Any = None,
        message: Optional[str] = None,
    ):
        """Log a record change or annotation to the database."""
        if self.db is None:
            return

        entry = ValidationLog(
            job_id=self.job_id,
            row_index=int(row_index),
            field_name=field,
            action=action,
            original_value=str(original_value)[:200] if original_value is not None else None,
            new_value=str(new_value)[:200] if new_value is not None else None,
            message=message,
            validator=self._validator_names(field),
            timestamp=datetime.utcnow(),
        )
        self.db.add(entry)

    def validate_row(self, row_index: int, row: Dict[str, Any]) -> LinkedRecord:
        original = {k: to_python_value(v) for k, v in row.items()}
        record = LinkedRecord(original)
        verdicts = apply_constraints(record, self.constraints)

        for field in self.constraints:
            before = original.get(field)
            after = record.get(field)
            if after != before:
                self.df.at[row_index, field] = after
                self._log(row_index, field, "set_value", before, after)
                self.summary["values_changed"] += 1

            for message in record.errors.get(field, []):
                self._log(row_index, field, "add_error", before, after, message)
                self.summary["errors"] += 1

            for message in record.infos.get(field, []):
                self._log(row_index, field, "add_info", before, after, message)
                self.summary["infos"] += 1

        self.records.append(record)
        self.verdicts.append(verdicts)
        self.summary["records_processed"] += 1
        if record.is_valid and all(verdicts.values()):
            self.summary["records_valid"] += 1
        else:
            self.summary["records_invalid"] += 1

        return record

    def run_all(self) -> Dict[str, Any]:
        """
        Validate every row and return the batch summary.
        """
        for field in self.constraints:
            if field not in self.df.columns:
                self.df[field] = None
            self.df[field] = self.df[field].astype(object)

        rows = self.df.to_dict(orient="records")
        for row_index, row in zip(self.df.index, rows):
            self.validate_row(row_index, row)

        if self.db is not None:
            self.db.flush()

        logger.info(
            "Batch %s validated: %d records, %d invalid, %d values changed",
            self.job_id,
            self.summary["records_processed"],
            self.summary["records_invalid"],
            self.summary["values_changed"],
        )
        return dict(self.summary)
