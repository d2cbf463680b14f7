from __future__ import annotations

import uuid
from typing import List

import pandas as pd
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session

from fieldguard.database import get_db
from fieldguard.models.validation_log import ValidationLog
from fieldguard.schemas.validation import (
    BatchValidationRequest,
    BatchValidationResponse,
    RecordValidationRequest,
    RecordValidationResponse,
    ValidationLogEntry,
)
from fieldguard.services.batch_validation import BatchValidator
from fieldguard.services.constraints import apply_constraints
from fieldguard.services.records import LinkedRecord

router = APIRouter(tags=["validation"])


def _json_safe(values: dict) -> dict:
    return {k: (v.isoformat() if hasattr(v, "isoformat") else v) for k, v in values.items()}


@router.post("/records/validate", response_model=RecordValidationResponse)
def validate_record(payload: RecordValidationRequest):
    """Validate and normalise a single record. Nothing is persisted."""
    record = LinkedRecord(payload.values)
    verdicts = apply_constraints(record, payload.constraints)
    result = record.to_dict()
    return RecordValidationResponse(
        values=_json_safe(result["values"]),
        verdicts=verdicts,
        errors=result["errors"],
        infos=result["infos"],
        valid=record.is_valid and all(verdicts.values()),
    )


@router.post("/batches/validate", response_model=BatchValidationResponse, status_code=201)
def validate_batch(payload: BatchValidationRequest, db: Session = Depends(get_db)):
    """Validate a batch of records and persist a log of every change and annotation."""
    if not payload.records:
        raise HTTPException(status_code=400, detail="Batch contains no records")

    job_id = uuid.uuid4().hex
    runner = BatchValidator(
        job_id=job_id,
        df=pd.DataFrame(payload.records),
        db=db,
        constraints=payload.constraints,
    )
    summary = runner.run_all()
    db.commit()

    records = []
    for record in runner.records:
        result = record.to_dict()
        result["values"] = _json_safe(result["values"])
        records.append(result)

    return BatchValidationResponse(job_id=job_id, records=records, **summary)


@router.get("/batches/{job_id}/logs", response_model=List[ValidationLogEntry])
def batch_logs(job_id: str, db: Session = Depends(get_db)):
    """Return the validation log for a batch."""
    logs = (
        db.query(ValidationLog)
        .filter(ValidationLog.job_id == job_id)
        .order_by(ValidationLog.row_index, ValidationLog.id)
        .all()
    )
    if not logs:
        raise HTTPException(status_code=404, detail="Batch not found")
    return logs
