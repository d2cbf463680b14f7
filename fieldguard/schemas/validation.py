from __future__ import annotations

from datetime import datetime
from enum import Enum
from typing import Any, Dict, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, model_validator
from pydantic.alias_generators import to_camel


class _CamelModel(BaseModel):
    """Accepts both snake_case and the camelCase keys used in sheet configs."""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class ValidationOptions(_CamelModel):
    add_error: bool = True
    validate_on_empty: bool = False
    error_msg: Optional[str] = None
    set_record: bool = True
    add_info: bool = False
    info_msg: Optional[str] = None
    format_on_error: bool = False
    format_on_empty: bool = False


DEFAULT_OPTIONS = ValidationOptions()


def resolve_options(options: Union[ValidationOptions, Dict[str, Any], None]) -> ValidationOptions:
    """Return a ValidationOptions instance from None, a model or a plain dict."""
    if options is None:
        return DEFAULT_OPTIONS
    if isinstance(options, ValidationOptions):
        return options
    return ValidationOptions.model_validate(options)


class StringReplace(_CamelModel):
    search: str
    replace: str
    regex: bool = False


class StringFormatOptions(_CamelModel):
    case: Optional[str] = None   # 'upper' | 'lower' | 'title'
    trim: bool = False
    pad_start: Optional[int] = None
    pad_end: Optional[int] = None
    pad_char: Optional[str] = None
    truncate: Optional[int] = None
    replace: Optional[StringReplace] = None
    prefix: Optional[str] = None
    suffix: Optional[str] = None


class NumberFormatOptions(_CamelModel):
    decimals: Optional[int] = None
    thousands_separator: bool = False
    prefix: Optional[str] = None
    suffix: Optional[str] = None


class ValidatorName(str, Enum):
    DATE = "DateValidator"
    STRING = "StringValidator"
    NUMBER = "NumberValidator"


class ConstraintMode(str, Enum):
    EVALUATE_AND_FORMAT = "evaluateAndFormat"
    VALIDATE = "validate"
    FORMAT = "format"
    NORMALIZE_PHONE = "normalizePhone"


class ConstraintConfig(_CamelModel):
    type: ConstraintMode = ConstraintMode.EVALUATE_AND_FORMAT
    validation_type: str = "validate"
    format: Optional[str] = None
    format_options: Optional[Dict[str, Any]] = None
    validation_args: Any = None
    options: Optional[ValidationOptions] = None


class FieldConstraint(_CamelModel):
    validator: ValidatorName
    config: ConstraintConfig = Field(default_factory=ConstraintConfig)

    @model_validator(mode="after")
    def _check_config(self) -> "FieldConstraint":
        normalize = self.config.type is ConstraintMode.NORMALIZE_PHONE
        if normalize and self.validator is not ValidatorName.STRING:
            raise ValueError("normalizePhone is only available for StringValidator")
        if self.config.format_options:
            if self.validator is ValidatorName.STRING:
                StringFormatOptions.model_validate(self.config.format_options)
            elif self.validator is ValidatorName.NUMBER:
                NumberFormatOptions.model_validate(self.config.format_options)
        return self


# ─────────────────────────────────────────────────────────────────────────────
# API payloads
# ─────────────────────────────────────────────────────────────────────────────

class RecordValidationRequest(BaseModel):
    values: Dict[str, Any]
    constraints: Dict[str, List[FieldConstraint]]


class RecordValidationResponse(BaseModel):
    values: Dict[str, Any]
    verdicts: Dict[str, bool]
    errors: Dict[str, List[str]]
    infos: Dict[str, List[str]]
    valid: bool


class BatchValidationRequest(BaseModel):
    records: List[Dict[str, Any]]
    constraints: Dict[str, List[FieldConstraint]]


class BatchValidationResponse(BaseModel):
    job_id: str
    records_processed: int
    records_valid: int
    records_invalid: int
    values_changed: int
    errors: int
    infos: int
    records: List[Dict[str, Any]]


class ValidationLogEntry(BaseModel):
    id: int
    job_id: str
    row_index: Optional[int]
    field_name: str
    action: str
    original_value: Optional[str]
    new_value: Optional[str]
    message: Optional[str]
    validator: Optional[str]
    timestamp: datetime

    model_config = {"from_attributes": True}
