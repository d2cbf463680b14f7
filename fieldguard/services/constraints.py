"""
Field constraints: route a sheet-style constraint config to the matching
validator family.

    {
        "validator": "DateValidator",
        "config": {
            "type": "evaluateAndFormat",
            "validationType": "before",
            "format": "MM/DD/YYYY",
            "validationArgs": ["now"],
            "options": {"addError": true, "errorMsg": "Must be in the past"}
        }
    }

`type` picks the step: validate only, format only, or both
(evaluateAndFormat, the default). normalizePhone runs the E.164 import
check on a StringValidator field.
"""

import logging
from typing import Any, Dict, List

from fieldguard.config import settings
from fieldguard.schemas.validation import (
    ConstraintMode,
    FieldConstraint,
    NumberFormatOptions,
    StringFormatOptions,
    ValidatorName,
    resolve_options,
)
from fieldguard.services import date_validation, number_validation, string_validation
from fieldguard.services.records import RecordAccessor

logger = logging.getLogger(__name__)


def _date_constraint(record: RecordAccessor, field: str, constraint: FieldConstraint) -> bool:
    config = constraint.config
    opts = resolve_options(config.options)

    if config.type is ConstraintMode.FORMAT:
        return date_validation.format_field(record, field, config.format, opts) != ""
    if config.type is ConstraintMode.VALIDATE:
        return date_validation.run_validation(
            record, field, config.validation_type, config.format, config.validation_args, opts)
    return date_validation.evaluate_and_format(
        record, field, config.validation_type, config.format, config.validation_args, opts)


def _string_constraint(record: RecordAccessor, field: str, constraint: FieldConstraint) -> bool:
    config = constraint.config
    opts = resolve_options(config.options)
    format_options = StringFormatOptions.model_validate(config.format_options or {})
    region = string_validation.phone_region(config.validation_args)

    if config.type is ConstraintMode.NORMALIZE_PHONE:
        return string_validation.normalize_phone_e164(
            record, field, region or settings.DEFAULT_PHONE_REGION)

    # `format` names a phone format (E164, NATIONAL, INTERNATIONAL) for isPhone
    # and switches isSSN to XXX-XX-XXXX formatting
    kinds = string_validation.StringValidationType
    phone = bool(config.format) and config.validation_type == kinds.IS_PHONE
    ssn = bool(config.format) and config.validation_type == kinds.IS_SSN

    if config.type is ConstraintMode.FORMAT:
        if phone:
            string_validation.format_phone(record, field, config.format, opts, region)
        elif ssn:
            string_validation.format_ssn(record, field, opts)
        else:
            string_validation.format_string(record, field, format_options, opts)
        return True
    if config.type is ConstraintMode.VALIDATE:
        return string_validation.run_validation(
            record, field, config.validation_type, config.validation_args, opts)
    if phone:
        return string_validation.evaluate_and_format_phone(record, field, config.format, opts, region)
    if ssn:
        return string_validation.evaluate_and_format_ssn(record, field, opts)
    return string_validation.evaluate_and_format(
        record, field, config.validation_type, format_options, config.validation_args, opts)


def _number_constraint(record: RecordAccessor, field: str, constraint: FieldConstraint) -> bool:
    config = constraint.config
    opts = resolve_options(config.options)
    number_format = NumberFormatOptions.model_validate(config.format_options or {})

    if config.type is ConstraintMode.FORMAT:
        return number_validation.format_field(record, field, number_format, opts) != ""
    if config.type is ConstraintMode.VALIDATE:
        return number_validation.run_validation(
            record, field, config.validation_type, config.validation_args, opts)
    return number_validation.evaluate_and_format(
        record, field, config.validation_type, number_format, config.validation_args, opts)


_HANDLERS = {
    ValidatorName.DATE: _date_constraint,
    ValidatorName.STRING: _string_constraint,
    ValidatorName.NUMBER: _number_constraint,
}


def apply_constraint(record: RecordAccessor, field: str, constraint: FieldConstraint) -> bool:
    """Run one constraint against one field and return its verdict."""
    return _HANDLERS[constraint.validator](record, field, constraint)


def apply_constraints(
    record: RecordAccessor,
    constraints: Dict[str, List[FieldConstraint]],
) -> Dict[str, bool]:
    """Run every constraint in order; a field passes only if all of its constraints pass."""
    verdicts: Dict[str, bool] = {}
    for field, field_constraints in constraints.items():
        verdict = True
        for constraint in field_constraints:
            if not apply_constraint(record, field, constraint):
                verdict = False
        verdicts[field] = verdict
        logger.debug("Field %s validated: %s", field, verdict)
    return verdicts


def parse_constraints(raw: Dict[str, List[Dict[str, Any]]]) -> Dict[str, List[FieldConstraint]]:
    """Build FieldConstraint objects from a plain {field: [config, ...]} mapping."""
    return {
        field: [FieldConstraint.model_validate(item) for item in items]
        for field, items in raw.items()
    }
