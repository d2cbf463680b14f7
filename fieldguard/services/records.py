"""
Record accessors: the mutable, named-field container every validator works on.

Two adapters share one interface:
- LinkedRecord: full capability (read, write, error and info annotations)
- DetachedRecord: raw stored values only, shaped {field: {"value": ...}}

Validators check `record.linked` before annotating instead of trying the
call and falling back on failure.
"""

from abc import ABC, abstractmethod
from typing import Any, Dict, List, Optional


class RecordCapabilityError(Exception):
    """Raised when an annotation is attempted on a detached record."""


class RecordAccessor(ABC):
    """Capability interface over an external record."""

    linked: bool = True

    @abstractmethod
    def get(self, field: str) -> Any:
        ...

    @abstractmethod
    def set(self, field: str, value: Any) -> None:
        ...

    @abstractmethod
    def add_error(self, field: str, message: str) -> None:
        ...

    @abstractmethod
    def add_info(self, field: str, message: str) -> None:
        ...


class LinkedRecord(RecordAccessor):
    """In-memory record with error and info annotations per field."""

    linked = True

    def __init__(self, values: Optional[Dict[str, Any]] = None):
        self.values: Dict[str, Any] = dict(values or {})
        self.errors: Dict[str, List[str]] = {}
        self.infos: Dict[str, List[str]] = {}

    def get(self, field: str) -> Any:
        return self.values.get(field)

    def set(self, field: str, value: Any) -> None:
        self.values[field] = value

    def add_error(self, field: str, message: str) -> None:
        self.errors.setdefault(field, []).append(message)

    def add_info(self, field: str, message: str) -> None:
        self.infos.setdefault(field, []).append(message)

    @property
    def is_valid(self) -> bool:
        return not any(self.errors.values())

    def to_dict(self) -> Dict[str, Any]:
        return {
            "values": dict(self.values),
            "errors": {k: list(v) for k, v in self.errors.items() if v},
            "infos": {k: list(v) for k, v in self.infos.items() if v},
        }

    def __repr__(self) -> str:
        return f"LinkedRecord(values={self.values!r}, errors={self.errors!r})"


class DetachedRecord(RecordAccessor):
    """Raw stored values without annotation support."""

    linked = False

    def __init__(self, values: Optional[Dict[str, Dict[str, Any]]] = None):
        self.values: Dict[str, Dict[str, Any]] = values if values is not None else {}

    @classmethod
    def from_flat(cls, values: Dict[str, Any]) -> "DetachedRecord":
        return cls({k: {"value": v} for k, v in values.items()})

    def get(self, field: str) -> Any:
        cell = self.values.get(field)
        if cell is None:
            return None
        return cell.get("value")

    def set(self, field: str, value: Any) -> None:
        self.values.setdefault(field, {})["value"] = value

    def add_error(self, field: str, message: str) -> None:
        raise RecordCapabilityError(f"Cannot add error to detached record field '{field}'")

    def add_info(self, field: str, message: str) -> None:
        raise RecordCapabilityError(f"Cannot add info to detached record field '{field}'")

    def __repr__(self) -> str:
        return f"DetachedRecord(values={self.values!r})"


def is_empty(value: Any) -> bool:
    """Falsy check used by every validator for the 'value absent' branch."""
    if value is None:
        return True
    if isinstance(value, float) and value != value:
        return True
    if isinstance(value, str):
        return value == ""
    return False
