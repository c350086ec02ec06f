"""
Line decoder: turn one line of input into zero or more Records.

Upstream files mix one-object-per-line and array-per-line encodings with no
tag telling them apart, so each line is tried as an array first and then as
a single object. The outcome is returned as a tagged `DecodeResult`; decoding
never raises.
"""

from __future__ import annotations

import enum
from dataclasses import dataclass, field
from typing import List, Optional, Union

from pydantic import TypeAdapter, ValidationError

from price_ingest.domain.models import InsuranceService

_MANY = TypeAdapter(List[InsuranceService])


class DecodeKind(enum.Enum):
    EMPTY = "empty"
    SINGLE = "single"
    MANY = "many"
    MALFORMED = "malformed"


@dataclass(frozen=True)
class DecodeResult:
    kind: DecodeKind
    records: List[InsuranceService] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def counted(self) -> bool:
        """Whether the line counts towards the processed-line total."""
        return self.kind is not DecodeKind.EMPTY


def _error_summary(exc: ValueError) -> str:
    if not isinstance(exc, ValidationError):
        return str(exc)
    first = exc.errors()[0] if exc.errors() else {}
    location = ".".join(str(part) for part in first.get("loc", ()))
    message = first.get("msg", str(exc))
    suffix = f" ({exc.error_count()} errors)" if exc.error_count() > 1 else ""
    return f"{location}: {message}{suffix}" if location else f"{message}{suffix}"


def decode_line(line: Union[str, bytes]) -> DecodeResult:
    """
    Decode one line as an array of Records, falling back to a single Record.

    Blank lines yield `EMPTY`. A line that is neither a valid array nor a
    valid object yields `MALFORMED` with the object-decode error.
    """
    text = line.strip()
    if not text:
        return DecodeResult(DecodeKind.EMPTY)

    try:
        records = _MANY.validate_json(text)
    except ValueError:
        pass
    else:
        return DecodeResult(DecodeKind.MANY, records=list(records))

    try:
        record = InsuranceService.model_validate_json(text)
    except ValueError as exc:  # ValidationError included
        return DecodeResult(DecodeKind.MALFORMED, error=_error_summary(exc))
    return DecodeResult(DecodeKind.SINGLE, records=[record])


__all__ = ["DecodeKind", "DecodeResult", "decode_line"]
