from __future__ import annotations

import gzip
import json
from pathlib import Path
from typing import IO, Iterable, Iterator, Union

from pydantic import ValidationError

from .item_cf.errors import MalformedRecordError
from .schemas import UserRecord


RecordOrError = Union[UserRecord, MalformedRecordError]


def open_text(path: Path | str) -> IO[str]:
    """Open a UTF-8 text file for reading, transparently un-gzipping `*.gz`."""
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Input not found: {path}")
    if path.suffix == ".gz":
        return gzip.open(path, "rt", encoding="utf-8")
    return path.open("r", encoding="utf-8")


def _describe_validation_error(exc: ValidationError) -> str:
    errors = exc.errors()
    if not errors:
        return str(exc)
    first = errors[0]
    loc = ".".join(str(p) for p in first.get("loc", ()))
    more = f" (+{len(errors) - 1} more)" if len(errors) > 1 else ""
    return f"{loc or 'record'}: {first.get('msg', 'invalid')}{more}"


def parse_record(line: str, line_no: int | None = None) -> UserRecord:
    """Decode one JSON line into a UserRecord.

    Raises MalformedRecordError for invalid JSON, a non-object payload, a
    missing/non-list `ratings`, or a rating entry of the wrong shape.
    """
    try:
        obj = json.loads(line)
    except json.JSONDecodeError as exc:
        raise MalformedRecordError(f"invalid JSON: {exc.msg}", line_no=line_no) from exc

    if not isinstance(obj, dict):
        raise MalformedRecordError(f"expected a JSON object, got {type(obj).__name__}", line_no=line_no)
    if "ratings" not in obj:
        raise MalformedRecordError("missing field 'ratings'", line_no=line_no)
    if not isinstance(obj["ratings"], list):
        raise MalformedRecordError("'ratings' must be a list", line_no=line_no)

    try:
        return UserRecord.model_validate(obj)
    except ValidationError as exc:
        raise MalformedRecordError(_describe_validation_error(exc), line_no=line_no) from exc


def iter_user_records(lines: Iterable[str], *, skip_malformed: bool = True) -> Iterator[RecordOrError]:
    """Decode a stream of JSON lines.

    Every line up to end of stream is a record, whether or not the final one is
    newline-terminated. Blank lines are ignored. With `skip_malformed`, a bad
    line is yielded as its MalformedRecordError so callers can count it;
    otherwise the error is raised.
    """
    for line_no, line in enumerate(lines, start=1):
        if not line.strip():
            continue
        try:
            yield parse_record(line, line_no)
        except MalformedRecordError as err:
            if not skip_malformed:
                raise
            yield err


def read_user_records(path: Path | str, *, skip_malformed: bool = True) -> Iterator[RecordOrError]:
    """Lazily decode user records from a plain or gzipped JSON-lines file."""
    with open_text(path) as f:
        yield from iter_user_records(f, skip_malformed=skip_malformed)
