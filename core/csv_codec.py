"""
core.csv_codec
~~~~~~~~~~~~~~

Field-level encoding for the comma-separated record files.

A field is wrapped in double quotes when it contains a comma, a double quote
or a line break, and any double quote inside it is doubled.  That is the only
escaping rule, so decoding walks the text one character at a time and tracks
whether it is inside a quoted field; a line break inside quotes belongs to the
field and does not end the record.
"""

import logging
from typing import Iterable, Iterator, List, Tuple

logger = logging.getLogger(__name__)

_NEEDS_QUOTES = (",", '"', "\n", "\r")


def escape_field(value) -> str:
    if value is None:
        return ""
    text = str(value)
    if any(ch in text for ch in _NEEDS_QUOTES):
        return '"' + text.replace('"', '""') + '"'
    return text


def join_fields(values: Iterable) -> str:
    return ",".join(escape_field(v) for v in values)


def encode_table(header: Iterable[str], rows: Iterable[Iterable]) -> str:
    """Render a header line plus one line per row, each newline-terminated."""
    lines = [join_fields(header)]
    lines.extend(join_fields(row) for row in rows)
    return "\n".join(lines) + "\n"


def split_records(text: str) -> Iterator[Tuple[int, List[str]]]:
    """Yield ``(line_number, fields)`` for every record in ``text``.

    ``line_number`` is the 1-based physical line the record starts on.
    """
    fields: List[str] = []
    field: List[str] = []
    in_quotes = False
    at_start = True
    line_no = 1
    record_line = 1
    i = 0
    n = len(text)

    while i < n:
        ch = text[i]

        if in_quotes:
            if ch == '"':
                if i + 1 < n and text[i + 1] == '"':
                    field.append('"')
                    i += 2
                    continue
                in_quotes = False
            else:
                if ch == "\n":
                    line_no += 1
                field.append(ch)
        elif ch == '"' and at_start:
            in_quotes = True
            at_start = False
        elif ch == ",":
            fields.append("".join(field))
            field = []
            at_start = True
        elif ch == "\n" or (ch == "\r" and i + 1 < n and text[i + 1] == "\n"):
            if ch == "\r":
                i += 1
            fields.append("".join(field))
            yield record_line, fields
            fields = []
            field = []
            at_start = True
            line_no += 1
            record_line = line_no
        else:
            field.append(ch)
            at_start = False
        i += 1

    if in_quotes:
        logger.warning("Unterminated quoted field in record starting at line %d", record_line)
    if field or fields or in_quotes:
        fields.append("".join(field))
        yield record_line, fields


def split_line(line: str) -> List[str]:
    """Split a single record line into its fields."""
    for _, fields in split_records(line):
        return fields
    return [""]


def decode_table(text: str) -> Tuple[List[str], List[Tuple[int, List[str]]]]:
    """Return the header fields and the non-blank records that follow it."""
    records = split_records(text)
    header: List[str] = []
    for _, fields in records:
        header = fields
        break

    rows = [
        (line_no, fields)
        for line_no, fields in records
        if fields != [""]
    ]
    return header, rows
