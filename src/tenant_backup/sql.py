"""MySQL SQL text helpers: identifier/value quoting and statement splitting.

``quote_value`` produces literals equivalent to what the MySQL client
libraries send for bound parameters, so a generated dump replays
byte-for-byte.  ``split_statements`` streams a dump file and yields
complete statements, honouring quotes, backticks and comments so that a
``;`` inside row data never splits a statement.

Usage:
    from tenant_backup.sql import quote_identifier, quote_value, split_statements

    quote_identifier("order`items")      # '`order``items`'
    quote_value("O'Brien")               # "'O\\'Brien'"
    for stmt in split_statements(open("dump.sql", encoding="utf-8")):
        ...
"""

import math
import re
from collections.abc import Iterable, Iterator
from datetime import date, datetime, time, timedelta, timezone
from decimal import Decimal
from typing import Any

from pymysql.converters import escape_string

_SAFE_NAME = re.compile(r"^[A-Za-z0-9_]+$")


def quote_identifier(name: str) -> str:
    """Backtick-quote a table or database name."""
    return "`" + name.replace("`", "``") + "`"


def check_token(value: str, what: str) -> str:
    """Validate a charset/collation name before interpolating it into DDL."""
    if not _SAFE_NAME.match(value):
        raise ValueError(f"Invalid {what}: {value!r}")
    return value


def _format_timedelta(value: timedelta) -> str:
    # MySQL TIME columns come back as timedelta and may be negative or > 24h
    total = int(value.total_seconds())
    sign = "-" if total < 0 else ""
    total = abs(total)
    hours, rest = divmod(total, 3600)
    minutes, seconds = divmod(rest, 60)
    text = f"{sign}{hours:02d}:{minutes:02d}:{seconds:02d}"
    if value.microseconds:
        text += f".{abs(value.microseconds):06d}"
    return text


def quote_value(value: Any) -> str:
    """Render a Python value as a MySQL literal.

    ``None`` becomes ``NULL``; numbers are emitted bare; bytes become hex
    literals; temporal values are quoted in MySQL's format; everything
    else is quoted as an escaped string.
    """
    if value is None:
        return "NULL"
    if isinstance(value, bool):
        return "1" if value else "0"
    if isinstance(value, int):
        return str(value)
    if isinstance(value, float):
        return repr(value) if math.isfinite(value) else "NULL"
    if isinstance(value, Decimal):
        return str(value) if value.is_finite() else "NULL"
    if isinstance(value, (bytes, bytearray, memoryview)):
        raw = bytes(value)
        return "0x" + raw.hex() if raw else "''"
    if isinstance(value, datetime):
        if value.tzinfo is not None:
            # DATETIME literals carry no offset; store the UTC wall clock
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return "'" + value.isoformat(sep=" ") + "'"
    if isinstance(value, (date, time)):
        return "'" + value.isoformat() + "'"
    if isinstance(value, timedelta):
        return "'" + _format_timedelta(value) + "'"
    if isinstance(value, (set, frozenset)):
        # SET columns
        value = ",".join(sorted(str(v) for v in value))
    return "'" + escape_string(str(value)) + "'"


def split_statements(lines: Iterable[str]) -> Iterator[str]:
    """Yield complete SQL statements from a stream of text lines.

    Statement terminators (``;``) inside single/double-quoted strings,
    backtick identifiers, ``--``/``#`` line comments and ``/* */`` block
    comments are ignored.  Plain comments are dropped from the output;
    MySQL executable comments (``/*! ... */``) are kept because the server
    runs them.  Statements are yielded without the trailing ``;``; empty
    statements are skipped.
    """
    buf: list[str] = []
    quote: str | None = None      # active quote char: ' " `
    in_block = False              # inside /* */ comment
    keep_block = False            # current block is /*! */ (executable)
    escaped = False               # previous char was a backslash inside a string

    for line in lines:
        i = 0
        n = len(line)
        while i < n:
            ch = line[i]

            if in_block:
                if ch == "*" and i + 1 < n and line[i + 1] == "/":
                    if keep_block:
                        buf.append("*/")
                    in_block = False
                    i += 2
                    continue
                if keep_block:
                    buf.append(ch)
                i += 1
                continue

            if quote is not None:
                buf.append(ch)
                if escaped:
                    escaped = False
                elif ch == "\\" and quote != "`":
                    escaped = True
                elif ch == quote:
                    # doubled quote is an escaped quote, stays inside the literal
                    if i + 1 < n and line[i + 1] == quote:
                        buf.append(line[i + 1])
                        i += 2
                        continue
                    quote = None
                i += 1
                continue

            if ch in ("'", '"', "`"):
                quote = ch
                buf.append(ch)
                i += 1
                continue

            if ch == "-" and line.startswith("--", i) and (i + 2 >= n or line[i + 2].isspace()):
                break
            if ch == "#":
                break

            if ch == "/" and i + 1 < n and line[i + 1] == "*":
                in_block = True
                keep_block = i + 2 < n and line[i + 2] == "!"
                if keep_block:
                    buf.append("/*")
                i += 2
                continue

            if ch == ";":
                statement = "".join(buf).strip()
                buf = []
                if statement:
                    yield statement
                i += 1
                continue

            buf.append(ch)
            i += 1

        if quote is None and not in_block and buf and buf[-1] != "\n":
            buf.append("\n")

    statement = "".join(buf).strip()
    if statement:
        yield statement
