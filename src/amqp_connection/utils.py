"""Parsing helpers for amqp-connection."""

import logging
import re
from datetime import timedelta
from urllib.parse import unquote

from amqp_connection.settings import MAX_PORT, MIN_PORT

logger = logging.getLogger(__name__)

_INTEGER_PATTERN = re.compile(r"\s*([+-]?\d+)\s*", re.ASCII)
_DAYS_PATTERN = re.compile(r"\s*(\d+)\s*", re.ASCII)
_TIME_PATTERN = re.compile(
    r"\s*(?:(?P<days>\d+)\.)?(?P<hours>\d{1,2}):(?P<minutes>\d{1,2})"
    r"(?::(?P<seconds>\d{1,2})(?:\.(?P<fraction>\d{1,7}))?)?\s*",
    re.ASCII,
)
_PATH_SEGMENT_PATTERN = re.compile(r"[^/]*/|[^/]+")
_LEADING_DIGITS_PATTERN = re.compile(r"\d+", re.ASCII)

MAX_DURATION_DAYS = 10675199 # Largest whole number of days a .NET TimeSpan holds
_QUOTES = ("'", '"')


# --- Key/value connection strings ---

def parse_key_value_string(connection_string: str) -> tuple[dict[str, str], list[str]]:
    """Parses a ``key=value;key=value`` connection string.

    Keys are trimmed and lower-cased, values are trimmed. A value may be
    wrapped in single or double quotes, in which case it can contain ``;``
    and a doubled quote stands for a literal one. ``==`` inside a key is a
    literal ``=``. An unquoted empty value removes the key, and later
    duplicates overwrite earlier ones.

    Malformed segments do not stop the scan; they are reported in the
    returned list of error messages and skipped.

    Returns:
        A tuple of (options, errors).
    """
    options: dict[str, str] = {}
    errors: list[str] = []
    text = connection_string
    position = 0

    while position < len(text):
        if text[position] == ";" or text[position].isspace():
            position += 1
            continue

        segment_start = position
        key, position = _read_key(text, position)
        if not key or not key.strip():
            position = _segment_end(text, segment_start)
            errors.append(_format_error(text, segment_start, position))
            continue
        key = key.strip().lower()

        while position < len(text) and text[position].isspace():
            position += 1

        if position < len(text) and text[position] in _QUOTES:
            value, position = _read_quoted_value(text, position)
            if value is None:
                position = _segment_end(text, position)
                errors.append(_format_error(text, segment_start, position))
                continue
            options[key] = value
        else:
            end = _segment_end(text, position)
            value = text[position:end].strip()
            position = end
            if value:
                options[key] = value
            else:
                options.pop(key, None)

    logger.debug(f"Parsed {len(options)} connection string option(s): {sorted(options)}")
    return options, errors


def _read_key(text: str, position: int) -> tuple[str | None, int]:
    """Reads up to the ``=`` separating key and value. Returns None for the key if there is none."""
    chars = []
    while position < len(text):
        char = text[position]
        if char == ";":
            return None, position
        if char == "=":
            if text.startswith("==", position):
                chars.append("=")
                position += 2
                continue
            return "".join(chars), position + 1
        chars.append(char)
        position += 1
    return None, position


def _read_quoted_value(text: str, position: int) -> tuple[str | None, int]:
    """Reads a quoted value starting at the opening quote.

    Returns None for the value when the quote is unterminated or followed by
    anything but whitespace before the next ``;``.
    """
    quote = text[position]
    position += 1
    chars = []
    while True:
        if position >= len(text):
            return None, position
        char = text[position]
        if char == quote:
            if text.startswith(quote * 2, position):
                chars.append(quote)
                position += 2
                continue
            position += 1
            break
        chars.append(char)
        position += 1

    end = _segment_end(text, position)
    if text[position:end].strip():
        return None, position
    return "".join(chars), end


def _segment_end(text: str, position: int) -> int:
    end = text.find(";", position)
    return len(text) if end == -1 else end


def _format_error(text: str, start: int, end: int) -> str:
    return f"Invalid connection string format near '{text[start:end].strip()}'."


# --- Value parsers (raise ValueError on bad input) ---

def parse_bool(value: str) -> bool:
    normalized = value.strip().lower()
    if normalized == "true":
        return True
    if normalized == "false":
        return False
    raise ValueError(f"not a boolean: {value!r}")


def parse_int(value: str, minimum: int, maximum: int) -> int:
    """Parses a decimal integer, optionally signed and padded with whitespace, within [minimum, maximum]."""
    match = _INTEGER_PATTERN.fullmatch(value)
    if not match:
        raise ValueError(f"not an integer: {value!r}")
    number = int(match.group(1))
    if not minimum <= number <= maximum:
        raise ValueError(f"{number} is outside {minimum}..{maximum}")
    return number


def parse_port(value: str) -> int:
    return parse_int(value, MIN_PORT, MAX_PORT)


def parse_uint16(value: str) -> int:
    return parse_int(value, 0, 65535)


def parse_duration(value: str) -> timedelta:
    """Parses a duration written the way .NET writes a TimeSpan.

    Accepted forms are ``d`` (whole days), ``hh:mm``, ``hh:mm:ss``,
    ``d.hh:mm:ss`` and any of the ``ss`` forms followed by up to seven
    fractional digits, e.g. ``00:00:10`` or ``1.02:03:04.5``.
    """
    match = _DAYS_PATTERN.fullmatch(value)
    if match:
        return _make_duration(days=int(match.group(1)))

    match = _TIME_PATTERN.fullmatch(value)
    if not match:
        raise ValueError(f"not a duration: {value!r}")

    hours = int(match["hours"])
    minutes = int(match["minutes"])
    seconds = int(match["seconds"] or 0)
    if hours > 23 or minutes > 59 or seconds > 59:
        raise ValueError(f"time component out of range: {value!r}")

    fraction = match["fraction"] or ""
    microseconds = int(fraction.ljust(7, "0")) // 10 if fraction else 0
    return _make_duration(
        days=int(match["days"] or 0),
        hours=hours,
        minutes=minutes,
        seconds=seconds,
        microseconds=microseconds,
    )


def _make_duration(days: int, **components: int) -> timedelta:
    if days > MAX_DURATION_DAYS:
        raise ValueError(f"{days} days is too large for a duration")
    return timedelta(days=days, **components)


# --- URIs ---

def uri_decode(value: str) -> str:
    """Percent-decodes a URI component, keeping ``+`` as a literal plus."""
    return unquote(value.replace("+", "%2B"))


def uri_path_segments(path: str) -> list[str]:
    """Splits a URI path into segments that keep their trailing slash.

    ``"/vhost"`` gives ``["/", "vhost"]`` and ``"/a/b"`` gives
    ``["/", "a/", "b"]``. An empty path is treated as ``"/"``.
    """
    return _PATH_SEGMENT_PATTERN.findall(path or "/")


# --- Versions ---

def format_file_version(version: str) -> str:
    """Reduces a version string to ``major.minor.build``.

    Missing components are filled with 0 and any non-numeric suffix of a
    component is dropped, so ``"2.0rc1"`` becomes ``"2.0.0"``.
    """
    numbers = []
    for part in version.split(".")[:3]:
        match = _LEADING_DIGITS_PATTERN.match(part)
        numbers.append(str(int(match.group())) if match else "0")
    numbers.extend(["0"] * (3 - len(numbers)))
    return ".".join(numbers)
