#!/usr/bin/env python3
"""
DM Admin Charset Machinery - Detection, Conversion and Best-Effort Repair

Every string that crosses the driver boundary passes through this module:
row values on the way out, SQL text and bound parameters on the way in, and
driver error messages on their way to a human.

Byte strings and text:
    Values may be ``bytes`` or ``str``. A ``str`` is the UTF-8 view of a byte
    string, so ``value.encode('utf-8', 'surrogateescape')`` yields the bytes
    the driver actually saw. The SQLite adapter decodes TEXT columns with
    ``surrogateescape`` for exactly this reason: GBK bytes stored in a UTF-8
    database survive the trip and can be repaired here. Conversions always
    hand back the type they were given.

Failure model:
    Nothing in this module raises. An unknown codec label makes conversion
    an identity, detection that finds nothing returns ``UNKNOWN`` and a
    conversion that cannot map some bytes substitutes them. The only way to
    tell a degraded conversion from a good one is ``score_text``.

Usage:
    settings = CharsetSettings(data_charset='GBK', output_charset='UTF-8')
    rows = settings.normalize_rows(rows)
    message = settings.normalize_error(str(exc))
"""

import codecs
import functools
import logging
import re
from collections.abc import MutableMapping
from dataclasses import dataclass
from typing import Any, List, Optional, Sequence, Union

logger = logging.getLogger(__name__)

Text = Union[str, bytes]

UNKNOWN = ''
UTF8 = 'UTF-8'

# Fallback order used when repairing driver error messages
ERROR_CANDIDATES = ('UTF-8', 'GB18030', 'GBK', 'GB2312', 'CP936', 'ISO-8859-1')

REPLACEMENT_CHAR = '\ufffd'
_REPLACEMENT_BYTES = REPLACEMENT_CHAR.encode('utf-8')

# CJK Unified Ideographs block
_CJK_RE = re.compile('[\u4e00-\u9fff]')

# Lone surrogates produced by decoding bytes with surrogateescape
_ESCAPED_BYTE_RE = re.compile('[\udc80-\udcff]')


def same_charset(left: Optional[str], right: Optional[str]) -> bool:
    """Case-insensitive comparison of two charset labels."""
    return (left or '').lower() == (right or '').lower()


@functools.lru_cache(maxsize=64)
def _codec_name(label: str) -> Optional[str]:
    try:
        return codecs.lookup(label).name
    except LookupError:
        logger.warning(f"Unknown charset label '{label}'; conversions using it are skipped")
        return None


def _as_bytes(value: Text) -> bytes:
    if isinstance(value, (bytes, bytearray)):
        return bytes(value)
    try:
        return value.encode('utf-8', 'surrogateescape')
    except UnicodeEncodeError:
        return value.encode('utf-8', 'replace')


def _like(raw: bytes, template: Text) -> Text:
    if isinstance(template, (bytes, bytearray)):
        return raw
    return raw.decode('utf-8', 'surrogateescape')


def has_escaped_bytes(value: Any) -> bool:
    """True for text carrying non-UTF-8 bytes as surrogate escapes."""
    return isinstance(value, str) and _ESCAPED_BYTE_RE.search(value) is not None


def escaped_bytes(value: Text) -> bytes:
    """The raw bytes behind a surrogate-escaped string."""
    return _as_bytes(value)


def decode_for_connection(value: Text, charset: Optional[str]) -> Optional[str]:
    """
    Read the bytes behind ``value`` as text in the connection ``charset``.

    Returns None when the charset is unknown or the bytes are not valid in it.
    """
    codec = _codec_name(charset) if charset else None
    if codec is None:
        return None
    try:
        return escaped_bytes(value).decode(codec)
    except UnicodeDecodeError:
        return None


def _utf8_text(value: Text) -> Optional[str]:
    """Return the decoded text when ``value`` is well-formed UTF-8, else None."""
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode('utf-8')
        except UnicodeDecodeError:
            return None
    try:
        value.encode('utf-8')
    except UnicodeEncodeError:
        return None
    return value


def is_valid_utf8(value: Text) -> bool:
    return _utf8_text(value) is not None


def contains_cjk(value: Text) -> bool:
    text = _utf8_text(value)
    return text is not None and _CJK_RE.search(text) is not None


def score_text(value: Optional[Text]) -> int:
    """
    Score how much ``value`` looks like correctly decoded text.

    Two points per CJK Unified Ideograph (U+4E00-U+9FFF), minus one point per
    replacement character and per literal '?'. Input that is not well-formed
    UTF-8 earns no CJK points.

    This is a heuristic tuned for Chinese data, not an encoding validator:
    Latin, Cyrillic or Japanese kana text scores neutral (zero) however it
    was decoded.
    """
    if value is None:
        return 0
    if isinstance(value, (bytes, bytearray)):
        raw = bytes(value)
        bad = raw.count(_REPLACEMENT_BYTES) + raw.count(b'?')
    else:
        bad = value.count(REPLACEMENT_CHAR) + value.count('?')
    text = _utf8_text(value)
    cjk = len(_CJK_RE.findall(text)) if text is not None else 0
    return cjk * 2 - bad


def detect_encoding(value: Text, candidates: Sequence[str]) -> str:
    """
    Return the charset ``value`` is most likely encoded in, or ``UNKNOWN``.

    Well-formed UTF-8 short-circuits to 'UTF-8'. Otherwise the first candidate
    that strictly decodes the whole input wins. Labels outside ``candidates``
    are never returned.
    """
    raw = _as_bytes(value)
    if is_valid_utf8(raw):
        return UTF8
    for candidate in candidates:
        codec = _codec_name(candidate) if candidate else None
        if codec is None:
            continue
        try:
            raw.decode(codec)
        except (UnicodeDecodeError, LookupError):
            continue
        logger.debug(f"Detected {candidate} for {len(raw)} bytes")
        return candidate
    return UNKNOWN


def convert_string(value: Optional[Text], from_charset: Optional[str], to_charset: Optional[str]) -> Optional[Text]:
    """
    Convert ``value`` from one charset to another, best effort.

    Identity when either label is empty or both are equal ignoring case.
    Undecodable input bytes become U+FFFD, unmappable output characters become
    '?'. Any other failure returns ``value`` unchanged.
    """
    if value is None or not isinstance(value, (str, bytes, bytearray)):
        return value
    if not from_charset or not to_charset or same_charset(from_charset, to_charset):
        return value

    source = _codec_name(from_charset)
    target = _codec_name(to_charset)
    if source is None or target is None:
        return value

    try:
        converted = _as_bytes(value).decode(source, 'replace').encode(target, 'replace')
    except (LookupError, UnicodeError, TypeError) as e:
        logger.debug(f"Conversion {from_charset} -> {to_charset} failed: {e}")
        return value
    return _like(converted, value)


def convert_with_candidates(value: Text, candidates: Sequence[str], to_charset: str) -> Text:
    """Try each candidate as the source charset and keep the best scoring result.

    The original text is the baseline; a candidate replaces the current best
    only on a strictly higher score, so earlier candidates win ties.
    """
    best = value
    best_score = score_text(value)

    for candidate in candidates:
        if same_charset(candidate, to_charset):
            converted = value
        else:
            converted = convert_string(value, candidate, to_charset)
        score = score_text(converted)
        if score > best_score:
            best_score = score
            best = converted

    return best


def best_effort_convert(value: Text, candidates: Sequence[str], to_charset: str) -> Text:
    """Detect first, fall back to the first candidate that changes anything."""
    detected = detect_encoding(value, candidates)
    if detected != UNKNOWN:
        return convert_string(value, detected, to_charset)

    for candidate in candidates:
        converted = convert_string(value, candidate, to_charset)
        if converted and converted != value:
            return converted
    return value


def _convert_leaves(value: Any, from_charset: str, to_charset: str) -> Any:
    if isinstance(value, str):
        return convert_string(value, from_charset, to_charset)
    if isinstance(value, MutableMapping):
        for key in list(value.keys()):
            value[key] = _convert_leaves(value[key], from_charset, to_charset)
        return value
    if isinstance(value, list):
        value[:] = [_convert_leaves(item, from_charset, to_charset) for item in value]
        return value
    if isinstance(value, tuple):
        return tuple(_convert_leaves(item, from_charset, to_charset) for item in value)
    return value


def normalize_rows(rows: List[Any], from_charset: Optional[str], to_charset: Optional[str]) -> List[Any]:
    """
    Convert every text leaf of every row from the data charset to the output
    charset, in place. Nested mappings and sequences are walked; bytes
    (binary), numbers and None are left alone.
    """
    if not from_charset or not to_charset or same_charset(from_charset, to_charset):
        return rows

    for index, row in enumerate(rows):
        if isinstance(row, (MutableMapping, list, tuple)):
            rows[index] = _convert_leaves(row, from_charset, to_charset)
    return rows


def prepare_outbound(value: Optional[Text], output_charset: Optional[str], data_charset: Optional[str]) -> Optional[Text]:
    """Convert UI-facing text back into the connection's charset."""
    if value is None:
        return None
    if not data_charset or same_charset(output_charset, data_charset):
        return value
    return convert_string(value, output_charset, data_charset)


def normalize_error(message: Text,
                    error_charset: Optional[str] = '',
                    data_charset: Optional[str] = '',
                    output_charset: Optional[str] = UTF8) -> Text:
    """
    Make a driver error message readable in the output charset.

    Well-formed UTF-8 that already contains CJK text is trusted as is. This
    rule has no deeper justification than the data it was tuned on, and it
    lets multi-byte corruption through whenever some CJK survived.
    """
    if message is None:
        return ''
    if contains_cjk(message):
        return message

    source = error_charset or data_charset or ''
    to = output_charset or ''
    candidates = list(ERROR_CANDIDATES)
    if source and source.upper() not in candidates:
        candidates.insert(0, source)

    if source and to and not same_charset(source, to):
        primary = convert_string(message, source, to)
        best = convert_with_candidates(message, candidates, to)
        return primary if score_text(primary) >= score_text(best) else best
    return convert_with_candidates(message, candidates, to)


@dataclass(frozen=True)
class CharsetSettings:
    """Charset labels threaded explicitly into every conversion."""
    data_charset: str = ''
    output_charset: str = UTF8
    error_charset: str = ''

    @property
    def converts_data(self) -> bool:
        return bool(self.data_charset and self.output_charset) and not same_charset(
            self.data_charset, self.output_charset)

    def normalize_rows(self, rows: List[Any]) -> List[Any]:
        return normalize_rows(rows, self.data_charset, self.output_charset)

    def prepare_outbound(self, value: Optional[Text]) -> Optional[Text]:
        return prepare_outbound(value, self.output_charset, self.data_charset)

    def normalize_error(self, message: Text) -> Text:
        return normalize_error(message, self.error_charset, self.data_charset, self.output_charset)
