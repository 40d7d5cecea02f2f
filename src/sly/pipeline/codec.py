"""Byte-level JSON string codec and lenient response-field extraction."""

from __future__ import annotations

import re

_SHORT_ESCAPES: dict[int, bytes] = {
    0x5C: b"\\\\",
    0x22: b'\\"',
    0x0A: b"\\n",
    0x0D: b"\\r",
    0x09: b"\\t",
    0x08: b"\\b",
    0x0C: b"\\f",
}
_SHORT_UNESCAPES: dict[str, str] = {
    "n": "\n",
    "r": "\r",
    "t": "\t",
    '"': '"',
    "\\": "\\",
    "b": "\b",
    "f": "\f",
}
_HEX_DIGITS = frozenset("0123456789abcdefABCDEF")
_REPLACEMENT_CHAR = "\ufffd"


def escape_json_string(value: str | bytes) -> str:
    """Escape text for embedding between JSON double quotes.

    Never fails. Bytes that do not start a valid UTF-8 sequence are emitted
    as ``\\u00XX`` one at a time, so a single bad byte cannot swallow the
    characters that follow it.
    """

    raw = _to_bytes(value)
    out = bytearray()
    index = 0
    length = len(raw)
    while index < length:
        byte = raw[index]
        short = _SHORT_ESCAPES.get(byte)
        if short is not None:
            out += short
            index += 1
            continue
        if byte < 0x20:
            out += b"\\u%04x" % byte
            index += 1
            continue
        if byte < 0x80:
            out.append(byte)
            index += 1
            continue

        width = _utf8_sequence_length(byte)
        chunk = raw[index : index + width]
        if width and len(chunk) == width and _is_valid_utf8(chunk):
            out += chunk
            index += width
            continue
        out += b"\\u%04x" % byte
        index += 1
    return out.decode("utf-8")


def unescape_json_string(raw: str) -> str:
    """Decode the body of a JSON string literal.

    ``\\uXXXX`` escapes (including surrogate pairs) are decoded as JSON does.
    Unrecognised two-character escapes pass their second character through.
    """

    out: list[str] = []
    index = 0
    length = len(raw)
    while index < length:
        char = raw[index]
        if char != "\\" or index + 1 >= length:
            out.append(char)
            index += 1
            continue
        marker = raw[index + 1]
        if marker == "u" and _is_hex(raw[index + 2 : index + 6]):
            decoded, index = _decode_unicode_escape(raw, index)
            out.append(decoded)
            continue
        out.append(_SHORT_UNESCAPES.get(marker, marker))
        index += 2
    return "".join(out)


def extract_field(body: bytes | str, key: str) -> str | None:
    """Return the first string value stored under ``key`` in a raw JSON body.

    ``None`` means the field is absent or its string is unterminated. The scan
    does not understand nesting: an earlier key with the same name wins.
    """

    text = body.decode("utf-8", errors="replace") if isinstance(body, bytes) else body
    match = _key_pattern(key).search(text)
    if match is None:
        return None

    start = match.end()
    escaped = False
    for index in range(start, len(text)):
        char = text[index]
        if escaped:
            escaped = False
            continue
        if char == "\\":
            escaped = True
            continue
        if char == '"':
            return unescape_json_string(text[start:index])
    return None


def collapse_single_line(value: str) -> str:
    """Drop line breaks and trailing blanks from a literal shell command."""

    return value.replace("\n", "").replace("\r", "").rstrip(" \t")


def _key_pattern(key: str) -> re.Pattern[str]:
    # Whitespace around the colon is accepted: Gemini and Ollama pretty-print replies.
    return re.compile(r'"' + re.escape(key) + r'"[ \t\r\n]*:[ \t\r\n]*"')


def _to_bytes(value: str | bytes) -> bytes:
    if isinstance(value, bytes):
        return value
    try:
        # Undecodable argv bytes arrive as lone surrogates U+DC80..U+DCFF.
        return value.encode("utf-8", errors="surrogateescape")
    except UnicodeEncodeError:
        return value.encode("utf-8", errors="surrogatepass")


def _utf8_sequence_length(lead: int) -> int:
    if 0xC0 <= lead <= 0xDF:
        return 2
    if 0xE0 <= lead <= 0xEF:
        return 3
    if 0xF0 <= lead <= 0xF7:
        return 4
    return 0


def _is_valid_utf8(chunk: bytes) -> bool:
    try:
        chunk.decode("utf-8")
    except UnicodeDecodeError:
        return False
    return True


def _is_hex(value: str) -> bool:
    return len(value) == 4 and all(char in _HEX_DIGITS for char in value)


def _decode_unicode_escape(raw: str, index: int) -> tuple[str, int]:
    code = int(raw[index + 2 : index + 6], 16)
    next_index = index + 6
    if 0xD800 <= code <= 0xDBFF:
        if raw[next_index : next_index + 2] == "\\u" and _is_hex(
            raw[next_index + 2 : next_index + 6],
        ):
            low = int(raw[next_index + 2 : next_index + 6], 16)
            if 0xDC00 <= low <= 0xDFFF:
                combined = 0x10000 + ((code - 0xD800) << 10) + (low - 0xDC00)
                return chr(combined), next_index + 6
        return _REPLACEMENT_CHAR, next_index
    if 0xDC00 <= code <= 0xDFFF:
        return _REPLACEMENT_CHAR, next_index
    return chr(code), next_index
