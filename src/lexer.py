"""
IC10 Lexer
Splits source into lines, strips comments, expands preprocessor literals
and tokenizes each line on whitespace
"""

import re
import zlib
from typing import List

from errors import CompileError, ErrorKind

COMMENT_MARKER = "#"
MAX_STRING_LENGTH = 6

_LINE_BREAK_RE = re.compile(r"\r\n|\r|\n")
_STR_RE = re.compile(r'STR\("([^"\r\n]*)"\)')
_HASH_RE = re.compile(r'HASH\("([^"\r\n]*)"\)')
_HEX_RE = re.compile(r"\$(\S*)")
_BINARY_RE = re.compile(r"%(\S*)")
_HEX_DIGITS_RE = re.compile(r"[0-9A-Fa-f_]+")
_BINARY_DIGITS_RE = re.compile(r"[01_]+")


def split_lines(source: str) -> List[str]:
    """Split on \\n, \\r\\n or \\r line endings"""
    if not source:
        return []
    lines = _LINE_BREAK_RE.split(source)
    # A trailing line break does not start another line
    if lines and lines[-1] == "":
        lines.pop()
    return lines


def strip_comment(text: str) -> str:
    index = text.find(COMMENT_MARKER)
    if index < 0:
        return text
    return text[:index]


def compute_hash(text: str) -> int:
    """Signed CRC-32 of the text, as used by HASH("...")"""
    value = zlib.crc32(text.encode("utf-8")) & 0xFFFFFFFF
    if value >= 0x80000000:
        value -= 0x100000000
    return value


def pack_string(text: str) -> int:
    """Pack up to six ASCII characters into one integer, first character highest"""
    if len(text) > MAX_STRING_LENGTH:
        raise CompileError(ErrorKind.MALFORMED_STRING,
                           f"STR literal longer than {MAX_STRING_LENGTH} characters: {text!r}")
    value = 0
    for char in text:
        code = ord(char)
        if code > 0x7F:
            raise CompileError(ErrorKind.MALFORMED_STRING, f"STR literal is not ASCII: {text!r}")
        value = (value << 8) | code
    return value


def _hex_to_decimal(match: "re.Match") -> str:
    digits = match.group(1)
    if not _HEX_DIGITS_RE.fullmatch(digits) or not digits.replace("_", ""):
        raise CompileError(ErrorKind.MALFORMED_HEX, f"Malformed hex literal: ${digits}")
    return str(int(digits.replace("_", ""), 16))


def _binary_to_decimal(match: "re.Match") -> str:
    digits = match.group(1)
    if not _BINARY_DIGITS_RE.fullmatch(digits) or not digits.replace("_", ""):
        raise CompileError(ErrorKind.MALFORMED_BINARY, f"Malformed binary literal: %{digits}")
    return str(int(digits.replace("_", ""), 2))


def preprocess(text: str) -> str:
    """Replace STR/HASH calls and $hex / %binary literals with decimal text"""
    text = _STR_RE.sub(lambda m: str(pack_string(m.group(1))), text)
    if "STR(" in text:
        raise CompileError(ErrorKind.MALFORMED_STRING, f"Malformed STR literal in {text.strip()!r}")

    text = _HASH_RE.sub(lambda m: str(compute_hash(m.group(1))), text)
    if "HASH(" in text:
        raise CompileError(ErrorKind.MALFORMED_HASH, f"Malformed HASH literal in {text.strip()!r}")

    text = _HEX_RE.sub(_hex_to_decimal, text)
    text = _BINARY_RE.sub(_binary_to_decimal, text)
    return text


def tokenize_line(text: str) -> List[str]:
    return preprocess(strip_comment(text)).split()
