"""A small scanf that parses one line of input."""

from __future__ import annotations

from typing import Any

__all__ = ["scan", "MAX_LINE"]

MAX_LINE = 256
_SPACE = " \t\n\r\f\v"
_MASK32 = (1 << 32) - 1


def _int32(value: int) -> int:
    return ((value & _MASK32) ^ 0x80000000) - 0x80000000


class _Cursor:
    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0

    @property
    def current(self) -> str:
        return self.text[self.pos] if self.pos < len(self.text) else ""

    def skip_space(self) -> None:
        while self.current and self.current in _SPACE:
            self.pos += 1

    def digits(self, allowed: str) -> str:
        start = self.pos
        while self.current and self.current in allowed:
            self.pos += 1
        return self.text[start:self.pos]

    def parse_int(self) -> int | None:
        self.skip_space()
        sign = 1
        if self.current == "-":
            sign = -1
            self.pos += 1
        elif self.current == "+":
            self.pos += 1
        text = self.digits("0123456789")
        if not text:
            return None
        return _int32(sign * int(text))

    def parse_unsigned(self) -> int | None:
        self.skip_space()
        text = self.digits("0123456789")
        return int(text) & _MASK32 if text else None

    def parse_hex(self) -> int:
        self.skip_space()
        if self.current == "0" and self.text[self.pos + 1:self.pos + 2] in ("x", "X"):
            self.pos += 2
        text = self.digits("0123456789abcdefABCDEF")
        return int(text, 16) & _MASK32 if text else 0

    def parse_string(self) -> str | None:
        self.skip_space()
        start = self.pos
        while (
            self.current
            and self.current not in _SPACE
            and self.pos - start < MAX_LINE - 1
        ):
            self.pos += 1
        return self.text[start:self.pos] or None

    def parse_char(self) -> str | None:
        self.skip_space()
        ch = self.current
        if not ch:
            return None
        self.pos += 1
        return ch


def scan(fmt: str, text: str) -> list[Any]:
    """Parse ``text`` against ``fmt`` (%d %u %x %X %s %c %%).

    Only the first ``MAX_LINE - 1`` characters of ``text`` are looked at.
    Each conversion attempted yields one list entry: the parsed value, or
    None where the input did not match. A literal character that does not
    match stops the parse, so later conversions have no entry.
    """
    cursor = _Cursor(text[:MAX_LINE - 1])
    results: list[Any] = []
    chars = iter(fmt)
    for ch in chars:
        if ch == "%":
            spec = next(chars, "")
            if spec == "":
                break
            if spec == "d":
                results.append(cursor.parse_int())
            elif spec == "u":
                results.append(cursor.parse_unsigned())
            elif spec in ("x", "X"):
                results.append(cursor.parse_hex())
            elif spec == "s":
                results.append(cursor.parse_string())
            elif spec == "c":
                results.append(cursor.parse_char())
            elif spec == "%":
                if cursor.current == "%":
                    cursor.pos += 1
        elif ch in _SPACE:
            cursor.skip_space()
        elif ch == cursor.current:
            cursor.pos += 1
        else:
            break
    return results