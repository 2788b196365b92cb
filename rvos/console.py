"""Character console: input translation, echo and line editing."""

from __future__ import annotations

import sys
from typing import TextIO

__all__ = ["BACKSPACE", "DELETE", "translate_input", "Console"]

BACKSPACE = 0x100
DELETE = 0x7F


def translate_input(ch: str | int) -> int:
    """Map a raw input character to a console code.

    Carriage return and newline become newline; backspace and delete
    become ``BACKSPACE``; anything else is its own code.
    """
    code = ord(ch) if isinstance(ch, str) else ch
    if code in (ord("\r"), ord("\n")):
        return ord("\n")
    if code in (ord("\b"), DELETE):
        return BACKSPACE
    return code


class Console:
    """A console over a pair of text streams."""

    def __init__(self, infile: TextIO | None = None, outfile: TextIO | None = None) -> None:
        self.infile = infile if infile is not None else sys.stdin
        self.outfile = outfile if outfile is not None else sys.stdout

    def putc(self, c: str | int) -> None:
        """Write one character; ``BACKSPACE`` erases the previous one."""
        if c == BACKSPACE:
            self.outfile.write("\b \b")
        else:
            self.outfile.write(chr(c) if isinstance(c, int) else c)
        self.outfile.flush()

    def puts(self, s: str) -> None:
        """Write a string character by character."""
        for ch in s:
            self.putc(ch)

    def getc(self) -> int:
        """Read one character and translate it; raise EOFError at end of input."""
        ch = self.infile.read(1)
        if not ch:
            raise EOFError("console input exhausted")
        return translate_input(ch)

    def read_line(self, n: int) -> str:
        """Read up to ``n`` characters with echo, ending after a newline.

        Backspace removes the last character read. At end of input the
        characters read so far are returned; EOFError is raised if there
        are none.
        """
        if n < 0:
            raise ValueError("read length must not be negative")
        buf: list[str] = []
        while len(buf) < n:
            try:
                c = self.getc()
            except EOFError:
                if buf:
                    break
                raise
            if c == ord("\n"):
                buf.append("\n")
                self.putc("\n")
                break
            if c == BACKSPACE:
                if buf:
                    buf.pop()
                    self.putc(BACKSPACE)
                continue
            buf.append(chr(c))
            self.putc(c)
        return "".join(buf)