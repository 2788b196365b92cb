"""printf-style formatting for the kernel console and for user programs."""

from __future__ import annotations

from enum import Enum
from typing import Any, Iterator

__all__ = [
    "Color",
    "itoa",
    "kformat",
    "uformat",
    "clear_screen",
    "clear_line",
    "goto_xy",
    "set_text_color",
    "set_background_color",
    "reset_colors",
    "colored",
]

_DIGITS = "0123456789abcdef"
_MASK32 = (1 << 32) - 1
_MASK64 = (1 << 64) - 1


class Color(str, Enum):
    """ANSI colour digits used in the 3x/4x escape sequences."""

    BLACK = "0"
    RED = "1"
    GREEN = "2"
    YELLOW = "3"
    BLUE = "4"
    MAGENTA = "5"
    CYAN = "6"
    WHITE = "7"


def _int32(value: int) -> int:
    return ((value & _MASK32) ^ 0x80000000) - 0x80000000


def _int64(value: int) -> int:
    return ((value & _MASK64) ^ (1 << 63)) - (1 << 63)


def itoa(value: int, base: int = 10, signed: bool = True) -> str:
    """Render a 64-bit integer in the given base (2 to 16).

    Unsigned conversion treats the value as its 64-bit two's complement.
    """
    if not 2 <= base <= 16:
        raise ValueError(f"unsupported base: {base}")
    value = _int64(value)
    negative = signed and value < 0
    x = -value if negative else value & _MASK64
    digits = []
    while True:
        digits.append(_DIGITS[x % base])
        x //= base
        if x == 0:
            break
    if negative:
        digits.append("-")
    return "".join(reversed(digits))


def _char(arg: Any) -> str:
    if isinstance(arg, str):
        if not arg:
            raise ValueError("empty string given for %c")
        return arg[0]
    return chr(int(arg) & 0xFF)


def _format(fmt: str, args: tuple, user: bool) -> str:
    values: Iterator[Any] = iter(args)

    def take() -> Any:
        try:
            return next(values)
        except StopIteration:
            raise ValueError(f"not enough arguments for format {fmt!r}") from None

    out = []
    chars = iter(fmt)
    for ch in chars:
        if ch != "%":
            out.append(ch)
            continue
        spec = next(chars, "")
        if spec in ("d", "i"):
            out.append(itoa(_int32(int(take())), 10, True))
        elif spec == "u" and user:
            out.append(itoa(int(take()) & _MASK32, 10, False))
        elif spec == "x":
            out.append(itoa(_int32(int(take())), 16, False))
        elif spec == "X":
            out.append(itoa(_int32(int(take())), 16, False).upper())
        elif spec == "p" and not user:
            arg = take()
            out.append("0x" + itoa(0 if arg is None else int(arg) & _MASK64, 16, False))
        elif spec == "c":
            out.append(_char(take()))
        elif spec == "s":
            arg = take()
            out.append("(null)" if arg is None else str(arg))
        elif spec == "%":
            out.append("%")
        elif spec == "\n" and user:
            out.append("\n")
        else:
            out.append("%" + spec)
    return "".join(out)


def kformat(fmt: str, *args: Any) -> str:
    """Format as the kernel printf does (%d %i %x %X %p %c %s %%)."""
    return _format(fmt, args, user=False)


def uformat(fmt: str, *args: Any) -> str:
    """Format as the user-space printf does (%d %i %u %x %X %c %s %%)."""
    return _format(fmt, args, user=True)


def clear_screen() -> str:
    """Escape sequence that clears the screen and homes the cursor."""
    return "\033[2J\033[H"


def clear_line() -> str:
    """Escape sequence that clears to the end of the current line."""
    return "\033[K"


def goto_xy(x: int, y: int) -> str:
    """Escape sequence that moves the cursor to zero-based column x, row y."""
    return kformat("\033[%d;%dH", y + 1, x + 1)


def set_text_color(color: Color | str) -> str:
    """Escape sequence that sets the foreground colour."""
    return f"\033[3{Color(color).value}m"


def set_background_color(color: Color | str) -> str:
    """Escape sequence that sets the background colour."""
    return f"\033[4{Color(color).value}m"


def reset_colors() -> str:
    """Escape sequence that restores the default colours."""
    return "\033[0m"


def colored(color: Color | str, fmt: str, *args: Any) -> str:
    """Kernel-format text wrapped in a foreground colour and a reset."""
    return set_text_color(color) + kformat(fmt, *args) + reset_colors()