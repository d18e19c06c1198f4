"""String escaping and number formatting for encoded output.

Strings are written as UTF-8 with only the characters that must be escaped
rewritten; everything else, including non-ASCII text, is emitted verbatim.
Floats use the shortest decimal that parses back to the identical value.
"""

from __future__ import annotations

import math
import re
from decimal import Decimal

from .errors import UnsupportedValueError
from .types import round_float32

_ESCAPE_RE = re.compile(r'[\x00-\x1f"\\\u2028\u2029\ud800-\udfff]')
_ESCAPE_HTML_RE = re.compile(r'[\x00-\x1f"\\<>&\u2028\u2029\ud800-\udfff]')

_ESCAPE_DICT = {
    "\\": "\\\\",
    '"': '\\"',
    "\n": "\\n",
    "\r": "\\r",
    "\t": "\\t",
}
for _i in range(0x20):
    _ESCAPE_DICT.setdefault(chr(_i), f"\\u{_i:04x}")
for _c in "<>&\u2028\u2029":
    _ESCAPE_DICT[_c] = f"\\u{ord(_c):04x}"
del _i, _c

REPLACEMENT_ESCAPE = "\\ufffd"

# Thresholds outside of which floats switch to exponent notation
_FLOAT64_SMALL = 1e-6
_FLOAT64_LARGE = 1e21
_FLOAT32_SMALL = round_float32(1e-6)
_FLOAT32_LARGE = round_float32(1e21)


def _replace(match: re.Match[str]) -> str:
    char = match.group(0)
    try:
        return _ESCAPE_DICT[char]
    except KeyError:
        # Lone surrogate: not encodable as UTF-8
        return REPLACEMENT_ESCAPE


def escape_string(s: str, escape_html: bool = False) -> str:
    """Return ``s`` with JSON escapes applied (without surrounding quotes)."""
    pattern = _ESCAPE_HTML_RE if escape_html else _ESCAPE_RE
    return pattern.sub(_replace, s)


def write_string(buf: bytearray, s: str, escape_html: bool = False) -> None:
    """Append ``s`` to ``buf`` as a quoted, escaped string."""
    buf += b'"'
    buf += escape_string(s, escape_html).encode("utf-8")
    buf += b'"'


def write_string_bytes(buf: bytearray, b: bytes, escape_html: bool = False) -> None:
    """Append UTF-8 bytes as a quoted string; each invalid byte becomes U+FFFD."""
    # surrogateescape maps every undecodable byte to one lone surrogate,
    # which escape_string then replaces
    write_string(buf, b.decode("utf-8", errors="surrogateescape"), escape_html)


def describe_float(value: float) -> str:
    """Text used in error messages for non-finite floats."""
    if math.isnan(value):
        return "NaN"
    return "+Inf" if value > 0 else "-Inf"


def format_float(value: float, bits: int = 64) -> str:
    """Format a float with the shortest round-trip decimal representation.

    Exponent notation is used when the magnitude is below 1e-6 or at least
    1e21, and the exponent carries no redundant leading zero (``1e-7``).

    Args:
        value: The float to format
        bits: 64, or 32 to format at single precision

    Returns:
        The formatted number

    Raises:
        UnsupportedValueError: If the value is NaN or infinite
    """
    if math.isinf(value) or math.isnan(value):
        raise UnsupportedValueError(value, describe_float(value))

    sign, digits, exponent = _shortest_decimal(value, bits).as_tuple()
    digit_str = "".join(map(str, digits))
    prefix = "-" if sign else ""

    magnitude = abs(value)
    if bits == 32:
        use_exponent = magnitude != 0 and (magnitude < _FLOAT32_SMALL or magnitude >= _FLOAT32_LARGE)
    else:
        use_exponent = magnitude != 0 and (magnitude < _FLOAT64_SMALL or magnitude >= _FLOAT64_LARGE)

    if use_exponent:
        return prefix + _exponent_form(digit_str, int(exponent))
    return prefix + _fixed_form(digit_str, int(exponent))


def _shortest_decimal(value: float, bits: int) -> Decimal:
    if bits == 64:
        # repr() is the shortest string that round-trips at double precision
        return Decimal(float.__repr__(value)).normalize()
    for precision in range(1, 10):
        text = f"{value:.{precision - 1}e}"
        if round_float32(float(text)) == value:
            return Decimal(text).normalize()
    return Decimal(float.__repr__(value)).normalize()


def _fixed_form(digits: str, exponent: int) -> str:
    if digits == "0":
        return "0"
    if exponent >= 0:
        return digits + "0" * exponent
    point = len(digits) + exponent
    if point > 0:
        return f"{digits[:point]}.{digits[point:]}"
    return "0." + "0" * -point + digits


def _exponent_form(digits: str, exponent: int) -> str:
    mantissa = digits[0]
    if len(digits) > 1:
        mantissa += "." + digits[1:]
    scientific = exponent + len(digits) - 1
    if scientific < 0:
        return f"{mantissa}e-{-scientific}"
    return f"{mantissa}e+{scientific:02d}"


def is_valid_number(s: str) -> bool:
    """Report whether ``s`` is a valid JSON number literal."""
    if not s:
        return False
    i, n = 0, len(s)

    if s[i] == "-":
        i += 1
        if i == n:
            return False

    if s[i] == "0":
        i += 1
    elif "1" <= s[i] <= "9":
        i += 1
        while i < n and "0" <= s[i] <= "9":
            i += 1
    else:
        return False

    if i + 1 < n and s[i] == "." and "0" <= s[i + 1] <= "9":
        i += 2
        while i < n and "0" <= s[i] <= "9":
            i += 1

    if i + 1 < n and s[i] in "eE":
        i += 1
        if s[i] in "+-":
            i += 1
            if i == n:
                return False
        if i == n or not "0" <= s[i] <= "9":
            return False
        while i < n and "0" <= s[i] <= "9":
            i += 1

    return i == n
