"""Validating and compacting scanner for encoded byte streams.

The scanner is a state machine fed one byte at a time. Each call to ``step``
returns an opcode describing the byte it consumed, so callers can use it for
validation (``valid``) or to rewrite the input (``compact``) without building
a parse tree. Nesting is tracked on an explicit stack, so deeply nested input
fails with a syntax error instead of exhausting the interpreter stack.
"""

from __future__ import annotations

from collections.abc import Callable

from .errors import JSONSyntaxError
from .pool import ObjectPool

# Opcodes returned by Scanner.step
SCAN_CONTINUE = 0  # uninteresting byte
SCAN_BEGIN_LITERAL = 1  # end implied by next result != SCAN_CONTINUE
SCAN_BEGIN_OBJECT = 2
SCAN_OBJECT_KEY = 3  # just finished object key (string)
SCAN_OBJECT_VALUE = 4  # just finished non-last object value
SCAN_END_OBJECT = 5
SCAN_BEGIN_ARRAY = 6
SCAN_ARRAY_VALUE = 7  # just finished array value
SCAN_END_ARRAY = 8
SCAN_SKIP_SPACE = 9  # space byte; last "continue" result
SCAN_END = 10  # top-level value ended before this byte; first "stop" result
SCAN_ERROR = 11

# Entries of the parse-state stack
PARSE_OBJECT_KEY = 0  # before colon
PARSE_OBJECT_VALUE = 1  # after colon
PARSE_ARRAY_VALUE = 2

MAX_NESTING_DEPTH = 10000

_HEX_DIGITS = "0123456789abcdef"

_SPACE = frozenset(b" \t\r\n")
_DIGITS = frozenset(b"0123456789")
_NONZERO_DIGITS = frozenset(b"123456789")
_HEX = frozenset(b"0123456789abcdefABCDEF")
_ESCAPABLE = frozenset(b'bfnrt\\/"')

_LBRACE, _RBRACE, _LBRACKET, _RBRACKET = b"{}[]"
_QUOTE, _BACKSLASH, _COLON, _COMMA = b'"\\:,'
_MINUS, _PLUS, _DOT, _ZERO = b"-+.0"
_SPACE_BYTE = b" "[0]


def quote_char(c: int) -> str:
    """Format a byte for an error message."""
    if c == 0x27:
        return "'\\''"
    if c == _QUOTE:
        return "'\"'"
    return "'" + repr(chr(c))[1:-1] + "'"


class Scanner:
    """
    Single-use-at-a-time scanning state.

    ``step`` always points at the handler for the next byte; handlers swap it
    as they consume input.
    """

    def __init__(self) -> None:
        self.step: Callable[[int], int] = self._begin_value
        self.end_top = False
        self.parse_state: list[int] = []
        self.err: JSONSyntaxError | None = None
        self.bytes = 0

    def reset(self) -> None:
        self.step = self._begin_value
        self.parse_state.clear()
        self.err = None
        self.end_top = False

    def eof(self) -> int:
        """Signal end of input by feeding a single space."""
        if self.err is not None:
            return SCAN_ERROR
        if self.end_top:
            return SCAN_END
        self.step(_SPACE_BYTE)
        if self.end_top:
            return SCAN_END
        if self.err is None:
            self.err = JSONSyntaxError("unexpected end of JSON input", self.bytes)
        return SCAN_ERROR

    def _push_parse_state(self, c: int, new_parse_state: int, success_state: int) -> int:
        self.parse_state.append(new_parse_state)
        if len(self.parse_state) <= MAX_NESTING_DEPTH:
            return success_state
        return self._error(c, "exceeded max depth")

    def _pop_parse_state(self) -> None:
        self.parse_state.pop()
        if not self.parse_state:
            self.step = self._end_top
            self.end_top = True
        else:
            self.step = self._end_value

    def _error(self, c: int, context: str) -> int:
        self.step = self._error_state
        self.err = JSONSyntaxError(f"invalid character {quote_char(c)} {context}".rstrip(), self.bytes)
        return SCAN_ERROR

    # Values

    def _begin_value_or_empty(self, c: int) -> int:
        if c in _SPACE:
            return SCAN_SKIP_SPACE
        if c == _RBRACKET:
            return self._end_value(c)
        return self._begin_value(c)

    def _begin_value(self, c: int) -> int:
        if c in _SPACE:
            return SCAN_SKIP_SPACE
        if c == _LBRACE:
            self.step = self._begin_string_or_empty
            return self._push_parse_state(c, PARSE_OBJECT_KEY, SCAN_BEGIN_OBJECT)
        if c == _LBRACKET:
            self.step = self._begin_value_or_empty
            return self._push_parse_state(c, PARSE_ARRAY_VALUE, SCAN_BEGIN_ARRAY)
        if c == _QUOTE:
            self.step = self._in_string
            return SCAN_BEGIN_LITERAL
        if c == _MINUS:
            self.step = self._neg
            return SCAN_BEGIN_LITERAL
        if c == _ZERO:
            self.step = self._zero
            return SCAN_BEGIN_LITERAL
        if c == 0x74:  # t
            self.step = self._literal_step("rue", "true")
            return SCAN_BEGIN_LITERAL
        if c == 0x66:  # f
            self.step = self._literal_step("alse", "false")
            return SCAN_BEGIN_LITERAL
        if c == 0x6E:  # n
            self.step = self._literal_step("ull", "null")
            return SCAN_BEGIN_LITERAL
        if c in _NONZERO_DIGITS:
            self.step = self._digits
            return SCAN_BEGIN_LITERAL
        return self._error(c, "looking for beginning of value")

    # Objects

    def _begin_string_or_empty(self, c: int) -> int:
        if c in _SPACE:
            return SCAN_SKIP_SPACE
        if c == _RBRACE:
            self.parse_state[-1] = PARSE_OBJECT_VALUE
            return self._end_value(c)
        return self._begin_string(c)

    def _begin_string(self, c: int) -> int:
        if c in _SPACE:
            return SCAN_SKIP_SPACE
        if c == _QUOTE:
            self.step = self._in_string
            return SCAN_BEGIN_LITERAL
        return self._error(c, "looking for beginning of object key string")

    def _end_value(self, c: int) -> int:
        """Handle the byte after a completed value, using the innermost parse state."""
        if not self.parse_state:
            self.step = self._end_top
            self.end_top = True
            return self._end_top(c)
        if c in _SPACE:
            self.step = self._end_value
            return SCAN_SKIP_SPACE
        ps = self.parse_state[-1]
        if ps == PARSE_OBJECT_KEY:
            if c == _COLON:
                self.parse_state[-1] = PARSE_OBJECT_VALUE
                self.step = self._begin_value
                return SCAN_OBJECT_KEY
            return self._error(c, "after object key")
        if ps == PARSE_OBJECT_VALUE:
            if c == _COMMA:
                self.parse_state[-1] = PARSE_OBJECT_KEY
                self.step = self._begin_string
                return SCAN_OBJECT_VALUE
            if c == _RBRACE:
                self._pop_parse_state()
                return SCAN_END_OBJECT
            return self._error(c, "after object key:value pair")
        if ps == PARSE_ARRAY_VALUE:
            if c == _COMMA:
                self.step = self._begin_value
                return SCAN_ARRAY_VALUE
            if c == _RBRACKET:
                self._pop_parse_state()
                return SCAN_END_ARRAY
            return self._error(c, "after array element")
        return self._error(c, "")

    def _end_top(self, c: int) -> int:
        if c not in _SPACE:
            # Complain about non-space after the top-level value
            self._error(c, "after top-level value")
        return SCAN_END

    # Strings

    def _in_string(self, c: int) -> int:
        if c == _QUOTE:
            self.step = self._end_value
            return SCAN_CONTINUE
        if c == _BACKSLASH:
            self.step = self._in_string_esc
            return SCAN_CONTINUE
        if c < 0x20:
            return self._error(c, "in string literal")
        return SCAN_CONTINUE

    def _in_string_esc(self, c: int) -> int:
        if c in _ESCAPABLE:
            self.step = self._in_string
            return SCAN_CONTINUE
        if c == 0x75:  # u
            self.step = self._in_string_esc_u(4)
            return SCAN_CONTINUE
        return self._error(c, "in string escape code")

    def _in_string_esc_u(self, remaining: int) -> Callable[[int], int]:
        def step(c: int) -> int:
            if c in _HEX:
                self.step = self._in_string if remaining == 1 else self._in_string_esc_u(remaining - 1)
                return SCAN_CONTINUE
            return self._error(c, "in \\u hexadecimal character escape")

        return step

    # Numbers

    def _neg(self, c: int) -> int:
        if c == _ZERO:
            self.step = self._zero
            return SCAN_CONTINUE
        if c in _NONZERO_DIGITS:
            self.step = self._digits
            return SCAN_CONTINUE
        return self._error(c, "in numeric literal")

    def _digits(self, c: int) -> int:
        if c in _DIGITS:
            return SCAN_CONTINUE
        return self._zero(c)

    def _zero(self, c: int) -> int:
        if c == _DOT:
            self.step = self._dot
            return SCAN_CONTINUE
        if c in (0x65, 0x45):  # e E
            self.step = self._exp
            return SCAN_CONTINUE
        return self._end_value(c)

    def _dot(self, c: int) -> int:
        if c in _DIGITS:
            self.step = self._dot_digits
            return SCAN_CONTINUE
        return self._error(c, "after decimal point in numeric literal")

    def _dot_digits(self, c: int) -> int:
        if c in _DIGITS:
            return SCAN_CONTINUE
        if c in (0x65, 0x45):
            self.step = self._exp
            return SCAN_CONTINUE
        return self._end_value(c)

    def _exp(self, c: int) -> int:
        if c in (_PLUS, _MINUS):
            self.step = self._exp_sign
            return SCAN_CONTINUE
        return self._exp_sign(c)

    def _exp_sign(self, c: int) -> int:
        if c in _DIGITS:
            self.step = self._exp_digits
            return SCAN_CONTINUE
        return self._error(c, "in exponent of numeric literal")

    def _exp_digits(self, c: int) -> int:
        if c in _DIGITS:
            return SCAN_CONTINUE
        return self._end_value(c)

    # Literals

    def _literal_step(self, rest: str, literal: str) -> Callable[[int], int]:
        expected = ord(rest[0])

        def step(c: int) -> int:
            if c != expected:
                return self._error(c, f"in literal {literal} (expecting {rest[0]!r})")
            self.step = self._literal_step(rest[1:], literal) if len(rest) > 1 else self._end_value
            return SCAN_CONTINUE

        return step

    def _error_state(self, c: int) -> int:
        return SCAN_ERROR


def _free_scanner(scan: Scanner) -> None:
    # Drop oversized stacks instead of keeping them alive in the pool
    if len(scan.parse_state) > 1024:
        scan.parse_state = []
    scan.bytes = 0
    scan.reset()


_scanner_pool: ObjectPool[Scanner] = ObjectPool(Scanner, reset=_free_scanner)


def _scan_error(scan: Scanner) -> JSONSyntaxError:
    if scan.err is None:
        raise RuntimeError("scanner reported an error without recording it")
    return scan.err


def check_valid(data: bytes, scan: Scanner) -> None:
    """
    Validate ``data`` as a single encoded value.

    Raises:
        JSONSyntaxError: On the first malformed byte, or on truncated input
    """
    scan.reset()
    for c in data:
        scan.bytes += 1
        if scan.step(c) == SCAN_ERROR:
            raise _scan_error(scan)
    if scan.eof() == SCAN_ERROR:
        raise _scan_error(scan)


def valid(data: bytes | bytearray | str) -> bool:
    """Report whether ``data`` is a well-formed encoded value."""
    if isinstance(data, str):
        data = data.encode("utf-8", errors="surrogatepass")
    with _scanner_pool.checkout() as scan:
        try:
            check_valid(data, scan)
        except JSONSyntaxError:
            return False
    return True


def compact(dst: bytearray, src: bytes | bytearray, escape: bool) -> None:
    """
    Append ``src`` to ``dst`` with insignificant whitespace removed.

    With ``escape`` set, ``<``, ``>``, ``&``, U+2028 and U+2029 are rewritten
    as ``\\u`` escapes so the result is safe to embed in HTML.

    Raises:
        JSONSyntaxError: If ``src`` is not a well-formed value; ``dst`` is left
            as it was before the call
    """
    orig_len = len(dst)
    with _scanner_pool.checkout() as scan:
        start = 0
        n = len(src)
        for i, c in enumerate(src):
            scan.bytes += 1
            if escape and c in (0x3C, 0x3E, 0x26):  # < > &
                if start < i:
                    dst += src[start:i]
                dst += b"\\u00"
                dst.append(ord(_HEX_DIGITS[c >> 4]))
                dst.append(ord(_HEX_DIGITS[c & 0xF]))
                start = i + 1
            # U+2028 and U+2029 are E2 80 A8 and E2 80 A9
            if escape and c == 0xE2 and i + 2 < n and src[i + 1] == 0x80 and src[i + 2] & ~1 == 0xA8:
                if start < i:
                    dst += src[start:i]
                dst += b"\\u202"
                dst.append(ord(_HEX_DIGITS[src[i + 2] & 0xF]))
                start = i + 3
            v = scan.step(c)
            if v >= SCAN_SKIP_SPACE:
                if v == SCAN_ERROR:
                    break
                if start < i:
                    dst += src[start:i]
                start = i + 1
        if scan.eof() == SCAN_ERROR:
            del dst[orig_len:]
            raise _scan_error(scan)
        if start < n:
            dst += src[start:]


def compact_bytes(src: bytes | bytearray | str, escape_html: bool = False) -> bytes:
    """Return ``src`` compacted; see ``compact``."""
    if isinstance(src, str):
        src = src.encode("utf-8")
    dst = bytearray()
    compact(dst, src, escape_html)
    return bytes(dst)
