"""
stackeval Exceptions
=====================

Decode failures abort the whole dump load and carry enough context to find
the offending line: its number, its text, and the expected versus actual
address.  Classification and rendering never raise; they degrade to raw
values instead.
"""

from __future__ import annotations

from typing import Optional


class StackEvalError(Exception):
    """Base class for every error stackeval raises on purpose."""


class BinaryFormatError(StackEvalError):
    """The symbol source is not a parseable ELF image."""


class DumpDecodeError(StackEvalError):
    """A dump line could not be decoded.

    Attributes:
        reason: Short description of what went wrong.
        line_number: 1-based line number in the dump text, if known.
        expected: Address the decoder expected at this point, if relevant.
        actual: Address the line declared or implied, if relevant.
        line: The offending line text, if known.
    """

    def __init__(
        self,
        reason: str,
        *,
        line_number: Optional[int] = None,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
        line: Optional[str] = None,
    ) -> None:
        self.reason = reason
        self.line_number = line_number
        self.expected = expected
        self.actual = actual
        self.line = line
        super().__init__(self._render())

    def _render(self) -> str:
        parts = [self.reason]
        if self.expected is not None:
            parts.append(f"expected 0x{self.expected:x}")
        if self.actual is not None:
            parts.append(f"got 0x{self.actual:x}")
        message = ", ".join(parts)
        if self.line_number is not None:
            message += f" on line {self.line_number}"
        return message

    def at_line(
        self,
        line_number: int,
        line: str,
        *,
        expected: Optional[int] = None,
        actual: Optional[int] = None,
    ) -> DumpDecodeError:
        """Attach line and address context to an error raised below the line loop."""
        self.line_number = line_number
        self.line = line
        if expected is not None:
            self.expected = expected
        if actual is not None:
            self.actual = actual
        self.args = (self._render(),)
        return self


class FormatError(DumpDecodeError):
    """A dump line is malformed."""


class AddressContinuityError(FormatError):
    """A line's address does not continue where the previous line ended."""


class TokenWidthError(FormatError):
    """Hex tokens within a line are inconsistent or oversize."""


class EncodingError(FormatError):
    """A hex token does not parse as an unsigned integer."""
