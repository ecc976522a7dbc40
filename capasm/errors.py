"""
Backend Errors

Every failure aborts the current translation unit. Low-level helpers raise
without context; the pass and selector boundaries attach the opcode and
source location of the instruction being processed before re-raising.
"""

from typing import Optional


class BackendError(Exception):
    """Base class for all legalization and selection failures."""

    def __init__(self, message: str, opcode: Optional[str] = None, origin=None):
        super().__init__(message)
        self.message = message
        self.opcode = opcode
        self.origin = origin

    def attach(self, opcode: str, origin) -> "BackendError":
        """Fill in instruction context if it is not already known."""
        if self.opcode is None:
            self.opcode = opcode
        if self.origin is None:
            self.origin = origin
        return self

    def __str__(self):
        if self.opcode is None and self.origin is None:
            return self.message
        where = []
        if self.opcode is not None:
            where.append(f"opcode '{self.opcode}'")
        if self.origin is not None:
            where.append(f"at {self.origin}")
        return f"{self.message} ({' '.join(where)})"


class BadRegisterName(BackendError):
    """Register role outside the closed vocabulary, or no name at the requested width."""


class BadImmediate(BackendError):
    """Immediate outside the encodable window, or in a slot that cannot hold one."""


class UnsupportedAddressingMode(BackendError):
    """Address shape this backend cannot render for the opcode."""


class UnencodableOffset(UnsupportedAddressingMode):
    """Address offset outside the legal range for its base kind and access size."""


class UnresolvedOperand(BackendError):
    """AbsoluteAddress, label or Temporary that should have been lowered earlier."""


class UnsupportedOpcodeForTarget(BackendError):
    """Known opcode with no lowering on this target."""


class UnknownOpcode(BackendError):
    """Opcode outside the shared vocabulary."""


class AliasingLeaRequiresDistinctBase(BackendError):
    """Scaled capability address computation whose destination is its base."""


class MalformedInstruction(BackendError):
    """Wrong operand count, or an operand of the wrong kind in a slot."""


class OutOfScratchRegisters(BackendError):
    """More simultaneously live temporaries than reserved scratch registers."""
