"""
Pseudo-Instruction IR

The architecture-neutral instruction list consumed by this backend. Nodes
are immutable; every pass builds a new list instead of editing the one it
was given.

Operand variants:
- LogicalRegister / LogicalFPRegister: symbolic register roles
- ScratchRegister: physical register reserved for backend use
- Temporary: placeholder awaiting register allocation
- Immediate, Address, BaseIndex, AbsoluteAddress
- LabelReference, LocalLabelReference
"""

from dataclasses import dataclass, field
from enum import Enum
from typing import Callable, Optional, Union


class WidthClass(Enum):
    """Register/access width used when rendering an operand."""
    WORD = "word"        # 32-bit integer
    POINTER = "pointer"  # 128-bit capability
    QUAD = "quad"        # 64-bit integer
    DOUBLE = "double"    # 64-bit float


class TempClass(Enum):
    """Register class of a temporary."""
    GPR = "gpr"
    FPR = "fpr"


@dataclass(frozen=True)
class SourceLocation:
    """Where an instruction came from, for diagnostics."""
    file: str = "<unknown>"
    line: int = 0

    def __str__(self):
        return f"{self.file}:{self.line}"


@dataclass(frozen=True)
class LogicalRegister:
    role: str

    def __repr__(self):
        return self.role


@dataclass(frozen=True)
class LogicalFPRegister:
    role: str

    def __repr__(self):
        return self.role


@dataclass(frozen=True)
class ScratchRegister:
    """A physical register the backend reserves for its own use."""
    name: str

    def __repr__(self):
        return f"%{self.name}"


@dataclass(frozen=True)
class Temporary:
    """Register placeholder. Must be replaced before selection."""
    id: int
    kind: TempClass = TempClass.GPR

    def __repr__(self):
        prefix = "ft" if self.kind == TempClass.FPR else "tmp"
        return f"{prefix}{self.id}"


@dataclass(frozen=True)
class Immediate:
    value: int

    def __repr__(self):
        return f"#{self.value}"


@dataclass(frozen=True)
class Address:
    """base + offset. is_wide_base selects a capability base over an integer one."""
    base: "Operand"
    offset: int = 0
    is_wide_base: bool = True

    def __repr__(self):
        suffix = "" if self.is_wide_base else "n"
        return f"{self.offset}[{self.base!r}]{suffix}"


@dataclass(frozen=True)
class BaseIndex:
    """base + (index << scale_shift) + offset."""
    base: "Operand"
    index: "Operand"
    scale_shift: int = 0
    offset: int = 0
    is_wide_base: bool = True

    @property
    def scale(self) -> int:
        return 1 << self.scale_shift

    def __repr__(self):
        suffix = "" if self.is_wide_base else "n"
        return f"{self.offset}[{self.base!r}, {self.index!r}, {self.scale}]{suffix}"


@dataclass(frozen=True)
class AbsoluteAddress:
    value: int

    def __repr__(self):
        return f"[{self.value:#x}]"


@dataclass(frozen=True)
class LabelReference:
    label: str
    offset: int = 0

    def __repr__(self):
        if self.offset:
            return f"{self.label}+{self.offset}"
        return self.label


@dataclass(frozen=True)
class LocalLabelReference:
    label: str

    def __repr__(self):
        return f".{self.label}"


Register = Union[LogicalRegister, LogicalFPRegister, ScratchRegister]
MemoryOperand = Union[Address, BaseIndex, AbsoluteAddress]
Operand = Union[
    LogicalRegister, LogicalFPRegister, ScratchRegister, Temporary,
    Immediate, Address, BaseIndex, AbsoluteAddress,
    LabelReference, LocalLabelReference,
]

REGISTER_TYPES = (LogicalRegister, LogicalFPRegister, ScratchRegister)
MEMORY_TYPES = (Address, BaseIndex, AbsoluteAddress)
LABEL_TYPES = (LabelReference, LocalLabelReference)


def is_register(operand) -> bool:
    return isinstance(operand, REGISTER_TYPES)


def is_memory(operand) -> bool:
    return isinstance(operand, MEMORY_TYPES)


def is_label(operand) -> bool:
    return isinstance(operand, LABEL_TYPES)


def is_immediate(operand, value: Optional[int] = None) -> bool:
    if not isinstance(operand, Immediate):
        return False
    return value is None or operand.value == value


def is_stack_pointer(operand) -> bool:
    return isinstance(operand, LogicalRegister) and operand.role == "sp"


def map_registers(operand, fn: Callable) -> "Operand":
    """Apply fn to every register-like leaf, recursing into memory operands."""
    if isinstance(operand, Address):
        return Address(map_registers(operand.base, fn), operand.offset, operand.is_wide_base)
    if isinstance(operand, BaseIndex):
        return BaseIndex(
            map_registers(operand.base, fn),
            map_registers(operand.index, fn),
            operand.scale_shift,
            operand.offset,
            operand.is_wide_base,
        )
    if isinstance(operand, (Temporary,) + REGISTER_TYPES):
        return fn(operand)
    return operand


def temporaries_of(operand) -> list[Temporary]:
    """Temporaries mentioned by an operand, including address components."""
    if isinstance(operand, Temporary):
        return [operand]
    if isinstance(operand, Address):
        return temporaries_of(operand.base)
    if isinstance(operand, BaseIndex):
        return temporaries_of(operand.base) + temporaries_of(operand.index)
    return []


@dataclass(frozen=True)
class Instruction:
    """A single pseudo-instruction. Operands follow source-source-destination order."""
    opcode: str
    operands: tuple = ()
    origin: SourceLocation = field(default_factory=SourceLocation)
    annotation: Optional[str] = None

    def __post_init__(self):
        if not isinstance(self.operands, tuple):
            object.__setattr__(self, "operands", tuple(self.operands))

    def with_operands(self, operands, opcode: Optional[str] = None) -> "Instruction":
        """Copy with new operands (and optionally a new opcode), keeping origin and annotation."""
        return Instruction(opcode or self.opcode, tuple(operands), self.origin, self.annotation)

    def derive(self, opcode: str, operands, annotation: Optional[str] = None) -> "Instruction":
        """New instruction at the same source location."""
        return Instruction(opcode, tuple(operands), self.origin, annotation)

    def temporaries(self) -> list[Temporary]:
        temps: list[Temporary] = []
        for op in self.operands:
            for tmp in temporaries_of(op):
                if tmp not in temps:
                    temps.append(tmp)
        return temps

    def __repr__(self):
        ops_str = ", ".join(repr(o) for o in self.operands)
        return f"{self.opcode} {ops_str}".rstrip()


@dataclass(frozen=True)
class Label:
    """A global label definition."""
    name: str

    def __repr__(self):
        return f"{self.name}:"


@dataclass(frozen=True)
class LocalLabel:
    """A label private to the translation unit."""
    name: str

    def __repr__(self):
        return f".{self.name}:"


Node = Union[Instruction, Label, LocalLabel]


def count_instructions(nodes: list) -> int:
    """Count Instruction nodes (labels excluded)."""
    return sum(1 for node in nodes if isinstance(node, Instruction))


def count_temporaries(nodes: list) -> int:
    """Count distinct temporaries still present."""
    seen: set[Temporary] = set()
    for node in nodes:
        if isinstance(node, Instruction):
            seen.update(node.temporaries())
    return len(seen)
