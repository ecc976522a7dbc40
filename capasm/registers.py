"""
Width/Register Model

Maps logical register roles onto physical register names. General purpose
registers have one slot number and a per-width prefix:

    c<n>  capability (pointer width)
    x<n>  64-bit integer (quad width)
    w<n>  low 32 bits (word width)

Float registers are q<n> generically and d<n> when used as doubles.

Role assignments follow the baseline JIT so hand-written interpreter code
and JIT code agree on callee-saved state:

    c0 t0 a0 r0        c19 csr0    c24 csr5
    c1 t1 a1 r1        c20 csr1    c25 csr6 (metadata table)
    c2 t2 a2           c21 csr2    c26 csr7 (PB)
    c3 t3 a3           c22 csr3    c27 csr8 (DDC)
    c4 t4              c23 csr4    c28 csr9
    c5 t5              c29 cfr
    csp sp             clr lr

    q0 ft0 fa0 fr      q8..q15 csfr0..csfr7 (lower 64 bits)
    q1 ft1 fa1         q31 backend scratch
    q2 ft2 fa2
    q3 ft3 fa3
    q4 ft4
    q5 ft5
"""

from .errors import BadRegisterName
from .ir import (
    LogicalFPRegister,
    LogicalRegister,
    ScratchRegister,
    WidthClass,
)


GPR_SLOTS: dict[str, str] = {
    "t0": "c0", "a0": "c0", "r0": "c0",
    "t1": "c1", "a1": "c1", "r1": "c1",
    "t2": "c2", "a2": "c2",
    "t3": "c3", "a3": "c3",
    "t4": "c4",
    "t5": "c5",
    "cfr": "c29",
    "csr0": "c19",
    "csr1": "c20",
    "csr2": "c21",
    "csr3": "c22",
    "csr4": "c23",
    "csr5": "c24",
    "csr6": "c25",
    "csr7": "c26",
    "csr8": "c27", "DDC": "c27",
    "csr9": "c28",
}

FPR_SLOTS: dict[str, str] = {
    "ft0": "q0", "fa0": "q0", "fr": "q0",
    "ft1": "q1", "fa1": "q1",
    "ft2": "q2", "fa2": "q2",
    "ft3": "q3", "fa3": "q3",
    "ft4": "q4",
    "ft5": "q5",
    "csfr0": "q8",
    "csfr1": "q9",
    "csfr2": "q10",
    "csfr3": "q11",
    "csfr4": "q12",
    "csfr5": "q13",
    "csfr6": "q14",
    "csfr7": "q15",
}

# Registers the allocator may hand out for temporaries.
EXTRA_GPRS = (ScratchRegister("c6"), ScratchRegister("c7"))
EXTRA_FPRS = (ScratchRegister("q31"),)

_GPR_PREFIX = {
    WidthClass.WORD: "w",
    WidthClass.POINTER: "c",
    WidthClass.QUAD: "x",
}


def gpr_name(name: str, width: WidthClass) -> str:
    """Re-prefix a c<n>/x<n> name (or the zero register "zr") for a width."""
    if name == "zr":
        number = "zr"
    elif name[:1] in ("c", "x") and name[1:].isdigit():
        number = name[1:]
    else:
        raise BadRegisterName(f"bad GPR name {name}")
    prefix = _GPR_PREFIX.get(width)
    if prefix is None:
        raise BadRegisterName(f"GPR {name} has no {width.value} form")
    return prefix + number


def fpr_name(name: str, width: WidthClass) -> str:
    if width != WidthClass.DOUBLE:
        raise BadRegisterName(f"FPR {name} has no {width.value} form")
    if not (name.startswith("q") and name[1:].isdigit()):
        raise BadRegisterName(f"bad FPR name {name}")
    return "d" + name[1:]


def zero_register(width: WidthClass) -> str:
    """wzr / czr / xzr."""
    return gpr_name("zr", width)


def resolve(role: str, width: WidthClass) -> str:
    """Physical name of an integer register role at the given width."""
    if role == "sp":
        return "csp" if width == WidthClass.POINTER else "sp"
    if role == "lr":
        return "clr"
    slot = GPR_SLOTS.get(role)
    if slot is None:
        raise BadRegisterName(f"bad register name {role}")
    return gpr_name(slot, width)


def resolve_fp(role: str, width: WidthClass) -> str:
    """Physical name of a float register role at the given width."""
    slot = FPR_SLOTS.get(role)
    if slot is None:
        raise BadRegisterName(f"bad register name {role}")
    return fpr_name(slot, width)


def register_name(register, width: WidthClass) -> str:
    """Render any register operand variant at the given width."""
    match register:
        case LogicalRegister(role=role):
            return resolve(role, width)
        case LogicalFPRegister(role=role):
            return resolve_fp(role, width)
        case ScratchRegister(name=name) if name.startswith("q"):
            return fpr_name(name, width)
        case ScratchRegister(name=name):
            return gpr_name(name, width)
        case _:
            raise BadRegisterName(f"not a register: {register!r}")

