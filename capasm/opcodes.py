"""
Opcode Vocabulary

The closed set of pseudo-instruction opcodes shared by every backend, plus
the target-specific tables derived from it: memory access sizes, the
condition codes used by compare-and-branch / compare-and-set opcodes, and
the opcodes this target knowingly leaves unimplemented.
"""

import re

from .config import BackendConfig
from .errors import UnsupportedAddressingMode

_WIDTH_LETTERS = ("i", "p", "q", "b")

# Integer compare suffix -> branch condition code.
BRANCH_CONDITIONS = {
    "eq": "eq",
    "neq": "ne",
    "a": "hi",
    "aeq": "hs",
    "b": "lo",
    "beq": "ls",
    "gt": "gt",
    "gteq": "ge",
    "lt": "lt",
    "lteq": "le",
}

INVERTED_CONDITIONS = {
    "eq": "ne", "ne": "eq",
    "hi": "ls", "ls": "hi",
    "hs": "lo", "lo": "hs",
    "gt": "le", "le": "gt",
    "ge": "lt", "lt": "ge",
}

# Float compare-and-branch opcodes that need a single conditional branch.
# bdneq and bdequn care about the unordered flag and are handled separately.
DOUBLE_BRANCH_CONDITIONS = {
    "bdeq": "eq",
    "bdgt": "gt",
    "bdgteq": "ge",
    "bdlt": "mi",
    "bdlteq": "ls",
    "bdnequn": "ne",
    "bdgtun": "hi",
    "bdgtequn": "pl",
    "bdltun": "lt",
    "bdltequn": "le",
}

FLAG_BRANCHES = {
    "bo": "vs",
    "bs": "mi",
    "bz": "eq",
    "bnz": "ne",
}

INTEGER_BRANCHES = {
    f"b{w}{cond}" for w in _WIDTH_LETTERS for cond in BRANCH_CONDITIONS
}
INTEGER_COMPARES = {
    f"c{w}{cond}" for w in _WIDTH_LETTERS for cond in BRANCH_CONDITIONS
}
TEST_BRANCHES = {f"bt{w}{cond}" for w in _WIDTH_LETTERS for cond in ("s", "z", "nz")}
TEST_SETS = {f"t{w}{cond}" for w in _WIDTH_LETTERS for cond in ("s", "z", "nz")}
ARITH_BRANCHES = {
    f"b{op}{cond}"
    for op in ("addi", "subi", "addp", "addq", "muli", "ori")
    for cond in ("o", "s", "z", "nz")
}

LOADS = {
    "loadb", "loadbsi", "loadbsq", "loadh", "loadhsi", "loadhsq",
    "loadi", "loadis", "loadp", "loadq", "loadd", "loadv", "loadvmc",
}
STORES = {"storeb", "storeh", "storei", "storep", "storeq", "stored", "storev"}
LEAS = {"leai", "leap", "leaq"}
PRINTS = {"print", "printi", "printb", "printq", "printp", "printc"}

# Known opcodes this target refuses rather than guess a capability-safe lowering.
UNSUPPORTED_ON_TARGET = {
    "orp", "xorp", "lshiftp", "urshiftp", "mulp",
    "btd2i", "bcd2i", "movdz",
}

SELECTABLE = (
    INTEGER_BRANCHES
    | INTEGER_COMPARES
    | set(DOUBLE_BRANCH_CONDITIONS)
    | {"bdneq", "bdequn"}
    | set(FLAG_BRANCHES)
    | LOADS
    | STORES
    | LEAS
    | PRINTS
    | {
        "cvtz", "makecap", "globaladdr", "pcrtoaddr",
        "addi", "addis", "addp", "addps", "addq", "addqs",
        "andi", "andq", "ori", "orq", "xori", "xorq",
        "lshifti", "lshiftq", "rshifti", "rshiftp", "rshiftq",
        "urshifti", "urshiftq",
        "muli", "mulq", "smulli",
        "subi", "subis", "subp", "subq",
        "negi", "negp", "negq",
        "addd", "subd", "muld", "divd", "sqrtd",
        "ci2d", "td2i", "fp2d", "fq2d", "fd2p", "fd2q",
        "move", "movep", "sxi2p", "sxi2q", "zxi2p", "zxi2q",
        "pushq", "pushp", "popq", "popp",
        "peek", "poke", "bfiq", "memfence",
        "jmp", "call", "ret", "break", "nop",
    }
)

# Opcodes removed by the legalization pipeline before selection.
LOWERED_BY_PIPELINE = (
    {"noti", "notp", "notq", "andp"}
    | TEST_BRANCHES
    | TEST_SETS
    | ARITH_BRANCHES
)

# Shared opcodes with no lowering on this target at all.
OTHER_SHARED = {
    "push", "pop", "moved", "fii2d", "fd2ii", "tzcnti", "tzcntq",
    "lzcnti", "lzcntq", "absd", "negd", "floord", "ceild", "roundd",
    "truncated", "loadf", "storef", "tagReturnAddress", "untagReturnAddress",
    "oris",
}

VOCABULARY = SELECTABLE | LOWERED_BY_PIPELINE | UNSUPPORTED_ON_TARGET | OTHER_SHARED


def is_known_opcode(opcode: str) -> bool:
    return opcode in VOCABULARY


_ACCESS_SIZE_PATTERNS: list[tuple[re.Pattern, int]] = [
    (re.compile(r"^(bb|btb|cb|tb)"), 1),
    (re.compile(r"^(bi|bti|ci|ti)"), 4),
    (re.compile(r"^(bq|btq|cq|tq|bd)"), 8),
    (re.compile(r"^(bp|btp|cp|tp)"), 16),
]

_ACCESS_SIZES = {
    **dict.fromkeys(("loadb", "loadbsi", "loadbsq", "storeb", "printb"), 1),
    **dict.fromkeys(("loadh", "loadhsi", "loadhsq", "storeh"), 2),
    **dict.fromkeys((
        "loadi", "loadis", "storei", "addi", "andi", "lshifti", "muli", "negi",
        "noti", "ori", "rshifti", "urshifti", "subi", "xori", "addis", "subis",
        "mulis", "smulli", "leai", "printi",
    ), 4),
    **dict.fromkeys((
        "loadq", "storeq", "loadd", "stored", "lshiftq", "negq", "rshiftq",
        "urshiftq", "addq", "mulq", "andq", "orq", "subq", "xorq", "addd",
        "divd", "subd", "muld", "sqrtd", "leaq", "printq", "addqs",
    ), 8),
    **dict.fromkeys((
        "loadp", "storep", "lshiftp", "negp", "rshiftp", "urshiftp", "addp",
        "mulp", "andp", "orp", "subp", "xorp", "jmp", "call", "leap", "printp",
        "print", "printc", "addps",
    ), 16),
}

HEAP_REFERENCE_ACCESSES = ("loadv", "loadvmc", "storev")


def access_size(opcode: str, config: BackendConfig) -> int:
    """Bytes touched by a memory operand of this opcode."""
    if opcode in HEAP_REFERENCE_ACCESSES:
        return 8 if config.offset_heap_refs else 16
    size = _ACCESS_SIZES.get(opcode)
    if size is not None:
        return size
    for pattern, pattern_size in _ACCESS_SIZE_PATTERNS:
        if pattern.match(opcode):
            return pattern_size
    raise UnsupportedAddressingMode(f"bad instruction {opcode} for heap access")
