"""
Misplaced Address Pass

Only loads, stores and lea take memory operands on this target. Arithmetic,
compare and branch instructions that carry one load it into a temporary
first, and when the memory operand is the destination (the last operand)
the result is stored back afterwards:

    addi 8[t0], t1     ->  loadi 8[t0], tmp
                           addi tmp, t1
    addi t1, 8[t0]     ->  loadi 8[t0], tmp
                           addi t1, tmp
                           storei tmp, 8[t0]

Indirect jmp/call through memory load the target with loadp.
"""

import re

from ..config import PassConfig
from ..emitter import EmissionContext
from ..ir import Instruction, TempClass, is_memory
from ..pass_manager import LegalizationPass

# (pattern, operand suffix). First match wins.
_FAMILIES: list[tuple[re.Pattern, str]] = [
    (re.compile(r"^(addi|addis|andi|lshifti|muli|negi|noti|ori|rshifti|urshifti|subi|subis|xori)$"
                r"|^(bi|bti|ci|ti)"), "i"),
    (re.compile(r"^(addp|addps|andp|lshiftp|mulp|negp|orp|rshiftp|urshiftp|subp|xorp)$"
                r"|^(bp|btp|cp|tp)"), "p"),
    (re.compile(r"^(addq|addqs|andq|lshiftq|mulq|negq|orq|rshiftq|urshiftq|subq|xorq)$"
                r"|^(bq|btq|cq|tq)"), "q"),
    (re.compile(r"^(bbeq|bbneq|bba|bbaeq|bbb|bbbeq|btbz|btbnz|tbz|tbnz"
                r"|cbeq|cbneq|cba|cbaeq|cbb|cbbeq)$"), "b"),
    (re.compile(r"^(bbgt|bbgteq|bblt|bblteq|btbs|tbs|cbgt|cbgteq|cblt|cblteq)$"), "bs"),
    (re.compile(r"^(addd|divd|subd|muld|sqrtd)$|^bd"), "d"),
]

LOAD_FOR_SUFFIX = {
    "i": "loadi", "p": "loadp", "q": "loadq",
    "b": "loadb", "bs": "loadbsi", "d": "loadd",
}
STORE_FOR_SUFFIX = {
    "i": "storei", "p": "storep", "q": "storeq",
    "b": "storeb", "bs": "storeb", "d": "stored",
}


def operand_suffix(opcode: str):
    for pattern, suffix in _FAMILIES:
        if pattern.search(opcode):
            return suffix
    return None


class MisplacedAddressesPass(LegalizationPass):

    @property
    def name(self) -> str:
        return "misplaced-addresses"

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        if not any(is_memory(op) for op in inst.operands):
            return [inst]

        if inst.opcode in ("jmp", "call"):
            target = inst.operands[0]
            if not is_memory(target):
                return [inst]
            tmp = ctx.new_temp()
            self._count("operands_loaded")
            return [
                inst.derive("loadp", [target, tmp]),
                inst.with_operands([tmp] + list(inst.operands[1:])),
            ]

        suffix = operand_suffix(inst.opcode)
        if suffix is None:
            return [inst]

        kind = TempClass.FPR if suffix == "d" else TempClass.GPR
        pre: list = []
        post: list = []
        operands = []
        last = len(inst.operands) - 1
        for i, op in enumerate(inst.operands):
            if is_memory(op):
                tmp = ctx.new_temp(kind)
                pre.append(inst.derive(LOAD_FOR_SUFFIX[suffix], [op, tmp]))
                if i == last:
                    post.append(inst.derive(STORE_FOR_SUFFIX[suffix], [tmp, op]))
                self._count("operands_loaded")
                op = tmp
            operands.append(op)

        return pre + [inst.with_operands(operands)] + post
