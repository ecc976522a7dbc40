"""
Simple Branch Widening Pass

Splits fused arithmetic-and-branch pseudo-ops into the flag-setting
arithmetic instruction and a branch on the flag it sets:

    baddio a, b, label   ->  addis a, b; bo label
    bsubinz a, b, label  ->  subis a, b; bnz label
    bmuliz a, b, label   ->  muli a, b; btiz b, label
"""

import re

from ..config import PassConfig
from ..emitter import EmissionContext
from ..ir import Instruction
from ..pass_manager import LegalizationPass

FLAG_SETTING = {
    "addi": "addis",
    "subi": "subis",
    "addp": "addps",
    "addq": "addqs",
}

_ARITH_BRANCH = re.compile(r"^b(addi|subi|addp|addq)(o|s|z|nz)$")
_MUL_BRANCH = re.compile(r"^bmuli(s|z|nz)$")


class SimpleBranchesPass(LegalizationPass):

    @property
    def name(self) -> str:
        return "simple-branches"

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        m = _ARITH_BRANCH.match(inst.opcode)
        if m:
            op, condition = m.groups()
            self._count("branches_split")
            return [
                inst.with_operands(inst.operands[:-1], opcode=FLAG_SETTING[op]),
                inst.derive("b" + condition, [inst.operands[-1]]),
            ]

        m = _MUL_BRANCH.match(inst.opcode)
        if m:
            self._count("branches_split")
            return [
                inst.with_operands(inst.operands[:-1], opcode="muli"),
                inst.derive("bti" + m.group(1), [inst.operands[-2], inst.operands[-1]]),
            ]

        return [inst]
