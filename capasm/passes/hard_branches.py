"""
Hard Branch Lowering Pass

bcd2i fpr, gpr, slow: truncate to int, convert back, and branch to slow if
the round trip changed the value (or it was NaN), or if the result is zero
(which would hide -0.0).
"""

from ..config import PassConfig
from ..emitter import EmissionContext
from ..errors import MalformedInstruction
from ..ir import Instruction, TempClass
from ..pass_manager import LegalizationPass


class HardBranchesPass(LegalizationPass):

    @property
    def name(self) -> str:
        return "hard-branches"

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        if inst.opcode != "bcd2i":
            return [inst]
        if len(inst.operands) != 3:
            raise MalformedInstruction("bcd2i takes a source, a destination and a label")

        src, dst, slow = inst.operands
        tmp = ctx.new_temp(TempClass.FPR)
        self._count("conversions_lowered")
        return [
            inst.derive("td2i", [src, dst], inst.annotation),
            inst.derive("ci2d", [dst, tmp]),
            inst.derive("bdnequn", [src, tmp, slow]),
            inst.derive("btiz", [dst, slow]),
        ]
