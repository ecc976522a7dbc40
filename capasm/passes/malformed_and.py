"""
Malformed AND Pass

The hardware AND does not preserve capability metadata, so andp is done as
a 64-bit AND followed by rebuilding the capability from the original base:

    andp a, b, dst  ->  andq a, b, tmp
                        cvtz a, tmp, dst

A zero mask collapses to a move of the source (movep for andp), or to
nothing when source and destination are the same register.
"""

from ..config import PassConfig
from ..emitter import EmissionContext
from ..errors import MalformedInstruction
from ..ir import Instruction, is_immediate
from ..pass_manager import LegalizationPass

AND_OPCODES = {"andi", "andp", "andq"}


def split_binary(inst: Instruction):
    """(src1, src2, dst) of a two- or three-operand arithmetic instruction.

    The two-operand form accumulates into its second operand.
    """
    operands = inst.operands
    if len(operands) == 3:
        return operands[0], operands[1], operands[2]
    if len(operands) == 2:
        return operands[1], operands[0], operands[1]
    raise MalformedInstruction(f"expected 2 or 3 operands, got {len(operands)}")


class MalformedAndPass(LegalizationPass):

    @property
    def name(self) -> str:
        return "malformed-and"

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        if inst.opcode not in AND_OPCODES:
            return [inst]

        src1, src2, dst = split_binary(inst)

        if is_immediate(src2, 0):
            self._count("zero_masks")
            if src1 == dst:
                return []
            move_opcode = "movep" if inst.opcode == "andp" else "move"
            return [inst.derive(move_opcode, [src1, dst], inst.annotation)]

        if inst.opcode != "andp":
            return [inst]

        original_dst = dst
        if dst == src1 or dst == src2:
            dst = ctx.new_temp()

        self._count("capability_ands")
        return [
            inst.derive("andq", [src1, src2, dst], inst.annotation),
            inst.derive("cvtz", [src1, dst, original_dst]),
        ]
