"""
Logical-Not Lowering Pass

There is no bitwise-not pseudo-op on this target: noti/notp/notq x
becomes xor with all ones.
"""

from ..config import PassConfig
from ..emitter import EmissionContext
from ..errors import MalformedInstruction
from ..ir import Immediate, Instruction
from ..pass_manager import LegalizationPass

NOT_OPCODES = {"noti": "xori", "notp": "xorp", "notq": "xorq"}


class LowerNotPass(LegalizationPass):

    @property
    def name(self) -> str:
        return "lower-not"

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        xor_opcode = NOT_OPCODES.get(inst.opcode)
        if xor_opcode is None:
            return [inst]
        if len(inst.operands) != 1:
            raise MalformedInstruction("wrong number of operands")
        self._count("nots_lowered")
        return [inst.with_operands([Immediate(-1), inst.operands[0]], opcode=xor_opcode)]
