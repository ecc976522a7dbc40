"""
Label Reference Lowering Pass

Loads (and leap) straight from a label go through the global offset table:

    loadp label+8, t0  ->  globaladdr label, tmp
                           loadp 8[tmp], t0
"""

from ..config import PassConfig
from ..emitter import EmissionContext
from ..ir import Address, Instruction, LabelReference
from ..pass_manager import LegalizationPass

LABEL_SOURCE_OPCODES = {
    "loadi", "loadis", "loadp", "loadq", "loadv", "loadvmc", "loadb",
    "loadbsi", "loadbsq", "loadh", "loadhsi", "loadhsq", "leap",
}


class LabelReferencesPass(LegalizationPass):

    @property
    def name(self) -> str:
        return "label-references"

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        if inst.opcode not in LABEL_SOURCE_OPCODES or not inst.operands:
            return [inst]
        label_ref = inst.operands[0]
        if not isinstance(label_ref, LabelReference):
            return [inst]

        tmp = ctx.new_temp()
        self._count("labels_lowered")
        return [
            inst.derive("globaladdr", [LabelReference(label_ref.label), tmp]),
            inst.with_operands([Address(tmp, label_ref.offset)] + list(inst.operands[1:])),
        ]
