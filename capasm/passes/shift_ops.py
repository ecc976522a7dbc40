"""
Shift Operator Legalization Pass

Masks immediate shift amounts to the operand width so the selector's
bitfield-move encodings stay in range.
"""

from ..config import PassConfig
from ..emitter import EmissionContext
from ..ir import Immediate, Instruction
from ..pass_manager import LegalizationPass

SHIFT_MASKS = {
    "lshifti": 31, "rshifti": 31, "urshifti": 31,
    "lshiftp": 63, "rshiftp": 63, "urshiftp": 63,
    "lshiftq": 63, "rshiftq": 63, "urshiftq": 63,
}


class ShiftOpsPass(LegalizationPass):

    @property
    def name(self) -> str:
        return "shift-ops"

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        mask = SHIFT_MASKS.get(inst.opcode)
        if mask is None:
            return [inst]

        # Shift amount is the first operand of the two-operand form, the
        # second of the three-operand form.
        slot = 1 if len(inst.operands) == 3 else 0
        amount = inst.operands[slot]
        if not isinstance(amount, Immediate) or amount.value == amount.value & mask:
            return [inst]

        operands = list(inst.operands)
        operands[slot] = Immediate(amount.value & mask)
        self._count("amounts_masked")
        return [inst.with_operands(operands)]
