"""
Malformed Load/Store Address Pass

Loads and stores whose Address offset cannot be encoded for their access
size and base kind are rewritten to index the base by a register holding
the offset:

    loadi 5000[t0], t1  ->  move 5000, tmp
                            loadi [t0, tmp, 1], t1

Quad-suffixed accesses additionally need an offset that is a multiple of 8.
"""

from ..config import PassConfig
from ..emitter import EmissionContext
from ..ir import Address, BaseIndex, Immediate, Instruction
from ..opcodes import access_size
from ..operands import address_offset_legal
from ..pass_manager import LegalizationPass


def is_address_malformed(opcode: str, operand, config) -> bool:
    """Check whether a load/store Address operand needs rewriting."""
    if not isinstance(operand, Address):
        return False
    if not address_offset_legal(operand, access_size(opcode, config)):
        return True
    return opcode.endswith("q") and operand.offset % 8 != 0


class LoadStoreAddressesPass(LegalizationPass):
    """
    Rewrites out-of-range load/store displacements into register indexing.

    Runs before the generic address pass so the common case costs a single
    move instead of a move plus a capability add.
    """

    @property
    def name(self) -> str:
        return "load-store-addresses"

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        if inst.opcode.startswith("store"):
            slot = 1
        elif inst.opcode.startswith("load"):
            slot = 0
        else:
            return [inst]

        if len(inst.operands) <= slot:
            return [inst]
        address = inst.operands[slot]
        if not is_address_malformed(inst.opcode, address, ctx.config):
            return [inst]

        tmp = ctx.new_temp()
        operands = list(inst.operands)
        operands[slot] = BaseIndex(address.base, tmp, 0, 0, address.is_wide_base)
        self._count("addresses_rewritten")
        return [
            inst.derive("move", [Immediate(address.offset), tmp]),
            inst.with_operands(operands),
        ]
