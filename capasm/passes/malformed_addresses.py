"""
Malformed Address Pass

Generic, predicate-driven rewrite of memory operands. Any Address, BaseIndex
or AbsoluteAddress operand the predicate rejects is replaced by a zero-offset
Address through a fresh temporary:

    Address(base, off)           move off, tmp; add{p,q} base, tmp, tmp
    BaseIndex(base, idx, s, off) lea{p,q} [base, idx, s], tmp; then Address(tmp, off)
    AbsoluteAddress(value)       move value, tmp (integer base)

The pipeline instantiates it twice: once with the access-size aware check,
and once after operand repositioning with the final load/store/lea rules.
"""

from typing import Callable

from ..config import PassConfig
from ..emitter import EmissionContext
from ..errors import UnsupportedAddressingMode
from ..ir import (
    AbsoluteAddress,
    Address,
    BaseIndex,
    Immediate,
    Instruction,
    is_memory,
)
from ..opcodes import access_size
from ..operands import address_offset_legal
from ..pass_manager import LegalizationPass

AddressPredicate = Callable[[Instruction, object, EmissionContext], bool]


def address_shape_legal(inst: Instruction, address, ctx: EmissionContext) -> bool:
    """Legal if the operand already fits the access size of inst."""
    size = access_size(inst.opcode, ctx.config)
    if isinstance(address, BaseIndex):
        return address.offset == 0 and (
            inst.opcode.startswith("lea")
            or address.scale == 1
            or address.scale == size
        )
    if isinstance(address, Address):
        return address_offset_legal(address, size)
    return False


def final_address_legal(inst: Instruction, address, ctx: EmissionContext) -> bool:
    """Stores cannot take a negative displacement; everything else is settled."""
    opcode = inst.opcode
    if opcode.startswith("load") or opcode.startswith("lea") or opcode.startswith("print"):
        return True
    if opcode.startswith("store"):
        return not (isinstance(address, Address) and address.offset < 0)
    raise UnsupportedAddressingMode(f"bad instruction {opcode} for heap access")


class MalformedAddressesPass(LegalizationPass):

    def __init__(self, name: str, predicate: AddressPredicate):
        super().__init__()
        self._name = name
        self._predicate = predicate

    @property
    def name(self) -> str:
        return self._name

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        if not any(is_memory(op) for op in inst.operands):
            return [inst]

        prefix: list = []
        operands = []
        for op in inst.operands:
            if is_memory(op) and not self._predicate(inst, op, ctx):
                op = self._lower(inst, op, prefix, ctx)
                self._count("addresses_rewritten")
            operands.append(op)

        if not prefix:
            return [inst]
        return prefix + [inst.with_operands(operands)]

    def _lower(self, inst: Instruction, address, prefix: list, ctx: EmissionContext):
        match address:
            case Address(base=base, offset=offset, is_wide_base=wide):
                if self._predicate(inst, address, ctx):
                    return address
                tmp = ctx.new_temp()
                add_opcode = "addp" if wide else "addq"
                prefix.append(inst.derive("move", [Immediate(offset), tmp]))
                prefix.append(inst.derive(add_opcode, [base, tmp, tmp]))
                return Address(tmp, 0, wide)

            case BaseIndex(base=base, index=index, scale_shift=shift, offset=offset, is_wide_base=wide):
                if self._predicate(inst, address, ctx):
                    return address
                tmp = ctx.new_temp()
                lea_opcode = "leap" if wide else "leaq"
                prefix.append(inst.derive(lea_opcode, [BaseIndex(base, index, shift, 0, wide), tmp]))
                return self._lower(inst, Address(tmp, offset, wide), prefix, ctx)

            case AbsoluteAddress(value=value):
                if self._predicate(inst, address, ctx):
                    return address
                tmp = ctx.new_temp()
                prefix.append(inst.derive("move", [Immediate(value), tmp]))
                return Address(tmp, 0, False)

        raise UnsupportedAddressingMode(f"cannot lower {address!r}")
