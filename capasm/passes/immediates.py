"""
Immediate Legalization Passes

MisplacedImmediatesPass: for the listed opcodes (stores), immediate operands
cannot be encoded at all and are moved into temporaries.

MalformedImmediatesPass: immediates outside the encodable window are moved
into temporaries, with two exceptions:
- add/sub of an out-of-range immediate whose negation is in range flips to
  the opposite operation;
- multiplication keeps a positive power-of-two immediate so the selector can
  turn it into a shift;
- a -1 mask on a bit test is kept, since test lowering drops the AND for it.
move/movep take any 64-bit constant and are left alone.

Options:
    flip_add_sub: flip add/sub of a negated immediate (default true). When
        off, such immediates are materialized like any other.
"""

import re

from ..config import PassConfig
from ..emitter import EmissionContext
from ..ir import Immediate, Instruction
from ..operands import IMMEDIATE_RANGE
from ..pass_manager import LegalizationPass
from .bit_tests import TEST_OPCODE

STORE_OPCODES = ("storeb", "storeh", "storei", "storep", "storeq", "storev")

_ADD_SUB = re.compile(r"^(add|sub)([ipq])(s?)$")
MUL_OPCODES = {"muli", "mulp", "mulq"}
IMMEDIATE_MOVES = {"move", "movep"}


def _is_power_of_two(value: int) -> bool:
    return value > 0 and value & (value - 1) == 0


class MisplacedImmediatesPass(LegalizationPass):

    def __init__(self, opcodes=STORE_OPCODES):
        super().__init__()
        self._opcodes = frozenset(opcodes)

    @property
    def name(self) -> str:
        return "misplaced-immediates"

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        if inst.opcode not in self._opcodes:
            return [inst]
        if not any(isinstance(op, Immediate) for op in inst.operands):
            return [inst]

        new_list: list = []
        operands = []
        for op in inst.operands:
            if isinstance(op, Immediate):
                tmp = ctx.new_temp()
                new_list.append(inst.derive("move", [op, tmp]))
                op = tmp
                self._count("immediates_moved")
            operands.append(op)
        new_list.append(inst.with_operands(operands))
        return new_list


class MalformedImmediatesPass(LegalizationPass):

    def __init__(self, valid: range = IMMEDIATE_RANGE):
        super().__init__()
        self._valid = valid

    @property
    def name(self) -> str:
        return "malformed-immediates"

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        if inst.opcode in IMMEDIATE_MOVES:
            return [inst]

        m = _ADD_SUB.match(inst.opcode)
        if m and config.options.get("flip_add_sub", True):
            flipped = self._flip_add_sub(inst, *m.groups())
            if flipped is not None:
                self._count("add_sub_flipped")
                return [flipped]

        if inst.opcode in MUL_OPCODES:
            return self._lower_mul(inst, ctx)

        if TEST_OPCODE.match(inst.opcode):
            return self._materialize(inst, ctx, keep=(-1,))
        return self._materialize(inst, ctx)

    def _flip_add_sub(self, inst: Instruction, op: str, width: str, flags: str):
        """Turn add of -N into sub of N (and vice versa) when only -N is legal."""
        # Flag-setting forms would set carry differently.
        if flags:
            return None
        operands = list(inst.operands)
        if len(operands) == 2:
            imm, rest = operands[0], operands[1:]
        elif len(operands) == 3 and op == "add":
            imm, rest = operands[0], operands[1:]
        elif len(operands) == 3:
            imm, rest = operands[1], [operands[0], operands[2]]
        else:
            return None
        if not isinstance(imm, Immediate):
            return None
        if imm.value in self._valid or -imm.value not in self._valid:
            return None

        negated = Immediate(-imm.value)
        if len(operands) == 2:
            return inst.with_operands([negated] + rest, opcode="sub" + width if op == "add" else "add" + width)
        if op == "add":
            # add imm, src, dst -> sub src, -imm, dst
            return inst.with_operands([rest[0], negated, rest[1]], opcode="sub" + width)
        # sub src, imm, dst -> add -imm, src, dst
        return inst.with_operands([negated, rest[0], rest[1]], opcode="add" + width)

    def _lower_mul(self, inst: Instruction, ctx: EmissionContext) -> list:
        first = inst.operands[0] if inst.operands else None
        if len(inst.operands) == 2 and isinstance(first, Immediate) and _is_power_of_two(first.value):
            return [inst]
        # The multiply-add encoding has no immediate form at all.
        if not any(isinstance(op, Immediate) for op in inst.operands):
            return [inst]

        new_list: list = []
        operands = []
        for op in inst.operands:
            if isinstance(op, Immediate):
                tmp = ctx.new_temp()
                new_list.append(inst.derive("move", [op, tmp]))
                op = tmp
                self._count("immediates_moved")
            operands.append(op)
        new_list.append(inst.with_operands(operands))
        return new_list

    def _materialize(self, inst: Instruction, ctx: EmissionContext, keep=()) -> list:
        def illegal(op):
            return isinstance(op, Immediate) and op.value not in self._valid and op.value not in keep

        if not any(illegal(op) for op in inst.operands):
            return [inst]

        new_list: list = []
        operands = []
        for op in inst.operands:
            if illegal(op):
                tmp = ctx.new_temp()
                new_list.append(inst.derive("move", [op, tmp]))
                op = tmp
                self._count("immediates_moved")
            operands.append(op)
        new_list.append(inst.with_operands(operands))
        return new_list
