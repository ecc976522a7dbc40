"""
Malformed Capability Subtraction Pass

Capability subtraction only takes an immediate subtrahend. A register
subtrahend is done as a 64-bit subtract and the result is rebuilt into a
capability derived from the minuend:

    subp a, b, dst  ->  subq a, b, dst
                        cvtz a, dst, dst

The stack pointer cannot take part in the 64-bit subtract, so it is copied
into a temporary first. A destination that is the stack pointer, or that
aliases the minuend, is computed in a temporary and copied back. When both
happen the minuend copy must outlive the subtract, so the result goes to a
second temporary, or into the subtrahend when that is a temporary last used
here:

    subp sp, b, sp  ->  movep sp, A
                        subq A, b, B
                        cvtz A, B, B
                        movep B, sp
"""

from ..config import PassConfig
from ..emitter import EmissionContext
from ..ir import Immediate, Instruction, Temporary, is_stack_pointer
from ..pass_manager import LegalizationPass
from .malformed_and import split_binary


class MalformedSubPass(LegalizationPass):

    def __init__(self):
        super().__init__()
        self._last_mention: dict = {}
        self._position = -1

    @property
    def name(self) -> str:
        return "malformed-sub"

    def run(self, nodes: list, ctx: EmissionContext, config: PassConfig) -> list:
        instructions = [node for node in nodes if isinstance(node, Instruction)]
        self._last_mention = {}
        for idx, node in enumerate(instructions):
            for temp in node.temporaries():
                self._last_mention[temp] = idx
        self._position = -1
        return super().run(nodes, ctx, config)

    def _dies_here(self, operand) -> bool:
        return isinstance(operand, Temporary) and self._last_mention.get(operand) == self._position

    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        self._position += 1
        if inst.opcode != "subp":
            return [inst]

        src1, src2, dst = split_binary(inst)
        register_subtrahend = not isinstance(src2, Immediate)
        needs_sp_copy = is_stack_pointer(src1)
        needs_dst_temp = is_stack_pointer(dst) or (dst == src1 and register_subtrahend)

        if not (register_subtrahend or needs_sp_copy or needs_dst_temp):
            return [inst]

        new_list: list = []
        original_dst = dst

        if needs_sp_copy:
            copy = ctx.new_temp()
            new_list.append(inst.derive("movep", [src1, copy]))
            src1 = copy
            if needs_dst_temp:
                if not register_subtrahend:
                    dst = copy
                elif self._dies_here(src2):
                    dst = src2
                else:
                    dst = ctx.new_temp()
        elif needs_dst_temp:
            dst = ctx.new_temp()

        if register_subtrahend:
            new_list.append(inst.derive("subq", [src1, src2, dst], inst.annotation))
            new_list.append(inst.derive("cvtz", [src1, dst, dst]))
            self._count("register_subtrahends")
        else:
            new_list.append(inst.derive("subp", [src1, src2, dst], inst.annotation))

        if original_dst != dst:
            new_list.append(inst.derive("movep", [dst, original_dst]))
        return new_list
