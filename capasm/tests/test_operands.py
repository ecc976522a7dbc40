"""Tests for the width/register model and the operand encoder."""

import unittest

import pytest

from capasm.tests.conftest import (
    addr,
    base_index,
    c7,
    cfr,
    ft0,
    imm,
    label,
    local,
    lr,
    q31,
    sp,
    t0,
    t1,
    t2,
    tmp,
)
from capasm.emitter import AsmWriter
from capasm.errors import (
    AliasingLeaRequiresDistinctBase,
    BadImmediate,
    BadRegisterName,
    UnencodableOffset,
    UnresolvedOperand,
)
from capasm.ir import AbsoluteAddress, Address, LabelReference, LogicalFPRegister, WidthClass
from capasm.operands import address_offset_legal, asm_label, emit_lea, render
from capasm.registers import register_name, resolve, resolve_fp, zero_register

WORD = WidthClass.WORD
PTR = WidthClass.POINTER
QUAD = WidthClass.QUAD
DOUBLE = WidthClass.DOUBLE


class TestRegisterModel(unittest.TestCase):

    def test_gpr_roles_per_width(self):
        self.assertEqual(resolve("t0", WORD), "w0")
        self.assertEqual(resolve("t0", PTR), "c0")
        self.assertEqual(resolve("t0", QUAD), "x0")
        self.assertEqual(resolve("a2", QUAD), "x2")
        self.assertEqual(resolve("r1", PTR), "c1")

    def test_callee_saved_and_frame_slots(self):
        self.assertEqual(resolve("cfr", PTR), "c29")
        self.assertEqual(resolve("csr0", QUAD), "x19")
        self.assertEqual(resolve("csr7", PTR), "c26")
        self.assertEqual(resolve("csr8", PTR), "c27")
        self.assertEqual(resolve("csr9", WORD), "w28")

    def test_stack_pointer_and_link_register(self):
        self.assertEqual(register_name(sp, PTR), "csp")
        self.assertEqual(register_name(sp, QUAD), "sp")
        self.assertEqual(register_name(lr, PTR), "clr")
        self.assertEqual(register_name(lr, QUAD), "clr")

    def test_float_roles(self):
        self.assertEqual(resolve_fp("ft0", DOUBLE), "d0")
        self.assertEqual(resolve_fp("csfr0", DOUBLE), "d8")
        self.assertEqual(register_name(ft0, DOUBLE), "d0")
        self.assertEqual(register_name(q31, DOUBLE), "d31")

    def test_scratch_registers(self):
        self.assertEqual(register_name(c7, QUAD), "x7")
        self.assertEqual(register_name(c7, WORD), "w7")
        self.assertEqual(register_name(c7, PTR), "c7")

    def test_zero_register(self):
        self.assertEqual(zero_register(WORD), "wzr")
        self.assertEqual(zero_register(QUAD), "xzr")
        self.assertEqual(zero_register(PTR), "czr")

    def test_unknown_role_raises(self):
        with self.assertRaises(BadRegisterName):
            resolve("t9", QUAD)
        with self.assertRaises(BadRegisterName):
            register_name(LogicalFPRegister("ft9"), DOUBLE)

    def test_gpr_has_no_double_form(self):
        with self.assertRaises(BadRegisterName):
            register_name(cfr, DOUBLE)

    def test_fpr_only_renders_as_double(self):
        with self.assertRaises(BadRegisterName):
            register_name(ft0, QUAD)


class TestRender(unittest.TestCase):

    def test_immediate_window(self):
        self.assertEqual(render(imm(0), QUAD), "#0")
        self.assertEqual(render(imm(4095), WORD), "#4095")
        with self.assertRaises(BadImmediate):
            render(imm(4096), QUAD)
        with self.assertRaises(BadImmediate):
            render(imm(-1), QUAD)

    def test_address_uses_base_kind_width(self):
        self.assertEqual(render(addr(t0, 8), QUAD), "[c0, #8]")
        self.assertEqual(render(addr(t0, 8, wide=False), QUAD), "[x0, #8]")
        self.assertEqual(render(addr(cfr, -16), WORD), "[c29, #-16]")

    def test_base_index(self):
        self.assertEqual(render(base_index(t0, t1, 3), QUAD), "[c0, x1, lsl #3]")
        self.assertEqual(render(base_index(t0, t1, 0, wide=False), WORD), "[x0, x1, lsl #0]")

    def test_base_index_with_offset_raises(self):
        with self.assertRaises(UnencodableOffset):
            render(base_index(t0, t1, 0, 8), QUAD)

    def test_unresolved_operands_raise(self):
        with self.assertRaises(UnresolvedOperand):
            render(AbsoluteAddress(0x1000), QUAD)
        with self.assertRaises(UnresolvedOperand):
            render(tmp(0), QUAD)
        with self.assertRaises(UnresolvedOperand):
            render(label("g"), QUAD)
        with self.assertRaises(UnresolvedOperand):
            render(addr(tmp(0), 0), QUAD)

    def test_asm_label(self):
        self.assertEqual(asm_label(label("g")), "g")
        self.assertEqual(asm_label(local("done")), ".Ldone")
        self.assertEqual(asm_label(LabelReference("g", 8)), "g+8")
        with self.assertRaises(UnresolvedOperand):
            asm_label(t0)


# (access size, wide base) -> (lowest legal, highest legal)
OFFSET_BOUNDS = [
    (4, True, -255, 4095),
    (4, False, -32, 31),
    (8, True, -255, 4095),
    (8, False, -32, 31),
    (16, True, 0, 4095),
    (16, False, -128, 127),
]


class TestOffsetRanges:

    @pytest.mark.parametrize("size,wide,low,high", OFFSET_BOUNDS)
    def test_bounds(self, size, wide, low, high):
        assert address_offset_legal(Address(t0, low, wide), size)
        assert address_offset_legal(Address(t0, high, wide), size)
        assert not address_offset_legal(Address(t0, low - 1, wide), size)
        assert not address_offset_legal(Address(t0, high + 1, wide), size)

    @pytest.mark.parametrize("width,wide,low,high", [
        (QUAD, True, -255, 4095),
        (QUAD, False, -32, 31),
        (PTR, True, 0, 4095),
        (PTR, False, -128, 127),
    ])
    def test_encoder_rejects_out_of_range(self, width, wide, low, high):
        render(Address(t0, low, wide), width)
        render(Address(t0, high, wide), width)
        with pytest.raises(UnencodableOffset):
            render(Address(t0, low - 1, wide), width)
        with pytest.raises(UnencodableOffset):
            render(Address(t0, high + 1, wide), width)


class TestEmitLea(unittest.TestCase):

    def _lea(self, address, dst, width):
        writer = AsmWriter()
        emit_lea(address, dst, width, writer)
        return [line.strip() for line in writer.lines]

    def test_address(self):
        self.assertEqual(self._lea(addr(t0, 16), t1, PTR), ["add c1, c0, #16"])

    def test_unscaled_index(self):
        self.assertEqual(self._lea(base_index(t0, t1, 0), t2, PTR), ["add c2, c0, x1"])

    def test_scaled_capability_index_shifts_first(self):
        self.assertEqual(
            self._lea(base_index(t0, t1, 3), t2, PTR),
            ["lsl x2, x1, #3", "add c2, c0, x2"],
        )

    def test_scaled_capability_index_aliasing_base(self):
        with self.assertRaises(AliasingLeaRequiresDistinctBase):
            self._lea(base_index(t0, t1, 3), t0, PTR)

    def test_scaled_quad_index(self):
        self.assertEqual(
            self._lea(base_index(t0, t1, 2), t2, QUAD),
            ["add x2, x0, x1, lsl #2"],
        )

    def test_absolute_address_raises(self):
        with self.assertRaises(UnresolvedOperand):
            self._lea(AbsoluteAddress(0x10), t0, QUAD)
