"""
End-to-end tests: instruction list in, assembly text out.
"""

import json
import unittest

import pytest

from capasm.tests.conftest import (
    addr,
    asm_lines,
    ft0,
    imm,
    inst,
    label,
    local,
    sp,
    t0,
    t1,
    t2,
    t3,
    tmp,
)
from capasm import CompileResult, compile_unit, legalize
from capasm.compile import DEFAULT_CONFIG_PATH, build_pipeline
from capasm.config import BackendConfig, PassConfig, load_config
from capasm.errors import OutOfScratchRegisters, UnknownOpcode, UnsupportedOpcodeForTarget
from capasm.ir import Instruction, Label, LabelReference, LocalLabel


def compile_lines(*nodes, **kwargs):
    result = compile_unit(list(nodes), **kwargs)
    return asm_lines(result.unwrap())


SAMPLE_UNIT = [
    Label("entry"),
    inst("notq", t0),
    inst("baddio", t0, t1, label("overflow")),
    inst("lshifti", imm(40), t2),
    inst("loadi", addr(t0, 5000, wide=False), t1),
    inst("loadp", LabelReference("g", 16), t2),
    inst("andp", imm(255), t0),
    inst("storei", imm(7), addr(t0, 8)),
    inst("subp", t1, t2),
    inst("addi", addr(t0, 8), t1),
    inst("storeq", t1, addr(t0, -16)),
    inst("btinz", t1, imm(3), local("skip")),
    inst("tqz", t0, t3),
    inst("bcd2i", ft0, t1, local("slow")),
    inst("addi", imm(5000), t1),
    LocalLabel("skip"),
    inst("ret"),
]


class TestScenarios(unittest.TestCase):

    def test_load_with_encodable_offset(self):
        self.assertEqual(compile_lines(inst("loadi", addr(t0, 4000), t1)), ["ldr w1, [c0, #4000]"])

    def test_load_with_large_offset(self):
        self.assertEqual(compile_lines(inst("loadi", addr(t0, 5000), t1)), [
            "movz x7, #5000, lsl #0",
            "ldr w1, [c0, x7, lsl #0]",
        ])

    def test_test_and_branch_on_zero(self):
        self.assertEqual(compile_lines(inst("btiz", t0, label("done"))), ["cbz w0, done"])
        self.assertEqual(compile_lines(inst("bieq", t0, imm(0), label("done"))), ["cbz w0, done"])

    def test_narrow_quad_load_below_range_is_rewritten(self):
        self.assertEqual(compile_lines(inst("loadq", addr(t0, -32, wide=False), t1)), ["ldur x1, [x0, #-32]"])
        self.assertEqual(compile_lines(inst("loadq", addr(t0, -33, wide=False), t1)), [
            "movn x7, #32, lsl #0",
            "ldr x1, [x0, x7, lsl #0]",
        ])

    def test_compare_and_set(self):
        self.assertEqual(compile_lines(inst("cieq", t0, t1, t2)), [
            "subs wzr, w0, w1",
            "csinc w2, wzr, wzr, ne",
        ])

    def test_stack_pointer_subtraction(self):
        self.assertEqual(compile_lines(inst("subp", sp, t1, sp)), [
            "mov c7, csp",
            "sub x6, x7, x1",
            "cvtz c6, c7, x6",
            "mov csp, c6",
        ])

    def test_stack_pointer_subtraction_of_large_immediate(self):
        self.assertEqual(compile_lines(inst("subp", sp, imm(5000), sp)), [
            "movz x7, #5000, lsl #0",
            "mov c6, csp",
            "sub x7, x6, x7",
            "cvtz c7, c6, x7",
            "mov csp, c7",
        ])

    def test_all_ones_mask_becomes_compare_with_zero(self):
        self.assertEqual(compile_lines(inst("btpnz", t0, imm(-1), label("x"))), ["cbnz x0, x"])
        self.assertEqual(compile_lines(inst("btiz", imm(-1), t0, label("x"))), ["cbz w0, x"])

    def test_store_with_negative_offset(self):
        self.assertEqual(compile_lines(inst("storei", t1, addr(t0, -8))), [
            "movn x7, #7, lsl #0",
            "add c7, c0, x7",
            "str w1, [c7, #0]",
        ])

    def test_negative_add_becomes_sub(self):
        self.assertEqual(compile_lines(inst("addi", imm(-5), t0)), ["sub w0, w0, #5"])

    def test_sample_unit(self):
        result = compile_unit(SAMPLE_UNIT)
        self.assertTrue(result.ok, result.error)
        lines = asm_lines(result.text)
        self.assertEqual(lines[0], "entry:")
        self.assertIn("ret", lines)
        # The globaladdr hint is flushed after the rest of the unit.
        self.assertEqual(lines[-2], ".loh AdrpLdrGot L_capasm_loh_adrp_0, L_capasm_loh_ldr_0")
        self.assertIn(".Lskip:", lines)
        self.assertIn("cbnz w7, .Lskip", lines)
        self.assertIn("scvtf d31, w1", lines)

    def test_deterministic(self):
        first = compile_unit(SAMPLE_UNIT).unwrap()
        second = compile_unit(SAMPLE_UNIT).unwrap()
        self.assertEqual(first, second)


class TestCompileResult(unittest.TestCase):

    def test_out_of_scratch_registers_is_reported(self):
        result = compile_unit([
            inst("move", imm(1), tmp(0)),
            inst("move", imm(2), tmp(1)),
            inst("move", imm(3), tmp(2)),
            inst("addi", tmp(0), tmp(1)),
            inst("addi", tmp(2), tmp(1)),
        ])
        self.assertFalse(result.ok)
        self.assertIsNone(result.text)
        self.assertIsInstance(result.error, OutOfScratchRegisters)

    def test_unwrap_reraises(self):
        result = compile_unit([inst("frobnicate", t0)])
        self.assertFalse(result.ok)
        with self.assertRaises(UnknownOpcode):
            result.unwrap()

    def test_ok_result(self):
        result = CompileResult(text="    ret\n")
        self.assertTrue(result.ok)
        self.assertEqual(result.unwrap(), "    ret\n")


class TestConfiguration:

    def test_load_config(self, tmp_path):
        path = tmp_path / "config.json"
        path.write_text(json.dumps({
            "backend": {"offset_heap_refs": True},
            "passes": {"lower-not": {"enabled": False}},
        }))
        backend, passes = load_config(str(path))
        assert backend.offset_heap_refs is True
        assert backend.annotate is False
        assert passes["lower-not"].enabled is False

    def test_unknown_backend_option(self):
        with pytest.raises(ValueError):
            BackendConfig.from_dict({"offset_heap_refs": True, "fast": True})

    def test_default_config_names_every_pass(self):
        _, passes = load_config(DEFAULT_CONFIG_PATH)
        names = [p.name for p in build_pipeline().passes]
        assert sorted(passes) == sorted(names)
        assert len(names) == len(set(names))

    def test_disabled_pass_leaves_opcode_for_selector(self):
        result = compile_unit(
            [inst("notq", t0)],
            pass_configs={"lower-not": PassConfig("lower-not", enabled=False)},
        )
        assert isinstance(result.error, UnsupportedOpcodeForTarget)
        assert result.error.opcode == "notq"

    def test_heap_reference_option(self):
        text = compile_unit(
            [inst("loadv", addr(t0, 8), t1)],
            config=BackendConfig(offset_heap_refs=True),
        ).unwrap()
        assert asm_lines(text) == ["ldr x1, [c0, #8]"]

    def test_annotate_option(self):
        node = inst("nop", annotation="entry point")
        text = compile_unit([node], config=BackendConfig(annotate=True)).unwrap()
        assert asm_lines(text) == ["// entry point", "nop"]

    def test_flip_add_sub_disabled(self):
        text = compile_unit(
            [inst("addi", imm(-5), t0)],
            pass_configs={"malformed-immediates": PassConfig("malformed-immediates", options={"flip_add_sub": False})},
        ).unwrap()
        assert asm_lines(text) == ["movn x7, #4, lsl #0", "add w0, w0, w7"]


class TestLegalize:

    def test_no_temporaries_survive(self):
        nodes = legalize(SAMPLE_UNIT)
        for node in nodes:
            if isinstance(node, Instruction):
                assert node.temporaries() == []

    def test_metrics_output(self, capsys):
        compile_unit([inst("notq", t0)], print_metrics=True)
        out = capsys.readouterr().out
        assert "=== Pass: lower-not" in out
        assert "=== Pass: instruction-selection" in out

    def test_print_after_all(self, capsys):
        compile_unit([inst("notq", t0)], print_after_all=True)
        out = capsys.readouterr().out
        assert "After lower-not:" in out
        assert "xorq #-1, t0" in out


# One offset just past each end of the encodable window, per access size and
# base width.
OUT_OF_RANGE_OFFSETS = [
    ("loadi", True, -256),
    ("loadi", True, 4096),
    ("loadi", False, -33),
    ("loadi", False, 32),
    ("loadq", True, -256),
    ("loadq", True, 4096),
    ("loadq", False, -40),
    ("loadq", False, 32),
    ("loadp", True, -16),
    ("loadp", True, 4096),
    ("loadp", False, -144),
    ("loadp", False, 128),
]


class TestOffsetWindows:

    @pytest.mark.parametrize("opcode,wide,offset", OUT_OF_RANGE_OFFSETS)
    def test_load_just_outside_window(self, opcode, wide, offset):
        result = compile_unit([inst(opcode, addr(t0, offset, wide=wide), t1)])
        assert result.ok, result.error
        assert "x7" in asm_lines(result.text)[-1]

    @pytest.mark.parametrize("opcode,wide,offset", OUT_OF_RANGE_OFFSETS)
    def test_store_just_outside_window(self, opcode, wide, offset):
        store = opcode.replace("load", "store")
        result = compile_unit([inst(store, t1, addr(t0, offset, wide=wide))])
        assert result.ok, result.error
