"""Tests for the linear-scan scratch register allocator."""

import unittest

from capasm.tests.conftest import ORIGIN, addr, c6, c7, imm, inst, local, q31, run_pass, t0, t1, tmp
from capasm.errors import OutOfScratchRegisters
from capasm.ir import Label, TempClass
from capasm.passes import RegisterAllocationPass
from capasm.passes.register_allocation import _build_live_intervals


class TestLiveIntervals(unittest.TestCase):

    def test_interval_spans_first_to_last_mention(self):
        nodes = [
            inst("move", imm(1), tmp(0)),
            Label("mid"),
            inst("addi", t0, t1),
            inst("addi", tmp(0), t1),
        ]
        intervals = _build_live_intervals(nodes, TempClass.GPR)
        self.assertEqual(intervals[tmp(0)].start, 0)
        self.assertEqual(intervals[tmp(0)].end, 3)

    def test_other_class_ignored(self):
        nodes = [inst("ci2d", t0, tmp(0, TempClass.FPR))]
        self.assertEqual(_build_live_intervals(nodes, TempClass.GPR), {})


class TestGPRAllocation(unittest.TestCase):

    def test_first_temporary_gets_last_pool_register(self):
        out = run_pass(RegisterAllocationPass(), [
            inst("move", imm(5000), tmp(0)),
            inst("loadi", addr(t0, 0), tmp(1)),
            inst("addi", tmp(0), tmp(1)),
        ])
        self.assertEqual(out, [
            inst("move", imm(5000), c7),
            inst("loadi", addr(t0, 0), c6),
            inst("addi", c7, c6),
        ])

    def test_register_reused_after_last_mention(self):
        out = run_pass(RegisterAllocationPass(), [
            inst("move", imm(1), tmp(0)),
            inst("addi", tmp(0), t0),
            inst("move", imm(2), tmp(1)),
            inst("addi", tmp(1), t1),
        ])
        self.assertEqual(out[2], inst("move", imm(2), c7))
        self.assertEqual(out[3], inst("addi", c7, t1))

    def test_temporary_inside_address(self):
        out = run_pass(RegisterAllocationPass(), [
            inst("addp", t0, tmp(3), tmp(3)),
            inst("storei", t1, addr(tmp(3), 0)),
        ])
        self.assertEqual(out[1], inst("storei", t1, addr(c7, 0)))

    def test_exhaustion(self):
        nodes = [
            inst("move", imm(1), tmp(0)),
            inst("move", imm(2), tmp(1)),
            inst("move", imm(3), tmp(2)),
            inst("addi", tmp(0), tmp(1)),
            inst("addi", tmp(2), tmp(1)),
        ]
        with self.assertRaises(OutOfScratchRegisters) as cm:
            run_pass(RegisterAllocationPass(), nodes)
        self.assertEqual(cm.exception.opcode, "move")
        self.assertEqual(cm.exception.origin, ORIGIN)

    def test_float_temporaries_left_alone(self):
        nodes = [inst("ci2d", t0, tmp(0, TempClass.FPR))]
        self.assertEqual(run_pass(RegisterAllocationPass(), nodes), nodes)

    def test_metrics(self):
        p = RegisterAllocationPass()
        run_pass(p, [inst("move", imm(1), tmp(0)), inst("addi", tmp(0), t0)])
        self.assertEqual(p.get_metrics().custom, {"temporaries": 1, "registers_used": 1})


class TestFPRAllocation(unittest.TestCase):

    def test_float_temporary_gets_q31(self):
        p = RegisterAllocationPass(TempClass.FPR)
        self.assertEqual(p.name, "fpr-allocation")
        ftmp = tmp(0, TempClass.FPR)
        out = run_pass(p, [inst("ci2d", t0, ftmp), inst("bdnequn", ftmp, ftmp, local("x"))])
        self.assertEqual(out[0], inst("ci2d", t0, q31))
        self.assertEqual(p.get_metrics().messages, ["all 1 fpr scratch registers in use"])

    def test_single_float_scratch(self):
        f0, f1 = tmp(0, TempClass.FPR), tmp(1, TempClass.FPR)
        with self.assertRaises(OutOfScratchRegisters):
            run_pass(RegisterAllocationPass(TempClass.FPR), [
                inst("ci2d", t0, f0),
                inst("ci2d", t1, f1),
                inst("addd", f0, f1),
            ])
