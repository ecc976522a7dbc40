"""Shared builders and imports for backend tests."""

import os
import sys

# Add the repository root to the path for imports
_this_dir = os.path.dirname(os.path.abspath(__file__))
_repo_root = os.path.dirname(os.path.dirname(_this_dir))
sys.path.insert(0, _repo_root)

from capasm.config import BackendConfig, PassConfig
from capasm.emitter import EmissionContext
from capasm.ir import (
    Address,
    BaseIndex,
    Immediate,
    Instruction,
    LabelReference,
    LocalLabelReference,
    LogicalFPRegister,
    LogicalRegister,
    ScratchRegister,
    SourceLocation,
    TempClass,
    Temporary,
)

ORIGIN = SourceLocation("LowLevelInterpreter64.asm", 42)

t0, t1, t2, t3 = (LogicalRegister(f"t{i}") for i in range(4))
sp = LogicalRegister("sp")
lr = LogicalRegister("lr")
cfr = LogicalRegister("cfr")
ft0, ft1 = LogicalFPRegister("ft0"), LogicalFPRegister("ft1")
c6, c7 = ScratchRegister("c6"), ScratchRegister("c7")
q31 = ScratchRegister("q31")


def _cfg(name, **opts):
    """Helper to create PassConfig."""
    return PassConfig(name=name, enabled=True, options=opts)


def imm(value: int) -> Immediate:
    return Immediate(value)


def tmp(id: int, kind: TempClass = TempClass.GPR) -> Temporary:
    return Temporary(id, kind)


def label(name: str) -> LabelReference:
    return LabelReference(name)


def local(name: str) -> LocalLabelReference:
    return LocalLabelReference(name)


def inst(opcode: str, *operands, annotation=None) -> Instruction:
    """Build an instruction at a fixed source location."""
    return Instruction(opcode, operands, ORIGIN, annotation)


def make_ctx(**options) -> EmissionContext:
    return EmissionContext(config=BackendConfig(**options))


def run_pass(p, nodes, ctx=None):
    """Run one pass with a default config and return its output."""
    ctx = ctx or make_ctx()
    ctx.reserve_temp_ids(nodes)
    return p.run(list(nodes), ctx, _cfg(p.name))


def asm_lines(text: str) -> list[str]:
    """Non-empty assembly lines with indentation stripped."""
    return [line.strip() for line in text.splitlines() if line.strip()]


def select_lines(*instructions, **options) -> list[str]:
    """Select already-legal instructions and return the stripped lines."""
    from capasm.codegen import InstructionSelector

    ctx = make_ctx(**options)
    selector = InstructionSelector(ctx)
    for node in instructions:
        selector.emit_node(node)
    return asm_lines(ctx.finish())


def addr(base, offset=0, wide=True) -> Address:
    return Address(base, offset, wide)


def base_index(base, index, shift=0, offset=0, wide=True) -> BaseIndex:
    return BaseIndex(base, index, shift, offset, wide)
