"""
Capability AArch64 Assembler Backend

Translates the architecture-neutral pseudo-instruction list of the offline
assembler into assembly text for AArch64 with 128-bit capability pointers.

Pipeline: instruction list -> legalization passes -> register allocation
-> instruction selection -> assembly text
"""

# IR types
from .ir import (
    WidthClass,
    TempClass,
    SourceLocation,
    LogicalRegister,
    LogicalFPRegister,
    ScratchRegister,
    Temporary,
    Immediate,
    Address,
    BaseIndex,
    AbsoluteAddress,
    LabelReference,
    LocalLabelReference,
    Instruction,
    Label,
    LocalLabel,
)

# Errors
from .errors import (
    BackendError,
    BadRegisterName,
    BadImmediate,
    UnsupportedAddressingMode,
    UnencodableOffset,
    UnresolvedOperand,
    UnsupportedOpcodeForTarget,
    UnknownOpcode,
    AliasingLeaRequiresDistinctBase,
    MalformedInstruction,
    OutOfScratchRegisters,
)

# Configuration and emission state
from .config import BackendConfig, PassConfig, load_config
from .emitter import AsmWriter, EmissionContext

# Pass infrastructure
from .pass_manager import (
    PassMetrics,
    CompilerPass,
    LegalizationPass,
    SelectionPass,
    CompilerPipeline,
)

# Register model and operand encoder
from .registers import resolve, resolve_fp, register_name
from .operands import render, emit_lea

# Selection
from .codegen import InstructionSelector

# Main entry points
from .compile import CompileResult, build_pipeline, compile_unit, legalize

__all__ = [
    # IR
    "WidthClass",
    "TempClass",
    "SourceLocation",
    "LogicalRegister",
    "LogicalFPRegister",
    "ScratchRegister",
    "Temporary",
    "Immediate",
    "Address",
    "BaseIndex",
    "AbsoluteAddress",
    "LabelReference",
    "LocalLabelReference",
    "Instruction",
    "Label",
    "LocalLabel",
    # Errors
    "BackendError",
    "BadRegisterName",
    "BadImmediate",
    "UnsupportedAddressingMode",
    "UnencodableOffset",
    "UnresolvedOperand",
    "UnsupportedOpcodeForTarget",
    "UnknownOpcode",
    "AliasingLeaRequiresDistinctBase",
    "MalformedInstruction",
    "OutOfScratchRegisters",
    # Config / emission
    "BackendConfig",
    "PassConfig",
    "load_config",
    "AsmWriter",
    "EmissionContext",
    # Passes
    "PassMetrics",
    "CompilerPass",
    "LegalizationPass",
    "SelectionPass",
    "CompilerPipeline",
    # Encoding
    "resolve",
    "resolve_fp",
    "register_name",
    "render",
    "emit_lea",
    "InstructionSelector",
    # Entry points
    "CompileResult",
    "build_pipeline",
    "compile_unit",
    "legalize",
]
