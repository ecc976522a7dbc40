"""
Main Compilation Entry Point

build_pipeline() assembles the fixed pass order; compile_unit() runs it on
one translation unit and reports the outcome as a CompileResult instead of
raising.
"""

import logging
import os
from dataclasses import dataclass
from typing import Optional

from .config import BackendConfig, PassConfig, load_config
from .emitter import EmissionContext
from .errors import BackendError
from .ir import TempClass
from .operands import IMMEDIATE_RANGE
from .pass_manager import CompilerPipeline
from .passes import (
    BitTestLoweringPass,
    HardBranchesPass,
    InstructionSelectionPass,
    LabelReferencesPass,
    LoadStoreAddressesPass,
    LowerNotPass,
    MalformedAddressesPass,
    MalformedAndPass,
    MalformedImmediatesPass,
    MalformedSubPass,
    MisplacedAddressesPass,
    MisplacedImmediatesPass,
    RegisterAllocationPass,
    ShiftOpsPass,
    SimpleBranchesPass,
    address_shape_legal,
    final_address_legal,
)
from .passes.immediates import STORE_OPCODES

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_PATH = os.path.join(os.path.dirname(__file__), "pass_config.json")


@dataclass
class CompileResult:
    """Outcome of compiling one unit: assembly text, or the error that stopped it."""
    text: Optional[str] = None
    error: Optional[BackendError] = None

    @property
    def ok(self) -> bool:
        return self.error is None

    def unwrap(self) -> str:
        """Return the text, re-raising the error if compilation failed."""
        if self.error is not None:
            raise self.error
        return self.text


def build_pipeline(
    pass_configs: Optional[dict[str, PassConfig]] = None,
    print_after_all: bool = False,
    print_metrics: bool = False,
) -> CompilerPipeline:
    """Create the pipeline with every pass in its required order."""
    if pass_configs is None:
        _, pass_configs = load_config(DEFAULT_CONFIG_PATH)

    pipeline = CompilerPipeline(
        config=dict(pass_configs),
        print_after_all=print_after_all,
        print_metrics=print_metrics,
    )

    pipeline.add_pass(LowerNotPass())
    pipeline.add_pass(SimpleBranchesPass())
    pipeline.add_pass(HardBranchesPass())
    pipeline.add_pass(ShiftOpsPass())
    pipeline.add_pass(LoadStoreAddressesPass())
    pipeline.add_pass(LabelReferencesPass())
    pipeline.add_pass(MalformedAndPass())
    pipeline.add_pass(MalformedAddressesPass("malformed-addresses", address_shape_legal))
    pipeline.add_pass(MisplacedImmediatesPass(STORE_OPCODES))
    pipeline.add_pass(MalformedImmediatesPass(IMMEDIATE_RANGE))
    pipeline.add_pass(MalformedSubPass())
    pipeline.add_pass(MisplacedAddressesPass())
    pipeline.add_pass(MalformedAddressesPass("final-addresses", final_address_legal))
    pipeline.add_pass(BitTestLoweringPass())
    pipeline.add_pass(RegisterAllocationPass(TempClass.GPR))
    pipeline.add_pass(RegisterAllocationPass(TempClass.FPR))
    pipeline.add_pass(InstructionSelectionPass())
    return pipeline


def compile_unit(
    nodes: list,
    config: Optional[BackendConfig] = None,
    pass_configs: Optional[dict[str, PassConfig]] = None,
    print_after_all: bool = False,
    print_metrics: bool = False,
) -> CompileResult:
    """
    Legalize and select one translation unit.

    Args:
        nodes: Instructions and labels, in order
        config: Target options (defaults to the "backend" section of pass_config.json)
        pass_configs: Per-pass configs (defaults to pass_config.json)
        print_after_all: If True, print the instruction list after each pass
        print_metrics: If True, print pass metrics and diagnostics

    Returns:
        CompileResult with the assembly text, or the first error raised
    """
    if config is None or pass_configs is None:
        default_config, default_passes = load_config(DEFAULT_CONFIG_PATH)
        config = config or default_config
        pass_configs = default_passes if pass_configs is None else pass_configs

    ctx = EmissionContext(config=config)
    pipeline = build_pipeline(pass_configs, print_after_all, print_metrics)
    try:
        text = pipeline.run(list(nodes), ctx)
    except BackendError as err:
        logger.debug("compilation failed: %s", err)
        return CompileResult(error=err)
    return CompileResult(text=text)


def legalize(
    nodes: list,
    config: Optional[BackendConfig] = None,
    pass_configs: Optional[dict[str, PassConfig]] = None,
) -> list:
    """Run the legalization passes only and return the resulting list."""
    ctx = EmissionContext(config=config or BackendConfig())
    return build_pipeline(pass_configs).legalize(list(nodes), ctx)
