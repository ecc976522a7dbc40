"""
Backend passes.

Legalization passes, in pipeline order:
- LowerNotPass: not -> xor with all ones
- SimpleBranchesPass: fused arithmetic branches -> flag op + flag branch
- HardBranchesPass: bcd2i -> convert, round trip, compare
- ShiftOpsPass: mask immediate shift amounts
- LoadStoreAddressesPass: out-of-range load/store offsets -> register index
- LabelReferencesPass: loads from labels -> globaladdr + load
- MalformedAndPass: capability AND -> 64-bit AND + cvtz
- MalformedAddressesPass: generic memory operand legalization
- MisplacedImmediatesPass / MalformedImmediatesPass: immediate legalization
- MalformedSubPass: capability subtract of a register -> subq + cvtz
- MisplacedAddressesPass: memory operands of arithmetic -> load/store
- BitTestLoweringPass: test-and-branch/set -> and + compare
- RegisterAllocationPass: temporaries -> reserved registers

Selection:
- InstructionSelectionPass: instruction list -> assembly text
"""

from .lower_not import LowerNotPass
from .simple_branches import SimpleBranchesPass
from .hard_branches import HardBranchesPass
from .shift_ops import ShiftOpsPass
from .load_store_addresses import LoadStoreAddressesPass
from .label_references import LabelReferencesPass
from .malformed_and import MalformedAndPass
from .malformed_addresses import (
    MalformedAddressesPass,
    address_shape_legal,
    final_address_legal,
)
from .immediates import MisplacedImmediatesPass, MalformedImmediatesPass
from .malformed_sub import MalformedSubPass
from .misplaced_addresses import MisplacedAddressesPass
from .bit_tests import BitTestLoweringPass
from .register_allocation import RegisterAllocationPass
from .codegen import InstructionSelectionPass

__all__ = [
    "LowerNotPass",
    "SimpleBranchesPass",
    "HardBranchesPass",
    "ShiftOpsPass",
    "LoadStoreAddressesPass",
    "LabelReferencesPass",
    "MalformedAndPass",
    "MalformedAddressesPass",
    "address_shape_legal",
    "final_address_legal",
    "MisplacedImmediatesPass",
    "MalformedImmediatesPass",
    "MalformedSubPass",
    "MisplacedAddressesPass",
    "BitTestLoweringPass",
    "RegisterAllocationPass",
    "InstructionSelectionPass",
]
