"""
Instruction Selection Pass

Final pass of the pipeline: feeds every label and instruction to the
InstructionSelector, flushes deferred output and returns the unit's text.
"""

import logging

from ..codegen import InstructionSelector
from ..config import PassConfig
from ..emitter import EmissionContext
from ..ir import Instruction
from ..pass_manager import SelectionPass

logger = logging.getLogger(__name__)


class InstructionSelectionPass(SelectionPass):

    @property
    def name(self) -> str:
        return "instruction-selection"

    def run(self, nodes: list, ctx: EmissionContext, config: PassConfig) -> str:
        self._init_metrics()
        selector = InstructionSelector(ctx)
        for node in nodes:
            selector.emit_node(node)

        deferred = len(ctx.deferred)
        text = ctx.finish()
        if deferred:
            logger.debug("flushed %d deferred directives", deferred)

        if self._metrics:
            self._metrics.custom = {
                "instructions": sum(isinstance(n, Instruction) for n in nodes),
                "deferred_directives": deferred,
            }
        return text
