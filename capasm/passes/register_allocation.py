"""
Register Allocation Pass

Linear scan over the straight-line instruction list, one register class at
a time. Temporaries introduced by legalization are short-lived, so a tiny
fixed pool of reserved registers is enough:

    integer  c6, c7
    float    q31

A temporary is live from its first to its last mention. It takes a register
from the pool at the first mention and gives it back after the last one.
Two temporaries never share a register within one instruction.
"""

from dataclasses import dataclass

from ..config import PassConfig
from ..emitter import EmissionContext
from ..errors import OutOfScratchRegisters
from ..ir import Instruction, TempClass, Temporary, map_registers
from ..pass_manager import CompilerPass
from ..registers import EXTRA_FPRS, EXTRA_GPRS


@dataclass
class LiveInterval:
    """Live interval for a temporary."""
    tmp: Temporary
    start: int  # Index of the first instruction mentioning tmp
    end: int    # Index of the last instruction mentioning tmp


def _build_live_intervals(nodes: list, kind: TempClass) -> dict[Temporary, LiveInterval]:
    intervals: dict[Temporary, LiveInterval] = {}
    for idx, node in enumerate(nodes):
        if not isinstance(node, Instruction):
            continue
        for tmp in node.temporaries():
            if tmp.kind != kind:
                continue
            interval = intervals.get(tmp)
            if interval is None:
                intervals[tmp] = LiveInterval(tmp, idx, idx)
            else:
                interval.end = idx
    return intervals


def _linear_scan(nodes: list, intervals: dict[Temporary, LiveInterval], registers) -> dict:
    starting: dict[int, list[LiveInterval]] = {}
    ending: dict[int, list[LiveInterval]] = {}
    for interval in intervals.values():
        starting.setdefault(interval.start, []).append(interval)
        ending.setdefault(interval.end, []).append(interval)

    free = list(registers)
    allocation: dict = {}
    for idx in range(len(nodes)):
        for interval in starting.get(idx, []):
            if not free:
                node = nodes[idx]
                raise OutOfScratchRegisters(
                    f"no scratch register left for {interval.tmp!r}",
                    node.opcode, node.origin,
                )
            allocation[interval.tmp] = free.pop()
        for interval in ending.get(idx, []):
            free.append(allocation[interval.tmp])
    return allocation


class RegisterAllocationPass(CompilerPass):
    """
    Replaces every temporary of one register class with a reserved register.

    Runs last in the legalization pipeline, once per register class.
    """

    def __init__(self, kind: TempClass = TempClass.GPR, registers=None):
        super().__init__()
        self._kind = kind
        if registers is None:
            registers = EXTRA_FPRS if kind == TempClass.FPR else EXTRA_GPRS
        self._registers = tuple(registers)

    @property
    def name(self) -> str:
        return f"{self._kind.value}-allocation"

    @property
    def input_type(self) -> str:
        return "ir"

    @property
    def output_type(self) -> str:
        return "ir"

    def run(self, nodes: list, ctx: EmissionContext, config: PassConfig) -> list:
        self._init_metrics()

        intervals = _build_live_intervals(nodes, self._kind)
        if not intervals:
            return list(nodes)

        allocation = _linear_scan(nodes, intervals, self._registers)

        def assign(operand):
            return allocation.get(operand, operand)

        new_nodes: list = []
        for node in nodes:
            if isinstance(node, Instruction) and any(t in allocation for t in node.temporaries()):
                node = node.with_operands([map_registers(op, assign) for op in node.operands])
            new_nodes.append(node)

        if self._metrics:
            self._metrics.custom = {
                "temporaries": len(intervals),
                "registers_used": len(set(allocation.values())),
            }
            if len(set(allocation.values())) == len(self._registers):
                self._add_metric_message(
                    f"all {len(self._registers)} {self._kind.value} scratch registers in use")
        return new_nodes
