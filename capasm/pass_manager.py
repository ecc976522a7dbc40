"""
Pass Manager Infrastructure

Provides the framework for running the legalization passes over the
instruction list and the final selection pass that turns it into assembly.
Pass order is fixed by the caller; the pipeline only validates that each
pass accepts what the previous one produced.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, Optional

from .config import PassConfig, parse_pass_configs
from .emitter import EmissionContext
from .errors import BackendError
from .ir import Instruction, count_instructions, count_temporaries

logger = logging.getLogger(__name__)


@dataclass
class PassMetrics:
    """Metrics collected by a pass during execution."""
    ir_size_before: int = 0
    ir_size_after: int = 0
    custom: dict[str, Any] = field(default_factory=dict)
    messages: list[str] = field(default_factory=list)


class CompilerPass(ABC):
    """Base class for all backend passes."""

    def __init__(self):
        self._metrics: Optional[PassMetrics] = None

    @property
    @abstractmethod
    def name(self) -> str:
        """Return the pass name for config matching."""
        pass

    @property
    @abstractmethod
    def input_type(self) -> str:
        """Return the input type: 'ir' or 'asm'."""
        pass

    @property
    @abstractmethod
    def output_type(self) -> str:
        """Return the output type: 'ir' or 'asm'."""
        pass

    def get_metrics(self) -> Optional[PassMetrics]:
        """Return metrics from the last run, if collected."""
        return self._metrics

    def _init_metrics(self):
        """Initialize metrics for a new run."""
        self._metrics = PassMetrics()

    def _add_metric_message(self, msg: str):
        """Add a diagnostic message to metrics."""
        if self._metrics:
            self._metrics.messages.append(msg)

    def _count(self, key: str, amount: int = 1):
        if self._metrics:
            self._metrics.custom[key] = self._metrics.custom.get(key, 0) + amount


class LegalizationPass(CompilerPass):
    """Base class for IR -> IR rewrite passes.

    Subclasses implement rewrite(), which maps one instruction to the list of
    instructions replacing it. Labels are forwarded untouched. Errors raised
    while rewriting are tagged with the instruction's opcode and origin.
    """

    @property
    def input_type(self) -> str:
        return "ir"

    @property
    def output_type(self) -> str:
        return "ir"

    def run(self, nodes: list, ctx: EmissionContext, config: PassConfig) -> list:
        """Rewrite nodes and return a new list."""
        self._init_metrics()
        new_nodes: list = []
        for node in nodes:
            if not isinstance(node, Instruction):
                new_nodes.append(node)
                continue
            try:
                new_nodes.extend(self.rewrite(node, ctx, config))
            except BackendError as err:
                raise err.attach(node.opcode, node.origin)
        return new_nodes

    @abstractmethod
    def rewrite(self, inst: Instruction, ctx: EmissionContext, config: PassConfig) -> list:
        """Return the instructions replacing inst."""
        pass


class SelectionPass(CompilerPass):
    """Base class for the IR -> assembly text pass."""

    @property
    def input_type(self) -> str:
        return "ir"

    @property
    def output_type(self) -> str:
        return "asm"

    @abstractmethod
    def run(self, nodes: list, ctx: EmissionContext, config: PassConfig) -> str:
        """Emit assembly for nodes and return the unit's text."""
        pass


@dataclass
class CompilerPipeline:
    """
    Runs an ordered list of passes from the instruction list to assembly.

    Validates type compatibility between adjacent passes.
    """
    passes: list[CompilerPass] = field(default_factory=list)
    config: dict[str, PassConfig] = field(default_factory=dict)
    print_after_all: bool = False
    print_metrics: bool = False

    def add_pass(self, p: CompilerPass) -> None:
        """Register a pass in the pipeline."""
        self.passes.append(p)

    def set_config(self, data: dict[str, Any]) -> None:
        """Load pass configs from an already-parsed config mapping."""
        self.config.update(parse_pass_configs(data))

    def _print_ir_metrics(self, p: CompilerPass, cfg: PassConfig,
                          before_size: int, before_temps: int, after: list):
        """Print metrics for IR -> IR pass."""
        after_size = count_instructions(after)
        after_temps = count_temporaries(after)

        print(f"\n=== Pass: {p.name} (IR → IR) ===")
        print(f"Config: {', '.join(f'{k}={v}' for k, v in cfg.options.items()) or '(default)'}")

        if before_size > 0:
            pct = ((after_size - before_size) / before_size) * 100
            print(f"Instructions: {before_size} -> {after_size} ({pct:+.0f}%)")
        else:
            print(f"Instructions: {before_size} -> {after_size}")

        print(f"Temporaries: {before_temps} -> {after_temps}")

        self._print_custom_metrics(p)

    def _print_selection_metrics(self, p: CompilerPass, cfg: PassConfig,
                                 ir_size: int, text: str):
        """Print metrics for IR -> asm selection pass."""
        print(f"\n=== Pass: {p.name} (IR → asm) ===")
        print(f"Config: {', '.join(f'{k}={v}' for k, v in cfg.options.items()) or '(default)'}")
        print(f"Instructions: {ir_size} -> asm lines: {len(text.splitlines())}")

        self._print_custom_metrics(p)

    def _print_custom_metrics(self, p: CompilerPass):
        """Print pass-specific custom metrics."""
        metrics = p.get_metrics()
        if metrics:
            if metrics.custom:
                print(f"Custom metrics: {metrics.custom}")
            if metrics.messages:
                print("Diagnostics:")
                for msg in metrics.messages:
                    print(f"  - {msg}")

    def run(self, nodes: list, ctx: EmissionContext) -> str:
        """
        Run the full pipeline.

        Args:
            nodes: The instruction list (instructions and labels)
            ctx: Emission context for this translation unit

        Returns:
            Assembly text
        """
        from .printing import print_nodes

        if self.print_after_all:
            print("\n" + "=" * 60)
            print("LEGALIZATION START")
            print("=" * 60)
            print_nodes(nodes)

        ctx.reserve_temp_ids(nodes)
        state: dict[str, Any] = {"type": "ir", "ir": nodes}

        for p in self.passes:
            cfg = self.config.get(p.name, PassConfig(name=p.name))

            if not cfg.enabled:
                logger.debug("skipping disabled pass %s", p.name)
                if self.print_metrics:
                    print(f"\n=== Pass: {p.name} === (SKIPPED - disabled)")
                continue

            if p.input_type != state["type"]:
                raise TypeError(
                    f"Pass '{p.name}' expects input type '{p.input_type}' "
                    f"but current state is '{state['type']}'"
                )

            before_size = count_instructions(state["ir"])
            before_temps = count_temporaries(state["ir"]) if self.print_metrics else 0

            result = p.run(state["ir"], ctx, cfg)

            if p.output_type == "ir":
                logger.debug("%s: %d -> %d instructions", p.name, before_size,
                             count_instructions(result))
                metrics = p.get_metrics()
                if metrics:
                    metrics.ir_size_before = before_size
                    metrics.ir_size_after = count_instructions(result)
            else:
                logger.debug("%s: %d instructions -> %d asm lines", p.name,
                             before_size, len(result.splitlines()))

            if self.print_metrics:
                if p.output_type == "ir":
                    self._print_ir_metrics(p, cfg, before_size, before_temps, result)
                else:
                    self._print_selection_metrics(p, cfg, before_size, result)

            if self.print_after_all:
                print("-" * 60)
                print(f"After {p.name}:")
                print("-" * 60)
                if p.output_type == "ir":
                    print_nodes(result)
                else:
                    print(result)

            state = {"type": p.output_type, "ir": result}

        if self.print_after_all:
            print("=" * 60)
            print("LEGALIZATION END")
            print("=" * 60 + "\n")

        if state["type"] != "asm":
            raise RuntimeError(
                f"Pipeline did not produce assembly, got '{state['type']}' instead"
            )

        return state["ir"]

    def legalize(self, nodes: list, ctx: EmissionContext) -> list:
        """Run only the IR -> IR passes and return the legalized list."""
        ctx.reserve_temp_ids(nodes)
        for p in self.passes:
            if p.output_type != "ir":
                break
            cfg = self.config.get(p.name, PassConfig(name=p.name))
            if cfg.enabled:
                nodes = p.run(nodes, ctx, cfg)
        return nodes
