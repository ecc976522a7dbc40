"""
Emission Context

One EmissionContext exists per translation unit. It owns everything the
pipeline would otherwise keep as process-wide state: the output sink, the
unique id counter, the deferred-action queue, the temporary counter and the
resolved configuration.
"""

from dataclasses import dataclass, field
from typing import Callable

from .config import BackendConfig
from .ir import Instruction, LocalLabel, TempClass, Temporary

INDENT = "    "


@dataclass
class AsmWriter:
    """Line-oriented assembly sink."""
    lines: list[str] = field(default_factory=list)

    def puts(self, text: str) -> None:
        """Emit an instruction line."""
        self.lines.append(INDENT + text)

    def put_str(self, text: str) -> None:
        """Emit a raw line (directives, preprocessor conditionals, comments)."""
        self.lines.append(text)

    def put_label(self, name: str) -> None:
        self.lines.append(f"{name}:")

    def comment(self, text: str) -> None:
        self.lines.append(f"{INDENT}// {text}")

    def text(self) -> str:
        if not self.lines:
            return ""
        return "\n".join(self.lines) + "\n"


@dataclass
class EmissionContext:
    """Per-unit state threaded through every pass and the selector."""
    config: BackendConfig = field(default_factory=BackendConfig)
    writer: AsmWriter = field(default_factory=AsmWriter)
    next_uid: int = 0
    next_temp_id: int = 0
    deferred: list[Callable[[], None]] = field(default_factory=list)
    finished: bool = False

    def new_uid(self) -> int:
        uid = self.next_uid
        self.next_uid += 1
        return uid

    def new_temp(self, kind: TempClass = TempClass.GPR) -> Temporary:
        tmp = Temporary(self.next_temp_id, kind)
        self.next_temp_id += 1
        return tmp

    def unique_local_label(self, comment: str) -> LocalLabel:
        return LocalLabel(f"{comment}_{self.new_uid()}")

    def defer(self, action: Callable[[], None]) -> None:
        """Run action after the rest of the unit has been emitted."""
        self.deferred.append(action)

    def finish(self) -> str:
        """Flush deferred actions and return the unit's text."""
        if not self.finished:
            while self.deferred:
                action = self.deferred.pop(0)
                action()
            self.finished = True
        return self.writer.text()

    def reserve_temp_ids(self, nodes: list) -> None:
        """Make sure fresh temporaries do not collide with ones already in nodes."""
        for node in nodes:
            if isinstance(node, Instruction):
                for tmp in node.temporaries():
                    self.next_temp_id = max(self.next_temp_id, tmp.id + 1)
