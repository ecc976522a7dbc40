"""
Instruction Selector

Turns the fully legalized instruction list into assembly lines. Selection
is a table of per-opcode handlers; each writes one or more lines through
the emission context's writer and never restructures the list.

Operand order: the IR is source-source-destination, the target is
destination-first, so most handlers emit the last operand first. The
two-operand form accumulates into its second operand, which is then
emitted twice ("dst, dst, src").
"""

import math
from typing import Callable

from .emitter import EmissionContext
from .errors import (
    BackendError,
    BadImmediate,
    MalformedInstruction,
    UnencodableOffset,
    UnknownOpcode,
    UnsupportedOpcodeForTarget,
)
from .ir import (
    Address,
    Immediate,
    Instruction,
    Label,
    LocalLabel,
    LocalLabelReference,
    WidthClass,
    is_immediate,
    is_label,
    is_register,
)
from .opcodes import (
    BRANCH_CONDITIONS,
    DOUBLE_BRANCH_CONDITIONS,
    FLAG_BRANCHES,
    INVERTED_CONDITIONS,
    PRINTS,
    UNSUPPORTED_ON_TARGET,
    is_known_opcode,
)
from .operands import MIN_UNSCALED_OFFSET, asm_label, emit_lea, render, render_all
from .registers import zero_register

WORD = WidthClass.WORD
PTR = WidthClass.POINTER
QUAD = WidthClass.QUAD
DOUBLE = WidthClass.DOUBLE

# Width letter of integer compare opcodes -> operand width.
COMPARE_WIDTHS = {"i": WORD, "b": WORD, "p": PTR, "q": QUAD}

# Label prefix for the linker optimization hint pairs of globaladdr.
LOH_PREFIX = "L_capasm_loh"


def flipped_operands(operands, kinds) -> str:
    """Render with the last operand (the destination) moved to the front."""
    operands = list(operands)
    if isinstance(kinds, list):
        kinds = [kinds[-1]] + kinds[:-1]
    return render_all([operands[-1]] + operands[:-1], kinds)


def tac_operands(operands, kinds) -> str:
    """Three-address operand text; the two-operand form repeats its destination."""
    if len(operands) == 3:
        return flipped_operands(operands, kinds)
    if len(operands) != 2:
        raise MalformedInstruction(f"expected 2 or 3 operands, got {len(operands)}")
    kind1 = kinds[1] if isinstance(kinds, list) else kinds
    return f"{render(operands[1], kind1)}, {flipped_operands(operands, kinds)}"


def move_immediate_lines(value: int, target: str) -> list[str]:
    """movz/movn/movk sequence loading a 64-bit constant, high chunk first.

    Chunks equal to the fill pattern (0, or 0xffff for negative values) are
    skipped, except that the lowest chunk is kept if nothing was emitted yet.
    """
    lines = []
    first = True
    negative = value < 0
    filler = 0xFFFF if negative else 0
    for shift in (48, 32, 16, 0):
        chunk = (value >> shift) & 0xFFFF
        if chunk == filler and (shift != 0 or not first):
            continue
        if first:
            if negative:
                lines.append(f"movn {target}, #{~chunk & 0xFFFF}, lsl #{shift}")
            else:
                lines.append(f"movz {target}, #{chunk}, lsl #{shift}")
            first = False
        else:
            lines.append(f"movk {target}, #{chunk}, lsl #{shift}")
    return lines


def _bit_size(kind: WidthClass) -> int:
    return 32 if kind == WORD else 64


class InstructionSelector:
    """Per-opcode selection into the writer of one EmissionContext."""

    def __init__(self, ctx: EmissionContext):
        self.ctx = ctx
        self.out = ctx.writer
        self._handlers: dict[str, Callable[[tuple], None]] = {}
        self._register_handlers()

    # ------------------------------------------------------------------
    # Entry points

    def emit_node(self, node) -> None:
        if isinstance(node, Label):
            self.out.put_label(node.name)
        elif isinstance(node, LocalLabel):
            self.out.put_label(asm_label(LocalLabelReference(node.name)))
        elif isinstance(node, Instruction):
            self.select(node)
        else:
            raise MalformedInstruction(f"not an instruction or label: {node!r}")

    def select(self, inst: Instruction) -> None:
        handler = self._handlers.get(inst.opcode)
        if handler is None:
            if not is_known_opcode(inst.opcode):
                raise UnknownOpcode(f"unknown opcode {inst.opcode}", inst.opcode, inst.origin)
            if inst.opcode in UNSUPPORTED_ON_TARGET:
                raise UnsupportedOpcodeForTarget(
                    f"{inst.opcode} is not supported on this target", inst.opcode, inst.origin)
            raise UnsupportedOpcodeForTarget(
                f"{inst.opcode} has no lowering on this target", inst.opcode, inst.origin)

        if self.ctx.config.annotate and inst.annotation:
            self.out.comment(inst.annotation)
        try:
            handler(inst.operands)
        except BackendError as err:
            raise err.attach(inst.opcode, inst.origin)
        except (IndexError, ValueError):
            raise MalformedInstruction(
                "wrong number of operands", inst.opcode, inst.origin) from None

    # ------------------------------------------------------------------
    # Handler table

    def _register_handlers(self) -> None:
        h = self._handlers

        h["cvtz"] = self._cvtz
        for opcode, mnemonic, kind in (
            ("addi", "add", WORD), ("addis", "adds", WORD),
            ("addp", "add", PTR), ("addps", "adds", PTR),
            ("addq", "add", QUAD), ("addqs", "adds", QUAD),
        ):
            h[opcode] = self._bind(self._add, mnemonic, kind)
        for opcode, mnemonic, kind in (
            ("subi", "sub", WORD), ("subis", "subs", WORD),
            ("subp", "sub", PTR), ("subq", "sub", QUAD),
        ):
            h[opcode] = self._bind(self._sub, mnemonic, kind)
        for opcode, mnemonic, kind in (
            ("andi", "and", WORD), ("andq", "and", QUAD),
            ("ori", "orr", WORD), ("orq", "orr", QUAD),
            ("xori", "eor", WORD), ("xorq", "eor", QUAD),
            ("addd", "fadd", DOUBLE), ("subd", "fsub", DOUBLE),
            ("muld", "fmul", DOUBLE), ("divd", "fdiv", DOUBLE),
        ):
            h[opcode] = self._bind(self._tac, mnemonic, kind)

        h["lshifti"] = self._bind(self._lshift, WORD)
        h["lshiftq"] = self._bind(self._lshift, QUAD)
        # rshiftp shifts the address bits only.
        for opcode, kind in (("rshifti", WORD), ("rshiftp", QUAD), ("rshiftq", QUAD)):
            h[opcode] = self._bind(self._shift, "asrv", "sbfm", kind,
                                   lambda v, bits: (v, bits - 1))
        for opcode, kind in (("urshifti", WORD), ("urshiftq", QUAD)):
            h[opcode] = self._bind(self._shift, "lsrv", "ubfm", kind,
                                   lambda v, bits: (v, bits - 1))

        h["muli"] = self._bind(self._mul, WORD)
        h["mulq"] = self._bind(self._mul, QUAD)
        h["smulli"] = self._smulli
        h["negi"] = self._bind(self._neg, WORD)
        h["negp"] = self._bind(self._neg, PTR)
        h["negq"] = self._bind(self._neg, QUAD)

        for opcode, mnemonic, unscaled, kind in (
            ("loadi", "ldr", "ldur", WORD),
            ("loadis", "ldrsw", "ldursw", QUAD),
            ("loadp", "ldr", "ldur", PTR),
            ("loadq", "ldr", "ldur", QUAD),
            ("loadb", "ldrb", "ldurb", WORD),
            ("loadbsi", "ldrsb", "ldursb", WORD),
            ("loadbsq", "ldrsb", "ldursb", QUAD),
            ("loadh", "ldrh", "ldurh", WORD),
            ("loadhsi", "ldrsh", "ldursh", WORD),
            ("loadhsq", "ldrsh", "ldursh", QUAD),
            ("loadd", "ldr", "ldur", DOUBLE),
        ):
            h[opcode] = self._bind(self._load, mnemonic, unscaled, kind)
        for opcode in ("loadv", "loadvmc"):
            h[opcode] = self._heap_load
        for opcode, mnemonic, kind in (
            ("storei", "str", WORD), ("storep", "str", PTR),
            ("storeq", "str", QUAD), ("storeb", "strb", WORD),
            ("storeh", "strh", WORD), ("stored", "str", DOUBLE),
        ):
            h[opcode] = self._bind(self._store, mnemonic, kind)
        h["storev"] = self._heap_store

        h["sqrtd"] = self._bind(self._flipped, "fsqrt", DOUBLE)
        for opcode, mnemonic, kinds in (
            ("ci2d", "scvtf", [WORD, DOUBLE]),
            ("td2i", "fcvtzs", [DOUBLE, WORD]),
            ("fp2d", "fmov", [PTR, DOUBLE]),
            ("fq2d", "fmov", [QUAD, DOUBLE]),
            ("fd2p", "fmov", [DOUBLE, PTR]),
            ("fd2q", "fmov", [DOUBLE, QUAD]),
            ("sxi2p", "sxtw", [WORD, PTR]),
            ("sxi2q", "sxtw", [WORD, QUAD]),
            ("zxi2p", "uxtw", [WORD, PTR]),
            ("zxi2q", "uxtw", [WORD, QUAD]),
        ):
            h[opcode] = self._bind(self._flipped, mnemonic, kinds)

        for opcode, condition in DOUBLE_BRANCH_CONDITIONS.items():
            h[opcode] = self._bind(self._double_branch, condition)
        h["bdneq"] = self._bdneq
        h["bdequn"] = self._bdequn

        for width, kind in COMPARE_WIDTHS.items():
            for suffix, condition in BRANCH_CONDITIONS.items():
                h[f"b{width}{suffix}"] = self._bind(self._compare_branch, kind, condition)
                h[f"c{width}{suffix}"] = self._bind(
                    self._compare_set, kind, INVERTED_CONDITIONS[condition])

        for opcode, condition in FLAG_BRANCHES.items():
            h[opcode] = self._bind(self._flag_branch, condition)

        h["move"] = self._bind(self._move, QUAD)
        h["movep"] = self._bind(self._move, PTR)
        h["pushq"] = self._bind(self._push, QUAD, 16)
        h["pushp"] = self._bind(self._push, PTR, 32)
        h["popq"] = self._bind(self._pop, QUAD, 16)
        h["popp"] = self._bind(self._pop, PTR, 32)
        h["peek"] = self._bind(self._stack_slot, "ldr")
        h["poke"] = self._bind(self._stack_slot, "str")

        h["leai"] = self._bind(self._lea, WORD)
        h["leap"] = self._bind(self._lea, PTR)
        h["leaq"] = self._bind(self._lea, QUAD)

        h["jmp"] = self._bind(self._jump, "b", "br")
        h["call"] = self._bind(self._jump, "bl", "blr")
        h["ret"] = self._fixed("ret")
        h["break"] = self._fixed("brk #0")
        h["nop"] = self._fixed("nop")
        h["memfence"] = self._fixed("dmb sy")

        h["bfiq"] = self._bfiq
        h["pcrtoaddr"] = self._pcrtoaddr
        h["globaladdr"] = self._globaladdr
        for opcode in PRINTS:
            h[opcode] = self._raw("/* print instructions not supported on this target */")
        h["makecap"] = self._raw("/* makecap instruction is NOP */")

    @staticmethod
    def _bind(method, *args):
        return lambda operands: method(operands, *args)

    def _fixed(self, text: str):
        return lambda operands: self.out.puts(text)

    def _raw(self, text: str):
        return lambda operands: self.out.put_str(text)

    # ------------------------------------------------------------------
    # Generic shapes

    def _tac(self, operands, mnemonic: str, kind) -> None:
        self.out.puts(f"{mnemonic} {tac_operands(operands, kind)}")

    def _flipped(self, operands, mnemonic: str, kind) -> None:
        self.out.puts(f"{mnemonic} {flipped_operands(operands, kind)}")

    def _require_registers(self, *operands) -> None:
        for op in operands:
            if not is_register(op):
                raise MalformedInstruction(f"expected a register, got {op!r}")

    # ------------------------------------------------------------------
    # Arithmetic

    def _cvtz(self, operands) -> None:
        if len(operands) == 3:
            src1, src2, dst = operands
        else:
            src1, src2 = operands
            dst = src2
        self._tac((src1, src2, dst), "cvtz", [PTR, QUAD, PTR])

    def _add(self, operands, mnemonic: str, kind: WidthClass) -> None:
        flag_setting = mnemonic.endswith("s")
        # Capability adds take a plain integer displacement.
        if kind == PTR:
            if len(operands) == 3:
                kinds = [PTR, PTR, QUAD] if is_immediate(operands[0]) else [PTR, QUAD, PTR]
            else:
                kinds = [QUAD, PTR]
        else:
            kinds = [kind] * len(operands)

        if len(operands) == 3:
            src1, src2, dst = operands
            self._require_registers(src2, dst)
            if is_immediate(src1):
                if src1.value == 0 and not flag_setting:
                    if src2 != dst:
                        self.out.puts(f"mov {render(dst, kind)}, {render(src2, kind)}")
                    return
                self.out.puts(f"{mnemonic} {render_all(operands[::-1], kinds)}")
                return
            self._require_registers(src1)
            self._flipped(operands, mnemonic, kinds)
            return

        if len(operands) != 2:
            raise MalformedInstruction(f"expected 2 or 3 operands, got {len(operands)}")
        if is_immediate(operands[0], 0) and not flag_setting:
            return
        self._tac(operands, mnemonic, kinds)

    def _sub(self, operands, mnemonic: str, kind: WidthClass) -> None:
        flag_setting = mnemonic.endswith("s")
        if kind == PTR:
            if len(operands) == 3:
                kinds = [PTR, QUAD, PTR]
                deduction = operands[1]
            else:
                kinds = [QUAD, PTR]
                deduction = operands[0]
            if not isinstance(deduction, Immediate):
                raise MalformedInstruction("capability subtraction needs an immediate subtrahend")
        else:
            kinds = [kind] * len(operands)

        if len(operands) == 3:
            src1, src2, dst = operands
            self._require_registers(src1, dst)
            if is_immediate(src2, 0) and not flag_setting:
                if src1 != dst:
                    self.out.puts(f"mov {render(dst, kind)}, {render(src1, kind)}")
                return
        elif len(operands) == 2:
            if is_immediate(operands[0], 0) and not flag_setting:
                return

        self._tac(operands, mnemonic, kinds)

    def _mul(self, operands, kind: WidthClass) -> None:
        if len(operands) == 2 and isinstance(operands[0], Immediate):
            value = operands[0].value
            if value > 0 and value & (value - 1) == 0:
                self._lshift((Immediate(int(math.log2(value))), operands[1]), kind)
                return
        self.out.puts(f"madd {tac_operands(operands, kind)}, {zero_register(kind)}")

    def _smulli(self, operands) -> None:
        src1, src2, dst = operands
        self.out.puts(
            f"smaddl {render(dst, QUAD)}, {render(src1, WORD)}, {render(src2, WORD)}, xzr"
        )

    def _neg(self, operands, kind: WidthClass) -> None:
        reg = render(operands[0], kind)
        self.out.puts(f"sub {reg}, {zero_register(kind)}, {reg}")

    def _shift(self, operands, register_mnemonic: str, immediate_mnemonic: str,
               kind: WidthClass, magic) -> None:
        bits = _bit_size(kind)
        if len(operands) == 3 and is_immediate(operands[1]):
            immr, imms = magic(operands[1].value, bits)
            self.out.puts(
                f"{immediate_mnemonic} {render(operands[2], kind)}, "
                f"{render(operands[0], kind)}, #{immr}, #{imms}"
            )
            return
        if len(operands) == 2 and is_immediate(operands[0]):
            immr, imms = magic(operands[0].value, bits)
            reg = render(operands[1], kind)
            self.out.puts(f"{immediate_mnemonic} {reg}, {reg}, #{immr}, #{imms}")
            return
        self._tac(operands, register_mnemonic, kind)

    def _lshift(self, operands, kind: WidthClass) -> None:
        self._shift(operands, "lslv", "ubfm", kind,
                    lambda v, bits: ((bits - v) % bits, bits - 1 - v))

    # ------------------------------------------------------------------
    # Memory

    def _load(self, operands, mnemonic: str, unscaled: str, kind: WidthClass) -> None:
        memory, register = operands[0], operands[1]
        if isinstance(memory, Address) and memory.offset < 0:
            if memory.offset < MIN_UNSCALED_OFFSET:
                raise UnencodableOffset(f"invalid offset {memory.offset}")
            mnemonic = unscaled
        self.out.puts(f"{mnemonic} {render(register, kind)}, {render(memory, kind)}")

    def _store(self, operands, mnemonic: str, kind: WidthClass) -> None:
        value, memory = operands[0], operands[1]
        if isinstance(memory, Address) and memory.offset < 0:
            raise UnencodableOffset(f"store with negative offset {memory.offset}")
        self.out.puts(f"{mnemonic} {render_all((value, memory), kind)}")

    def _heap_width(self) -> WidthClass:
        return QUAD if self.ctx.config.offset_heap_refs else PTR

    def _heap_load(self, operands) -> None:
        self._load(operands, "ldr", "ldur", self._heap_width())

    def _heap_store(self, operands) -> None:
        self._store(operands, "str", self._heap_width())

    def _lea(self, operands, kind: WidthClass) -> None:
        emit_lea(operands[0], operands[1], kind, self.out)

    def _push(self, operands, kind: WidthClass, step: int) -> None:
        if len(operands) % 2:
            raise MalformedInstruction("push takes registers in pairs")
        for first, second in zip(operands[0::2], operands[1::2]):
            self.out.puts(f"stp {render_all((first, second), kind)}, [csp, #-{step}]!")

    def _pop(self, operands, kind: WidthClass, step: int) -> None:
        # Pops name registers in the reverse of push order, and ldp keeps
        # the same register order as stp, so each pair is swapped.
        if len(operands) % 2:
            raise MalformedInstruction("pop takes registers in pairs")
        for first, second in zip(operands[0::2], operands[1::2]):
            self.out.puts(f"ldp {render_all((second, first), kind)}, [csp], #{step}")

    def _stack_slot(self, operands, mnemonic: str) -> None:
        slot, register = operands
        if not isinstance(slot, Immediate):
            raise MalformedInstruction(f"stack slot must be an immediate, got {slot!r}")
        self.out.puts(f"{mnemonic} {render(register, QUAD)}, [csp, #{slot.value * 8}]")

    def _move(self, operands, kind: WidthClass) -> None:
        source, target = operands
        if isinstance(source, Immediate):
            for line in move_immediate_lines(source.value, render(target, QUAD)):
                self.out.puts(line)
            return
        self._flipped(operands, "mov", kind)

    # ------------------------------------------------------------------
    # Compares and branches

    def _compare_operands(self, operands, kind: WidthClass) -> str:
        if isinstance(operands[0], Immediate):
            raise BadImmediate(f"compare cannot take an immediate first operand {operands[0]!r}")
        return f"{zero_register(kind)}, {render_all(operands, kind)}"

    def _compare_branch(self, operands, kind: WidthClass, condition: str) -> None:
        lhs, rhs, target = operands
        if condition in ("eq", "ne"):
            mnemonic = "cbz" if condition == "eq" else "cbnz"
            if is_immediate(lhs, 0):
                self.out.puts(f"{mnemonic} {render(rhs, kind)}, {asm_label(target)}")
                return
            if is_immediate(rhs, 0):
                self.out.puts(f"{mnemonic} {render(lhs, kind)}, {asm_label(target)}")
                return
        self.out.puts(f"subs {self._compare_operands((lhs, rhs), kind)}")
        self.out.puts(f"b.{condition} {asm_label(target)}")

    def _compare_set(self, operands, kind: WidthClass, inverted: str) -> None:
        lhs, rhs, dst = operands
        self.out.puts(f"subs {self._compare_operands((lhs, rhs), kind)}")
        self.out.puts(f"csinc {render(dst, WORD)}, wzr, wzr, {inverted}")

    def _flag_branch(self, operands, condition: str) -> None:
        self.out.puts(f"b.{condition} {asm_label(operands[0])}")

    def _fcmp(self, lhs, rhs) -> None:
        self.out.puts(f"fcmp {render_all((lhs, rhs), DOUBLE)}")

    def _double_branch(self, operands, condition: str) -> None:
        lhs, rhs, target = operands
        self._fcmp(lhs, rhs)
        self.out.puts(f"b.{condition} {asm_label(target)}")

    def _bdneq(self, operands) -> None:
        lhs, rhs, target = operands
        self._fcmp(lhs, rhs)
        # Unordered compares set "ne" too; skip over the branch for NaN.
        unordered = self.ctx.unique_local_label("bdneq")
        self.out.puts(f"b.vs {asm_label(LocalLabelReference(unordered.name))}")
        self.out.puts(f"b.ne {asm_label(target)}")
        self.emit_node(unordered)

    def _bdequn(self, operands) -> None:
        lhs, rhs, target = operands
        self._fcmp(lhs, rhs)
        self.out.puts(f"b.vs {asm_label(target)}")
        self.out.puts(f"b.eq {asm_label(target)}")

    def _jump(self, operands, label_mnemonic: str, register_mnemonic: str) -> None:
        target = operands[0]
        if is_label(target):
            self.out.puts(f"{label_mnemonic} {asm_label(target)}")
        else:
            self.out.puts(f"{register_mnemonic} {render(target, PTR)}")

    # ------------------------------------------------------------------
    # Misc

    def _bfiq(self, operands) -> None:
        source, lsb, width, target = operands
        if not (isinstance(lsb, Immediate) and isinstance(width, Immediate)):
            raise MalformedInstruction("bfiq takes an immediate bit position and width")
        self.out.puts(
            f"bfi {render(target, QUAD)}, {render(source, QUAD)}, #{lsb.value}, #{width.value}"
        )

    def _pcrtoaddr(self, operands) -> None:
        label = asm_label(operands[0])
        dst = render(operands[1], PTR)
        self.out.puts(f"adrp {dst}, {label}")
        self.out.puts(f"add {dst}, {dst}, #:lo12:{label}")

    def _globaladdr(self, operands) -> None:
        label = asm_label(operands[0])
        dst = render(operands[1], PTR)
        uid = self.ctx.new_uid()
        adrp_label = f"{LOH_PREFIX}_adrp_{uid}"
        ldr_label = f"{LOH_PREFIX}_ldr_{uid}"

        # Mach-O GOT relocations, with labels for the .loh hint.
        self.out.put_str("#if OS(DARWIN)")
        self.out.puts(f"{adrp_label}:")
        self.out.puts(f"adrp {dst}, {label}@GOTPAGE")
        self.out.puts(f"{ldr_label}:")
        self.out.puts(f"ldr {dst}, [{dst}, {label}@GOTPAGEOFF]")
        # ELF GOT relocations.
        self.out.put_str("#elif OS(LINUX) || OS(FREEBSD)")
        self.out.puts(f"adrp {dst}, :got:{label}")
        self.out.puts(f"ldr {dst}, [{dst}, :got_lo12:{label}]")
        self.out.put_str("#else")
        self.out.put_str("#error Missing globaladdr implementation")
        self.out.put_str("#endif")

        def emit_hint():
            self.out.put_str("#if OS(DARWIN)")
            self.out.puts(f".loh AdrpLdrGot {adrp_label}, {ldr_label}")
            self.out.put_str("#endif")

        self.ctx.defer(emit_hint)
