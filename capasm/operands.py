"""
Operand Encoder

Renders operands to assembly text for a width class and holds the legality
ranges the legalization passes test against. The encoder never rewrites
anything: an operand it cannot render is a pipeline bug and raises.
"""

from .errors import (
    AliasingLeaRequiresDistinctBase,
    BadImmediate,
    UnencodableOffset,
    UnresolvedOperand,
    UnsupportedAddressingMode,
)
from .ir import (
    AbsoluteAddress,
    Address,
    BaseIndex,
    Immediate,
    LabelReference,
    LocalLabelReference,
    Temporary,
    WidthClass,
    is_register,
)
from .registers import register_name

IMMEDIATE_RANGE = range(0, 4096)

# (is_wide_base, wide_access) -> legal Address offsets.
# Wide accesses are 16-byte capability loads/stores.
OFFSET_RANGES = {
    (True, False): range(-255, 4096),
    (False, False): range(-32, 32),
    (True, True): range(0, 4096),
    (False, True): range(-128, 128),
}

# Unscaled (ldur/stur) forms reach down to -256.
MIN_UNSCALED_OFFSET = -256


def offset_range(is_wide_base: bool, access_size: int) -> range:
    return OFFSET_RANGES[(is_wide_base, access_size == 16)]


def address_offset_legal(address: Address, access_size: int) -> bool:
    return address.offset in offset_range(address.is_wide_base, access_size)


def base_width(is_wide_base: bool) -> WidthClass:
    return WidthClass.POINTER if is_wide_base else WidthClass.QUAD


def _width_access_size(width: WidthClass) -> int:
    return 16 if width == WidthClass.POINTER else 8


def asm_label(operand) -> str:
    """Branch-target text for a label operand."""
    match operand:
        case LabelReference(label=label, offset=0):
            return label
        case LabelReference(label=label, offset=offset):
            return f"{label}+{offset}"
        case LocalLabelReference(label=label):
            return f".L{label}"
        case _:
            raise UnresolvedOperand(f"expected a label, got {operand!r}")


def render(operand, width: WidthClass) -> str:
    """Assembly text for operand at the given width."""
    if is_register(operand):
        return register_name(operand, width)

    match operand:
        case Immediate(value=value):
            if value not in IMMEDIATE_RANGE:
                raise BadImmediate(f"invalid immediate {value}")
            return f"#{value}"

        case Address(base=base, offset=offset, is_wide_base=wide):
            legal = offset_range(wide, _width_access_size(width))
            if offset not in legal:
                raise UnencodableOffset(f"invalid offset {offset}")
            return f"[{render(base, base_width(wide))}, #{offset}]"

        case BaseIndex(base=base, index=index, scale_shift=shift, offset=offset, is_wide_base=wide):
            if offset != 0:
                raise UnencodableOffset(f"invalid offset {offset}")
            return f"[{render(base, base_width(wide))}, {render(index, WidthClass.QUAD)}, lsl #{shift}]"

        case AbsoluteAddress(value=value):
            raise UnresolvedOperand(f"unconverted absolute address {value:#x}")

        case Temporary():
            raise UnresolvedOperand(f"unallocated temporary {operand!r}")

        case LabelReference() | LocalLabelReference():
            raise UnresolvedOperand(f"unresolved label reference {operand!r}")

        case _:
            raise UnsupportedAddressingMode(f"cannot render operand {operand!r}")


def render_all(operands, kinds) -> str:
    """Render operands with one width each, or a shared width."""
    if isinstance(kinds, WidthClass):
        kinds = [kinds] * len(operands)
    if len(kinds) != len(operands):
        raise ValueError(f"mismatched operand lists: {operands!r} and {kinds!r}")
    return ", ".join(render(op, kind) for op, kind in zip(operands, kinds))


def emit_lea(address, destination, width: WidthClass, writer) -> None:
    """Compute the effective address of a memory operand into destination."""
    match address:
        case Address(base=base, offset=offset):
            writer.puts(f"add {render(destination, width)}, {render(base, width)}, #{offset}")

        case BaseIndex(base=base, index=index, scale_shift=shift):
            index_width = WidthClass.QUAD if width == WidthClass.POINTER else width
            if shift == 0:
                writer.puts(
                    f"add {render(destination, width)}, {render(base, width)}, "
                    f"{render(index, index_width)}"
                )
                return
            if width == WidthClass.POINTER and shift == 3:
                # A capability add cannot scale its index, so shift first.
                if destination == base:
                    raise AliasingLeaRequiresDistinctBase(
                        "base is overwritten before the capability is rebuilt from it"
                    )
                writer.puts(
                    f"lsl {render(destination, WidthClass.QUAD)}, "
                    f"{render(index, index_width)}, #{shift}"
                )
                writer.puts(
                    f"add {render(destination, width)}, {render(base, width)}, "
                    f"{render(destination, WidthClass.QUAD)}"
                )
                return
            writer.puts(
                f"add {render(destination, width)}, {render(base, width)}, "
                f"{render(index, index_width)}, lsl #{shift}"
            )

        case AbsoluteAddress(value=value):
            raise UnresolvedOperand(f"unconverted absolute address {value:#x}")

        case _:
            raise UnsupportedAddressingMode(f"cannot compute the address of {address!r}")
