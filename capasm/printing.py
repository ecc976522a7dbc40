"""
IR Printing Utilities

Pretty-printing for instruction lists, used by the pipeline's debug output.
"""

from .ir import Instruction, Label, LocalLabel


def format_node(node) -> str:
    """One-line text for an instruction or label."""
    if isinstance(node, (Label, LocalLabel)):
        return repr(node)
    if isinstance(node, Instruction):
        text = f"  {node!r}"
        if node.annotation:
            text += f"  ; {node.annotation}"
        return text
    return f"  <{node!r}>"


def print_nodes(nodes: list):
    """Pretty-print an instruction list."""
    print(f"=== IR ({sum(isinstance(n, Instruction) for n in nodes)} instructions) ===")
    for node in nodes:
        print(format_node(node))
    print()
