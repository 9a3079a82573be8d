"""Render decoded instructions as diffable text lines.

Operand redaction works on capstone's Intel syntax text: numbers inside a
memory operand (``[...]``) are displacements, numbers outside are immediates.
Scale factors and register names such as ``r8`` or ``st(1)`` are never
touched, so the addressing-mode shape survives redaction.
"""
import re
from typing import Iterable, List

from .config import DisasmOptions
from .decoder import Instruction

DISP_PLACEHOLDER = "DISP"
IMM_PLACEHOLDER = "IMM"

_MEMORY_OPERAND = re.compile(r"(\[[^\]]*\])")
_NUMBER = re.compile(r"(?<![\w*({])-?(?:0x[0-9a-fA-F]+|\d+)(?![\w)}])")


def is_call(mnemonic: str) -> bool:
    return mnemonic in ("call", "lcall")


def redact_operands(mnemonic: str, op_str: str, options: DisasmOptions) -> str:
    hide_disp = not options.show_memory_displacements
    hide_imm = not options.show_immediates
    if not (hide_disp or hide_imm) or not op_str:
        return op_str

    # call targets are addresses outside the aligned function
    if hide_disp and is_call(mnemonic):
        outside = DISP_PLACEHOLDER
    elif hide_imm:
        outside = IMM_PLACEHOLDER
    else:
        outside = None

    parts = []
    for part in _MEMORY_OPERAND.split(op_str):
        if part.startswith("["):
            if hide_disp:
                part = _NUMBER.sub(DISP_PLACEHOLDER, part)
        elif outside:
            part = _NUMBER.sub(outside, part)
        parts.append(part)
    return "".join(parts)


def format_instruction(instruction: Instruction, options: DisasmOptions) -> str:
    operands = redact_operands(instruction.mnemonic, instruction.op_str, options)
    line = f"{instruction.mnemonic} {operands}".rstrip()
    if options.show_addresses:
        line = f"0x{instruction.address:08X}: {line}"
    return line


def format_listing(instructions: Iterable[Instruction], options: DisasmOptions) -> List[str]:
    return [format_instruction(insn, options) for insn in instructions]
