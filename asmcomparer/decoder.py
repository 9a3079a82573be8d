"""Capstone-backed x86 decoding anchored at a caller-chosen address."""
import logging
from dataclasses import dataclass
from typing import Iterator

from capstone import Cs, CS_ARCH_X86, CS_MODE_16, CS_MODE_32, CS_MODE_64

from .errors import DecodeFailure

MODES = {16: CS_MODE_16, 32: CS_MODE_32, 64: CS_MODE_64}


@dataclass(frozen=True)
class Instruction:
    address: int
    size: int
    mnemonic: str
    op_str: str

    @property
    def text(self) -> str:
        return f"{self.mnemonic} {self.op_str}".rstrip()


class DecodedStream:
    """Lazy, restartable instruction sequence over a byte slice.

    Every iteration decodes from the start again. Decoding stops after
    ``max_length`` bytes or at the first byte sequence capstone rejects;
    ``consumed`` and ``ended_early`` describe the most recent iteration.
    """

    def __init__(self, code: bytes, start_address: int, max_length: int, bits: int = 32):
        if bits not in MODES:
            raise ValueError(f"Unsupported bitness {bits}")
        self.code = bytes(code[:max_length])
        self.start_address = start_address
        self.max_length = max_length
        self.bits = bits
        self.consumed = 0
        self.ended_early = False

    def __iter__(self) -> Iterator[Instruction]:
        md = Cs(CS_ARCH_X86, MODES[self.bits])
        self.consumed = 0
        self.ended_early = False
        produced = 0
        for address, size, mnemonic, op_str in md.disasm_lite(self.code, self.start_address):
            self.consumed += size
            produced += 1
            yield Instruction(address, size, mnemonic, op_str)
        if self.consumed < self.max_length:
            self.ended_early = True
            stop = self.start_address + self.consumed
            if produced == 0:
                raise DecodeFailure(f"No instruction could be decoded at 0x{stop:08X}")
            logging.warning(
                "Disassembly stopped at 0x%08X, 0x%X of 0x%X bytes decoded",
                stop, self.consumed, self.max_length,
            )


def decode(code: bytes, start_address: int, max_length: int, bits: int = 32) -> DecodedStream:
    return DecodedStream(code, start_address, max_length, bits)
