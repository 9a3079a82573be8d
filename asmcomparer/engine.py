"""Align and disassemble one function in the compare and orig binaries.

Both listings are decoded from the compare binary's function address, no
matter where the bytes really live in the orig binary. Relative jumps and
calls then print the same target text whenever the control flow matches,
which turns a plain line diff of the two files into an equivalence check.
Locating the orig bytes at the same address when the size table has no
``addr`` entry is a heuristic: it only works while both binaries share
their layout.
"""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from .config import DisasmOptions, SymbolSizeTable
from .decoder import decode
from .errors import CoreError, IOFailure, SymbolNotFound, tag_side
from .formatting import format_listing
from .image import Image
from .symbols import resolve

ORIG_OUTPUT = "orig.asm"
COMPARE_OUTPUT = "compare.asm"


@dataclass(frozen=True)
class ComparisonResult:
    offset: int
    length: int

    def delta(self, previous: "ComparisonResult") -> Tuple[int, int]:
        return self.offset - previous.offset, self.length - previous.length


def disassemble_range(image: Image, address: int, length: int, anchor: int,
                      options: DisasmOptions) -> List[str]:
    """Decode *length* bytes stored at *address*, printed as if located at *anchor*."""
    code = image.read_virtual(address, length)
    stream = decode(code, anchor, length, options.bits)
    return format_listing(stream, options)


def write_listing(path: Path, lines: List[str]) -> None:
    try:
        with path.open("w", encoding="utf-8", newline="\n") as fh:
            for line in lines:
                fh.write(line + "\n")
    except OSError as exc:
        raise IOFailure(f"Could not write {path}: {exc}") from exc


def compare(compare_image: Image, orig_image: Image, symbol_name: str, metadata_source,
            size_table: SymbolSizeTable, options: DisasmOptions,
            orig_out: Optional[Path] = None, compare_out: Optional[Path] = None) -> ComparisonResult:
    """Write aligned listings of *symbol_name* for both binaries.

    Nothing is written unless both listings were produced. The two files are
    written one after the other; a failure on the second leaves the first.
    """
    entry = size_table.get(symbol_name)

    try:
        text = metadata_source.get_metadata_text()
        info = resolve(text, symbol_name, compare_image.sections.section_bases())
    except CoreError as exc:
        raise tag_side(exc, "compare")
    rva = info.address

    length = info.length
    if length is None and entry is not None:
        length = entry.size
    if length is None:
        raise SymbolNotFound(f"No length known for {symbol_name}", side="compare")

    if entry is not None and entry.addr is not None:
        orig_address = entry.addr
    else:
        orig_address = rva
        logging.warning(
            "No addr for %s in the size table; assuming it sits at 0x%08X in %s as well",
            symbol_name, rva, orig_image.path,
        )
    orig_length = entry.size if entry is not None and entry.size is not None else length

    compare_length = length
    if options.truncate_to_reference_length:
        compare_length = orig_length

    try:
        compare_lines = disassemble_range(compare_image, rva, compare_length, rva, options)
    except CoreError as exc:
        raise tag_side(exc, "compare")
    try:
        orig_lines = disassemble_range(orig_image, orig_address, orig_length, rva, options)
    except CoreError as exc:
        raise tag_side(exc, "orig")

    orig_out = orig_out or Path(ORIG_OUTPUT)
    compare_out = compare_out or Path(COMPARE_OUTPUT)
    try:
        write_listing(orig_out, orig_lines)
    except CoreError as exc:
        raise tag_side(exc, "orig")
    try:
        write_listing(compare_out, compare_lines)
    except CoreError as exc:
        raise tag_side(exc, "compare")

    return ComparisonResult(offset=rva, length=compare_length)
