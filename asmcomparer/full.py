"""Disassemble every function listed in the size table into one file."""
import logging
from pathlib import Path
from typing import Dict, List, NamedTuple, Optional, Tuple

from .config import DisasmOptions, SymbolSizeTable
from .engine import disassemble_range, write_listing
from .errors import CoreError, IOFailure, SymbolNotFound
from .image import Image
from .symbols import SymbolInfo, iter_symbols


class FullRunResult(NamedTuple):
    written: int
    skipped: int
    failed: List[Tuple[str, CoreError]]


def index_symbols(metadata_text: str, image: Image) -> Dict[str, SymbolInfo]:
    """Map every symbol name to its first record, scanning the text once."""
    if not metadata_text.strip():
        raise IOFailure("Debug metadata is empty")
    index: Dict[str, SymbolInfo] = {}
    for info in iter_symbols(metadata_text, image.sections.section_bases()):
        index.setdefault(info.name, info)
    return index


def _locate(name: str, entry, for_reference: bool,
            symbols: Optional[Dict[str, SymbolInfo]]) -> Tuple[int, int]:
    if for_reference:
        if entry.addr is None:
            raise SymbolNotFound(f"No addr for {name} in the size table")
        return entry.addr, entry.size

    if symbols is None:
        raise SymbolNotFound(f"No debug metadata to resolve {name}")
    info = symbols.get(name)
    if info is None:
        raise SymbolNotFound(f"{name} not found in the debug metadata")
    length = info.length if info.length is not None else entry.size
    if length is None:
        raise SymbolNotFound(f"No length known for {name}")
    return info.address, length


def generate_all(image: Image, size_table: SymbolSizeTable, for_reference: bool,
                 options: DisasmOptions, out_path: Path,
                 metadata_text: Optional[str] = None) -> FullRunResult:
    """Write one block per table entry, in table order, to *out_path*.

    For the reference binary entries without a size are skipped. Entries
    that fail to resolve or decode are logged and returned in ``failed``.
    Empty debug metadata fails the whole run with ``IOFailure``.
    """
    lines: List[str] = []
    written = 0
    skipped = 0
    failed: List[Tuple[str, CoreError]] = []
    symbols = None
    if not for_reference and metadata_text is not None:
        symbols = index_symbols(metadata_text, image)

    for name, entry in size_table.items():
        if for_reference and entry.size is None:
            logging.debug("Skipping %s: no size in the table", name)
            skipped += 1
            continue
        try:
            address, length = _locate(name, entry, for_reference, symbols)
            block = disassemble_range(image, address, length, address, options)
        except CoreError as exc:
            logging.error("%s: %s", name, exc)
            failed.append((name, exc))
            continue
        lines.append(f"; {name} @ 0x{address:08X}, 0x{length:X} bytes")
        lines.extend(block)
        lines.append("")
        written += 1

    write_listing(out_path, lines)
    logging.info(
        "Wrote %d functions to %s (%d skipped, %d failed)",
        written, out_path, skipped, len(failed),
    )
    return FullRunResult(written, skipped, failed)
