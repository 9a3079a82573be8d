"""Executable image access: section layout, address translation, byte reads."""
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, List, Sequence

import lief

from .errors import AddressOutOfSection, IOFailure


@dataclass(frozen=True)
class Section:
    name: str
    virtual_address: int
    virtual_size: int
    file_offset: int
    file_size: int

    @property
    def virtual_end(self) -> int:
        return self.virtual_address + self.virtual_size

    def contains(self, address: int) -> bool:
        return self.virtual_address <= address < self.virtual_end


class SectionMap:
    """Read-only view over an image's sections, in section table order."""

    def __init__(self, sections: Sequence[Section]):
        self._sections = tuple(sections)

    def __iter__(self):
        return iter(self._sections)

    def __len__(self) -> int:
        return len(self._sections)

    def translate(self, virtual_address: int) -> int:
        """Return the file offset backing *virtual_address*.

        Defined only when exactly one section contains the address and the
        address is backed by that section's raw data.
        """
        matches = [s for s in self._sections if s.contains(virtual_address)]
        if len(matches) != 1:
            reason = "no section" if not matches else f"{len(matches)} overlapping sections"
            raise AddressOutOfSection(
                f"0x{virtual_address:08X} maps to {reason}"
            )
        section = matches[0]
        delta = virtual_address - section.virtual_address
        if delta >= section.file_size:
            raise AddressOutOfSection(
                f"0x{virtual_address:08X} lies in the uninitialized tail of {section.name}"
            )
        return section.file_offset + delta

    def section_bases(self) -> Dict[int, int]:
        """1-based section index -> virtual base address."""
        return {i + 1: s.virtual_address for i, s in enumerate(self._sections)}


class Image:
    """Raw bytes of an executable plus its parsed section table."""

    def __init__(self, path: Path, data: bytes, sections: Sequence[Section], image_base: int = 0):
        self.path = path
        self.data = bytes(data)
        self.sections = SectionMap(sections)
        self.image_base = image_base

    def read_bytes(self, file_offset: int, length: int) -> bytes:
        if file_offset < 0 or length < 0 or file_offset + length > len(self.data):
            raise IOFailure(
                f"{self.path}: cannot read 0x{length:X} bytes at file offset "
                f"0x{file_offset:X} (file size 0x{len(self.data):X})"
            )
        return self.data[file_offset:file_offset + length]

    def read_virtual(self, virtual_address: int, length: int) -> bytes:
        offset = self.sections.translate(virtual_address)
        logging.debug("%s: 0x%08X -> file offset 0x%X", self.path, virtual_address, offset)
        return self.read_bytes(offset, length)


def _pe_sections(pe: lief.PE.Binary) -> List[Section]:
    base = pe.imagebase
    return [
        Section(
            name=s.name,
            virtual_address=base + s.virtual_address,
            virtual_size=s.virtual_size or s.size,
            file_offset=s.offset,
            file_size=s.size,
        )
        for s in pe.sections
    ]


def _has_file_data(section) -> bool:
    # ELF NOBITS sections (.bss, .tbss) have no bytes in the file
    return not str(getattr(section, "type", "")).endswith("NOBITS")


def _generic_sections(binary: lief.Binary) -> List[Section]:
    # sections with no load address (debug info, symbol tables) are not mapped
    return [
        Section(
            name=s.name,
            virtual_address=s.virtual_address,
            virtual_size=s.size,
            file_offset=s.offset,
            file_size=s.size if _has_file_data(s) else 0,
        )
        for s in binary.sections
        if s.virtual_address and s.size
    ]


def load_image(path: Path) -> Image:
    """Read *path* and parse its section table with LIEF."""
    try:
        data = path.read_bytes()
    except OSError as exc:
        raise IOFailure(f"Could not read {path}: {exc}") from exc

    binary = lief.parse(str(path))
    if binary is None:
        raise IOFailure(f"Could not parse {path}")

    if isinstance(binary, lief.PE.Binary):
        sections = _pe_sections(binary)
        image_base = binary.imagebase
    else:
        sections = _generic_sections(binary)
        image_base = 0
    logging.debug("Loaded %s: %d sections, image base 0x%X", path, len(sections), image_base)
    return Image(path, data, sections, image_base)
