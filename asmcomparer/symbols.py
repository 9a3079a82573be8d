"""Resolve function symbols from ``cvdump -s`` style debug metadata.

Procedure records look like::

    (00014C) S_GPROC32: [0001:00000000], Cb: 00000020, Type:   0x1002, foo

and public records (no size) like::

    S_PUB32: [0001:00000000], Flags: 00000002, _foo
"""
import logging
import re
import subprocess
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Iterator, Optional

from .errors import (
    IOFailure,
    SymbolNotFound,
    ToolExitedUnsuccessfully,
    ToolInvocationFailed,
)

# .text of a 32-bit image based at 0x400000
DEFAULT_SECTION_BASES = {1: 0x401000}

_PROC_RECORD = re.compile(
    r"S_[GL]PROC32(?:_ID)?:\s*\[(?P<seg>[0-9A-Fa-f]+):(?P<off>[0-9A-Fa-f]+)\],"
    r"\s*Cb:\s*(?P<size>[0-9A-Fa-f]+),\s*Type:\s*[^,]*,\s*(?P<name>.+?)\s*$"
)
_PUBLIC_RECORD = re.compile(
    r"S_PUB32:\s*\[(?P<seg>[0-9A-Fa-f]+):(?P<off>[0-9A-Fa-f]+)\],"
    r"\s*Flags:\s*[0-9A-Fa-f]+,\s*(?P<name>.+?)\s*$"
)


@dataclass(frozen=True)
class SymbolInfo:
    name: str
    address: int
    length: Optional[int] = None


def _records(metadata_text: str, section_bases: Dict[int, int]) -> Iterator[SymbolInfo]:
    for line in metadata_text.splitlines():
        match = _PROC_RECORD.search(line)
        length = None
        if match:
            length = int(match.group("size"), 16)
        else:
            match = _PUBLIC_RECORD.search(line)
            if not match:
                continue
        segment = int(match.group("seg"), 16)
        base = section_bases.get(segment)
        if base is None:
            logging.debug("Skipping %s: unknown section %d", match.group("name"), segment)
            continue
        yield SymbolInfo(match.group("name"), base + int(match.group("off"), 16), length)


def iter_symbols(metadata_text: str, section_bases: Optional[Dict[int, int]] = None) -> Iterator[SymbolInfo]:
    return _records(metadata_text, section_bases or DEFAULT_SECTION_BASES)


def resolve(metadata_text: str, symbol_name: str,
            section_bases: Optional[Dict[int, int]] = None) -> SymbolInfo:
    """Return the first record named exactly *symbol_name*."""
    if not metadata_text or not metadata_text.strip():
        raise IOFailure("Debug metadata is empty")
    for info in iter_symbols(metadata_text, section_bases):
        if info.name == symbol_name:
            return info
    raise SymbolNotFound(f"{symbol_name} not found in the debug metadata")


class CvDumpSource:
    """Runs ``cvdump -s`` against a PDB and returns its output."""

    def __init__(self, pdb_path: Path, executable: str = "cvdump.exe"):
        self.pdb_path = Path(pdb_path)
        self.executable = executable

    @property
    def watch_path(self) -> Path:
        return self.pdb_path

    def get_metadata_text(self) -> str:
        cmd = [self.executable, "-s", str(self.pdb_path)]
        logging.debug("Running %s", " ".join(cmd))
        try:
            proc = subprocess.run(cmd, capture_output=True, text=True, errors="replace")
        except OSError as exc:
            raise ToolInvocationFailed(f"{self.executable}: {exc}") from exc
        if proc.returncode != 0:
            raise ToolExitedUnsuccessfully(
                f"{self.executable} exited with code {proc.returncode}: {proc.stderr.strip()}"
            )
        if not proc.stdout.strip():
            raise IOFailure(f"{self.executable} produced no output for {self.pdb_path}")
        return proc.stdout


class TextFileSource:
    """Reads debug metadata that was dumped to a text file beforehand."""

    def __init__(self, path: Path):
        self.path = Path(path)

    @property
    def watch_path(self) -> Path:
        return self.path

    def get_metadata_text(self) -> str:
        try:
            text = self.path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            raise IOFailure(f"Could not read {self.path}: {exc}") from exc
        if not text.strip():
            raise IOFailure(f"{self.path} is empty")
        return text
