"""Disassembly options and the reference symbol/size table.

The table lives in ``comparer-config.json`` next to the binaries::

    {
      "disasm": {"show_addresses": false, "show_immediates": true},
      "func": {
        "InitDungeon": {"addr": "0x401000", "size": "0x2F0"},
        "DrawMain": {"addr": "0x45A930"}
      }
    }

Numbers may be given as JSON integers or as hex/decimal strings.
"""
import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Dict, Iterator, List, Optional, Tuple, Union

DEFAULT_CONFIG_NAME = "comparer-config.json"


def parse_int(value: Union[int, str]) -> int:
    """Parse a decimal or ``0x``-prefixed hex number."""
    if isinstance(value, bool):
        raise ValueError(f"Expected a number, got {value!r}")
    if isinstance(value, int):
        return value
    text = str(value).strip()
    if text.lower().startswith("0x"):
        return int(text[2:], 16)
    return int(text, 10)


@dataclass(frozen=True)
class DisasmOptions:
    show_addresses: bool = False
    show_memory_displacements: bool = True
    show_immediates: bool = True
    truncate_to_reference_length: bool = False
    bits: int = 32

    def with_overrides(self, **flags) -> "DisasmOptions":
        """Return a copy with every flag that is not ``None`` applied."""
        changes = {k: v for k, v in flags.items() if v is not None}
        return replace(self, **changes)

    @classmethod
    def from_dict(cls, raw: Dict) -> "DisasmOptions":
        known = {f.name for f in fields(cls)}
        unknown = set(raw) - known
        if unknown:
            raise ValueError(f"Unknown disasm option(s): {', '.join(sorted(unknown))}")
        for f in fields(cls):
            if f.name not in raw:
                continue
            value = raw[f.name]
            if f.name == "bits":
                if isinstance(value, bool) or not isinstance(value, int):
                    raise ValueError(f"Option bits must be an integer, got {value!r}")
            elif not isinstance(value, bool):
                raise ValueError(f"Option {f.name} must be true or false, got {value!r}")
        opts = cls(**raw)
        if opts.bits not in (16, 32, 64):
            raise ValueError(f"Unsupported bitness {opts.bits}")
        return opts


@dataclass(frozen=True)
class SizeEntry:
    addr: Optional[int] = None
    size: Optional[int] = None


class SymbolSizeTable:
    """Ordered mapping of symbol name -> :class:`SizeEntry`.

    Lookups are exact-name; an absent name means the size is unknown.
    """

    def __init__(self, entries: Optional[List[Tuple[str, SizeEntry]]] = None):
        self._entries: Dict[str, SizeEntry] = {}
        for name, entry in entries or []:
            self._entries[name] = entry

    def get(self, name: str) -> Optional[SizeEntry]:
        return self._entries.get(name)

    def items(self) -> Iterator[Tuple[str, SizeEntry]]:
        return iter(list(self._entries.items()))

    def __contains__(self, name: str) -> bool:
        return name in self._entries

    def __len__(self) -> int:
        return len(self._entries)

    @classmethod
    def from_dict(cls, raw: Dict) -> "SymbolSizeTable":
        entries = []
        for name, raw_entry in raw.items():
            if not isinstance(raw_entry, dict):
                raise ValueError(f"Entry for {name} must be an object with addr/size")
            addr = raw_entry.get("addr")
            size = raw_entry.get("size")
            entries.append((name, SizeEntry(
                addr=parse_int(addr) if addr is not None else None,
                size=parse_int(size) if size is not None else None,
            )))
        return cls(entries)


@dataclass
class ComparerConfig:
    options: DisasmOptions = field(default_factory=DisasmOptions)
    size_table: SymbolSizeTable = field(default_factory=SymbolSizeTable)


def load_config(path: Path) -> ComparerConfig:
    """Load options and the size table from *path*."""
    if not path.exists():
        logging.warning("%s not found; using command-line defaults", path)
        return ComparerConfig()
    with path.open("r", encoding="utf-8") as fh:
        try:
            raw = json.load(fh)
        except json.JSONDecodeError as exc:
            logging.error("Failed to parse %s: %s", path, exc)
            return ComparerConfig()
    if not isinstance(raw, dict):
        raise ValueError(f"{path}: top level must be an object")
    return ComparerConfig(
        options=DisasmOptions.from_dict(raw.get("disasm", {})),
        size_table=SymbolSizeTable.from_dict(raw.get("func", {})),
    )
