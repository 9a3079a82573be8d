"""Re-run a comparison whenever the watched files change."""
import logging
import threading
import time
from dataclasses import dataclass
from pathlib import Path
from typing import Callable, Dict, Iterable, Optional, Tuple

from .engine import ComparisonResult
from .errors import CoreError, describe

Snapshot = Dict[Path, Optional[Tuple[int, int]]]


@dataclass
class ResultSlot:
    """Last successful result; only replaced by a later success."""
    value: Optional[ComparisonResult] = None


@dataclass(frozen=True)
class ChangeEvent:
    paths: Tuple[Path, ...]


def format_report(symbol: str, result: ComparisonResult,
                  previous: Optional[ComparisonResult]) -> str:
    offset = f"{result.offset:X}"
    length = f"{result.length:X}"
    if previous is not None:
        d_offset, d_length = result.delta(previous)
        offset += f" ({d_offset:+X})"
        length += f" ({d_length:+X})"
    return f"Found {symbol} at offset: {offset}, length: {length}"


def run_once(run: Callable[[], ComparisonResult], symbol: str,
             slot: ResultSlot) -> Optional[ComparisonResult]:
    try:
        result = run()
    except CoreError as exc:
        logging.error(describe(exc))
        return None
    logging.info(format_report(symbol, result, slot.value))
    slot.value = result
    return result


class FileChangeTrigger:
    """Polls file modification times and reports settled changes.

    A change is reported once the files stayed untouched for ``debounce``
    seconds, so a linker rewriting a PDB in several steps yields one event.
    """

    def __init__(self, paths: Iterable[Path], interval: float = 0.5, debounce: float = 2.0):
        self.paths = tuple(Path(p) for p in paths)
        for path in self.paths:
            if not path.exists():
                raise FileNotFoundError(f"Cannot watch {path}: no such file")
        self.interval = interval
        self.debounce = debounce
        self._closed = threading.Event()
        self._snapshot = self._take_snapshot()

    def _take_snapshot(self) -> Snapshot:
        snap: Snapshot = {}
        for path in self.paths:
            try:
                st = path.stat()
            except OSError:
                snap[path] = None
            else:
                snap[path] = (st.st_mtime_ns, st.st_size)
        return snap

    def close(self) -> None:
        self._closed.set()

    @property
    def closed(self) -> bool:
        return self._closed.is_set()

    def receive(self) -> Optional[ChangeEvent]:
        """Block until a settled change, or return ``None`` once closed."""
        pending_since = None
        changed = set()
        while not self._closed.wait(self.interval):
            current = self._take_snapshot()
            diff = {p for p in self.paths if current[p] != self._snapshot[p]}
            self._snapshot = current
            now = time.monotonic()
            if diff:
                changed |= diff
                pending_since = now
            elif pending_since is not None and now - pending_since >= self.debounce:
                return ChangeEvent(tuple(sorted(changed)))
        return None


def watch_loop(trigger, run: Callable[[], ComparisonResult], symbol: str,
               slot: ResultSlot) -> None:
    """Run one comparison per trigger event until the trigger is closed."""
    while True:
        event = trigger.receive()
        if event is None:
            logging.info("Change source closed; stopping")
            return
        logging.debug("Change detected: %s", ", ".join(str(p) for p in event.paths))
        run_once(run, symbol, slot)
