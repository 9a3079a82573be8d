"""Aligned disassembly of a function from a debug build and an original binary."""
from .config import DisasmOptions, SizeEntry, SymbolSizeTable, load_config
from .engine import ComparisonResult, compare
from .errors import (
    AddressOutOfSection,
    CoreError,
    DecodeFailure,
    IOFailure,
    SymbolNotFound,
    ToolExitedUnsuccessfully,
    ToolInvocationFailed,
)
from .full import generate_all
from .image import Image, Section, SectionMap, load_image
from .symbols import CvDumpSource, SymbolInfo, TextFileSource, resolve

__version__ = "0.3.0"
