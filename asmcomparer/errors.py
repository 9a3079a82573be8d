"""Error taxonomy shared by every stage of a comparison run."""
from typing import Optional


class CoreError(Exception):
    """Base class for failures surfaced by a comparison run.

    ``side`` names the binary whose pipeline failed ("orig" or "compare")
    when the error is specific to one of them.
    """

    category = "Error"

    def __init__(self, message: str = "", side: Optional[str] = None):
        super().__init__(message)
        self.message = message
        self.side = side

    def __str__(self) -> str:
        text = self.message or self.__class__.__name__
        if self.side:
            return f"[{self.side}] {text}"
        return text


class ToolInvocationFailed(CoreError):
    category = "Symbol dump tool could not be started"


class ToolExitedUnsuccessfully(CoreError):
    category = "Symbol dump tool exited with an error"


class SymbolNotFound(CoreError):
    category = "Symbol not found"


class IOFailure(CoreError):
    category = "IO error"


class AddressOutOfSection(IOFailure):
    category = "Address not inside any section"


class DecodeFailure(CoreError):
    category = "Disassembly engine error"


def tag_side(error: CoreError, side: str) -> CoreError:
    """Attach *side* to *error* unless an inner stage already did."""
    if error.side is None:
        error.side = side
    return error


def describe(error: CoreError) -> str:
    return f"{error.category}: {error}"
