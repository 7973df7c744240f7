from typing import Iterator, Optional

CAPACITY_STATUS_CODES = (503, 529)
CAPACITY_MARKERS = (
    "529",
    "overloaded",
    "service temporarily unavailable",
)


class ResearchError(Exception):
    """Base class for failures the orchestrator knows how to degrade from."""


class ConfigurationError(ResearchError):
    """A required setting (usually an API key) is missing."""


class ModelApiError(ResearchError):
    """The model API returned a non-2xx status or could not be reached."""

    def __init__(self, message: str, status_code: Optional[int] = None):
        super().__init__(message)
        self.status_code = status_code

    @property
    def is_capacity_error(self) -> bool:
        if self.status_code in CAPACITY_STATUS_CODES:
            return True
        message = str(self).lower()
        return any(marker in message for marker in CAPACITY_MARKERS)


class JsonParseError(ResearchError):
    """Model text that was supposed to contain JSON could not be decoded."""

    def __init__(self, message: str, raw_content: str = ""):
        super().__init__(f"JSON parsing failed: {message}")
        self.raw_content = raw_content[:500]


class SynthesisError(ResearchError):
    """No usable report could be produced from the sub-agent findings."""


class InvalidTransitionError(ResearchError):
    """A sub-agent task was moved out of a terminal state."""


class ToolInputError(ResearchError):
    """Tool input did not match the tool's declared parameter schema."""

    def __init__(self, tool_name: str, message: str):
        super().__init__(f"Invalid input for tool '{tool_name}': {message}")
        self.tool_name = tool_name


def iter_causes(exc: BaseException) -> Iterator[BaseException]:
    """Yield ``exc`` followed by its explicit ``__cause__`` chain."""
    seen = set()
    current: Optional[BaseException] = exc
    while current is not None and id(current) not in seen:
        seen.add(id(current))
        yield current
        current = current.__cause__


def is_capacity_failure(exc: BaseException) -> bool:
    """True when the model API reported it is out of capacity."""
    for err in iter_causes(exc):
        if isinstance(err, ModelApiError) and err.is_capacity_error:
            return True
        message = str(err).lower()
        if any(marker in message for marker in CAPACITY_MARKERS):
            return True
    return False


def is_expected_failure(exc: BaseException) -> bool:
    """True for failures inside the anticipated taxonomy.

    Everything else (``TypeError``, ``KeyError`` from a bug, ...) should
    propagate to the caller.
    """
    for err in iter_causes(exc):
        if isinstance(err, ResearchError):
            return True
        if "json parsing failed" in str(err).lower():
            return True
    return is_capacity_failure(exc)
