from pathlib import Path
from typing import Optional, Union


class RespatchError(Exception):
    """Base class for all respatch errors"""


class ReadFailure(RespatchError):
    """Raised when a file could not be read or written"""

    def __init__(self, path: Union[str, Path], cause: Exception) -> None:
        self.path = Path(path)
        self.cause = cause
        super().__init__(f"Failed to access {self.path}: {cause}")


# Configuration errors


class ConfigError(RespatchError):
    """Base class for errors while loading a patch configuration"""


class GrammarError(ConfigError):
    """Raised when the configuration text does not follow the document grammar"""

    def __init__(self, message: str, line: Optional[int] = None) -> None:
        self.line = line
        if line is not None:
            message = f"line {line}: {message}"
        super().__init__(message)


class MissingSection(ConfigError):
    """Raised when a section required by the configuration is absent"""

    def __init__(self, section: str) -> None:
        self.section = section
        super().__init__(f"Missing section [{section}]")


class MissingRequiredField(ConfigError):
    """Raised when a required key is absent from a section"""

    def __init__(self, section: str, field: str) -> None:
        self.section = section
        self.field = field
        super().__init__(f"Missing required field '{field}' in section [{section}]")


class FieldParseFailure(ConfigError):
    """Raised when a key is present but its value cannot be decoded"""

    def __init__(self, section: str, field: str, detail: str) -> None:
        self.section = section
        self.field = field
        self.detail = detail
        super().__init__(f"Invalid value for '{field}' in section [{section}]: {detail}")


# Patch errors


class PatchError(RespatchError):
    """Base class for errors while applying a patch"""


class PatternNotFound(PatchError):
    """Raised when an expected occurrence of a signature is not present"""

    def __init__(self, modfile: str, index: int, occurrence: int) -> None:
        self.modfile = modfile
        self.index = index
        self.occurrence = occurrence
        super().__init__(
            f"Pattern {index} not found in {modfile} (occurrence {occurrence + 1})"
        )


class BufferBoundsError(PatchError):
    """Raised when a write would fall outside the target buffer"""

    def __init__(self, offset: int, size: int, length: int) -> None:
        self.offset = offset
        self.size = size
        self.length = length
        super().__init__(
            f"Write of {size} byte(s) at offset {offset:#x} exceeds buffer of {length} byte(s)"
        )
