__version__ = "0.1.0"

from respatch.config import (
    AppSection,
    Config,
    PatchDescriptor,
    load_config,
    parse_config,
)
from respatch.patcher import apply_patch, find_patch_offsets
from respatch.signature import Signature, compile_pattern

__all__ = [
    "AppSection",
    "Config",
    "PatchDescriptor",
    "Signature",
    "apply_patch",
    "compile_pattern",
    "find_patch_offsets",
    "load_config",
    "parse_config",
]
