import logging
from typing import List, Optional

from respatch.config import U16_MAX, PatchDescriptor
from respatch.errors import BufferBoundsError, PatternNotFound

logger = logging.getLogger(__name__)

VALUE_SIZE = 2


def _le16(value: int, name: str) -> bytes:
    if not 0 <= value <= U16_MAX:
        raise ValueError(f"{name} must be between 0 and {U16_MAX}, got {value}")
    return value.to_bytes(VALUE_SIZE, byteorder="little")


def _check_bounds(length: int, offset: int) -> None:
    if offset + VALUE_SIZE > length:
        raise BufferBoundsError(offset, VALUE_SIZE, length)


def _check_writes(descriptor: PatchDescriptor, match: int, length: int) -> None:
    for relative in (descriptor.xoffset, descriptor.yoffset):
        if relative is not None:
            _check_bounds(length, match + relative)


def _patch_match(
    buffer, descriptor: PatchDescriptor, match: int, x_bytes: bytes, y_bytes: bytes
) -> None:
    # Validate both writes before changing anything
    _check_writes(descriptor, match, len(buffer))

    if descriptor.xoffset is not None:
        offset = match + descriptor.xoffset
        buffer[offset : offset + VALUE_SIZE] = x_bytes
    if descriptor.yoffset is not None:
        offset = match + descriptor.yoffset
        buffer[offset : offset + VALUE_SIZE] = y_bytes


def apply_patch(buffer, descriptor: PatchDescriptor, width: int, height: int) -> bool:
    """Write width and height at every configured occurrence of a signature.

    The signature is searched ``descriptor.occur`` times, each search resuming
    right after the previous match. On each match the width is written at
    ``xoffset`` and the height at ``yoffset`` as 16-bit little-endian values.

    Args:
        buffer: Mutable target data (bytearray or writable memoryview)
        descriptor: The patch to apply
        width: Value written at xoffset, 0..65535
        height: Value written at yoffset, 0..65535

    Returns:
        True if every occurrence was patched, False if one was not found.
        Occurrences patched before the miss stay patched.

    Raises:
        BufferBoundsError: If a write would fall outside the buffer
        ValueError: If width or height do not fit in 16 bits
        TypeError: If the buffer is immutable
    """
    if isinstance(buffer, bytes) or (
        isinstance(buffer, memoryview) and buffer.readonly
    ):
        raise TypeError("Patch target must be a mutable buffer")

    x_bytes = _le16(width, "width")
    y_bytes = _le16(height, "height")
    signature = descriptor.signature

    cursor = 0
    for occurrence in range(descriptor.occur):
        match = signature.find_first(buffer, cursor)
        if match is None:
            logger.warning(
                "Pattern not found in %s (occurrence %d of %d)",
                descriptor.modfile,
                occurrence + 1,
                descriptor.occur,
            )
            return False

        _patch_match(buffer, descriptor, match, x_bytes, y_bytes)
        logger.debug("Patched %s at %#x", descriptor.modfile, match)
        cursor = match + len(signature)

    return True


def find_patch_offsets(data, descriptor: PatchDescriptor, index: int = 0) -> List[int]:
    """Locate every occurrence a descriptor would patch, without writing.

    Args:
        data: Target data to search
        descriptor: The patch to locate
        index: Position of the descriptor in its chain, used for error reporting

    Returns:
        Absolute match offsets, one per occurrence

    Raises:
        PatternNotFound: If an occurrence is missing
        BufferBoundsError: If a match would lead to a write outside the data
    """
    signature = descriptor.signature
    offsets: List[int] = []
    cursor = 0
    for occurrence in range(descriptor.occur):
        match: Optional[int] = signature.find_first(data, cursor)
        if match is None:
            raise PatternNotFound(descriptor.modfile, index, occurrence)
        _check_writes(descriptor, match, len(data))
        offsets.append(match)
        cursor = match + len(signature)
    return offsets


def apply_offsets(
    buffer, descriptor: PatchDescriptor, offsets: List[int], width: int, height: int
) -> None:
    """Write width and height at matches found by find_patch_offsets"""
    x_bytes = _le16(width, "width")
    y_bytes = _le16(height, "height")
    for match in offsets:
        _patch_match(buffer, descriptor, match, x_bytes, y_bytes)
