import re
from functools import lru_cache
from typing import Annotated, List, Optional, Sequence, Tuple

from pydantic import BaseModel, ConfigDict, Field

from respatch.errors import FieldParseFailure

# An exact slot holds its byte value, a wildcard slot holds None
ByteSlot = Optional[Annotated[int, Field(ge=0, le=0xFF)]]

WILDCARD = None

_HEX_RE = re.compile(r"[0-9A-Fa-f]*")


class Signature(BaseModel):
    """Represents a fixed-length byte pattern with wildcard slots"""

    model_config = ConfigDict(frozen=True)

    pattern: Tuple[ByteSlot, ...]

    def __len__(self) -> int:
        return len(self.pattern)

    @classmethod
    def from_strings(
        cls,
        section: str,
        sig: str,
        sigwild: str,
        sig_field: str = "sig",
        wild_field: str = "sigwild",
    ) -> "Signature":
        """Build a signature from its configuration text.

        Args:
            section: Section name, used for error reporting
            sig: Hex string, two characters per byte (e.g. "80020000")
            sigwild: One '0' (exact) or '1' (wildcard) per signature byte
            sig_field: Key the hex string was read from
            wild_field: Key the wildcard string was read from

        Returns:
            The compiled Signature

        Raises:
            FieldParseFailure: If either string is malformed or their lengths disagree
        """
        data = decode_hex(section, sig_field, sig)
        if not data:
            raise FieldParseFailure(section, sig_field, "Signature is empty")

        wildcards = decode_wildcards(section, wild_field, sigwild)
        if len(wildcards) != len(data):
            raise FieldParseFailure(
                section,
                wild_field,
                f"Expected {len(data)} wildcard flag(s) for {len(data)} signature byte(s), got {len(wildcards)}",
            )

        return compile_pattern(data, wildcards)

    def find_first(self, haystack, start: int = 0) -> Optional[int]:
        """Search for the pattern and return the offset of the leftmost match

        The search covers haystack[start:], the returned offset is absolute.
        Returns None if the pattern does not occur there.
        """
        if start < 0:
            raise ValueError(f"Search start must not be negative: {start}")

        match = _pattern_regex(self.pattern).search(haystack, start)
        if match is None:
            return None
        return match.start()

    def describe(self) -> str:
        """Render the pattern as space separated hex bytes, "??" for wildcards"""
        return " ".join("??" if slot is None else f"{slot:02X}" for slot in self.pattern)


def decode_hex(section: str, field: str, text: str) -> bytes:
    """Decode a hex string of two characters per byte.

    Raises:
        FieldParseFailure: If the length is odd or a pair is not hex
    """
    if len(text) % 2:
        raise FieldParseFailure(section, field, "Invalid hex string length")

    if _HEX_RE.fullmatch(text) is None:
        for i in range(0, len(text), 2):
            pair = text[i : i + 2]
            if _HEX_RE.fullmatch(pair) is None:
                raise FieldParseFailure(section, field, f"Invalid hex byte pair: {pair}")

    return bytes.fromhex(text)


def decode_wildcards(section: str, field: str, text: str) -> List[bool]:
    """Decode a wildcard string, True marks a wildcard slot.

    Raises:
        FieldParseFailure: If a character other than '0' or '1' is present
    """
    flags = []
    for c in text:
        if c == "0":
            flags.append(False)
        elif c == "1":
            flags.append(True)
        else:
            raise FieldParseFailure(section, field, f"Invalid sigwild character: {c!r}")
    return flags


def compile_pattern(data: bytes, wildcards: Sequence[bool]) -> Signature:
    """Combine signature bytes and wildcard flags into a Signature"""
    if len(data) != len(wildcards):
        raise ValueError(
            f"Signature has {len(data)} byte(s) but {len(wildcards)} wildcard flag(s)"
        )

    return Signature(
        pattern=tuple(
            WILDCARD if is_wildcard else byte for byte, is_wildcard in zip(data, wildcards)
        )
    )


@lru_cache(maxsize=128)
def _pattern_regex(pattern: Tuple[ByteSlot, ...]) -> "re.Pattern[bytes]":
    parts = [b"." if slot is None else re.escape(bytes([slot])) for slot in pattern]
    return re.compile(b"".join(parts), re.DOTALL)
