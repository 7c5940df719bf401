import logging
import os
import re
from pathlib import Path
from typing import Dict, List, Optional, Tuple, Union

from pydantic import BaseModel, ConfigDict, Field

from respatch.document import RawSection, parse_document
from respatch.errors import (
    FieldParseFailure,
    MissingRequiredField,
    MissingSection,
    ReadFailure,
)
from respatch.signature import Signature

logger = logging.getLogger(__name__)

APPS_SECTION = "Apps"

# Textual line break escape used by the details field
DETAILS_LINE_BREAK = "\\013\\010"

U16_MAX = 0xFFFF
U32_MAX = 0xFFFFFFFF
U64_MAX = 0xFFFFFFFFFFFFFFFF

_APP_KEY_RE = re.compile(r"a([0-9]+)")
_UINT_RE = re.compile(r"\+?[0-9]+")


class PatchDescriptor(BaseModel):
    """Represents one scan-and-patch operation on a target file"""

    model_config = ConfigDict(frozen=True)

    modfile: str
    undofile: Optional[str] = None
    signature: Signature
    xoffset: Optional[int] = Field(default=None, ge=0, le=U64_MAX)
    yoffset: Optional[int] = Field(default=None, ge=0, le=U64_MAX)
    occur: int = Field(ge=0, le=U32_MAX)
    # Parsed and kept, never read by the patching algorithm
    setx: Optional[int] = Field(default=None, ge=0, le=U16_MAX)
    sety: Optional[int] = Field(default=None, ge=0, le=U16_MAX)

    @property
    def pattern(self) -> Signature:
        """The compiled signature searched in modfile"""
        return self.signature


class AppSection(BaseModel):
    """Represents one managed application and its patch chain"""

    model_config = ConfigDict(frozen=True)

    name: str
    details: str = ""
    checkfile: str
    patches: Tuple[PatchDescriptor, ...] = Field(min_length=1)

    @property
    def modfiles(self) -> List[str]:
        """Target files of the chain, in first-use order"""
        return list(dict.fromkeys(patch.modfile for patch in self.patches))


class AppRegistry(BaseModel):
    """Represents the contents of the reserved Apps section"""

    model_config = ConfigDict(frozen=True)

    version: str
    apps: Tuple[str, ...]


class Config(BaseModel):
    """Represents the complete patch configuration"""

    model_config = ConfigDict(frozen=True)

    format_version: str
    apps: Tuple[AppSection, ...]

    @property
    def app_names(self) -> List[str]:
        return [app.name for app in self.apps]

    def get_app(self, name: str) -> AppSection:
        for app in self.apps:
            if app.name == name:
                return app
        raise KeyError(name)


def _parse_uint(text: str, max_value: int) -> int:
    if _UINT_RE.fullmatch(text) is None:
        raise ValueError(f"Not an unsigned integer: {text!r}")
    value = int(text, 10)
    if value > max_value:
        raise ValueError(f"Value {value} exceeds maximum {max_value}")
    return value


class SectionFields:
    """Field lookup for one entry of a section's patch chain.

    Entry 0 reads unprefixed keys ("sig"), entry N reads keys prefixed with
    "pN" ("p1sig"). Required fields raise on absence or parse failure,
    optional fields collapse both to None.
    """

    def __init__(self, section: RawSection, index: int = 0) -> None:
        self.section = section
        self.index = index

    def key(self, name: str) -> str:
        if self.index == 0:
            return name
        return f"p{self.index}{name}"

    def has(self, name: str) -> bool:
        return self.key(name) in self.section.items

    def required(self, name: str) -> str:
        key = self.key(name)
        try:
            return self.section.items[key]
        except KeyError:
            raise MissingRequiredField(self.section.name, key) from None

    def optional(self, name: str) -> Optional[str]:
        return self.section.items.get(self.key(name))

    def required_uint(self, name: str, max_value: int) -> int:
        value = self.required(name)
        try:
            return _parse_uint(value, max_value)
        except ValueError as e:
            raise FieldParseFailure(self.section.name, self.key(name), str(e)) from None

    def optional_uint(self, name: str, max_value: int) -> Optional[int]:
        value = self.optional(name)
        if value is None:
            return None
        try:
            return _parse_uint(value, max_value)
        except ValueError:
            logger.debug(
                "Ignoring unparsable optional field '%s' in section [%s]: %r",
                self.key(name),
                self.section.name,
                value,
            )
            return None


def build_patch_descriptor(fields: SectionFields) -> PatchDescriptor:
    """Build the descriptor for one entry of a patch chain.

    Raises:
        MissingRequiredField: If sig, sigwild, modfile or occur is absent
        FieldParseFailure: If sig, sigwild or occur cannot be decoded
    """
    signature = Signature.from_strings(
        fields.section.name,
        fields.required("sig"),
        fields.required("sigwild"),
        sig_field=fields.key("sig"),
        wild_field=fields.key("sigwild"),
    )

    return PatchDescriptor(
        modfile=fields.required("modfile"),
        undofile=fields.optional("undofile"),
        signature=signature,
        xoffset=fields.optional_uint("xoffset", U64_MAX),
        yoffset=fields.optional_uint("yoffset", U64_MAX),
        occur=fields.required_uint("occur", U32_MAX),
        setx=fields.optional_uint("setx", U16_MAX),
        sety=fields.optional_uint("sety", U16_MAX),
    )


def build_patch_chain(section: RawSection) -> Tuple[PatchDescriptor, ...]:
    """Build the ordered patch chain of an application section.

    Entry 0 is always built. Entries 1, 2, ... follow until the first index
    whose "pNsig" key is absent, which ends the chain.

    Raises:
        MissingRequiredField: If a required field of a started entry is absent
        FieldParseFailure: If any present required field is malformed
    """
    patches = [build_patch_descriptor(SectionFields(section))]

    index = 1
    while True:
        fields = SectionFields(section, index)
        if not fields.has("sig"):
            break
        patches.append(build_patch_descriptor(fields))
        index += 1

    logger.debug("Section [%s] has %d patch(es)", section.name, len(patches))
    return tuple(patches)


def build_app_section(section: RawSection) -> AppSection:
    """Build an AppSection from its raw section.

    Raises:
        MissingRequiredField: If checkfile or a required patch field is absent
        FieldParseFailure: If a patch field is malformed
    """
    fields = SectionFields(section)

    details = fields.optional("details") or ""
    details = details.replace(DETAILS_LINE_BREAK, os.linesep)

    return AppSection(
        name=section.name,
        details=details,
        checkfile=fields.required("checkfile"),
        patches=build_patch_chain(section),
    )


def resolve_registry(sections: Dict[str, RawSection]) -> AppRegistry:
    """Read the Apps section into the format version and ordered app names.

    Keys of the form "a<N>" name the applications, ordered by N. Entries
    sharing the same N keep their document order. Other keys are ignored.

    Raises:
        MissingSection: If there is no Apps section
        MissingRequiredField: If Apps has no version key
    """
    registry = sections.get(APPS_SECTION)
    if registry is None:
        raise MissingSection(APPS_SECTION)

    version = SectionFields(registry).required("version")

    entries = []
    for key, value in registry.items.items():
        match = _APP_KEY_RE.fullmatch(key)
        if match is None:
            continue
        entries.append((int(match.group(1)), value))

    entries.sort(key=lambda entry: entry[0])

    return AppRegistry(version=version, apps=tuple(value for _, value in entries))


def build_config(sections: Dict[str, RawSection]) -> Config:
    """Build the validated Config from parsed sections.

    Raises:
        ConfigError: On the first problem found, no partial Config is returned
    """
    registry = resolve_registry(sections)

    apps = []
    for name in registry.apps:
        section = sections.get(name)
        if section is None:
            raise MissingSection(name)
        apps.append(build_app_section(section))

    for name in sections:
        if name != APPS_SECTION and name not in registry.apps:
            logger.debug("Section [%s] is not listed in [%s], skipping", name, APPS_SECTION)

    return Config(format_version=registry.version, apps=tuple(apps))


def parse_config(text: str) -> Config:
    """Parse configuration text into a Config.

    Raises:
        ConfigError: If the text is malformed or incomplete
    """
    return build_config(parse_document(text))


def load_config(path: Union[str, Path]) -> Config:
    """Read and parse a configuration file.

    Raises:
        ReadFailure: If the file cannot be read
        ConfigError: If its contents are malformed or incomplete
    """
    path = Path(path)
    try:
        with open(path, "r", encoding="utf-8") as f:
            text = f.read()
    except (IOError, OSError, UnicodeDecodeError) as e:
        raise ReadFailure(path, e) from e

    config = parse_config(text)
    logger.info(
        "Loaded %s (version %s) with %d app(s)", path, config.format_version, len(config.apps)
    )
    return config
