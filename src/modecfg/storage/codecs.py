"""
Format Codecs - translate modes to and from their two on-disk shapes.

Legacy aggregate file (JSON, one per scope root):

    {
      "customModes": [
        {
          "slug": "architect",
          "name": "Architect",
          "roleDefinition": "...",
          "groups": ["read", ["edit", {"fileRegex": "\\.md$"}]]
        }
      ]
    }

Split file (YAML, one per mode, slug taken from the filename):

    # yaml-language-server: $schema=https://.../custom-mode-schema.json
    name: Architect
    roleDefinition: ...
    groups:
      read:
      edit:
        fileRegex: \\.md$
"""

import json
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

import yaml
from pydantic import ValidationError

from modecfg.core.config import DEFAULT_SCHEMA_URL, get_logger
from modecfg.core.errors import ModeParseError, ModeValidationError
from modecfg.core.types import (
    Diagnostic,
    DiagnosticKind,
    Mode,
    ModeFormat,
    ModeScope,
    Severity,
    is_valid_slug,
)

logger = get_logger("storage.codecs")

LEGACY_KEY = "customModes"


@dataclass
class DecodeResult:
    """Modes that survived decoding, plus what was dropped and why."""

    modes: list[Mode] = field(default_factory=list)
    diagnostics: list[Diagnostic] = field(default_factory=list)


def _validation_message(exc: ValidationError) -> str:
    parts = []
    for error in exc.errors():
        loc = ".".join(str(item) for item in error["loc"]) or "<root>"
        parts.append(f"{loc}: {error['msg']}")
    return "; ".join(parts)


def _groups_to_entries(mode: Mode) -> list[Any]:
    entries: list[Any] = []
    for group, options in mode.groups.items():
        if options is None:
            entries.append(group.value)
        else:
            entries.append([group.value, options.to_data()])
    return entries


def _groups_to_mapping(mode: Mode) -> dict[str, Any]:
    return {
        group.value: (None if options is None else options.to_data())
        for group, options in mode.groups.items()
    }


# ============================================
# Legacy (aggregate JSON)
# ============================================

class LegacyCodec:
    """Codec for the single-file ``customModes`` aggregate."""

    format = ModeFormat.LEGACY

    def parse(self, text: str, path: Path | None = None) -> Any:
        """Parse raw JSON, raising ModeParseError with a line/column position."""
        if not text.strip():
            return {LEGACY_KEY: []}
        try:
            return json.loads(text)
        except json.JSONDecodeError as e:
            raise ModeParseError(e.msg, path=path, line=e.lineno, column=e.colno) from e

    def entries(self, document: Any) -> list[Any] | None:
        """Return the entry array, or None when the top-level shape is wrong."""
        if isinstance(document, dict) and isinstance(document.get(LEGACY_KEY), list):
            return document[LEGACY_KEY]
        return None

    def decode(self, text: str, scope: ModeScope, path: Path | None = None) -> DecodeResult:
        """
        Decode an aggregate document.

        Raises ModeParseError on JSON syntax errors. A wrong top-level shape
        and individual invalid entries become diagnostics.
        """
        result = DecodeResult()
        entries = self.entries(self.parse(text, path))
        if entries is None:
            result.diagnostics.append(Diagnostic(
                kind=DiagnosticKind.MALFORMED_SHAPE,
                message=f"{path or 'legacy file'}: '{LEGACY_KEY}' must be an array",
                path=path,
                scope=scope,
                format=self.format,
            ))
            return result

        for entry in entries:
            try:
                result.modes.append(self.decode_entry(entry, scope, path))
            except ModeValidationError as e:
                logger.warning(str(e))
                result.diagnostics.append(Diagnostic.from_error(e, scope, self.format))

        return result

    def decode_entry(self, entry: Any, scope: ModeScope, path: Path | None = None) -> Mode:
        if not isinstance(entry, dict):
            raise ModeValidationError("entry must be an object", path=path)

        slug = entry.get("slug")
        if not is_valid_slug(slug):
            raise ModeValidationError(
                "slug may only contain letters, numbers and hyphens",
                slug=str(slug) if slug is not None else None,
                path=path,
            )

        data = {**entry, "scope": scope, "format": self.format}
        try:
            return Mode.model_validate(data)
        except ValidationError as e:
            raise ModeValidationError(_validation_message(e), slug=slug, path=path) from e

    def encode_entry(self, mode: Mode) -> dict[str, Any]:
        entry: dict[str, Any] = {
            "slug": mode.slug,
            "name": mode.name,
            "roleDefinition": mode.role_definition,
        }
        if mode.custom_instructions is not None:
            entry["customInstructions"] = mode.custom_instructions
        entry["groups"] = _groups_to_entries(mode)
        return entry

    def encode(self, document: dict[str, Any]) -> str:
        return json.dumps(document, indent=2, ensure_ascii=False) + "\n"

    def encode_modes(self, modes: list[Mode]) -> str:
        return self.encode({LEGACY_KEY: [self.encode_entry(mode) for mode in modes]})


# ============================================
# Split (one YAML file per mode)
# ============================================

class _SplitDumper(yaml.SafeDumper):
    """Dumper writing null as an empty value and multi-line text as blocks."""


def _represent_none(dumper: yaml.SafeDumper, _data: None) -> yaml.Node:
    return dumper.represent_scalar("tag:yaml.org,2002:null", "")


def _represent_str(dumper: yaml.SafeDumper, data: str) -> yaml.Node:
    if "\n" in data:
        return dumper.represent_scalar("tag:yaml.org,2002:str", data, style="|")
    return dumper.represent_scalar("tag:yaml.org,2002:str", data)


_SplitDumper.add_representer(type(None), _represent_none)
_SplitDumper.add_representer(str, _represent_str)


class SplitCodec:
    """Codec for per-mode YAML documents."""

    format = ModeFormat.SPLIT

    def __init__(self, schema_url: str = DEFAULT_SCHEMA_URL):
        self.schema_url = schema_url

    @property
    def annotation(self) -> str:
        return f"# yaml-language-server: $schema={self.schema_url}"

    def parse(self, text: str, path: Path | None = None) -> Any:
        try:
            return yaml.safe_load(text)
        except yaml.MarkedYAMLError as e:
            mark = e.problem_mark or e.context_mark
            line = mark.line + 1 if mark else None
            column = mark.column + 1 if mark else None
            raise ModeParseError(e.problem or str(e), path=path, line=line, column=column) from e
        except yaml.YAMLError as e:
            raise ModeParseError(str(e), path=path) from e

    def decode(self, text: str, slug: str, scope: ModeScope, path: Path | None = None) -> Mode:
        """
        Decode one split document.

        The slug always comes from the filename; a ``slug`` key in the
        content is ignored.
        """
        if not is_valid_slug(slug):
            raise ModeValidationError(
                "filename must only contain letters, numbers and hyphens",
                slug=slug,
                path=path,
            )

        data = self.parse(text, path)
        if not isinstance(data, dict):
            raise ModeValidationError("document must be a mapping", slug=slug, path=path)

        data = {**data, "slug": slug, "scope": scope, "format": self.format}
        try:
            return Mode.model_validate(data)
        except ValidationError as e:
            raise ModeValidationError(_validation_message(e), slug=slug, path=path) from e

    def to_document(self, mode: Mode) -> dict[str, Any]:
        """Mode body in split shape, with surrounding whitespace trimmed."""
        doc: dict[str, Any] = {
            "name": mode.name,
            "roleDefinition": mode.role_definition.strip(),
        }
        if mode.custom_instructions is not None and mode.custom_instructions.strip():
            doc["customInstructions"] = mode.custom_instructions.strip()
        doc["groups"] = _groups_to_mapping(mode)
        return doc

    def encode(self, mode: Mode) -> str:
        body = yaml.dump(
            self.to_document(mode),
            Dumper=_SplitDumper,
            sort_keys=False,
            allow_unicode=True,
            default_flow_style=False,
            indent=2,
        )
        return f"{self.annotation}\n{body}"
