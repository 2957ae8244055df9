# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Manifest of generated files, used to detect drift between spec and output."""

import hashlib
from collections.abc import Mapping
from pathlib import Path

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError

# ###############
# Public Interface
# ###############

MANIFEST_NAME = ".aiwf-manifest.yaml"


class ManifestError(Exception):
    """Raised when the manifest cannot be read, written, or is invalid."""


class ManifestEntry(BaseModel):
    """Digest of a single generated file."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    path: str
    sha256: str


class Manifest(BaseModel):
    """Top-level manifest listing every file written by the last generation."""

    model_config = ConfigDict(extra="forbid", populate_by_name=True)

    spec: str = ""
    files: list[ManifestEntry] = Field(default_factory=list)


def digest(content: bytes) -> str:
    """Return the hex SHA-256 of ``content``."""
    return hashlib.sha256(content).hexdigest()


def build_manifest(files: Mapping[str, bytes], spec: str = "") -> Manifest:
    """Describe a generated file map, with entries sorted by path."""
    entries = [ManifestEntry(path=path, sha256=digest(files[path])) for path in sorted(files)]
    return Manifest(spec=spec, files=entries)


def stale_paths(manifest: Manifest | None, expected: Mapping[str, bytes]) -> list[str]:
    """Return the sorted paths ``manifest`` records that ``expected`` no longer contains."""
    if manifest is None:
        return []
    return sorted(entry.path for entry in manifest.files if entry.path not in expected)


def load_manifest(path: Path) -> Manifest:
    """Load and validate the manifest from disk.

    An empty file is treated as an empty manifest.

    Args:
        path: Path to the .aiwf-manifest.yaml file.

    Returns:
        A validated Manifest instance.

    Raises:
        ManifestError: If the file cannot be read, contains invalid YAML,
            or does not conform to the expected schema.
    """
    try:
        raw = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Cannot read manifest '{path}': {exc}") from exc

    try:
        data = yaml.safe_load(raw)
    except yaml.YAMLError as exc:
        raise ManifestError(f"Invalid YAML in manifest '{path}': {exc}") from exc

    if data is None:
        data = {}

    try:
        return Manifest.model_validate(data)
    except ValidationError as exc:
        raise ManifestError(f"Invalid manifest '{path}': {exc}") from exc


def save_manifest(manifest: Manifest, path: Path) -> None:
    """Save the manifest to disk.

    Entries are sorted by path for reproducible output.

    Args:
        manifest: The manifest to serialize.
        path: Destination path for the manifest.

    Raises:
        ManifestError: If the file cannot be written.
    """
    data = manifest.model_dump(by_alias=True)
    data["files"].sort(key=lambda x: x["path"])
    try:
        path.write_text(yaml.dump(data, default_flow_style=False, sort_keys=True), encoding="utf-8")
    except OSError as exc:
        raise ManifestError(f"Cannot write manifest '{path}': {exc}") from exc


def find_drift(expected: Mapping[str, bytes], root: Path, manifest: Manifest | None = None) -> list[str]:
    """Compare freshly generated files against what is on disk.

    Args:
        expected: The file map a generation run would write now.
        root: Directory the relative paths are resolved against.
        manifest: The manifest of the previous run, if one exists. Files it
            lists that are no longer generated are reported as stale.

    Returns:
        One human-readable line per difference, sorted by path. Empty when the
        output is up to date.
    """
    problems: list[tuple[str, str]] = []
    for relative in sorted(expected):
        target = root / relative
        if not target.is_file():
            problems.append((relative, "missing"))
        elif digest(target.read_bytes()) != digest(expected[relative]):
            problems.append((relative, "out of date"))
    if manifest is not None:
        recorded = {entry.path: entry.sha256 for entry in manifest.files}
        for relative in sorted(recorded):
            if relative not in expected:
                problems.append((relative, "no longer generated"))
            elif recorded[relative] != digest(expected[relative]):
                problems.append((relative, "manifest digest differs"))
    problems.sort()
    return [f"{relative}: {problem}" for relative, problem in problems]
