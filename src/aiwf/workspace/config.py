# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Data model and YAML parser for the AIWF workspace configuration file."""

from __future__ import annotations

from dataclasses import dataclass, field
from pathlib import Path

import yaml

from aiwf.backends import CLIENT_LANGUAGES

WORKSPACE_CONFIG_NAME = ".aiwf-workspace.yaml"

# ###############
# Public Interface
# ###############


class WorkspaceConfigError(Exception):
    """Raised when a workspace configuration file is invalid or cannot be loaded."""


@dataclass
class ClientTarget:
    """A thin client to emit alongside the Go SDK."""

    language: str
    output_directory: str
    base_url: str = "http://localhost:8080"


@dataclass
class WorkspaceConfig:
    """The parsed configuration for an AIWF workspace.

    Attributes:
        spec: Relative path (from the workspace root) of the workflow document.
        output_directory: Relative path for the generated Go SDK.
        package: Go package name of the generated SDK.
        module: Go module path; when set a go.mod is generated too.
        clients: Thin clients generated by ``aiwf client``.
    """

    spec: str
    output_directory: str
    package: str = "aiwfgen"
    module: str | None = None
    clients: list[ClientTarget] = field(default_factory=list)


def load_workspace_config(path: Path) -> WorkspaceConfig:
    """Load and parse an AIWF workspace configuration file.

    Args:
        path: Path to the `.aiwf-workspace.yaml` file.

    Returns:
        A WorkspaceConfig instance populated from the file.

    Raises:
        WorkspaceConfigError: If the file cannot be read or the configuration is invalid.
    """
    try:
        text = path.read_text(encoding="utf-8")
    except FileNotFoundError:
        raise WorkspaceConfigError(f"Workspace config file not found: {path}") from None
    except OSError as exc:
        raise WorkspaceConfigError(f"Cannot read workspace config file: {exc}") from exc

    return _parse_workspace_config(text, source_label=str(path))


def dump_workspace_config(config: WorkspaceConfig) -> str:
    """Serialize ``config`` into the YAML layout read by :func:`load_workspace_config`."""
    data: dict[str, object] = {
        "spec": config.spec,
        "output-directory": config.output_directory,
        "package": config.package,
    }
    if config.module:
        data["module"] = config.module
    if config.clients:
        data["clients"] = [
            {"language": c.language, "output-directory": c.output_directory, "base-url": c.base_url}
            for c in config.clients
        ]
    return yaml.safe_dump(data, sort_keys=False, allow_unicode=True)


# ################
# Implementation
# ################


def _parse_workspace_config(text: str, source_label: str = "<string>") -> WorkspaceConfig:
    """Parse workspace config YAML text into a WorkspaceConfig.

    Args:
        text: Raw YAML content.
        source_label: Human-readable label used in error messages (e.g. the file path).

    Returns:
        A WorkspaceConfig instance.

    Raises:
        WorkspaceConfigError: If the YAML is invalid or required fields are missing.
    """
    try:
        data = yaml.safe_load(text)
    except yaml.YAMLError as exc:
        raise WorkspaceConfigError(f"Invalid YAML in {source_label}: {exc}") from exc

    if not isinstance(data, dict):
        raise WorkspaceConfigError(f"{source_label}: workspace config must be a YAML mapping")

    spec = _require_string(data, "spec", source_label)
    output_directory = _require_string(data, "output-directory", source_label)
    package = _optional_string(data, "package", source_label) or "aiwfgen"
    module = _optional_string(data, "module", source_label)

    clients: list[ClientTarget] = []
    if "clients" in data:
        raw_clients = data["clients"]
        if not isinstance(raw_clients, list):
            raise WorkspaceConfigError(f"{source_label}: 'clients' must be a list")
        for index, entry in enumerate(raw_clients):
            clients.append(_parse_client(entry, index, source_label))

    return WorkspaceConfig(
        spec=spec,
        output_directory=output_directory,
        package=package,
        module=module,
        clients=clients,
    )


def _require_string(mapping: dict[str, object], key: str, source_label: str) -> str:
    """Extract a required string field from a mapping, raising WorkspaceConfigError if missing."""
    if key not in mapping:
        raise WorkspaceConfigError(f"{source_label}: missing required field '{key}'")
    value = mapping[key]
    if not isinstance(value, str):
        raise WorkspaceConfigError(f"{source_label}: '{key}' must be a string")
    return value


def _optional_string(mapping: dict[str, object], key: str, source_label: str) -> str | None:
    value = mapping.get(key)
    if value is not None and not isinstance(value, str):
        raise WorkspaceConfigError(f"{source_label}: '{key}' must be a string")
    return value


def _parse_client(entry: object, index: int, source_label: str) -> ClientTarget:
    """Parse a single thin client entry from the YAML list."""
    location = f"{source_label}: clients[{index}]"

    if not isinstance(entry, dict):
        raise WorkspaceConfigError(f"{location} must be a YAML mapping")

    language = _require_string(entry, "language", location)
    if language not in CLIENT_LANGUAGES:
        raise WorkspaceConfigError(
            f"{location}: unsupported language '{language}' (expected one of: {', '.join(CLIENT_LANGUAGES)})"
        )
    output_directory = _require_string(entry, "output-directory", location)
    base_url = _optional_string(entry, "base-url", location) or "http://localhost:8080"
    return ClientTarget(language=language, output_directory=output_directory, base_url=base_url)
