# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Workspace configuration and generation manifest for AIWF."""

from aiwf.workspace.config import (
    WORKSPACE_CONFIG_NAME,
    ClientTarget,
    WorkspaceConfig,
    WorkspaceConfigError,
    dump_workspace_config,
    load_workspace_config,
)
from aiwf.workspace.manifest import (
    MANIFEST_NAME,
    Manifest,
    ManifestEntry,
    ManifestError,
    build_manifest,
    digest,
    find_drift,
    load_manifest,
    save_manifest,
)

__all__ = [
    "ClientTarget",
    "MANIFEST_NAME",
    "Manifest",
    "ManifestEntry",
    "ManifestError",
    "WORKSPACE_CONFIG_NAME",
    "WorkspaceConfig",
    "WorkspaceConfigError",
    "build_manifest",
    "digest",
    "dump_workspace_config",
    "find_drift",
    "load_manifest",
    "load_workspace_config",
    "save_manifest",
]
