# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Atomic persistence of generated file maps."""

from __future__ import annotations

import logging
import os
import tempfile
from collections.abc import Iterable, Mapping
from pathlib import Path

logger = logging.getLogger(__name__)

# ###############
# Public Interface
# ###############


def write_outputs(files: Mapping[str, bytes], root: Path) -> list[Path]:
    """Write every generated file below ``root``.

    Each file is written to a temporary sibling first and renamed into place,
    so readers never observe a partially written file.

    Args:
        files: Mapping of relative output path to file content.
        root: Directory the relative paths are resolved against.

    Returns:
        The written paths in sorted order of their relative names.

    Raises:
        ValueError: If a relative path escapes ``root``. Nothing is written then.
        OSError: If a directory or file cannot be written.
    """
    targets = resolve_targets(files, root)
    written: list[Path] = []
    for relative, target in targets:
        target.parent.mkdir(parents=True, exist_ok=True)
        _replace_atomically(target, files[relative])
        written.append(target)
        logger.debug("Wrote %s (%d bytes)", target, len(files[relative]))
    return written


def remove_outputs(paths: Iterable[str], root: Path) -> list[Path]:
    """Delete previously generated files below ``root`` that still exist.

    Args:
        paths: Relative output paths, typically taken from an earlier manifest.
        root: Directory the relative paths are resolved against.

    Returns:
        The removed paths in sorted order of their relative names.

    Raises:
        ValueError: If a relative path escapes ``root``. Nothing is removed then.
        OSError: If a file cannot be removed.
    """
    removed: list[Path] = []
    for _, target in resolve_targets(paths, root):
        if target.is_file():
            target.unlink()
            removed.append(target)
            logger.debug("Removed stale %s", target)
    return removed


def resolve_targets(paths: Iterable[str], root: Path) -> list[tuple[str, Path]]:
    """Resolve relative output paths against ``root``, sorted by relative name.

    Raises:
        ValueError: If any path escapes ``root``.
    """
    root = root.resolve()
    targets: list[tuple[str, Path]] = []
    for relative in sorted(paths):
        target = (root / relative).resolve()
        if not target.is_relative_to(root):
            raise ValueError(f"output path '{relative}' escapes {root}")
        targets.append((relative, target))
    return targets


# ################
# Implementation
# ################


def _replace_atomically(target: Path, content: bytes) -> None:
    fd, tmp_name = tempfile.mkstemp(dir=target.parent, prefix=f".{target.name}.", suffix=".tmp")
    try:
        with os.fdopen(fd, "wb") as handle:
            handle.write(content)
        os.replace(tmp_name, target)
    except BaseException:
        Path(tmp_name).unlink(missing_ok=True)
        raise
