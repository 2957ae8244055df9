# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Code generation backends and the registry that dispatches between them."""

from __future__ import annotations

from collections.abc import Callable
from typing import Any

from aiwf.backends.clients import ClientOptions, generate_php, generate_python, generate_typescript
from aiwf.backends.go import GoOptions, generate_go
from aiwf.backends.writer import remove_outputs, write_outputs
from aiwf.errors import GenerationError
from aiwf.model.ir import IR

# ###############
# Public Interface
# ###############

Backend = Callable[[IR, Any], dict[str, bytes]]

BACKENDS: dict[str, Backend] = {
    "go": generate_go,
    "php": generate_php,
    "python": generate_python,
    "typescript": generate_typescript,
}

CLIENT_LANGUAGES = ("php", "python", "typescript")


def generate(name: str, ir: IR, options: Any = None) -> dict[str, bytes]:
    """Run the backend registered as ``name``.

    Args:
        name: One of the keys of :data:`BACKENDS`.
        ir: The validated intermediate representation.
        options: Backend options; :class:`GoOptions` for ``go`` and
            :class:`ClientOptions` for the thin clients. None selects the defaults.

    Returns:
        Mapping of relative output path to file content.

    Raises:
        GenerationError: If no backend is registered under ``name``.
    """
    backend = BACKENDS.get(name)
    if backend is None:
        known = ", ".join(sorted(BACKENDS))
        raise GenerationError(f"unknown backend '{name}' (expected one of: {known})")
    return backend(ir, options)


__all__ = [
    "BACKENDS",
    "CLIENT_LANGUAGES",
    "Backend",
    "ClientOptions",
    "GoOptions",
    "generate",
    "generate_go",
    "generate_php",
    "generate_python",
    "generate_typescript",
    "remove_outputs",
    "write_outputs",
]
