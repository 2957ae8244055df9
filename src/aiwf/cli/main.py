# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Entry point for the AIWF command-line interface."""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

from yachalk import chalk

from aiwf.errors import AiwfError, MultiError, SpecSyntaxError
from aiwf.model.ir import IR
from aiwf.workspace.config import (
    WORKSPACE_CONFIG_NAME,
    WorkspaceConfig,
    WorkspaceConfigError,
    dump_workspace_config,
    load_workspace_config,
)

# ###############
# Public Interface
# ###############


def main() -> None:
    """Run the AIWF CLI."""
    parser = argparse.ArgumentParser(
        prog="aiwf",
        description="AIWF: compile declarative AI workflows into typed SDKs",
    )
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", metavar="COMMAND")

    # init subcommand
    init_parser = subparsers.add_parser(
        "init",
        help="Initialize a new AIWF workspace",
        description="Create a workspace configuration and a starter workflow document.",
    )
    init_parser.add_argument(
        "directory",
        nargs="?",
        default=".",
        help="Directory to initialize the workspace in (default: current directory)",
    )

    # validate subcommand
    validate_parser = subparsers.add_parser(
        "validate",
        help="Validate a workflow document",
        description="Load, resolve and validate a workflow document without generating code.",
    )
    validate_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Workflow document or workspace directory (default: current directory)",
    )

    # sdk subcommand
    sdk_parser = subparsers.add_parser(
        "sdk",
        help="Generate the Go SDK",
        description="Generate the Go SDK for a workflow document and record a manifest of the output.",
    )
    sdk_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Workflow document or workspace directory (default: current directory)",
    )
    sdk_parser.add_argument("--out", help="Output directory (default: from the workspace config)")
    sdk_parser.add_argument("--package", help="Go package name (default: aiwfgen)")
    sdk_parser.add_argument("--module", help="Go module path; also emits go.mod")
    sdk_parser.add_argument(
        "--check",
        action="store_true",
        help="Do not write anything; fail if the generated output on disk is out of date",
    )

    # client subcommand
    client_parser = subparsers.add_parser(
        "client",
        help="Generate thin HTTP clients",
        description="Generate thin HTTP clients for the assistants of a workflow document.",
    )
    client_parser.add_argument(
        "path",
        nargs="?",
        default=".",
        help="Workflow document or workspace directory (default: current directory)",
    )
    client_parser.add_argument(
        "--lang",
        choices=["php", "python", "typescript"],
        help="Client language (default: every client listed in the workspace config)",
    )
    client_parser.add_argument("--out", help="Output directory (requires --lang)")
    client_parser.add_argument("--base-url", help="Default server URL baked into the client")

    args = parser.parse_args()
    if args.verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")
    if args.command is None:
        parser.print_help()
        sys.exit(0)

    sys.exit(_dispatch(args))


# ################
# Implementation
# ################

_DEFAULT_SPEC_NAME = "aiwf.yaml"
_DEFAULT_OUTPUT_DIR = "generated"

_STARTER_SPEC = """\
version: "0.1"

types:
  Draft:
    title: string(1..200)
    content: string

assistants:
  writer:
    use: openai
    model: gpt-4o-mini
    system_prompt: You write short blog posts.
    input_type: string
    output_type: Draft

workflows:
  blog:
    description: Write a single draft.
    dag:
      - step: draft
        assistant: writer
"""


def _dispatch(args: argparse.Namespace) -> int:
    """Dispatch to the appropriate subcommand handler."""
    if args.command == "init":
        return _cmd_init(args)
    if args.command == "validate":
        return _cmd_validate(args)
    if args.command == "sdk":
        return _cmd_sdk(args)
    if args.command == "client":
        return _cmd_client(args)
    return 0


def _cmd_init(args: argparse.Namespace) -> int:
    """Handle the init subcommand."""
    directory = Path(args.directory).resolve()

    if not directory.exists():
        print(f"Error: directory '{directory}' does not exist.", file=sys.stderr)
        return 1

    workspace_file = directory / WORKSPACE_CONFIG_NAME
    if workspace_file.exists():
        print(f"Error: workspace already exists at '{workspace_file}'.", file=sys.stderr)
        return 1

    config = WorkspaceConfig(spec=_DEFAULT_SPEC_NAME, output_directory=_DEFAULT_OUTPUT_DIR)
    workspace_file.write_text(dump_workspace_config(config), encoding="utf-8")

    spec_file = directory / _DEFAULT_SPEC_NAME
    if not spec_file.exists():
        spec_file.write_text(_STARTER_SPEC, encoding="utf-8")
        print(f"Created starter workflow document '{spec_file}'.")
    print(f"Initialized AIWF workspace at '{workspace_file}'.")
    return 0


def _cmd_validate(args: argparse.Namespace) -> int:
    """Handle the validate subcommand."""
    target = _resolve_target(Path(args.path))
    if target is None:
        return 1
    spec_path, _, _ = target

    ir = _compile(spec_path)
    if ir is None:
        return 1
    print(chalk.green(f"✓ {spec_path.name}: {len(ir.assistants)} assistant(s), {len(ir.workflows)} workflow(s)"))
    return 0


def _cmd_sdk(args: argparse.Namespace) -> int:
    """Handle the sdk subcommand."""
    from aiwf.backends import GoOptions, generate, remove_outputs, write_outputs
    from aiwf.workspace.manifest import (
        MANIFEST_NAME,
        ManifestError,
        build_manifest,
        find_drift,
        load_manifest,
        save_manifest,
        stale_paths,
    )

    target = _resolve_target(Path(args.path))
    if target is None:
        return 1
    spec_path, config, root = target

    output_dir = args.out or (config.output_directory if config else _DEFAULT_OUTPUT_DIR)
    out_root = (root / output_dir).resolve()
    options = GoOptions(
        package=args.package or (config.package if config else "aiwfgen"),
        module=args.module or (config.module if config else None),
    )

    ir = _compile(spec_path)
    if ir is None:
        return 1
    try:
        files = generate("go", ir, options)
    except AiwfError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    manifest_path = out_root / MANIFEST_NAME
    manifest = None
    if manifest_path.exists():
        try:
            manifest = load_manifest(manifest_path)
        except ManifestError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1

    if args.check:
        drift = find_drift(files, out_root, manifest)
        if drift:
            for line in drift:
                print(chalk.red(f"✗ {line}"), file=sys.stderr)
            print(f"Error: generated SDK in '{out_root}' is out of date. Run 'aiwf sdk'.", file=sys.stderr)
            return 1
        print(chalk.green(f"✓ generated SDK in '{out_root}' is up to date"))
        return 0

    try:
        written = write_outputs(files, out_root)
        removed = remove_outputs(stale_paths(manifest, files), out_root)
        save_manifest(build_manifest(files, spec=spec_path.name), manifest_path)
    except (OSError, ValueError, ManifestError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1
    for path in written:
        print(f"  wrote {path}")
    for path in removed:
        print(f"  removed {path}")
    print(f"Generated {len(written)} file(s) in '{out_root}'.")
    return 0


def _cmd_client(args: argparse.Namespace) -> int:
    """Handle the client subcommand."""
    from aiwf.backends import ClientOptions, generate, write_outputs
    from aiwf.workspace.config import ClientTarget

    target = _resolve_target(Path(args.path))
    if target is None:
        return 1
    spec_path, config, root = target

    if args.lang:
        clients = [
            ClientTarget(
                language=args.lang,
                output_directory=args.out or f"clients/{args.lang}",
                base_url=args.base_url or "http://localhost:8080",
            )
        ]
    elif args.out:
        print("Error: --out requires --lang.", file=sys.stderr)
        return 1
    elif config is not None and config.clients:
        clients = config.clients
        if args.base_url:
            for client in clients:
                client.base_url = args.base_url
    else:
        print("Error: no client language given and none configured in the workspace.", file=sys.stderr)
        return 1

    ir = _compile(spec_path)
    if ir is None:
        return 1

    written: list[Path] = []
    for client in clients:
        options = ClientOptions(base_url=client.base_url)
        try:
            files = generate(client.language, ir, options)
            written.extend(write_outputs(files, (root / client.output_directory).resolve()))
        except (AiwfError, OSError, ValueError) as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return 1
    for path in written:
        print(f"  wrote {path}")
    print(f"Generated {len(written)} client file(s).")
    return 0


def _resolve_target(path: Path) -> tuple[Path, WorkspaceConfig | None, Path] | None:
    """Resolve a CLI path argument into (spec file, workspace config, workspace root).

    A directory is treated as a workspace root and must contain a workspace
    configuration. A file is used as the workflow document directly; a
    workspace configuration next to it is picked up when present.
    """
    path = path.resolve()
    if not path.exists():
        print(f"Error: '{path}' does not exist.", file=sys.stderr)
        return None

    root = path if path.is_dir() else path.parent
    config: WorkspaceConfig | None = None
    workspace_file = root / WORKSPACE_CONFIG_NAME
    if workspace_file.exists():
        try:
            config = load_workspace_config(workspace_file)
        except WorkspaceConfigError as exc:
            print(f"Error: {exc}", file=sys.stderr)
            return None

    if path.is_file():
        return path, config, root
    if config is None:
        print(
            f"Error: no AIWF workspace found at '{root}'. Run 'aiwf init' to initialize a workspace.",
            file=sys.stderr,
        )
        return None
    return root / config.spec, config, root


def _compile(spec_path: Path) -> IR | None:
    """Load and validate ``spec_path``, printing every diagnostic.

    Returns:
        The IR, or None if any fatal problem was found.
    """
    from aiwf.compiler.ir_builder import build_ir
    from aiwf.compiler.loader import load_spec

    try:
        resolved = load_spec(spec_path)
    except SpecSyntaxError as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return None
    except MultiError as exc:
        _print_diagnostics(exc)
        return None

    ir, diagnostics = build_ir(resolved)
    _print_diagnostics(diagnostics)
    return ir


def _print_diagnostics(diagnostics: MultiError) -> None:
    for error in diagnostics.errors:
        print(chalk.red(f"✗ {error.field} — {error.message}"), file=sys.stderr)
    for warning in diagnostics.warnings:
        print(chalk.yellow(f"⚠ {warning.field} — {warning.message}"))
