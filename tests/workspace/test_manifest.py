# Copyright 2026 AIWF Contributors
# SPDX-License-Identifier: Apache-2.0

"""Tests for the generated-file manifest and drift detection."""

from pathlib import Path

import pytest

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
    stale_paths,
)

# ###############
# Test Helpers
# ###############

_FILES = {"service.go": b"package x\n", "agents.go": b"package x\n// agents\n"}


def _write(root: Path, files: dict[str, bytes]) -> None:
    for relative, content in files.items():
        target = root / relative
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(content)


# ###############
# Manifest Files
# ###############


class TestManifest:
    def test_build_sorts_entries(self) -> None:
        manifest = build_manifest(_FILES, spec="aiwf.yaml")
        assert manifest.spec == "aiwf.yaml"
        assert [entry.path for entry in manifest.files] == ["agents.go", "service.go"]
        assert manifest.files[1].sha256 == digest(b"package x\n")

    def test_digest_is_sha256_hex(self) -> None:
        assert digest(b"") == "e3b0c44298fc1c149afbf4c8996fb92427ae41e4649b934ca495991b7852b855"

    def test_round_trip(self, tmp_path: Path) -> None:
        path = tmp_path / MANIFEST_NAME
        manifest = build_manifest(_FILES, spec="aiwf.yaml")
        save_manifest(manifest, path)
        assert load_manifest(path) == manifest

    def test_save_sorts_entries(self, tmp_path: Path) -> None:
        path = tmp_path / MANIFEST_NAME
        manifest = Manifest(files=[ManifestEntry(path="b", sha256="2"), ManifestEntry(path="a", sha256="1")])
        save_manifest(manifest, path)
        text = path.read_text(encoding="utf-8")
        assert text.index("path: a") < text.index("path: b")

    def test_empty_file_is_empty_manifest(self, tmp_path: Path) -> None:
        path = tmp_path / MANIFEST_NAME
        path.write_text("", encoding="utf-8")
        assert load_manifest(path) == Manifest()

    def test_missing_file(self, tmp_path: Path) -> None:
        with pytest.raises(ManifestError, match="Cannot read manifest"):
            load_manifest(tmp_path / MANIFEST_NAME)

    def test_invalid_yaml(self, tmp_path: Path) -> None:
        path = tmp_path / MANIFEST_NAME
        path.write_text("files: [unclosed\n", encoding="utf-8")
        with pytest.raises(ManifestError, match="Invalid YAML"):
            load_manifest(path)

    def test_unknown_field(self, tmp_path: Path) -> None:
        path = tmp_path / MANIFEST_NAME
        path.write_text("files: []\nextra: 1\n", encoding="utf-8")
        with pytest.raises(ManifestError, match="Invalid manifest"):
            load_manifest(path)


# ###############
# Drift
# ###############


class TestFindDrift:
    def test_up_to_date(self, tmp_path: Path) -> None:
        _write(tmp_path, _FILES)
        assert find_drift(_FILES, tmp_path, build_manifest(_FILES)) == []

    def test_missing_and_modified_files(self, tmp_path: Path) -> None:
        _write(tmp_path, {"service.go": b"edited by hand\n"})
        assert find_drift(_FILES, tmp_path) == ["agents.go: missing", "service.go: out of date"]

    def test_file_no_longer_generated(self, tmp_path: Path) -> None:
        previous = dict(_FILES, **{"workflows.go": b"package x\n// workflows\n"})
        _write(tmp_path, previous)
        assert find_drift(_FILES, tmp_path, build_manifest(previous)) == ["workflows.go: no longer generated"]

    def test_stale_manifest_digest(self, tmp_path: Path) -> None:
        _write(tmp_path, _FILES)
        manifest = build_manifest(dict(_FILES, **{"service.go": b"package y\n"}))
        assert find_drift(_FILES, tmp_path, manifest) == ["service.go: manifest digest differs"]

    def test_nested_paths(self, tmp_path: Path) -> None:
        files = {"sdk/service.go": b"x"}
        _write(tmp_path, files)
        assert find_drift(files, tmp_path) == []


class TestStalePaths:
    def test_without_manifest(self) -> None:
        assert stale_paths(None, _FILES) == []

    def test_paths_no_longer_generated(self) -> None:
        previous = build_manifest(dict(_FILES, **{"workflows.go": b"w", "a/old.go": b"o"}))
        assert stale_paths(previous, _FILES) == ["a/old.go", "workflows.go"]
