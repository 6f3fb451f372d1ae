"""
Path Sandbox Tests

INVARIANTS TESTED:
1. Resolved paths are strict descendants of the root
2. Sibling directories sharing the root's name prefix are rejected
3. Extensions come from the whitelist
4. Validation never touches the filesystem
"""

import os

import pytest

from dispatch.config import DEFAULT_ALLOWED_EXTENSIONS
from dispatch.errors import ExtensionNotAllowedError, PathTraversalError, ValidationError
from ingestion.sandbox import PathSandbox


@pytest.fixture
def root(tmp_path):
    path = tmp_path / "app"
    path.mkdir()
    return path


@pytest.fixture
def sandbox(root):
    return PathSandbox(str(root), DEFAULT_ALLOWED_EXTENSIONS)


class TestResolve:

    def test_relative_path(self, sandbox, root):
        assert sandbox.resolve("src/index.ts") == root.resolve() / "src" / "index.ts"

    def test_leading_separator_is_stripped(self, sandbox, root):
        assert sandbox.resolve("/src/index.ts") == root.resolve() / "src" / "index.ts"

    def test_inner_dot_segments_allowed(self, sandbox, root):
        assert sandbox.resolve("src/../lib/a.js") == root.resolve() / "lib" / "a.js"

    def test_extension_case_insensitive(self, sandbox):
        assert sandbox.resolve("README.MD").name == "README.MD"

    def test_validation_does_not_create_anything(self, sandbox, root):
        sandbox.resolve("deep/nested/dir/file.ts")
        assert list(root.iterdir()) == []


class TestTraversal:

    @pytest.mark.parametrize("requested", [
        "../escape.ts",
        "src/../../escape.ts",
        "..",
        ".",
        "",
        "   ",
    ])
    def test_rejected(self, sandbox, requested):
        with pytest.raises(PathTraversalError):
            sandbox.resolve(requested)

    def test_sibling_prefix_bypass_rejected(self, sandbox, tmp_path):
        (tmp_path / "app-other").mkdir()
        with pytest.raises(PathTraversalError):
            sandbox.resolve("../app-other/x.txt")

    def test_symlink_escape_rejected(self, sandbox, root, tmp_path):
        outside = tmp_path / "outside"
        outside.mkdir()
        try:
            os.symlink(outside, root / "link", target_is_directory=True)
        except (OSError, NotImplementedError):
            pytest.skip("symlinks not supported here")

        with pytest.raises(PathTraversalError):
            sandbox.resolve("link/secret.txt")

    def test_traversal_is_a_validation_error(self, sandbox):
        with pytest.raises(ValidationError):
            sandbox.resolve("../escape.ts")


class TestExtensions:

    @pytest.mark.parametrize("requested", ["tool.exe", "script.sh", "Makefile", "archive.tar.gz"])
    def test_rejected(self, sandbox, requested):
        with pytest.raises(ExtensionNotAllowedError):
            sandbox.resolve(requested)

    def test_custom_whitelist(self, root):
        sandbox = PathSandbox(str(root), [".TXT"])
        assert sandbox.allowed_extensions == frozenset({".txt"})
        sandbox.resolve("notes.txt")
        with pytest.raises(ExtensionNotAllowedError):
            sandbox.resolve("notes.md")


class TestContains:

    def test_root_itself_is_not_contained(self, sandbox):
        assert not sandbox.contains(sandbox.root)

    def test_descendant_is_contained(self, sandbox):
        assert sandbox.contains(sandbox.root / "a" / "b.ts")

    def test_sibling_is_not_contained(self, sandbox):
        assert not sandbox.contains(sandbox.root.parent / "app-other" / "x.txt")
