"""
Tests for the working-directory policy.
"""

import sys

import pytest
from core.exceptions import ValidationError
from core.workspace import is_path_allowed, resolve_working_dir


@pytest.fixture
def roots(tmp_path):
    root = tmp_path / "allowed"
    root.mkdir()
    return [root.resolve()]


@pytest.mark.parametrize("cwd", [None, "", "   "])
def test_no_cwd_means_inherit(roots, cwd):
    assert resolve_working_dir(cwd, roots) is None


def test_directory_inside_root_is_resolved(roots):
    project = roots[0] / "project"
    project.mkdir()

    assert resolve_working_dir(str(project), roots) == str(project.resolve())


def test_root_itself_is_allowed(roots):
    assert resolve_working_dir(str(roots[0]), roots) == str(roots[0])


def test_missing_directory_is_rejected(roots):
    with pytest.raises(ValidationError, match="does not exist"):
        resolve_working_dir(str(roots[0] / "missing"), roots)


def test_file_is_rejected(roots):
    target = roots[0] / "notes.txt"
    target.write_text("hi")

    with pytest.raises(ValidationError, match="not a directory"):
        resolve_working_dir(str(target), roots)


def test_directory_outside_roots_is_rejected(roots, tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()

    with pytest.raises(ValidationError, match="not allowed"):
        resolve_working_dir(str(outside), roots)


def test_dot_dot_escape_is_rejected(roots, tmp_path):
    (tmp_path / "outside").mkdir()

    with pytest.raises(ValidationError, match="not allowed"):
        resolve_working_dir(str(roots[0] / ".." / "outside"), roots)


@pytest.mark.skipif(sys.platform == "win32", reason="symlinks need privileges on Windows")
def test_symlink_escaping_root_is_rejected(roots, tmp_path):
    outside = tmp_path / "outside"
    outside.mkdir()
    link = roots[0] / "link"
    link.symlink_to(outside, target_is_directory=True)

    with pytest.raises(ValidationError, match="not allowed"):
        resolve_working_dir(str(link), roots)


def test_sibling_with_common_prefix_is_not_inside(tmp_path):
    root = tmp_path / "work"
    sibling = tmp_path / "workshop"

    assert is_path_allowed(root / "a", [root])
    assert not is_path_allowed(sibling, [root])
