"""
Unit tests for safeaction.discovery - Action File Discovery.

Tests method-suffix parsing, camel-case identifiers, traversal order and
the skip rules for private files and directories.
"""

from pathlib import Path

import pytest

from safeaction.discovery import (
    DEFAULT_METHOD,
    ActionFileInfo,
    HttpMethod,
    parse_method_suffix,
    scan_action_files,
    to_camel_case,
)
from safeaction.errors import DiscoveryError


def _touch(root: Path, relative: str) -> Path:
    path = root / relative
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text("")
    return path


# ============================================================================
# Test: Name parsing
# ============================================================================


@pytest.mark.parametrize(
    ("stem", "expected"),
    [
        ("create-post", ("create-post", HttpMethod.POST)),
        ("update-user.put", ("update-user", HttpMethod.PUT)),
        ("get-user.get", ("get-user", HttpMethod.GET)),
        ("remove.DELETE", ("remove", HttpMethod.DELETE)),
        ("patch-me.patch", ("patch-me", HttpMethod.PATCH)),
        ("report.csv", ("report.csv", HttpMethod.POST)),
        (".get", (".get", HttpMethod.POST)),
    ],
)
def test_parse_method_suffix(stem: str, expected: tuple[str, HttpMethod]):
    assert parse_method_suffix(stem) == expected


def test_default_method_is_post():
    assert DEFAULT_METHOD is HttpMethod.POST
    assert HttpMethod.POST.carries_body
    assert not HttpMethod.GET.carries_body


@pytest.mark.parametrize(
    ("name", "expected"),
    [
        ("greet", "greet"),
        ("create-post", "createPost"),
        ("auth/login", "authLogin"),
        ("nested/deep-action", "nestedDeepAction"),
        ("users/get-user", "usersGetUser"),
        ("snake_case", "snakeCase"),
    ],
)
def test_to_camel_case(name: str, expected: str):
    assert to_camel_case(name) == expected


def test_file_info_route():
    info = ActionFileInfo(name="auth/login", file_path=Path("/x/auth/login.py"), method=HttpMethod.POST)
    assert info.route("/api/_actions") == "/api/_actions/auth/login"
    assert info.route("/api/_actions/") == "/api/_actions/auth/login"
    assert info.export_name == "authLogin"


# ============================================================================
# Test: Scanning
# ============================================================================


class TestScan:
    def test_missing_root_returns_empty(self, tmp_path: Path):
        assert scan_action_files(tmp_path / "does-not-exist") == []

    def test_empty_root_returns_empty(self, tmp_path: Path):
        assert scan_action_files(tmp_path) == []

    def test_names_and_methods(self, tmp_path: Path):
        _touch(tmp_path, "create-post.py")
        _touch(tmp_path, "update-user.put.py")
        _touch(tmp_path, "auth/login.py")

        infos = scan_action_files(tmp_path)

        assert [(i.name, i.method) for i in infos] == [
            ("auth/login", HttpMethod.POST),
            ("create-post", HttpMethod.POST),
            ("update-user", HttpMethod.PUT),
        ]
        assert all(i.file_path.is_absolute() for i in infos)

    def test_order_is_lexicographic_and_stable(self, tmp_path: Path):
        for name in ["zeta.py", "alpha.py", "mid/one.py", "beta.get.py"]:
            _touch(tmp_path, name)

        first = [i.name for i in scan_action_files(tmp_path)]
        second = [i.name for i in scan_action_files(tmp_path)]

        assert first == ["alpha", "beta", "mid/one", "zeta"]
        assert first == second

    def test_private_and_non_python_entries_skipped(self, tmp_path: Path):
        _touch(tmp_path, "__init__.py")
        _touch(tmp_path, "_helpers.py")
        _touch(tmp_path, ".hidden.py")
        _touch(tmp_path, "notes.txt")
        _touch(tmp_path, "__pycache__/greet.cpython-312.py")
        _touch(tmp_path, "_internal/secret.py")
        _touch(tmp_path, "greet.py")

        assert [i.name for i in scan_action_files(tmp_path)] == ["greet"]

    def test_duplicate_names_rejected(self, tmp_path: Path):
        _touch(tmp_path, "greet.py")
        _touch(tmp_path, "greet.get.py")

        with pytest.raises(DiscoveryError, match="greet"):
            scan_action_files(tmp_path)

    def test_colliding_identifiers_rejected(self, tmp_path: Path):
        _touch(tmp_path, "create-post.py")
        _touch(tmp_path, "create_post.py")

        with pytest.raises(DiscoveryError, match="createPost"):
            scan_action_files(tmp_path)

    def test_fixture_project(self, fixture_actions_dir: Path):
        infos = {i.name: i for i in scan_action_files(fixture_actions_dir)}

        assert "_shared" not in infos
        assert infos["get-user"].method is HttpMethod.GET
        assert infos["update-user"].method is HttpMethod.PUT
        assert infos["nested/deep-action"].method is HttpMethod.POST
        assert infos["greet"].export_name == "greet"

    def test_symlinked_directories_not_followed(self, tmp_path: Path):
        _touch(tmp_path, "greet.py")
        _touch(tmp_path, "auth/login.py")
        (tmp_path / "loop").symlink_to(tmp_path, target_is_directory=True)
        (tmp_path / "auth-link").symlink_to(tmp_path / "auth", target_is_directory=True)

        assert [i.name for i in scan_action_files(tmp_path)] == ["auth/login", "greet"]
