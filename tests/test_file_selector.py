import os
from pathlib import Path

import pytest

from apps_broker.file_selector import FileSelector, ImportFileNotFoundError


def _touch(path: Path, mtime: float) -> Path:
    path.write_bytes(b"data")
    os.utime(path, (mtime, mtime))
    return path


def test_case_insensitive_directory_picks_newest_file(tmp_path: Path) -> None:
    app_dir = tmp_path / "Foo"
    app_dir.mkdir()
    _touch(app_dir / "old.NTGapps", 1_000_000)
    newest = _touch(app_dir / "new.NTGapps", 2_000_000)

    assert FileSelector(tmp_path).resolve_newest_file("foo") == newest


def test_exact_directory_match_wins(tmp_path: Path) -> None:
    exact = tmp_path / "orders"
    exact.mkdir()
    expected = _touch(exact / "a.NTGapps", 1_000_000)
    _touch(tmp_path / "orders-flat.NTGapps", 9_000_000)

    assert FileSelector(tmp_path).resolve_newest_file("orders") == expected


def test_subdirectories_inside_app_folder_are_ignored(tmp_path: Path) -> None:
    app_dir = tmp_path / "Orders"
    (app_dir / "nested").mkdir(parents=True)
    expected = _touch(app_dir / "only.NTGapps", 1_000_000)

    assert FileSelector(tmp_path).resolve_newest_file("Orders") == expected


def test_empty_matched_directory_fails(tmp_path: Path) -> None:
    (tmp_path / "Orders").mkdir()
    _touch(tmp_path / "Orders-export.NTGapps", 1_000_000)

    with pytest.raises(ImportFileNotFoundError, match="No files found"):
        FileSelector(tmp_path).resolve_newest_file("Orders")


def test_flat_files_under_root_are_used_as_fallback(tmp_path: Path) -> None:
    _touch(tmp_path / "my-ORDERS-v1.NTGapps", 1_000_000)
    newest = _touch(tmp_path / "orders-v2.NTGapps", 2_000_000)
    _touch(tmp_path / "invoices.NTGapps", 3_000_000)

    assert FileSelector(tmp_path).resolve_newest_file("Orders") == newest


def test_no_match_names_the_searched_root(tmp_path: Path) -> None:
    _touch(tmp_path / "invoices.NTGapps", 1_000_000)

    with pytest.raises(ImportFileNotFoundError) as exc:
        FileSelector(tmp_path).resolve_newest_file("Orders")
    assert str(tmp_path.absolute()) in str(exc.value)


def test_missing_root_fails(tmp_path: Path) -> None:
    with pytest.raises(ImportFileNotFoundError, match="Import storage directory not found"):
        FileSelector(tmp_path / "missing").resolve_newest_file("Orders")


@pytest.mark.parametrize("app_name", ["..", ".", "Orders/../.."])
def test_relative_names_cannot_leave_the_root(tmp_path: Path, app_name: str) -> None:
    root = tmp_path / "import-apps"
    (root / "Orders").mkdir(parents=True)
    _touch(root / "Orders" / "orders.NTGapps", 1_000_000)
    _touch(tmp_path / "outside.NTGapps", 2_000_000)

    with pytest.raises(ImportFileNotFoundError):
        FileSelector(root).resolve_newest_file(app_name)


def test_absolute_directory_outside_root_is_not_used(tmp_path: Path) -> None:
    root = tmp_path / "import-apps"
    root.mkdir()
    elsewhere = tmp_path / "elsewhere"
    elsewhere.mkdir()
    _touch(elsewhere / "x.NTGapps", 1_000_000)

    with pytest.raises(ImportFileNotFoundError):
        FileSelector(root).resolve_newest_file(str(elsewhere))
