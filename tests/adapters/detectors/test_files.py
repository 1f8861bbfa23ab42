from __future__ import annotations

from typing import TYPE_CHECKING

from softcatalog.adapters.detectors._files import (
    find_executable,
    is_under,
    path_key,
    relative_parts,
)

if TYPE_CHECKING:
    from pathlib import Path


def _touch(path: Path) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_bytes(b"MZ")
    return path


def test_prefers_executable_named_like_the_software(tmp_path: Path) -> None:
    _touch(tmp_path / "Aaa.exe")
    wanted = _touch(tmp_path / "Hollow-Knight.exe")

    assert find_executable(tmp_path, "Hollow Knight") == wanted


def test_skips_helper_executables(tmp_path: Path) -> None:
    _touch(tmp_path / "unins000.exe")
    _touch(tmp_path / "CrashReporter.exe")
    game = _touch(tmp_path / "game.exe")

    assert find_executable(tmp_path) == game


def test_looks_in_engine_binary_folders(tmp_path: Path) -> None:
    binary = _touch(tmp_path / "Binaries" / "Win64" / "Shooter-Win64-Shipping.exe")
    _touch(tmp_path / "readme.txt")

    assert find_executable(tmp_path, "Shooter") == binary


def test_missing_directory_has_no_executable(tmp_path: Path) -> None:
    assert find_executable(tmp_path / "missing", "Anything") is None


def test_path_helpers_ignore_case_and_separators() -> None:
    assert path_key("C:\\Games\\Hades\\") == "c:/games/hades"
    assert is_under(r"C:\Games\Hades\bin", "c:/games/hades")
    assert is_under(r"C:\Games\Hades", r"C:\Games\Hades")
    assert not is_under(r"C:\Games\Hades2", r"C:\Games\Hades")
    assert not is_under(r"C:\Games", "")
    nested = r"C:\Steam\steamapps\common\Portal 2\bin"
    assert relative_parts(nested, r"C:\Steam\steamapps\common") == ["portal 2", "bin"]
    assert relative_parts(r"D:\Other", r"C:\Steam") == []
