from __future__ import annotations

from typing import TYPE_CHECKING

import pytest

from modcheck.app import AuthenticationError, CheckReport, InstallationError
from modcheck.ui import cli
from tests.helpers.catalog import make_package

if TYPE_CHECKING:
    from pathlib import Path


def test_main_prints_report(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, capsys: pytest.CaptureFixture[str]
) -> None:
    captured: dict[str, object] = {}

    def fake_check(install_root: Path, **kwargs: object) -> CheckReport:
        captured["install_root"] = install_root
        captured.update(kwargs)
        return CheckReport(platform_version="3.11.0")

    monkeypatch.setattr(cli, "check_mods", fake_check)

    cli.main([str(tmp_path), "--yes"])

    assert captured["install_root"] == tmp_path.resolve()
    confirm = captured["confirm"]
    assert callable(confirm)
    assert confirm([make_package("A"), make_package("B")]) == [True, True]
    output = capsys.readouterr().out
    assert "SPT version: 3.11.0" in output
    assert "No dependency issues found." in output


def test_no_confirm_rejects_everything(monkeypatch: pytest.MonkeyPatch, tmp_path: Path) -> None:
    captured: dict[str, object] = {}

    def fake_check(_install_root: Path, **kwargs: object) -> CheckReport:
        captured.update(kwargs)
        return CheckReport(platform_version="3.11.0")

    monkeypatch.setattr(cli, "check_mods", fake_check)

    cli.main([str(tmp_path), "--no-confirm"])

    confirm = captured["confirm"]
    assert callable(confirm)
    assert confirm([make_package("A")]) == [False]


def test_missing_directory_exits_with_usage_error(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([str(tmp_path / "nope")])

    assert excinfo.value.code == 2


@pytest.mark.parametrize(
    ("error", "code"),
    [
        (InstallationError("no core.json"), 2),
        (AuthenticationError("no key"), 1),
        (RuntimeError("boom"), 1),
    ],
)
def test_failures_map_to_exit_codes(
    monkeypatch: pytest.MonkeyPatch, tmp_path: Path, error: Exception, code: int
) -> None:
    def fake_check(_install_root: Path, **_kwargs: object) -> CheckReport:
        raise error

    monkeypatch.setattr(cli, "check_mods", fake_check)

    with pytest.raises(SystemExit) as excinfo:
        cli.main([str(tmp_path)])

    assert excinfo.value.code == code


def test_confirm_flags_are_mutually_exclusive(tmp_path: Path) -> None:
    with pytest.raises(SystemExit) as excinfo:
        cli.main([str(tmp_path), "--yes", "--no-confirm"])

    assert excinfo.value.code == 2
