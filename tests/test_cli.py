# SPDX-License-Identifier: MIT
"""Tests for qmlconf CLI."""

from __future__ import annotations

from pathlib import Path

import pytest

from qmlconf import cli
from qmlconf.cli import build_parser, locate_make, main, parse_variables, setup_logging
from qmlconf.configure.platform import Platform
from qmlconf.configure.writer import load_config
from qmlconf.core.errors import HarnessUnavailable


@pytest.fixture
def fake_host(monkeypatch, make_harness):
    """Replace q, make and the harness with in-process fakes.

    Returns a dict that records the platform arguments and holds the
    harness rule, which tests may replace before calling main().
    """
    state: dict = {"rule": None, "detect": None, "harness": None}

    def fake_detect(kxarch=None, kxver=None, qhome=None, *, q="q", out=None):
        state["detect"] = (kxarch, kxver, qhome)
        return Platform(kxarch or "l64", kxver or "3", "/opt/q" if qhome is None else qhome)

    def fake_harness(make, source_dir):
        state["harness"] = make_harness(state["rule"])
        return state["harness"]

    monkeypatch.setattr(cli, "detect_platform", fake_detect)
    monkeypatch.setattr(cli, "locate_make", lambda: "make")
    monkeypatch.setattr(cli, "create_harness", fake_harness)
    return state


def run_main(tmp_path: Path, *args: str) -> int:
    return main(
        [
            "-o",
            str(tmp_path / "config.mk"),
            "--log",
            str(tmp_path / "conftest.log"),
            *args,
        ]
    )


class TestParseVariables:
    """Tests for parse_variables function."""

    def test_variables_and_remaining(self) -> None:
        variables, remaining = parse_variables(["CC=clang", "bogus", "CFLAGS="])
        assert variables == {"CC": "clang", "CFLAGS": ""}
        assert remaining == ["bogus"]

    def test_value_with_equals(self) -> None:
        variables, _ = parse_variables(["FLAGS=-DX=1"])
        assert variables == {"FLAGS": "-DX=1"}

    def test_empty_key(self) -> None:
        variables, remaining = parse_variables(["=value"])
        assert variables == {}
        assert remaining == ["=value"]


class TestSetupLogging:
    """Tests for setup_logging function."""

    def test_setup_logging_normal(self) -> None:
        setup_logging(verbose=False, debug=False)

    def test_setup_logging_debug(self) -> None:
        setup_logging(verbose=False, debug=True)


class TestParser:
    """Tests for the argument parser."""

    def test_build_openblas_default_arch(self) -> None:
        args = build_parser().parse_args(["--build-openblas"])
        assert args.build_openblas == "dynamic"

    def test_build_openblas_arch(self) -> None:
        args = build_parser().parse_args(["--build-openblas=haswell"])
        assert args.build_openblas == "haswell"

    def test_no_openblas(self) -> None:
        args = build_parser().parse_args([])
        assert args.build_openblas is None
        assert args.output == "config.mk"
        assert args.log == "conftest.log"

    def test_help_lists_variables(self, capsys: pytest.CaptureFixture[str]) -> None:
        with pytest.raises(SystemExit):
            build_parser().parse_args(["--help"])
        out = capsys.readouterr().out
        assert "TOOLPREFIX" in out
        assert "--with-lapack" in out


class TestLocateMake:
    """Tests for locate_make function."""

    def test_found(self, monkeypatch, capsys) -> None:
        monkeypatch.setattr(cli, "find_make", lambda: "gmake")
        assert locate_make() == "gmake"
        assert capsys.readouterr().out == "looking for GNU make... gmake\n"

    def test_not_found(self, monkeypatch, capsys) -> None:
        def no_make():
            raise HarnessUnavailable("MAKE", "GNU make is required.")

        monkeypatch.setattr(cli, "find_make", no_make)
        with pytest.raises(HarnessUnavailable):
            locate_make()
        assert capsys.readouterr().out == "looking for GNU make... not found\n"


class TestMain:
    """Tests for the main entry point."""

    def test_success(self, tmp_path, fake_host, capsys) -> None:
        json_path = tmp_path / "config.json"
        assert run_main(tmp_path, "--json", str(json_path), "CFLAGS=-O3") == 0

        out = capsys.readouterr().out
        assert f"writing configuration to {tmp_path / 'config.mk'}\n" in out
        assert out.endswith("now run make\n")

        text = (tmp_path / "config.mk").read_text()
        assert "CFLAGS         := -O3 -ffloat-store\n" in text
        assert "CC             := gcc\n" in text

        data = load_config(json_path)
        assert data["variables"]["CFLAGS"] == "-O3"
        assert data["sources"]["CFLAGS"] == "selected"

        log = (tmp_path / "conftest.log").read_text()
        assert "testing c_compile:" in log

    def test_platform_variables_passed_on(self, tmp_path, fake_host) -> None:
        assert run_main(tmp_path, "KXARCH=w64", "KXVER=4", "QHOME=") == 0
        assert fake_host["detect"] == ("w64", "4", "")
        assert "dlltool" in fake_host["harness"].probed()

    def test_build_openblas(self, tmp_path, fake_host) -> None:
        assert run_main(tmp_path, "--build-openblas=native") == 0
        text = (tmp_path / "config.mk").read_text()
        assert "BUILD_OPENBLAS := native\n" in text
        assert "BUILD_LAPACK   := 1\n" in text

    def test_build_openblas_without_arch(self, tmp_path, fake_host, capsys) -> None:
        assert run_main(tmp_path, "--build-openblas=", "CC=") == 0
        out = capsys.readouterr().out
        assert "will build OpenBLAS" not in out
        assert "looking for C compiler... gcc (default)\n" in out
        text = (tmp_path / "config.mk").read_text()
        assert "BUILD_OPENBLAS :=\n" in text
        assert "CC             := gcc\n" in text
        assert "c_link" in fake_host["harness"].probed()
        blas = [p for p, _, _ in fake_host["harness"].calls if p.conftest == "blas"]
        assert blas

    def test_conflict(self, tmp_path, fake_host, caplog) -> None:
        assert run_main(tmp_path, "--build-blas", "--build-openblas") == 2
        assert "choose either --build-blas or --build-openblas" in caplog.text
        assert fake_host["detect"] is None
        assert fake_host["harness"] is None
        assert not (tmp_path / "config.mk").exists()

    def test_unknown_variable(self, tmp_path, fake_host, caplog) -> None:
        assert run_main(tmp_path, "CXX=g++") == 1
        assert "unknown configure option CXX, try --help" in caplog.text

    def test_unknown_argument(self, tmp_path, fake_host, caplog) -> None:
        assert run_main(tmp_path, "bogus") == 1
        assert "unknown configure option bogus" in caplog.text

    def test_no_make(self, tmp_path, fake_host, monkeypatch, caplog) -> None:
        def no_make():
            raise HarnessUnavailable("MAKE", "GNU make is required.")

        monkeypatch.setattr(cli, "locate_make", no_make)
        assert run_main(tmp_path) == 3
        assert "GNU make is required." in caplog.text

    def test_aborted_run(self, tmp_path, fake_host, caplog) -> None:
        fake_host["rule"] = lambda probe, variables: probe.name != "stack_local"
        assert run_main(tmp_path) == 3
        assert "stack_local: would not be thread-safe." in caplog.text
        assert not (tmp_path / "config.mk").exists()
        assert fake_host["harness"].cleaned == 1
