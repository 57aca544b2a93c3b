# SPDX-License-Identifier: MIT
"""Tests for qmlconf.configure.tools."""

import subprocess

from qmlconf.configure import tools
from qmlconf.configure.tools import (
    binutils_prefix,
    fortran_library_dirs,
    fortran_link_candidates,
    gfortran_for,
    is_gcc,
    program_dir,
)


class TestNames:
    def test_is_gcc(self):
        assert is_gcc("gcc")
        assert is_gcc("x86_64-w64-mingw32-gcc")
        assert is_gcc("gcc-12")
        assert not is_gcc("clang")
        assert not is_gcc("")

    def test_gfortran_for_plain(self):
        assert gfortran_for("gcc") == "gfortran"

    def test_gfortran_for_prefix_and_suffix(self):
        assert gfortran_for("x86_64-w64-mingw32-gcc") == "x86_64-w64-mingw32-gfortran"
        assert gfortran_for("gcc-12") == "gfortran-12"
        assert gfortran_for("i686-w64-mingw32-gcc-9") == "i686-w64-mingw32-gfortran-9"

    def test_gfortran_for_not_gcc(self):
        assert gfortran_for("clang") == "gfortran"

    def test_binutils_prefix(self):
        assert binutils_prefix("x86_64-w64-mingw32-gcc") == "x86_64-w64-mingw32-"
        assert binutils_prefix("gcc") == ""
        assert binutils_prefix("clang") == ""


class TestProgramDir:
    def test_found(self, monkeypatch):
        monkeypatch.setattr(tools.shutil, "which", lambda name: "/mingw64/bin/gcc")
        assert program_dir("gcc") == "/mingw64/bin"

    def test_not_found(self, monkeypatch):
        monkeypatch.setattr(tools.shutil, "which", lambda name: None)
        assert program_dir("gcc") == "."


class TestFortranLibraryDirs:
    def test_directories(self, monkeypatch):
        calls = []

        def fake_run(cmd, **kwargs):
            calls.append(cmd)
            lib = cmd[-1].split("=", 1)[1]
            return subprocess.CompletedProcess(cmd, 0, f"/usr/lib/gcc/x86_64/12/{lib}\n", "")

        monkeypatch.setattr(tools.subprocess, "run", fake_run)
        dirs = fortran_library_dirs("gfortran", "-m64")
        assert dirs == ["-L/usr/lib/gcc/x86_64/12"]
        assert calls[0] == ["gfortran", "-m64", "-print-file-name=libgfortran.a"]
        assert calls[1] == ["gfortran", "-m64", "-print-file-name=libgfortranbegin.a"]

    def test_unknown_library_is_skipped(self, monkeypatch):
        def fake_run(cmd, **kwargs):
            lib = cmd[-1].split("=", 1)[1]
            out = "/opt/gcc/lib/libgfortran.a" if lib == "libgfortran.a" else lib
            return subprocess.CompletedProcess(cmd, 0, out + "\n", "")

        monkeypatch.setattr(tools.subprocess, "run", fake_run)
        assert fortran_library_dirs("gfortran") == ["-L/opt/gcc/lib"]

    def test_missing_compiler(self):
        assert fortran_library_dirs("no-such-gfortran-12345") == []


class TestFortranLinkCandidates:
    def test_without_dirs(self):
        assert fortran_link_candidates([]) == [
            "",
            "-lgfortran",
            "-lgfortranbegin -lgfortran",
            "-lgfortran -lquadmath",
            "-lgfortranbegin -lgfortran -lquadmath",
        ]

    def test_with_dirs(self):
        candidates = fortran_link_candidates(["-L/a", "-L/b"])
        assert candidates[0] == ""
        assert len(candidates) == 9
        assert candidates[5] == "-L/a -L/b -lgfortran"
        assert candidates[-1] == "-L/a -L/b -lgfortranbegin -lgfortran -lquadmath"
