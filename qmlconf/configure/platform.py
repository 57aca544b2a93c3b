# SPDX-License-Identifier: MIT
"""Platform detection for the q target.

The target platform is described by three values: the q architecture
(KXARCH, e.g. 'l64'), the q major version (KXVER) and the q installation
directory (QHOME). Each is taken from the user if given, otherwise asked
from the installed q, otherwise derived from the host.
"""

from __future__ import annotations

import logging
import os
import platform
import subprocess
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import TextIO

from qmlconf.core.errors import ConfigureError

logger = logging.getLogger(__name__)

VALID_ARCHES = ("w32", "w64", "l32", "l64", "m32", "m64", "s32", "s64", "v32", "v64")
VALID_VERSIONS = ("2", "3", "4")
DEFAULT_VERSION = "3"


@dataclass(frozen=True)
class Platform:
    """The q target platform.

    Attributes:
        kxarch: q architecture, one of VALID_ARCHES.
        kxver: q major version, one of VALID_VERSIONS.
        qhome: q installation directory, possibly empty.
        sources: How each value was obtained ('selected',
            'detected', 'default'), keyed by KXARCH/KXVER/QHOME.
    """

    kxarch: str
    kxver: str
    qhome: str
    sources: dict[str, str] = field(default_factory=dict, compare=False)

    @property
    def is_windows(self) -> bool:
        return self.kxarch.startswith("w")

    @property
    def is_macos(self) -> bool:
        return self.kxarch.startswith("m")

    @property
    def bits(self) -> str:
        """Word size, '32' or '64'."""
        return self.kxarch[1:]


def query_q(expression: str, q: str = "q") -> str:
    """Ask the installed q to evaluate a one-line script.

    Args:
        expression: q code that prints its answer, e.g. '-1 string .z.o;'.
        q: The q executable.

    Returns:
        The last line q printed, or '' if q is missing or fails.
    """
    with tempfile.TemporaryDirectory(prefix="qmlconf-") as tmpdir:
        script = Path(tmpdir) / "conftest.q"
        script.write_text(expression + "\n")
        try:
            result = subprocess.run(
                [q, str(script)],
                cwd=tmpdir,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("q query %r failed: %s", expression, e)
            return ""
    lines = result.stdout.splitlines()
    if not lines:
        return ""
    return lines[-1].replace("\r", "").strip()


def _quiet(cmd: list[str]) -> str:
    try:
        return subprocess.run(
            cmd,
            stdin=subprocess.DEVNULL,
            capture_output=True,
            text=True,
            timeout=10,
        ).stdout.strip()
    except (OSError, subprocess.SubprocessError):
        return ""


def host_kxarch() -> str:
    """Derive the q architecture from the host, '' if unknown."""
    system = platform.system()
    machine = platform.machine()

    if system.startswith(("MINGW", "MSYS", "CYGWIN")) or system == "Windows":
        arches = (
            os.environ.get("PROCESSOR_ARCHITECTURE", ""),
            os.environ.get("PROCESSOR_ARCHITEW6432", ""),
        )
        return "w64" if "AMD64" in arches else "w32"
    if system == "Linux":
        return "l64" if machine == "x86_64" else "l32"
    if system == "Darwin":
        return "m64" if machine == "x86_64" else "m32"
    if system == "SunOS":
        isa = _quiet(["isainfo"])
        bits = _quiet(["isainfo", "-b"])
        if bits not in ("32", "64"):
            return ""
        return ("v" if "i386" in isa else "s") + bits
    return ""


def _report(out: TextIO, label: str, value: str, how: str) -> None:
    out.write(f"{label}... {value} ({how})\n")


def detect_platform(
    kxarch: str | None = None,
    kxver: str | None = None,
    qhome: str | None = None,
    *,
    q: str = "q",
    out: TextIO | None = None,
) -> Platform:
    """Determine the target platform.

    Arguments that are not None were chosen by the user and win. An
    empty qhome is a valid choice meaning "no q installation".

    Args:
        kxarch: Selected q architecture.
        kxver: Selected q version.
        qhome: Selected q installation directory.
        q: The q executable used for detection.
        out: Stream for progress lines (default: stdout).

    Returns:
        The detected Platform.

    Raises:
        ConfigureError: If the architecture or version is unknown.
    """
    out = out if out is not None else sys.stdout
    sources: dict[str, str] = {}

    if kxarch:
        _report(out, "q operating system", kxarch, "selected")
        sources["KXARCH"] = "selected"
    else:
        kxarch = query_q("-1 string .z.o;", q)
        if kxarch:
            _report(out, "q operating system", kxarch, "detected from q")
        else:
            kxarch = host_kxarch()
            if kxarch:
                _report(out, "q operating system", kxarch, "detected from host")
            else:
                out.write("q operating system... unknown\n")
        sources["KXARCH"] = "detected"
    if kxarch not in VALID_ARCHES:
        raise ConfigureError("unknown q operating system.")

    if kxver:
        _report(out, "q version", kxver, "selected")
        sources["KXVER"] = "selected"
    else:
        kxver = query_q("-1 string floor .Q.k;", q)
        if kxver:
            _report(out, "q version", kxver, "detected from q")
            sources["KXVER"] = "detected"
        else:
            kxver = DEFAULT_VERSION
            _report(out, "q version", kxver, "default")
            sources["KXVER"] = "default"
    if kxver not in VALID_VERSIONS:
        raise ConfigureError("unknown q version.")

    if qhome is not None:
        _report(out, "q home", qhome or "none", "selected")
        sources["QHOME"] = "selected"
    else:
        # q may be a script that sets QHOME
        qhome = query_q("-1 getenv`QHOME;", q)
        if qhome:
            _report(out, "q home", qhome, "detected from q")
            sources["QHOME"] = "detected"
        else:
            if kxarch.startswith("w"):
                qhome = "c:/q"
            else:
                qhome = str(Path.home() / "q")
            _report(out, "q home", qhome, "default")
            sources["QHOME"] = "default"

    return Platform(kxarch=kxarch, kxver=kxver, qhome=qhome, sources=sources)
