# SPDX-License-Identifier: MIT
"""Make-based test harness.

Probes are answered by the project's own ``mk/test.mk``: building the
target ``test/<probe>`` with the candidate configuration passed as make
variables either succeeds (exit status 0) or it doesn't. This module
only knows how to drive make; what each fixture builds is up to the
makefile.
"""

from __future__ import annotations

import logging
import subprocess
import tempfile
from pathlib import Path
from typing import Mapping, Sequence

from qmlconf.configure.probe import Probe, ProbeOutcome
from qmlconf.core.errors import HarnessUnavailable

logger = logging.getLogger(__name__)

# Make variables passed to every probe, in command-line order. Composite
# variables are assembled from the fragments resolved by separate steps.
HARNESS_VARIABLES: dict[str, tuple[str, ...]] = {
    "KXARCH": ("KXARCH",),
    "KXVER": ("KXVER",),
    "QHOME": ("QHOME",),
    "CC": ("CC",),
    "FC": ("FC",),
    "CFLAGS": ("CFLAGS", "CFLAGS_FLOAT"),
    "FFLAGS": ("FFLAGS", "FFLAGS_FLOAT", "FFLAGS_THREAD"),
    "FLAGS": ("FLAGS", "FLAGS_BITS", "FLAGS_WINDOWS", "FLAGS_PIC", "FLAGS_PIPE"),
    "XAR": ("XAR",),
    "TOOLPREFIX": ("TOOLPREFIX",),
    "XCC": ("XCC",),
    "CONFIG": ("CONFIG",),
    "LDFLAGS": ("LDFLAGS", "LDFLAGS_LIBGCC"),
    "LD_EXPORT": ("LD_EXPORT",),
    "LD_STATIC": ("LD_STATIC",),
    "LD_SHARED": ("LD_SHARED",),
    "STRIP_FLAGS": ("STRIP_FLAGS",),
    "LIBS_FORTRAN": ("LIBS_FORTRAN",),
    "LIBS_BLAS": ("LIBS_BLAS",),
    "LIBS_LAPACK": ("LIBS_LAPACK",),
    "FETCH": ("FETCH",),
    "SHA256": ("SHA256",),
}

MAKE_CANDIDATES = ("make", "gmake", "gnumake")

# Parses only with GNU make
GNU_MAKEFILE = """\
ifeq "" ""
all:
endif
"""


def join_fragments(variables: Mapping[str, str], names: Sequence[str]) -> str:
    """Join the non-empty values of names with single spaces."""
    return " ".join(v for v in (variables.get(n, "") for n in names) if v)


def make_variables(variables: Mapping[str, str], conftest: str = "") -> dict[str, str]:
    """Build the make command-line variables for one probe.

    Args:
        variables: Snapshot of the configuration (with any trial binding).
        conftest: Fixture variant, passed as CONFTEST.

    Returns:
        Ordered dict of make variable assignments.
    """
    result = {"QML_CONFIGURE": "1", "CONFTEST": conftest}
    for name, fragments in HARNESS_VARIABLES.items():
        result[name] = join_fragments(variables, fragments)
    return result


def find_make(candidates: Sequence[str] = MAKE_CANDIDATES) -> str:
    """Find a GNU make.

    Each candidate is asked to run a makefile that only GNU make
    accepts; the first that succeeds is returned.

    Raises:
        HarnessUnavailable: If no candidate works.
    """
    with tempfile.TemporaryDirectory(prefix="qmlconf-") as tmpdir:
        makefile = Path(tmpdir) / "conftest.mk"
        makefile.write_text(GNU_MAKEFILE)
        for make in candidates:
            cmd = [make, "-f", str(makefile)]
            logger.debug("Running: %s", " ".join(cmd))
            try:
                result = subprocess.run(
                    cmd, cwd=tmpdir, capture_output=True, stdin=subprocess.DEVNULL
                )
            except OSError as e:
                logger.debug("%s: %s", make, e)
                continue
            if result.returncode == 0:
                return make
    raise HarnessUnavailable("MAKE", "GNU make is required.")


class MakeHarness:
    """Harness that builds fixtures from ``mk/test.mk``.

    Each probe runs make inside the probe's scratch directory, so build
    artifacts land there. The source tree is passed as SRCDIR, and
    ``mk/test.mk`` must locate every fixture source through SRCDIR
    rather than the current directory; a makefile that assumes it runs
    from the source tree will fail every probe. clean() runs the
    makefile's ``clean`` target from the source tree, for anything a
    fixture writes there.

    Attributes:
        make: The GNU make command.
        source_dir: Directory containing ``mk/test.mk``.
    """

    def __init__(self, make: str, source_dir: Path | str = ".") -> None:
        self.make = make
        self.source_dir = Path(source_dir).absolute()

    @property
    def makefile(self) -> Path:
        return self.source_dir / "mk" / "test.mk"

    def command(
        self, probe: Probe, variables: Mapping[str, str], workdir: Path
    ) -> list[str]:
        """Return the make command line for a probe."""
        cmd = [
            self.make,
            "-f",
            str(self.makefile),
            "-C",
            str(workdir),
            f"SRCDIR={self.source_dir}",
            f"test/{probe.name}",
        ]
        for name, value in make_variables(variables, probe.conftest).items():
            cmd.append(f"{name}={value}")
        return cmd

    def probe(
        self, probe: Probe, variables: Mapping[str, str], workdir: Path
    ) -> ProbeOutcome:
        cmd = self.command(probe, variables, workdir)
        logger.debug("Running: %s", " ".join(cmd))
        try:
            result = subprocess.run(
                cmd, capture_output=True, stdin=subprocess.DEVNULL
            )
        except OSError as e:
            return ProbeOutcome(succeeded=False, stderr=f"{e}\n".encode())
        return ProbeOutcome(
            succeeded=result.returncode == 0,
            stdout=result.stdout,
            stderr=result.stderr,
            returncode=result.returncode,
        )

    def clean(self) -> None:
        cmd = [self.make, "-f", str(self.makefile), "clean"]
        logger.debug("Running: %s", " ".join(cmd))
        try:
            subprocess.run(
                cmd,
                cwd=self.source_dir,
                stdin=subprocess.DEVNULL,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.DEVNULL,
            )
        except OSError as e:
            logger.debug("clean failed: %s", e)

    def __repr__(self) -> str:
        return f"MakeHarness({self.make!r}, source_dir={str(self.source_dir)!r})"
