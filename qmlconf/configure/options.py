# SPDX-License-Identifier: MIT
"""User-supplied configuration options.

Options come from the command line only: KEY=value variables that
preselect a configuration value, and library directives that choose how
BLAS and LAPACK are provided. A flag variable given with an empty value
is still "given" and is not probed for. An empty compiler (CC, FC, XCC)
is treated as absent.
"""

from __future__ import annotations

from dataclasses import dataclass, fields
from typing import Mapping

from qmlconf.core.errors import ConfigurationConflict, ConfigureError

# Variables that may be set on the command line, in the order they are
# documented by --help.
VARIABLES: dict[str, str] = {
    "KXARCH": "q operating system name (e.g. l64)",
    "KXVER": "q major version (e.g. 3)",
    "QHOME": "q installation directory",
    "CC": "C compiler (e.g. gcc)",
    "FC": "Fortran compiler (e.g. gfortran)",
    "CFLAGS": "C compiler flags (e.g. -O3)",
    "FFLAGS": "Fortran compiler flags",
    "FLAGS": "common flags for both compilers (e.g. -march=native)",
    "TOOLPREFIX": "prefix for ld, ar, ranlib, dlltool, nm (e.g. x86_64-w64-mingw32-)",
    "XCC": "C compiler for build-time programs",
}

# Program variables; an empty value means "not given"
PROGRAM_VARIABLES = ("CC", "FC", "XCC")


@dataclass
class ConfigOptions:
    """Options for one configuration run.

    Variable attributes are None when not given on the command line.

    Attributes:
        build_blas: Build Netlib BLAS from source.
        build_openblas: Build OpenBLAS for this architecture
            ('dynamic' for runtime dispatch). None or empty to not build it.
        with_blas: Use this BLAS library instead of probing for one.
        build_lapack: Build Netlib LAPACK from source.
        with_lapack: Use this LAPACK library instead of probing for one.
    """

    KXARCH: str | None = None
    KXVER: str | None = None
    QHOME: str | None = None
    CC: str | None = None
    FC: str | None = None
    CFLAGS: str | None = None
    FFLAGS: str | None = None
    FLAGS: str | None = None
    TOOLPREFIX: str | None = None
    XCC: str | None = None

    build_blas: bool = False
    build_openblas: str | None = None
    with_blas: str | None = None
    build_lapack: bool = False
    with_lapack: str | None = None

    @classmethod
    def from_variables(
        cls, variables: Mapping[str, str], **directives: object
    ) -> ConfigOptions:
        """Create options from KEY=value variables and library directives.

        Raises:
            ConfigureError: On an unknown variable name.
        """
        unknown = [name for name in variables if name not in VARIABLES]
        if unknown:
            raise ConfigureError(
                f"unknown configure option {unknown[0]}, try --help"
            )
        return cls(**dict(variables), **directives)  # type: ignore[arg-type]

    def given(self) -> dict[str, str]:
        """Variables that were given, in documented order.

        An empty CC, FC or XCC is left out, so it is probed for or
        defaulted like an absent one.
        """
        result: dict[str, str] = {}
        for name in VARIABLES:
            value = getattr(self, name)
            if value is None or (value == "" and name in PROGRAM_VARIABLES):
                continue
            result[name] = value
        return result

    def directives(self) -> list[str]:
        """Names of the library directives in effect."""
        present = {
            "--build-blas": self.build_blas,
            "--build-openblas": bool(self.build_openblas),
            "--with-blas": self.with_blas is not None,
            "--build-lapack": self.build_lapack,
            "--with-lapack": self.with_lapack is not None,
        }
        return [name for name, on in present.items() if on]

    def conflicts(self) -> list[tuple[str, str]]:
        """Pairs of mutually exclusive directives that are both set."""
        present = set(self.directives())
        return [pair for pair in EXCLUSIVE_DIRECTIVES if set(pair) <= present]

    def check_conflicts(self) -> None:
        """Raise ConfigurationConflict for the first conflicting pair."""
        conflicts = self.conflicts()
        if conflicts:
            raise ConfigurationConflict(conflicts[0])

    def __repr__(self) -> str:
        parts = [
            f"{f.name}={getattr(self, f.name)!r}"
            for f in fields(self)
            if getattr(self, f.name) not in (None, False)
        ]
        return f"ConfigOptions({', '.join(parts)})"


# Building either BLAS also builds LAPACK, so an external LAPACK clashes
# with those as well.
EXCLUSIVE_DIRECTIVES: tuple[tuple[str, str], ...] = (
    ("--build-blas", "--build-openblas"),
    ("--build-blas", "--with-blas"),
    ("--build-openblas", "--with-blas"),
    ("--build-lapack", "--with-lapack"),
    ("--build-blas", "--with-lapack"),
    ("--build-openblas", "--with-lapack"),
)
