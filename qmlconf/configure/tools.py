# SPDX-License-Identifier: MIT
"""Host tool queries used to build candidate lists.

These helpers look at the host (PATH, compiler search directories) and
derive tool names from the selected C compiler. They never fail: a query
that cannot be answered yields an empty or neutral result.
"""

from __future__ import annotations

import logging
import os
import shlex
import shutil
import subprocess

logger = logging.getLogger(__name__)

FORTRAN_RUNTIME_LIBS = ("gfortran", "gfortranbegin")


def program_dir(program: str) -> str:
    """Directory containing program on PATH, '.' if not found."""
    return os.path.dirname(shutil.which(program) or "") or "."


def is_gcc(cc: str) -> bool:
    """True for gcc and prefixed/suffixed variants of it."""
    return "gcc" in cc


def gfortran_for(cc: str) -> str:
    """The gfortran matching a gcc variant.

    The last 'gcc' in the name is replaced, so prefixes and version
    suffixes carry over: 'x86_64-w64-mingw32-gcc-9' gives
    'x86_64-w64-mingw32-gfortran-9'.
    """
    i = cc.rfind("gcc")
    if i < 0:
        return "gfortran"
    return cc[:i] + "gfortran" + cc[i + 3 :]


def binutils_prefix(cc: str) -> str:
    """The tool prefix of a cross gcc, e.g. 'i686-w64-mingw32-'."""
    i = cc.rfind("gcc")
    return cc[:i] if i >= 0 else ""


def fortran_library_dirs(fc: str, flags: str = "") -> list[str]:
    """Ask the Fortran compiler where its runtime libraries live.

    Needed when gfortran objects are linked by another compiler driver
    (e.g. clang), which does not know gfortran's library directories.

    Args:
        fc: Fortran compiler command.
        flags: Target flags affecting the search (e.g. '-m64').

    Returns:
        ``-L<dir>`` options, without duplicates.
    """
    dirs: list[str] = []
    for lib in FORTRAN_RUNTIME_LIBS:
        cmd = [fc, *shlex.split(flags), f"-print-file-name=lib{lib}.a"]
        try:
            result = subprocess.run(
                cmd,
                stdin=subprocess.DEVNULL,
                capture_output=True,
                text=True,
                timeout=30,
            )
        except (OSError, subprocess.SubprocessError) as e:
            logger.debug("%s: %s", " ".join(cmd), e)
            continue
        # A bare file name means the compiler doesn't know the library
        libdir = os.path.dirname(result.stdout.strip())
        if libdir and libdir != ".":
            option = f"-L{libdir}"
            if option not in dirs:
                dirs.append(option)
    return dirs


def fortran_link_candidates(dirs: list[str]) -> list[str]:
    """Candidate extra libraries for linking Fortran objects from C.

    Starts with nothing at all, then every combination of the gfortran
    runtime, its startup library, libquadmath and the explicit library
    directories, simplest first.
    """
    options = ["-lgfortran"]
    options += [f"-lgfortranbegin {o}" for o in options]
    options += [f"{o} -lquadmath" for o in options]
    if dirs:
        prefix = " ".join(dirs)
        options += [f"{prefix} {o}" for o in options]
    return ["", *options]
