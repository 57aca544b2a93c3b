# SPDX-License-Identifier: MIT
"""Writing the resolved configuration.

The main output is ``config.mk``, included by the make build. Composite
variables are assembled from their fragments the same way the test
harness assembles them, so the build sees exactly what was probed.
A JSON dump with provenance can be saved alongside for tooling.
"""

from __future__ import annotations

import json
from pathlib import Path
from typing import TYPE_CHECKING, Any

from qmlconf.configure.harness import join_fragments

if TYPE_CHECKING:
    from qmlconf.core.environment import Environment

# config.mk variables, in file order, with the fragments each is made of
CONFIG_MK_VARIABLES: dict[str, tuple[str, ...]] = {
    "KXARCH": ("KXARCH",),
    "KXVER": ("KXVER",),
    "QHOME": ("QHOME",),
    "CC": ("CC",),
    "FC": ("FC",),
    "CFLAGS": ("CFLAGS", "CFLAGS_FLOAT"),
    "FFLAGS": ("FFLAGS", "FFLAGS_FLOAT", "FFLAGS_THREAD"),
    "FFLAGS_NTHREAD": ("FFLAGS", "FFLAGS_FLOAT"),
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
    "BUILD_BLAS": ("BUILD_BLAS",),
    "BUILD_OPENBLAS": ("BUILD_OPENBLAS",),
    "LIBS_LAPACK": ("LIBS_LAPACK",),
    "BUILD_LAPACK": ("BUILD_LAPACK",),
    "FETCH": ("FETCH",),
    "SHA256": ("SHA256",),
    "PATCH": ("PATCH",),
}

NAME_WIDTH = 15


def config_values(environment: Environment) -> dict[str, str]:
    """The config.mk variables with their assembled values, in order."""
    variables = environment.snapshot()
    return {
        name: join_fragments(variables, fragments)
        for name, fragments in CONFIG_MK_VARIABLES.items()
    }


def render_config_mk(environment: Environment) -> str:
    """Render config.mk.

    Values are written as simply-expanded make variables; every ``$`` is
    doubled so make reads it literally.
    """
    lines = []
    for name, value in config_values(environment).items():
        value = value.replace("$", "$$")
        lines.append(f"{name:<{NAME_WIDTH}}:= {value}".rstrip())
    return "\n".join(lines) + "\n"


def write_config_mk(environment: Environment, path: Path | str = "config.mk") -> Path:
    """Write config.mk and return its path."""
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(render_config_mk(environment))
    return path


def save_json(environment: Environment, path: Path | str) -> Path:
    """Save the resolved variables and their provenance as JSON.

    Args:
        environment: A completed run's environment.
        path: Output file.
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    data = {
        "variables": dict(environment.items()),
        "sources": {name: environment.source(name) for name in environment},
        "config": config_values(environment),
    }
    with open(path, "w") as f:
        json.dump(data, f, indent=2)
        f.write("\n")
    return path


def load_config(path: Path | str) -> dict[str, Any]:
    """Load a configuration saved by save_json().

    Raises:
        FileNotFoundError: If the file doesn't exist.
    """
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Config file not found: {path}")

    with open(path) as f:
        data: dict[str, Any] = json.load(f)
        return data
