# SPDX-License-Identifier: MIT
"""
qmlconf: toolchain probing and configuration for the qml extension.

qmlconf finds a working build configuration by compiling and linking
small test programs with candidate flags, keeping the first candidate
that works, and writes the result to config.mk for the make build.
"""

from __future__ import annotations

__version__ = "0.4.0"

# Re-export commonly used classes for convenient imports
from qmlconf.configure.controller import RunController, RunResult, RunState  # noqa: E402
from qmlconf.configure.options import ConfigOptions  # noqa: E402
from qmlconf.configure.platform import Platform, detect_platform  # noqa: E402
from qmlconf.configure.probe import Probe, ProbeOutcome, ProbeRunner  # noqa: E402
from qmlconf.configure.resolver import Resolver  # noqa: E402
from qmlconf.core.environment import Environment  # noqa: E402

# Public API exports
__all__ = [
    # Version
    "__version__",
    # Core classes
    "ConfigOptions",
    "Environment",
    "Platform",
    "Probe",
    "ProbeOutcome",
    "ProbeRunner",
    "Resolver",
    "RunController",
    "RunResult",
    "RunState",
    # Platform detection
    "detect_platform",
]
