# SPDX-License-Identifier: MIT
"""Probes and the probe runner.

A Probe names a test fixture known to the test harness. The ProbeRunner
runs one probe against a snapshot of the environment, with at most one
trial binding layered on top, and reports a ProbeOutcome. Every probe
gets a fresh scratch directory that is removed when the probe finishes,
so artifacts of one probe never leak into the next.
"""

from __future__ import annotations

import logging
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Mapping, Protocol, runtime_checkable

if TYPE_CHECKING:
    from qmlconf.core.environment import Environment

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class Probe:
    """Descriptor of a harness test fixture.

    Attributes:
        name: Fixture name (e.g., 'c_link' builds ``test/c_link``).
        conftest: Fixture variant passed to the harness as CONFTEST
            (e.g., 'shared', 'blas'). Empty for the plain fixtures.
    """

    name: str
    conftest: str = ""

    def __str__(self) -> str:
        if self.conftest:
            return f"{self.name} ({self.conftest})"
        return self.name


@dataclass(frozen=True)
class ProbeOutcome:
    """Result of one probe.

    Attributes:
        succeeded: True only if the harness exited with status 0.
        stdout: Captured standard output, for diagnostics only.
        stderr: Captured standard error, for diagnostics only.
        returncode: Harness exit status, None if it never ran.
    """

    succeeded: bool
    stdout: bytes = b""
    stderr: bytes = b""
    returncode: int | None = None


@runtime_checkable
class Harness(Protocol):
    """Protocol for test harnesses.

    A harness builds (and possibly runs) a named fixture using the
    given configuration variables and reports whether that worked.
    """

    def probe(
        self, probe: Probe, variables: Mapping[str, str], workdir: Path
    ) -> ProbeOutcome:
        """Build the fixture for probe inside workdir."""
        ...

    def clean(self) -> None:
        """Remove anything the harness left outside of probe workdirs."""
        ...


class ProbeLog:
    """Append-only log of every probe and its captured output.

    The log is the place to look when a configuration run fails:
    each entry has a ``testing <probe> with VAR='value':`` header
    followed by the harness output.
    """

    def __init__(self, path: Path | str) -> None:
        self.path = Path(path)
        self.path.write_text("")

    def record(self, header: str, outcome: ProbeOutcome) -> None:
        with open(self.path, "ab") as f:
            f.write(b"\n" + header.encode() + b"\n")
            f.write(outcome.stdout)
            f.write(outcome.stderr)
            status = "ok" if outcome.succeeded else f"failed ({outcome.returncode})"
            f.write(f"-> {status}\n".encode())


class ProbeRunner:
    """Runs probes through a harness.

    The runner never raises for a failing or broken probe; whatever
    goes wrong inside the harness is reported as a failed outcome.

    Attributes:
        harness: The test harness to invoke.
        log: Optional probe log receiving every outcome.
    """

    def __init__(self, harness: Harness, log: ProbeLog | None = None) -> None:
        self.harness = harness
        self.log = log

    def run(
        self,
        probe: Probe,
        environment: Environment,
        binding: Mapping[str, str] | None = None,
    ) -> ProbeOutcome:
        """Run a probe against the environment plus a trial binding.

        Args:
            probe: The fixture to build.
            environment: Variables resolved so far.
            binding: Trial value(s) for this probe only. Not committed.

        Returns:
            The outcome; ``succeeded`` is True only for exit status 0.
        """
        binding = dict(binding or {})
        variables = environment.snapshot(**binding)
        header = _header(probe, binding)
        logger.debug("%s", header)

        with tempfile.TemporaryDirectory(prefix="qmlconf-") as tmpdir:
            try:
                outcome = self.harness.probe(probe, variables, Path(tmpdir))
            except Exception as e:
                logger.debug("harness failed for %s: %s", probe, e)
                outcome = ProbeOutcome(
                    succeeded=False, stderr=f"harness error: {e}\n".encode()
                )

        if outcome.succeeded and outcome.returncode not in (None, 0):
            outcome = ProbeOutcome(
                False, outcome.stdout, outcome.stderr, outcome.returncode
            )

        if self.log is not None:
            self.log.record(header, outcome)
        return outcome


def _header(probe: Probe, binding: Mapping[str, str]) -> str:
    if not binding:
        return f"testing {probe.name}:"
    trial = " ".join(f"{k}='{v}'" for k, v in binding.items())
    return f"testing {probe.name} with {trial}:"
