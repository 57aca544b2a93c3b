# SPDX-License-Identifier: MIT
"""Variable resolution by trial and selection.

The Resolver offers the two primitives every configuration step is
built from:

- select(): try an ordered list of candidate values for one variable,
  commit the first one whose probe succeeds.
- gate(): run one probe against the environment as it stands and
  require it to succeed.

Neither primitive retries. A variable whose candidates all fail is
fatal for the run and nothing is committed for it.
"""

from __future__ import annotations

import logging
import sys
from typing import TYPE_CHECKING, Sequence, TextIO

from qmlconf.core.errors import ResolutionExhausted

if TYPE_CHECKING:
    from qmlconf.configure.probe import Probe, ProbeOutcome, ProbeRunner
    from qmlconf.core.environment import Environment

logger = logging.getLogger(__name__)


class Resolver:
    """Resolves configuration variables against a live toolchain.

    Progress is reported one line per call: the label is printed before
    probing starts and the result completes the line.

    Attributes:
        runner: Probe runner used for every trial.
        environment: The accumulator receiving committed values.
        out: Stream for progress lines.
    """

    def __init__(
        self,
        runner: ProbeRunner,
        environment: Environment,
        out: TextIO | None = None,
    ) -> None:
        self.runner = runner
        self.environment = environment
        self.out = out if out is not None else sys.stdout

    def _begin(self, label: str) -> None:
        if label:
            self.out.write(label + " ")
            self.out.flush()

    def _end(self, text: str) -> None:
        self.out.write(text + "\n")
        self.out.flush()

    def select(
        self,
        variable: str,
        candidates: Sequence[str],
        probe: Probe,
        hint: str = "",
        label: str = "",
    ) -> str:
        """Commit the first candidate whose probe succeeds.

        Candidates are tried strictly in order and the search stops at
        the first success. The empty string is an ordinary candidate
        meaning "no flag".

        Args:
            variable: Variable to resolve.
            candidates: Trial values, most preferred first.
            probe: Fixture that verifies a candidate.
            hint: Remediation hint reported if nothing works.
            label: Progress label (e.g., 'selecting strip options...').

        Returns:
            The committed value.

        Raises:
            ResolutionExhausted: If the list is empty or every candidate
                fails. The environment is left unchanged.
        """
        self._begin(label)
        failures: list[ProbeOutcome] = []

        for candidate in candidates:
            outcome = self.runner.run(probe, self.environment, {variable: candidate})
            if outcome.succeeded:
                self.environment.commit(variable, candidate, source="probed")
                self._end(candidate or "none")
                logger.info("%s selected as %r", variable, candidate)
                return candidate
            failures.append(outcome)

        self._end("not found")
        raise ResolutionExhausted(variable, hint, failures)

    def gate(self, probe: Probe, hint: str = "", label: str = "") -> None:
        """Require a probe to succeed with the environment unchanged.

        Raises:
            ResolutionExhausted: If the probe fails; ``variable`` is the
                probe name.
        """
        self._begin(label)
        outcome = self.runner.run(probe, self.environment)
        if outcome.succeeded:
            self._end("yes")
            return
        self._end("no")
        raise ResolutionExhausted(probe.name, hint, [outcome])
