# SPDX-License-Identifier: MIT
"""Run controller for a configuration pass.

The RunController seeds an Environment from the platform and the user's
options, then executes the configuration plan one step at a time. The
first fatal error ends the run in the ABORTED state; the error is kept
in the RunResult so callers can inspect why, and no environment is
handed out for an aborted run.
"""

from __future__ import annotations

import logging
import sys
from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING, Sequence, TextIO

from qmlconf.configure.probe import ProbeRunner
from qmlconf.configure.resolver import Resolver
from qmlconf.configure.steps import build_plan, check_order
from qmlconf.core.environment import Environment
from qmlconf.core.errors import ConfigureError

if TYPE_CHECKING:
    from qmlconf.configure.options import ConfigOptions
    from qmlconf.configure.platform import Platform
    from qmlconf.configure.probe import Harness, ProbeLog
    from qmlconf.configure.steps import Step

logger = logging.getLogger(__name__)


class RunState(Enum):
    """State of a configuration run. ABORTED and COMPLETED are final."""

    NOT_STARTED = auto()
    PROBING = auto()
    COMPLETED = auto()
    ABORTED = auto()


@dataclass
class RunResult:
    """Outcome of a configuration run.

    Exactly one of environment and error is set.
    """

    environment: Environment | None = None
    error: ConfigureError | None = None

    @property
    def ok(self) -> bool:
        return self.error is None

    @property
    def exit_code(self) -> int:
        return 0 if self.error is None else self.error.exit_code


def seed_environment(options: ConfigOptions, platform: Platform) -> Environment:
    """Create the starting environment.

    Holds the platform values, every variable the user gave, and the
    library build directives.
    """
    env = Environment()
    for name, value in (
        ("KXARCH", platform.kxarch),
        ("KXVER", platform.kxver),
        ("QHOME", platform.qhome),
    ):
        env.commit(name, value, source=platform.sources.get(name, "detected"))

    for name, value in options.given().items():
        if name not in env:
            env.commit(name, value, source="selected")

    if options.build_blas:
        env.commit("BUILD_BLAS", "1", source="selected")
    if options.build_openblas:
        env.commit("BUILD_OPENBLAS", options.build_openblas, source="selected")
    if options.build_lapack:
        env.commit("BUILD_LAPACK", "1", source="selected")
    return env


class RunController:
    """Executes one configuration pass.

    Example:
        controller = RunController(options, platform, MakeHarness("make"))
        result = controller.run()
        if result.ok:
            write_config_mk(result.environment, "config.mk")

    Attributes:
        options: The user's options.
        platform: The target platform.
        steps: The ordered plan.
        state: Current RunState.
        step_index: Index of the step running (or that aborted the run).
    """

    def __init__(
        self,
        options: ConfigOptions,
        platform: Platform,
        harness: Harness,
        *,
        steps: Sequence[Step] | None = None,
        out: TextIO | None = None,
        log: ProbeLog | None = None,
    ) -> None:
        self.options = options
        self.platform = platform
        self.harness = harness
        self.steps = list(steps) if steps is not None else build_plan(options, platform)
        self.out = out if out is not None else sys.stdout
        self.log = log
        self.state = RunState.NOT_STARTED
        self.step_index = -1
        self._environment: Environment | None = None

    @property
    def environment(self) -> Environment | None:
        """The environment of a completed run, None otherwise."""
        if self.state is RunState.COMPLETED:
            return self._environment
        return None

    def run(self) -> RunResult:
        """Run the configuration pass.

        Can be called once per controller.

        Returns:
            RunResult with the final environment, or with the error
            that aborted the run.

        Raises:
            StepOrderError: If the plan reads a variable before it is
                resolved. Nothing is probed.
        """
        if self.state is not RunState.NOT_STARTED:
            raise RuntimeError(f"run() called in state {self.state.name}")

        try:
            self.options.check_conflicts()
            env = seed_environment(self.options, self.platform)
            check_order(self.steps, env)
            self.state = RunState.PROBING
            self._execute(env)
        except ConfigureError as e:
            self.state = RunState.ABORTED
            logger.debug("aborted at step %d: %s", self.step_index, e)
            return RunResult(error=e)
        finally:
            self.harness.clean()

        self._environment = env
        self.state = RunState.COMPLETED
        return RunResult(environment=env)

    def _execute(self, env: Environment) -> None:
        resolver = Resolver(ProbeRunner(self.harness, self.log), env, self.out)
        for index, step in enumerate(self.steps):
            self.step_index = index
            if not step.applies(env):
                logger.debug("skipping %s", step.describe())
                continue
            logger.debug("step %d: %s", index, step.describe())
            step.run(resolver)
