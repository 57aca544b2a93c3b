# SPDX-License-Identifier: MIT
"""Custom exceptions for qmlconf.

All qmlconf exceptions inherit from QmlconfError. Fatal configure-phase
errors inherit from ConfigureError and carry the process exit code used
when a run aborts with them.
"""

from __future__ import annotations

from typing import TYPE_CHECKING, Sequence

if TYPE_CHECKING:
    from qmlconf.configure.probe import ProbeOutcome


class QmlconfError(Exception):
    """Base class for all qmlconf exceptions.

    Attributes:
        message: The error message.
    """

    def __init__(self, message: str) -> None:
        self.message = message
        super().__init__(message)


class ConfigureError(QmlconfError):
    """Fatal error during the configure phase.

    Raised for an unusable platform, invalid options, or any failure
    that ends the configuration run.

    Attributes:
        exit_code: Process exit status for a run aborted by this error.
    """

    exit_code = 1


class ConfigurationConflict(ConfigureError):
    """Mutually exclusive directives were supplied together.

    Attributes:
        directives: The conflicting directive names, e.g.
            ``("--build-blas", "--build-openblas")``.
    """

    exit_code = 2

    def __init__(self, directives: Sequence[str], message: str | None = None) -> None:
        self.directives = tuple(directives)
        if message is None:
            message = "choose either " + " or ".join(self.directives)
        super().__init__(message)


class ResolutionExhausted(ConfigureError):
    """Every candidate for a variable failed its probe.

    Gates raise this with the probe name in place of a variable name.

    Attributes:
        variable: The variable (or gate) that could not be satisfied.
        hint: Remediation hint for the user, possibly empty.
        outcomes: Outcomes of the failed probes, in the order tried.
    """

    exit_code = 3

    def __init__(
        self,
        variable: str,
        hint: str = "",
        outcomes: Sequence[ProbeOutcome] = (),
    ) -> None:
        self.variable = variable
        self.hint = hint
        self.outcomes = tuple(outcomes)
        if hint:
            message = f"{variable}: {hint}"
        else:
            message = f"{variable}: no working value found"
        super().__init__(message)


class HarnessUnavailable(ResolutionExhausted):
    """The test harness itself cannot be run (e.g. no GNU make)."""


class VariableAlreadyResolved(QmlconfError):
    """A resolved variable was committed a second time.

    Attributes:
        variable: The variable name.
    """

    def __init__(self, variable: str, old: str, new: str) -> None:
        self.variable = variable
        super().__init__(
            f"variable {variable} already resolved as {old!r}, refusing {new!r}"
        )


class StepOrderError(QmlconfError):
    """A step reads a variable that no earlier step resolves.

    Attributes:
        step: Description of the offending step.
        missing: The unresolved variable names it reads.
    """

    def __init__(self, step: str, missing: Sequence[str]) -> None:
        self.step = step
        self.missing = tuple(missing)
        super().__init__(
            f"step {step} reads unresolved variable(s): {', '.join(self.missing)}"
        )
