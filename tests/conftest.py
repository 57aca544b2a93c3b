# SPDX-License-Identifier: MIT
"""Shared fixtures for qmlconf tests."""

from __future__ import annotations

from pathlib import Path
from typing import Callable, Mapping

import pytest

from qmlconf.configure.platform import Platform
from qmlconf.configure.probe import Probe, ProbeOutcome

Rule = Callable[[Probe, Mapping[str, str]], bool]


class ScriptedHarness:
    """Fake harness answering probes from a rule instead of a compiler.

    Records every call so tests can check what was probed, with which
    variables, and that each probe got its own scratch directory.
    """

    def __init__(self, rule: Rule | None = None) -> None:
        self.rule = rule or (lambda probe, variables: True)
        self.calls: list[tuple[Probe, dict[str, str], Path]] = []
        self.cleaned = 0

    def probe(
        self, probe: Probe, variables: Mapping[str, str], workdir: Path
    ) -> ProbeOutcome:
        assert workdir.is_dir()
        (workdir / "conftest.o").write_bytes(b"")
        self.calls.append((probe, dict(variables), workdir))
        ok = self.rule(probe, variables)
        return ProbeOutcome(
            succeeded=ok,
            stdout=f"building {probe.name}\n".encode(),
            stderr=b"" if ok else b"error: fixture failed\n",
            returncode=0 if ok else 2,
        )

    def clean(self) -> None:
        self.cleaned += 1

    def probed(self) -> list[str]:
        return [probe.name for probe, _, _ in self.calls]


@pytest.fixture
def harness() -> ScriptedHarness:
    """A harness on which every probe succeeds."""
    return ScriptedHarness()


@pytest.fixture
def make_harness() -> Callable[[Rule], ScriptedHarness]:
    return ScriptedHarness


@pytest.fixture
def linux64() -> Platform:
    return Platform(
        "l64",
        "3",
        "/opt/q",
        {"KXARCH": "selected", "KXVER": "selected", "QHOME": "selected"},
    )


@pytest.fixture
def win64() -> Platform:
    return Platform(
        "w64",
        "4",
        "c:/q",
        {"KXARCH": "selected", "KXVER": "selected", "QHOME": "default"},
    )


@pytest.fixture(autouse=True)
def no_host_queries(monkeypatch: pytest.MonkeyPatch) -> None:
    """Keep plan steps from asking the real host for tool locations."""
    monkeypatch.setattr("qmlconf.configure.steps.fortran_library_dirs", lambda fc, flags="": [])
    monkeypatch.setattr("qmlconf.configure.steps.program_dir", lambda program: "/usr/bin")
