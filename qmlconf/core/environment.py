# SPDX-License-Identifier: MIT
"""Environment accumulator for configuration variables.

An Environment holds every configuration variable resolved so far in a
run, in the order they were resolved. Variables are committed exactly
once and never change afterwards. Probes never see the Environment
itself, only snapshots of it.
"""

from __future__ import annotations

from typing import Iterator

from qmlconf.core.errors import VariableAlreadyResolved

# Provenance of a committed value
SOURCES = ("selected", "detected", "default", "probed", "derived")


class Environment:
    """Append-only mapping of resolved configuration variables.

    Example:
        env = Environment()
        env.commit("CC", "gcc", source="default")
        env["CC"]                    # 'gcc'
        env.snapshot(CFLAGS="-O2")   # {'CC': 'gcc', 'CFLAGS': '-O2'}
        "CFLAGS" in env              # False, the binding was not kept
    """

    __slots__ = ("_vars", "_sources")

    def __init__(self) -> None:
        self._vars: dict[str, str] = {}
        self._sources: dict[str, str] = {}

    def commit(self, name: str, value: str, source: str = "probed") -> None:
        """Bind a variable permanently.

        Args:
            name: Variable name (e.g., 'CFLAGS').
            value: Resolved value; the empty string is a valid value.
            source: Where the value came from, one of SOURCES.

        Raises:
            VariableAlreadyResolved: If the variable was already committed.
            ValueError: If source is not a known provenance.
        """
        if source not in SOURCES:
            raise ValueError(f"unknown variable source: {source!r}")
        if name in self._vars:
            raise VariableAlreadyResolved(name, self._vars[name], value)
        self._vars[name] = value
        self._sources[name] = source

    def source(self, name: str) -> str:
        """Return the provenance of a committed variable."""
        return self._sources[name]

    def get(self, name: str, default: str = "") -> str:
        """Get a variable, or default if it is not resolved."""
        return self._vars.get(name, default)

    def snapshot(self, **binding: str) -> dict[str, str]:
        """Return a copy of all committed variables.

        Keyword arguments are layered on top of the copy as trial values.
        They are not committed.
        """
        data = dict(self._vars)
        data.update(binding)
        return data

    def items(self) -> list[tuple[str, str]]:
        """Return (name, value) pairs in commit order."""
        return list(self._vars.items())

    def clone(self) -> Environment:
        """Create an independent copy of this environment."""
        new_env = Environment()
        new_env._vars = dict(self._vars)
        new_env._sources = dict(self._sources)
        return new_env

    def __getitem__(self, name: str) -> str:
        return self._vars[name]

    def __contains__(self, name: object) -> bool:
        return name in self._vars

    def __iter__(self) -> Iterator[str]:
        return iter(self._vars)

    def __len__(self) -> int:
        return len(self._vars)

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Environment):
            return NotImplemented
        return self._vars == other._vars and self._sources == other._sources

    def __repr__(self) -> str:
        return f"Environment(vars=[{', '.join(self._vars)}])"
