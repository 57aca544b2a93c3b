# SPDX-License-Identifier: MIT
"""Tests for qmlconf.core.environment."""

import pytest

from qmlconf.core.environment import Environment
from qmlconf.core.errors import VariableAlreadyResolved


class TestEnvironmentBasic:
    def test_creation(self):
        env = Environment()
        assert len(env) == 0
        assert "CC" not in env

    def test_commit(self):
        env = Environment()
        env.commit("CC", "gcc")
        assert env["CC"] == "gcc"
        assert "CC" in env

    def test_empty_value_is_resolved(self):
        env = Environment()
        env.commit("CFLAGS", "")
        assert "CFLAGS" in env
        assert env["CFLAGS"] == ""

    def test_get_missing(self):
        env = Environment()
        assert env.get("CC") == ""
        assert env.get("CC", "cc") == "cc"

    def test_getitem_missing_raises(self):
        env = Environment()
        with pytest.raises(KeyError):
            _ = env["CC"]

    def test_commit_order(self):
        env = Environment()
        env.commit("KXARCH", "l64", source="detected")
        env.commit("CC", "gcc", source="default")
        env.commit("CFLAGS", "-O2")
        assert list(env) == ["KXARCH", "CC", "CFLAGS"]
        assert env.items() == [("KXARCH", "l64"), ("CC", "gcc"), ("CFLAGS", "-O2")]


class TestEnvironmentImmutability:
    def test_second_commit_raises(self):
        env = Environment()
        env.commit("CC", "gcc")
        with pytest.raises(VariableAlreadyResolved) as exc_info:
            env.commit("CC", "clang")
        assert exc_info.value.variable == "CC"
        assert env["CC"] == "gcc"

    def test_second_commit_same_value_raises(self):
        env = Environment()
        env.commit("CFLAGS", "")
        with pytest.raises(VariableAlreadyResolved):
            env.commit("CFLAGS", "")

    def test_unknown_source_raises(self):
        env = Environment()
        with pytest.raises(ValueError):
            env.commit("CC", "gcc", source="guessed")
        assert "CC" not in env


class TestEnvironmentSources:
    def test_default_source_is_probed(self):
        env = Environment()
        env.commit("FLAGS_PIC", "-fPIC")
        assert env.source("FLAGS_PIC") == "probed"

    def test_explicit_source(self):
        env = Environment()
        env.commit("CC", "clang", source="selected")
        assert env.source("CC") == "selected"


class TestEnvironmentSnapshot:
    def test_snapshot_is_a_copy(self):
        env = Environment()
        env.commit("CC", "gcc")
        snap = env.snapshot()
        snap["CC"] = "clang"
        assert env["CC"] == "gcc"

    def test_snapshot_binding_not_committed(self):
        env = Environment()
        env.commit("CC", "gcc")
        snap = env.snapshot(CFLAGS="-O2")
        assert snap == {"CC": "gcc", "CFLAGS": "-O2"}
        assert "CFLAGS" not in env

    def test_snapshot_binding_overrides(self):
        env = Environment()
        env.commit("CC", "gcc")
        assert env.snapshot(CC="clang")["CC"] == "clang"
        assert env["CC"] == "gcc"


class TestEnvironmentClone:
    def test_clone_is_independent(self):
        env = Environment()
        env.commit("CC", "gcc", source="default")
        clone = env.clone()
        clone.commit("FC", "gfortran")
        assert "FC" not in env
        assert clone.source("CC") == "default"

    def test_equality(self):
        a = Environment()
        b = Environment()
        a.commit("CC", "gcc")
        b.commit("CC", "gcc")
        assert a == b
        assert a == a.clone()
        b.commit("FC", "gfortran")
        assert a != b

    def test_repr(self):
        env = Environment()
        env.commit("CC", "gcc")
        assert "CC" in repr(env)
