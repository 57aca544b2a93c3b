# SPDX-License-Identifier: MIT
"""Configuration steps and the configuration plan.

A configuration run is a fixed, ordered list of steps. Each step either
resolves one variable (Select, Assign), requires a capability (Gate) or
just reports progress (Announce). Steps declare the variables their
probes depend on in ``reads``; check_order() verifies that every read
variable is resolved by an earlier step, so reordering mistakes are
caught before anything is probed.

Decisions that depend only on the platform and the options are taken
when the plan is built. Decisions that depend on probe results use a
``when`` condition evaluated just before the step runs.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import TYPE_CHECKING, Callable, Iterable, Sequence, Union

from qmlconf.configure.probe import Probe
from qmlconf.configure.tools import (
    binutils_prefix,
    fortran_library_dirs,
    fortran_link_candidates,
    gfortran_for,
    is_gcc,
    program_dir,
)
from qmlconf.core.errors import StepOrderError

if TYPE_CHECKING:
    from qmlconf.configure.options import ConfigOptions
    from qmlconf.configure.platform import Platform
    from qmlconf.configure.resolver import Resolver
    from qmlconf.core.environment import Environment

Condition = Callable[["Environment"], bool]
Candidates = Union[Sequence[str], Callable[["Environment"], Sequence[str]]]
Value = Union[str, Callable[["Environment"], str]]


class Step(ABC):
    """A single step of a configuration plan."""

    reads: tuple[str, ...]
    when: Condition | None

    @property
    def writes(self) -> tuple[str, ...]:
        """Variables this step commits."""
        return ()

    def applies(self, env: Environment) -> bool:
        """Whether the step runs, given the variables resolved so far."""
        return self.when is None or self.when(env)

    @abstractmethod
    def run(self, resolver: Resolver) -> None:
        """Execute the step, committing into resolver.environment."""
        ...

    @abstractmethod
    def describe(self) -> str:
        """Short name for diagnostics."""
        ...


@dataclass
class Select(Step):
    """Resolve a variable to the first candidate that passes its probe."""

    variable: str
    candidates: Candidates
    probe: Probe
    hint: str = ""
    label: str = ""
    reads: tuple[str, ...] = ()
    when: Condition | None = None

    @property
    def writes(self) -> tuple[str, ...]:
        return (self.variable,)

    def run(self, resolver: Resolver) -> None:
        candidates = self.candidates
        if callable(candidates):
            candidates = candidates(resolver.environment)
        resolver.select(self.variable, candidates, self.probe, self.hint, self.label)

    def describe(self) -> str:
        return f"select {self.variable} via {self.probe}"


@dataclass
class Gate(Step):
    """Require a probe to pass with the environment as it stands."""

    probe: Probe
    hint: str = ""
    label: str = ""
    reads: tuple[str, ...] = ()
    when: Condition | None = None

    def run(self, resolver: Resolver) -> None:
        resolver.gate(self.probe, self.hint, self.label)

    def describe(self) -> str:
        return f"gate {self.probe}"


@dataclass
class Assign(Step):
    """Commit a value without probing.

    If a label is given, one progress line ``label text (source)`` is
    printed, where text is ``display`` formatted with the value.
    """

    variable: str
    value: Value
    label: str = ""
    source: str = "default"
    display: str = "{value}"
    reads: tuple[str, ...] = ()
    when: Condition | None = None

    @property
    def writes(self) -> tuple[str, ...]:
        return (self.variable,)

    def run(self, resolver: Resolver) -> None:
        value = self.value
        if callable(value):
            value = value(resolver.environment)
        resolver.environment.commit(self.variable, value, source=self.source)
        if self.label:
            shown = self.display.format(value=value)
            resolver.out.write(f"{self.label} {shown} ({self.source})\n")

    def describe(self) -> str:
        return f"assign {self.variable}"


@dataclass
class Announce(Step):
    """Print a progress line."""

    text: Value
    reads: tuple[str, ...] = ()
    when: Condition | None = None

    def run(self, resolver: Resolver) -> None:
        text = self.text
        if callable(text):
            text = text(resolver.environment)
        resolver.out.write(text + "\n")

    def describe(self) -> str:
        return "announce"


def check_order(steps: Iterable[Step], seeded: Iterable[str]) -> None:
    """Verify that each step reads only variables resolved before it.

    Conditional steps count as resolving their variables; a variable a
    skipped step would have resolved reads as empty.

    Args:
        steps: The plan, in execution order.
        seeded: Variables resolved before the first step.

    Raises:
        StepOrderError: For the first step reading an unresolved variable.
    """
    resolved = set(seeded)
    for index, step in enumerate(steps):
        missing = [name for name in step.reads if name not in resolved]
        if missing:
            raise StepOrderError(f"#{index} ({step.describe()})", missing)
        resolved.update(step.writes)


def unique(values: Iterable[str]) -> list[str]:
    """Drop repeated candidates, keeping the first occurrence."""
    seen: set[str] = set()
    result = []
    for value in values:
        if value not in seen:
            seen.add(value)
            result.append(value)
    return result


def cc_selected(env: Environment) -> str:
    """The C compiler if chosen by the user or by probing, else ''.

    A defaulted compiler says nothing about the toolchain flavour, so
    decisions based on the compiler name only use a chosen one.
    """
    if "CC" in env and env.source("CC") in ("selected", "probed"):
        return env["CC"]
    return ""


def mingw_compilers(platform: Platform) -> list[str]:
    """Native Windows (MinGW) gcc names for the target word size."""
    # Since gcc 4, a separate MinGW compiler produces native binaries
    if platform.bits == "32":
        return ["i686-pc-mingw32-gcc", "i686-w64-mingw32-gcc"]
    return ["x86_64-w64-mingw32-gcc"]


def compiler_steps(options: ConfigOptions, platform: Platform) -> list[Step]:
    """C, build-time C and Fortran compilers and their flags."""
    steps: list[Step] = []
    given = options.given()
    windows = platform.is_windows

    if "CC" in given:
        steps.append(Announce(lambda env: f"looking for C compiler... {env['CC']} (selected)"))
    elif windows:
        steps.append(
            Select(
                "CC",
                [*mingw_compilers(platform), "gcc"],
                Probe("c_version"),
                "a compiler is required",
                "looking for C compiler...",
                reads=("KXARCH",),
            )
        )
    else:
        steps.append(Assign("CC", "gcc", "looking for C compiler..."))

    steps += [
        Gate(
            Probe("c_compile"),
            "a working compiler is required.",
            "checking if C compiler compiles...",
            reads=("CC",),
        ),
        Gate(
            Probe("c_link"),
            "a working compiler is required.",
            "checking if C compiler links...",
            reads=("CC",),
        ),
    ]
    if "CFLAGS" not in given:
        steps.append(
            Select(
                "CFLAGS",
                ["-O2 -fno-strict-aliasing", ""],
                Probe("c_link"),
                label="selecting C optimization options...",
                reads=("CC",),
            )
        )
    steps.append(
        Select(
            "CFLAGS_FLOAT",
            ["-ffloat-store"],
            Probe("c_link"),
            "-ffloat-store is assumed by some libraries.",
            "selecting C floating-point options...",
            reads=("CC", "CFLAGS"),
        )
    )

    xcc_label = "looking for C compiler for build-time programs..."
    if "XCC" in given:
        steps.append(Announce(lambda env: f"{xcc_label} {env['XCC']} (selected)"))
    elif windows:
        # Needs to be POSIX-compliant, so prefer Cygwin gcc
        steps.append(
            Select(
                "XCC",
                lambda env: unique(["gcc", *mingw_compilers(platform), env["CC"]]),
                Probe("xc_version"),
                "a compiler is required.",
                xcc_label,
                reads=("CC",),
            )
        )
    else:
        steps.append(Assign("XCC", lambda env: env["CC"], xcc_label, reads=("CC",)))

    for probe, what in (
        ("xc_compile", "compiles"),
        ("xc_link", "links"),
        ("xc_run", "output runs"),
    ):
        steps.append(
            Gate(
                Probe(probe),
                "a working compiler is required.",
                f"checking if build-time C compiler {what}...",
                reads=("XCC",),
            )
        )

    fc_label = "looking for Fortran compiler..."
    if "FC" in given:
        steps.append(Announce(lambda env: f"{fc_label} {env['FC']} (selected)"))
    else:
        steps += [
            Select(
                "FC",
                lambda env: unique([gfortran_for(cc_selected(env)), "gfortran"]),
                Probe("f_version"),
                "a compiler is required.",
                fc_label,
                reads=("CC",),
                when=lambda env: is_gcc(cc_selected(env)),
            ),
            Assign(
                "FC",
                "gfortran",
                fc_label,
                reads=("CC",),
                when=lambda env: not is_gcc(cc_selected(env)),
            ),
        ]

    steps += [
        Gate(
            Probe("f_compile"),
            "a working compiler is required.",
            "checking if Fortran compiler compiles...",
            reads=("FC",),
        ),
        Gate(
            Probe("f_link"),
            "a working compiler is required.",
            "checking if Fortran compiler links...",
            reads=("FC",),
        ),
    ]
    if "FFLAGS" not in given:
        steps.append(
            Select(
                "FFLAGS",
                ["-O2", ""],
                Probe("f_link"),
                label="selecting Fortran optimization options...",
                reads=("FC",),
            )
        )
    steps += [
        Select(
            "FFLAGS_FLOAT",
            ["-ffloat-store"],
            Probe("f_link"),
            "-ffloat-store is assumed by some libraries.",
            "selecting Fortran floating-point options...",
            reads=("FC", "FFLAGS"),
        ),
        Select(
            "FFLAGS_THREAD",
            ["-frecursive", "-fmax-stack-var-size=2000000000"],
            Probe("f_link"),
            "-frecursive is necessary for thread-safety.",
            "selecting Fortran thread safety options...",
            reads=("FC", "FFLAGS", "FFLAGS_FLOAT"),
        ),
    ]
    return steps


def binutils_steps(options: ConfigOptions, platform: Platform) -> list[Step]:
    """Locate ar and friends; nm is needed by later link checks."""
    label = "looking for binutils..."
    if "TOOLPREFIX" in options.given():
        return [Announce(lambda env: f"{label} {env['TOOLPREFIX']}ar (selected)")]

    def cross_gcc(env: Environment) -> bool:
        return "-gcc" in cc_selected(env)

    def xar_candidates(env: Environment) -> list[str]:
        # Cygwin installs x86_64-w64-mingw32-ar but plain MinGW-w64 doesn't,
        # though it has an appropriate ar next to the compiler.
        cc = cc_selected(env)
        return unique([f"{binutils_prefix(cc)}ar", f"{program_dir(cc)}/ar", "ar"])

    def prefix_of(env: Environment) -> str:
        xar = env["XAR"]
        return xar[: -len("ar")] if xar.endswith("ar") else xar

    return [
        Select(
            "XAR",
            xar_candidates,
            Probe("xar_version"),
            "binutils are required.",
            label,
            reads=("CC",),
            when=cross_gcc,
        ),
        Assign(
            "TOOLPREFIX",
            prefix_of,
            source="derived",
            reads=("XAR",),
            when=cross_gcc,
        ),
        Assign(
            "TOOLPREFIX",
            "",
            label,
            display="{value}ar",
            when=lambda env: not cross_gcc(env),
        ),
    ]


def target_steps(options: ConfigOptions, platform: Platform) -> list[Step]:
    """Word size, Windows and miscellaneous compiler options."""
    bits = platform.bits
    steps: list[Step] = [
        Select(
            "FLAGS_BITS",
            [f"-m{bits}"],
            Probe("c_and_f_link"),
            f"-m{bits} is necessary, try a different compiler.",
            "selecting target options...",
            reads=("KXARCH", "CC", "FC", "CFLAGS", "FFLAGS"),
        )
    ]
    if platform.is_windows:
        # Cygwin binaries (using cygwin1.dll) don't work; need native binaries
        steps.append(
            Select(
                "FLAGS_WINDOWS",
                ["", "-mno-cygwin"],
                Probe("no_cygwin"),
                "-mno-cygwin or MinGW compiler required.",
                "selecting Windows options...",
                reads=("CC", "FLAGS_BITS"),
            )
        )
    steps.append(
        Select(
            "FLAGS_PIPE",
            ["-pipe", ""],
            Probe("c_and_f_link"),
            label="selecting additional compiler options...",
            reads=("CC", "FC", "FLAGS_BITS"),
        )
    )
    if platform.is_windows:
        steps.append(
            Gate(
                Probe("dlltool"),
                "a working dlltool is required",
                "checking if dlltool works...",
                reads=("TOOLPREFIX",),
            )
        )
    return steps


def link_steps(options: ConfigOptions, platform: Platform) -> list[Step]:
    """Shared library, symbol export, strip and static link options."""
    shared = "shared"
    # May compile without -fPIC but then hang when calling back into q,
    # and -shared may be impossible without it, so prefer -fPIC.
    steps: list[Step] = [
        Select(
            "FLAGS_PIC",
            ["-fPIC", ""],
            Probe("c_compile", shared),
            "couldn't create shared library.",
            "selecting shared library options...",
            reads=("CC", "FLAGS_BITS"),
        ),
        Select(
            "LD_SHARED",
            ["-bundle -undefined dynamic_lookup"] if platform.is_macos else ["-shared"],
            Probe("shared_link", shared),
            "couldn't create a shared library.",
            "selecting how to link a shared library...",
            reads=("CC", "FLAGS_PIC"),
        ),
    ]
    if platform.is_windows:
        # Link libgcc statically so the DLL works without MinGW on PATH
        steps.append(
            Select(
                "LDFLAGS_LIBGCC",
                ["-static-libgcc", ""],
                Probe("shared_link", shared),
                "couldn't create Windows DLL.",
                "selecting Windows DLL options...",
                reads=("CC", "LD_SHARED"),
            )
        )
    steps += [
        Select(
            "LD_EXPORT",
            ["-Wl,--version-script", "-Wl,-M", "-exported_symbols_list"],
            Probe("ld_export", shared),
            "couldn't export specific symbols.",
            "selecting how to export specific symbols...",
            reads=("CC", "LD_SHARED"),
        ),
        Select(
            "STRIP_FLAGS",
            ["-s", "", "-S"],
            Probe("strip", shared),
            "couldn't strip shared library.",
            "selecting strip options...",
            reads=("CC", "LD_SHARED", "LD_EXPORT"),
        ),
        # Requires -fPIC; avoids depending on MinGW libgfortran.dll
        Select(
            "LD_STATIC",
            ["-Wl,-Bstatic", ""],
            Probe("ld_static", "libm"),
            label="selecting how to link a specific library statically...",
            reads=("CC", "FLAGS_PIC"),
        ),
    ]
    return steps


def fortran_steps(options: ConfigOptions, platform: Platform) -> list[Step]:
    """Linking Fortran objects with the C compiler, thread safety."""

    def candidates(env: Environment) -> list[str]:
        # clang needs gfortran's library directories spelled out
        dirs = fortran_library_dirs(env["FC"], env.get("FLAGS_BITS"))
        return unique(fortran_link_candidates(dirs))

    return [
        Select(
            "LIBS_FORTRAN",
            candidates,
            Probe("f_compile_c_link", "builtin"),
            "couldn't link C and Fortran code together.",
            "selecting additional libraries for Fortran...",
            reads=("CC", "FC", "FLAGS_BITS", "LD_STATIC"),
        ),
        Gate(
            Probe("stack_local", "stack_local"),
            "would not be thread-safe.",
            "checking if Fortran locals are placed on stack...",
            reads=("FC", "FFLAGS_THREAD"),
        ),
    ]


def library_steps(options: ConfigOptions, platform: Platform) -> list[Step]:
    """BLAS and LAPACK: build from source, check a given one, or find one."""
    steps: list[Step] = []
    blas = Probe("c_link", "blas")
    builds_blas = options.build_blas or bool(options.build_openblas)

    if options.build_blas:
        steps.append(Announce("will build BLAS"))
    elif options.build_openblas:
        steps.append(
            Announce(f"will build OpenBLAS for {options.build_openblas} architecture")
        )
    elif options.with_blas is not None:
        steps += [
            Assign("LIBS_BLAS", options.with_blas, source="selected"),
            Gate(
                blas,
                "BLAS is required, use --build-blas or different --with-blas",
                "checking if BLAS works...",
                reads=("CC", "FC", "LIBS_FORTRAN", "LIBS_BLAS"),
            ),
        ]
    else:
        steps.append(
            Select(
                "LIBS_BLAS",
                ["", "-lblas"],
                blas,
                "BLAS is required, use --build-blas or --with-blas",
                "looking for BLAS...",
                reads=("CC", "FC", "LIBS_FORTRAN"),
            )
        )

    if builds_blas and not options.build_lapack:
        steps.append(Assign("BUILD_LAPACK", "1", source="derived"))

    lapack = Probe("c_link", "lapack")
    if builds_blas or options.build_lapack:
        steps.append(Announce("will build LAPACK"))
    elif options.with_lapack is not None:
        steps += [
            Assign("LIBS_LAPACK", options.with_lapack, source="selected"),
            Gate(
                lapack,
                "LAPACK is required, use --build-lapack or different --with-lapack",
                "checking if LAPACK works...",
                reads=("CC", "FC", "LIBS_FORTRAN", "LIBS_BLAS", "LIBS_LAPACK"),
            ),
        ]
    else:
        steps.append(
            Select(
                "LIBS_LAPACK",
                ["", "-llapack"],
                lapack,
                "LAPACK is required, use --build-lapack or --with-lapack",
                "looking for LAPACK...",
                reads=("CC", "FC", "LIBS_FORTRAN", "LIBS_BLAS"),
            )
        )
    return steps


def utility_steps(options: ConfigOptions, platform: Platform) -> list[Step]:
    """Programs used by the build to fetch and verify library sources."""
    conftest = "lapack"
    return [
        Gate(
            Probe("patch", conftest),
            "patch program is required.",
            "checking if patch program works...",
        ),
        Select(
            "FETCH",
            ["curl", "wget", "manual"],
            Probe("fetch", conftest),
            "http downloader is required.",
            "looking for http downloader...",
        ),
        Select(
            "SHA256",
            ["sha256", "sha256sum", "shasum", "openssl"],
            Probe("sha256", conftest),
            "sha256 program is required.",
            "looking for sha256 program...",
        ),
    ]


PLAN_SECTIONS = (
    compiler_steps,
    binutils_steps,
    target_steps,
    link_steps,
    fortran_steps,
    library_steps,
    utility_steps,
)


def build_plan(options: ConfigOptions, platform: Platform) -> list[Step]:
    """Build the ordered configuration plan for a platform and options."""
    steps: list[Step] = []
    for section in PLAN_SECTIONS:
        steps += section(options, platform)
    return steps
