from __future__ import annotations

import copy
from collections.abc import MutableMapping
from dataclasses import dataclass, field
from datetime import datetime
from typing import Any, Callable, Dict, Iterable, Iterator, List, Optional, Sequence, Tuple

import numpy as np

from .atoms import ATOMIC_WEIGHTS

EPS = 1e-30
NEG_CLIP = 1e-12


class DefinitionError(ValueError):
    pass


class FormulaError(DefinitionError):
    pass


class ConsistencyError(ValueError):
    pass


class BoundaryError(ValueError):
    pass


class OverconversionError(ValueError):
    pass


class ConfigurationError(ValueError):
    pass


class NumericalNonConvergence(RuntimeError):
    """Raised when corrections from an unconverged solve are about to be applied."""

    def __init__(self, message: str, result: Any = None):
        super().__init__(message)
        self.result = result


def parse_formula(formula: str) -> Dict[str, int]:
    """Atom counts of a formula such as ``C2H6`` or ``UO2(NO3)2``, in order of appearance."""
    s = formula.replace(" ", "")
    if not s:
        raise FormulaError("Empty formula")
    i = 0

    def parse_group() -> Dict[str, int]:
        nonlocal i
        counts: Dict[str, int] = {}
        while i < len(s):
            if s[i] == "(":
                i += 1
                inner = parse_group()
                if i >= len(s) or s[i] != ")":
                    raise FormulaError(f"Unmatched '(' in {formula}")
                i += 1
                mult = parse_int()
                for el, n in inner.items():
                    counts[el] = counts.get(el, 0) + n * mult
            elif s[i] == ")":
                break
            else:
                el = parse_element()
                counts[el] = counts.get(el, 0) + parse_int()
        if not counts:
            raise FormulaError(f"Empty group in {formula}")
        return counts

    def parse_element() -> str:
        nonlocal i
        if not s[i].isalpha() or not s[i].isupper():
            raise FormulaError(f"Expected element at position {i} in {formula}")
        el = s[i]
        i += 1
        while i < len(s) and s[i].islower():
            el += s[i]
            i += 1
        if el not in ATOMIC_WEIGHTS:
            raise FormulaError(f"Unknown element '{el}' in {formula}")
        return el

    def parse_int() -> int:
        nonlocal i
        j = i
        while j < len(s) and s[j].isdigit():
            j += 1
        if j == i:
            return 1
        val = int(s[i:j])
        if val == 0:
            raise FormulaError(f"Zero multiplier at position {i} in {formula}")
        i = j
        return val

    counts = parse_group()
    if i != len(s):
        raise FormulaError(f"Could not parse full formula {formula} (stopped at {i})")
    return counts


# ----------------------------------------------------------------------------
# Components
# ----------------------------------------------------------------------------
@dataclass(frozen=True)
class Component:
    name: str
    atoms: Tuple[str, ...]
    counts: Tuple[int, ...]
    Mr: float

    def count(self, atom: str) -> int:
        for a, n in zip(self.atoms, self.counts):
            if a == atom:
                return n
        return 0

    @property
    def formula(self) -> str:
        return "".join(a if n == 1 else f"{a}{n}" for a, n in zip(self.atoms, self.counts))


@dataclass(eq=False)
class ComponentRegistry:
    components: Dict[str, Component] = field(default_factory=dict)

    def define(self, name: str, atoms: Sequence[str], counts: Sequence[int]) -> Component:
        atoms = list(atoms)
        counts = list(counts)
        if len(atoms) != len(counts):
            raise DefinitionError(f"{name}: {len(atoms)} atoms but {len(counts)} counts")
        if not atoms:
            raise DefinitionError(f"{name}: a component needs at least one atom")

        merged: Dict[str, int] = {}
        for atom, n in zip(atoms, counts):
            if atom not in ATOMIC_WEIGHTS:
                raise DefinitionError(f"{name}: unknown atom symbol '{atom}'")
            if isinstance(n, bool) or int(n) != n or n <= 0:
                raise DefinitionError(f"{name}: atom count for {atom} must be a positive integer, got {n}")
            merged[atom] = merged.get(atom, 0) + int(n)

        mr = sum(ATOMIC_WEIGHTS[a] * n for a, n in merged.items())
        comp = Component(str(name), tuple(merged), tuple(merged.values()), float(mr))

        existing = self.components.get(comp.name)
        if existing is not None:
            if existing == comp:
                return existing
            raise DefinitionError(f"Component '{name}' already defined as {existing.formula}")
        self.components[comp.name] = comp
        return comp

    def define_formula(self, name: str, formula: str) -> Component:
        atoms = parse_formula(formula)
        return self.define(name, list(atoms), list(atoms.values()))

    def lookup(self, name: str) -> Component:
        return self.components[name]

    def __getitem__(self, name: str) -> Component:
        return self.components[name]

    def __contains__(self, name: object) -> bool:
        return name in self.components

    def __iter__(self) -> Iterator[str]:
        return iter(self.components)

    def __len__(self) -> int:
        return len(self.components)

    def names(self) -> List[str]:
        return list(self.components)

    def enumerate(self) -> List[Component]:
        return list(self.components.values())

    def mr(self, name: str) -> float:
        return self.components[name].Mr

    def remove(self, name: str) -> Component:
        return self.components.pop(name)


# ----------------------------------------------------------------------------
# Streams
# ----------------------------------------------------------------------------
class Stream:
    """
    Flows of a set of registered components at one point in time.

    massflows and moleflows are aligned with ``components`` (only the components
    present in the stream).  Totals and per-atom molar flows are derived on
    construction.
    """

    timestamps: Optional[Tuple[datetime, ...]] = None

    def __init__(self, name: str, registry: ComponentRegistry, components: Sequence[str],
                 flows: Sequence[float], basis: str = "mass"):
        flows = np.asarray(flows, dtype=float)
        if flows.ndim != 1:
            raise DefinitionError(f"{name}: flows must be one-dimensional, got shape {flows.shape}")
        self._setup(name, registry, components, flows, basis)

    def _setup(self, name: str, registry: ComponentRegistry, components: Sequence[str],
               flows: np.ndarray, basis: str) -> None:
        comps = tuple(components)
        if flows.shape[-1] != len(comps):
            raise DefinitionError(f"{name}: {len(comps)} components but {flows.shape[-1]} flows")
        if len(set(comps)) != len(comps):
            raise DefinitionError(f"{name}: duplicate component names {list(comps)}")
        if basis not in ("mass", "mole"):
            raise DefinitionError(f"{name}: basis must be 'mass' or 'mole', got '{basis}'")
        for c in comps:
            if c not in registry:
                raise DefinitionError(f"{name}: component '{c}' is not defined")

        mr = np.array([registry[c].Mr for c in comps], dtype=float)
        if basis == "mass":
            mass = flows.copy()
            mole = flows / mr
        else:
            mole = flows.copy()
            mass = flows * mr

        self.name = str(name)
        self.registry = registry
        self.components = comps
        self.Mr = mr
        self.massflows = mass
        self.moleflows = mole

        atoms: List[str] = []
        for c in comps:
            for a in registry[c].atoms:
                if a not in atoms:
                    atoms.append(a)
        A = np.zeros((len(comps), len(atoms)), dtype=float)
        col = {a: j for j, a in enumerate(atoms)}
        for i, c in enumerate(comps):
            comp = registry[c]
            for a, n in zip(comp.atoms, comp.counts):
                A[i, col[a]] = n
        atom_mol = mole @ A
        self.atomflows = {a: self._value(atom_mol[..., j]) for j, a in enumerate(atoms)}
        self.totalmassflow = self._value(mass.sum(axis=-1))
        self.totalmoleflow = self._value(mole.sum(axis=-1))

    @staticmethod
    def _value(x):
        return float(x)

    def _zero(self):
        return 0.0

    @property
    def numdata(self) -> int:
        return 1

    @property
    def atoms(self) -> Tuple[str, ...]:
        return tuple(self.atomflows)

    def massflow(self, comp: str):
        if comp in self.components:
            return self._value(self.massflows[..., self.components.index(comp)])
        return self._zero()

    def moleflow(self, comp: str):
        if comp in self.components:
            return self._value(self.moleflows[..., self.components.index(comp)])
        return self._zero()

    def atomflow(self, atom: str):
        if atom in self.atomflows:
            return self.atomflows[atom]
        return self._zero()

    def to_dense(self, components: Optional[Sequence[str]] = None, basis: str = "mass") -> np.ndarray:
        """Flows aligned to ``components`` (registry order by default), zero where absent."""
        if components is None:
            components = self.registry.names()
        src = self.massflows if basis == "mass" else self.moleflows
        x = np.zeros(src.shape[:-1] + (len(components),), dtype=float)
        idx = {c: i for i, c in enumerate(self.components)}
        for j, c in enumerate(components):
            if c in idx:
                x[..., j] = src[..., idx[c]]
        return x

    def with_flows(self, name: str, components: Sequence[str], flows: np.ndarray,
                   basis: str = "mass") -> Stream:
        """New stream of the same kind (and timestamps) with the given flows."""
        return Stream(name, self.registry, components, flows, basis)

    def scaled_copy(self, name: str, factor: float = 1.0) -> Stream:
        new = copy.copy(self)
        new.name = str(name)
        factor = float(factor)
        new.massflows = self.massflows * factor
        new.moleflows = self.moleflows * factor
        new.atomflows = {a: v * factor for a, v in self.atomflows.items()}
        new.totalmassflow = self.totalmassflow * factor
        new.totalmoleflow = self.totalmoleflow * factor
        return new

    def check_compatible(self, other: Stream, action: str = "combine") -> None:
        if other.registry is not self.registry:
            raise ConsistencyError(
                f"Cannot {action} '{self.name}' and '{other.name}': different component registries")
        if isinstance(other, StreamHistory) != isinstance(self, StreamHistory):
            raise ConsistencyError(
                f"Cannot {action} '{self.name}' and '{other.name}': snapshot and history streams")
        if other.timestamps != self.timestamps:
            raise ConsistencyError(
                f"Cannot {action} '{self.name}' and '{other.name}': timestamps differ")

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, components={list(self.components)}, numdata={self.numdata})"


class StreamHistory(Stream):
    """Stream with one row of flows per timestamp."""

    def __init__(self, name: str, registry: ComponentRegistry, components: Sequence[str],
                 timestamps: Sequence[datetime], flows, basis: str = "mass"):
        flows = np.asarray(flows, dtype=float)
        if flows.ndim != 2:
            raise DefinitionError(f"{name}: history flows must be two-dimensional, got shape {flows.shape}")
        ts = tuple(timestamps)
        if len(ts) != flows.shape[0]:
            raise DefinitionError(f"{name}: {len(ts)} timestamps but {flows.shape[0]} rows of flows")
        self.timestamps = ts
        self._setup(name, registry, components, flows, basis)

    @staticmethod
    def _value(x):
        return np.array(x, dtype=float)

    def _zero(self):
        return np.zeros(self.numdata, dtype=float)

    @property
    def numdata(self) -> int:
        return len(self.timestamps)

    def with_flows(self, name: str, components: Sequence[str], flows: np.ndarray,
                   basis: str = "mass") -> StreamHistory:
        return StreamHistory(name, self.registry, components, self.timestamps, flows, basis)


def mix(a: Stream, b: Stream) -> Stream:
    a.check_compatible(b, "mix")
    comps = list(a.components) + [c for c in b.components if c not in a.components]
    flows = a.to_dense(comps) + b.to_dense(comps)
    return a.with_flows(f"{a.name}+{b.name}", comps, flows)


def sum_streams(streams: Iterable[Stream], name: Optional[str] = None) -> Stream:
    streams = list(streams)
    if not streams:
        raise ValueError("Cannot sum an empty list of streams")
    total = streams[0]
    for s in streams[1:]:
        total = mix(total, s)
    if name is not None:
        total = rename(total, name)
    return total


def scale(s: Stream, k: float) -> Stream:
    return s.scaled_copy(s.name, k)


def rename(s: Stream, new: str) -> Stream:
    return s.scaled_copy(new, 1.0)


def copy_stream(s: Stream, new: str, factor: float = 1.0) -> Stream:
    return s.scaled_copy(new, factor)


def empty_like(reference: Stream, name: str) -> Stream:
    return reference.with_flows(name, (), np.zeros(reference.massflows.shape[:-1] + (0,)))


def _union(a: Stream, b: Stream) -> List[str]:
    return list(a.components) + [c for c in b.components if c not in a.components]


def flows_equal(a: Stream, b: Stream) -> bool:
    if a.name != b.name:
        return False
    try:
        a.check_compatible(b, "compare")
    except ConsistencyError:
        return False
    comps = _union(a, b)
    return bool(np.array_equal(a.to_dense(comps), b.to_dense(comps)))


def flows_approx(a: Stream, b: Stream, rtol: float = 1e-8, atol: float = 1e-10) -> bool:
    try:
        a.check_compatible(b, "compare")
    except ConsistencyError:
        return False
    comps = _union(a, b)
    return bool(np.allclose(a.to_dense(comps), b.to_dense(comps), rtol=rtol, atol=atol))


class StreamList(MutableMapping):
    """
    Name-keyed container shared by the unit operations of a flowsheet.

    Storing a stream under a key renames it to that key.  All members share one
    component registry, one stream kind and one timestamp axis.
    """

    def __init__(self, streams: Iterable[Stream] = ()):
        self._streams: Dict[str, Stream] = {}
        for s in streams:
            self[s.name] = s

    @property
    def registry(self) -> Optional[ComponentRegistry]:
        for s in self._streams.values():
            return s.registry
        return None

    @property
    def timestamps(self) -> Optional[Tuple[datetime, ...]]:
        for s in self._streams.values():
            return s.timestamps
        return None

    def reference(self) -> Optional[Stream]:
        for s in self._streams.values():
            return s
        return None

    def __getitem__(self, name: str) -> Stream:
        return self._streams[name]

    def __setitem__(self, name: str, stream: Stream) -> None:
        if not isinstance(stream, Stream):
            raise TypeError(f"Only streams can be stored, got {type(stream).__name__}")
        for key, other in self._streams.items():
            if key != name:
                other.check_compatible(stream, "store")
                break
        if stream.name != name:
            stream = rename(stream, name)
        self._streams[name] = stream

    def __delitem__(self, name: str) -> None:
        del self._streams[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self._streams)

    def __len__(self) -> int:
        return len(self._streams)

    def get_many(self, names: Iterable[str]) -> List[Stream]:
        return [self._streams[n] for n in names]

    def __repr__(self) -> str:
        return f"StreamList({list(self._streams)})"


# ----------------------------------------------------------------------------
# Unit operations
# ----------------------------------------------------------------------------
def passive(streams: StreamList, outlets: Sequence[str], inlets: Sequence[str], params: Any = None) -> None:
    """Leaves every stream untouched (measured unit operations)."""
    return None


class UnitOp:
    """
    Relates named inlet and outlet streams of a shared StreamList.

    Calling the unit op runs ``calc(streams, outlets, inlets, params)``.  A calc
    either writes the outlets itself or returns one stream per outlet.
    """

    calc: Callable[..., Any] = staticmethod(passive)

    def __init__(self, name: str, streams: StreamList, inlets: Sequence[str], outlets: Sequence[str],
                 calc: Optional[Callable[..., Any]] = None, params: Any = None, *,
                 print_diagnostics: bool = False):
        self.name = str(name)
        self.streams = streams
        self.inlets: Tuple[str, ...] = tuple(inlets)
        self.outlets: Tuple[str, ...] = tuple(outlets)
        for sname in self.inlets + self.outlets:
            if sname not in streams:
                raise DefinitionError(f"{self.name}: stream '{sname}' is not in the stream list")
        if calc is not None:
            self.calc = calc
        self.params = params
        self.print_diagnostics = bool(print_diagnostics)

    def __call__(self, params: Any = None) -> None:
        self.apply(params)

    def apply(self, params: Any = None) -> None:
        if params is None:
            params = self.params
        result = self.calc(self.streams, self.outlets, self.inlets, params)
        if result is not None:
            results = list(result)
            if len(results) != len(self.outlets):
                raise DefinitionError(
                    f"{self.name}: calc returned {len(results)} streams for {len(self.outlets)} outlets")
            for sname, s in zip(self.outlets, results):
                self.streams[sname] = s

        if self.print_diagnostics:
            for sname in self.outlets:
                s = self.streams[sname]
                print(f"[{self.name}] {sname}: total mass flow {np.round(s.totalmassflow, 6)}")

    def feed(self) -> Stream:
        return sum_streams(self.streams.get_many(self.inlets))

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self.name!r}, inlets={list(self.inlets)}, outlets={list(self.outlets)})"
