from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any, Callable, Dict, Iterator, List, Optional, Sequence, Union

import numpy as np
from scipy.optimize import minimize

from .boundaries import BalanceBoundary
from .flowsheet_tools import (
    ConfigurationError,
    ConsistencyError,
    NumericalNonConvergence,
    Stream,
    StreamList,
    scale,
)

Boundaries = Union[BalanceBoundary, Sequence[BalanceBoundary], Mapping]

DEFAULT_OPTIONS: Dict[str, Dict[str, float]] = {
    "L-BFGS-B": {"ftol": 1e-12, "gtol": 1e-8, "maxiter": 1000},
    "BFGS": {"gtol": 1e-8, "maxiter": 1000},
}

# objective value treated as an exact balance before any iteration
BALANCED_TOL = 1e-20


@dataclass(frozen=True, eq=False)
class ReconciliationResult(Mapping):
    """Correction factor per stream name, plus what the optimizer reported."""

    factors: Dict[str, float]
    success: bool
    nit: int
    message: str
    objective: float
    anchor: Optional[str] = None

    def __getitem__(self, name: str) -> float:
        return self.factors[name]

    def __iter__(self) -> Iterator[str]:
        return iter(self.factors)

    def __len__(self) -> int:
        return len(self.factors)

    def __repr__(self) -> str:
        return (f"ReconciliationResult({self.factors}, success={self.success}, "
                f"nit={self.nit}, objective={self.objective:.6g})")


def _as_boundary_list(boundaries: Boundaries) -> List[BalanceBoundary]:
    if isinstance(boundaries, BalanceBoundary):
        return [boundaries]
    if isinstance(boundaries, Mapping):
        return list(boundaries.values())
    return list(boundaries)


def _atom_matrix(s: Stream, atoms: Sequence[str], numdata: int) -> np.ndarray:
    rows = np.zeros((len(atoms), numdata), dtype=float)
    for k, a in enumerate(atoms):
        rows[k] = s.atomflow(a)
    return rows


class _BoundaryTerms:
    """Flows of one boundary laid out against the full factor vector."""

    def __init__(self, boundary: BalanceBoundary, index: Dict[str, int], weight_of: Callable[[str], float]):
        streams = boundary.streams
        n = boundary.numdata
        self.name = boundary.name
        self.atoms = boundary.atoms
        self.weights = np.array([weight_of(a) for a in self.atoms], dtype=float)

        self.in_idx = np.array([index[s] for s in boundary.inlets], dtype=int)
        self.out_idx = np.array([index[s] for s in boundary.outlets], dtype=int)
        self.all_idx = np.concatenate([self.in_idx, self.out_idx])
        ins = streams.get_many(boundary.inlets)
        outs = streams.get_many(boundary.outlets)
        self.in_mass = np.array([np.broadcast_to(s.totalmassflow, (n,)) for s in ins], dtype=float)
        self.out_mass = np.array([np.broadcast_to(s.totalmassflow, (n,)) for s in outs], dtype=float)
        self.in_atoms = np.array([_atom_matrix(s, self.atoms, n) for s in ins], dtype=float)
        self.out_atoms = np.array([_atom_matrix(s, self.atoms, n) for s in outs], dtype=float)

    def error(self, factors: np.ndarray, totalweight: float, lam: float) -> float:
        f_in = factors[self.in_idx]
        f_out = factors[self.out_idx]

        m_in = f_in @ self.in_mass
        m_out = f_out @ self.out_mass
        ok = m_in > 0.0
        err = totalweight * float(np.sum((m_out[ok] / m_in[ok] - 1.0) ** 2))

        if self.atoms:
            a_in = np.tensordot(f_in, self.in_atoms, axes=1)
            a_out = np.tensordot(f_out, self.out_atoms, axes=1)
            ok = a_in > 0.0
            ratio = np.ones_like(a_in)
            ratio[ok] = a_out[ok] / a_in[ok]
            err += float(np.sum(self.weights[:, None] * (ratio - 1.0) ** 2))
        # the anchor sits at 1.0 and adds nothing here
        err += lam * float(np.sum((1.0 - factors[self.all_idx]) ** 2))
        return err


class ReconciliationEngine:
    """
    Least-squares correction factors that close mass and element balances.

    Every distinct inlet/outlet stream of the boundaries gets one factor.  The
    objective summed over boundaries (and timestamps) is

        totalweight * (out/in - 1)**2 + sum_atom w(atom) * (out_atom/in_atom - 1)**2

    plus, once per boundary, ``lam * sum((1 - f)**2)`` over that boundary's
    inlet and outlet factors, so a stream shared by k boundaries is
    regularized k times.  ``customerror`` is evaluated on the full factor
    mapping.  An anchor stream is held at 1.0.
    """

    def __init__(self, boundaries: Boundaries, anchor: Optional[str] = None, *,
                 totalweight: float = 1.0, elementweight: float = 1.0,
                 elementweights: Optional[Dict[str, float]] = None, lam: float = 0.1,
                 customerror: Optional[Callable[[Dict[str, float]], float]] = None,
                 method: str = "L-BFGS-B", options: Optional[Dict[str, Any]] = None,
                 print_diagnostics: bool = False):
        self.boundaries = _as_boundary_list(boundaries)
        if not self.boundaries:
            raise ConfigurationError("No boundaries to reconcile")
        self.streams: StreamList = self.boundaries[0].streams
        for b in self.boundaries[1:]:
            if b.streams is not self.streams:
                raise ConsistencyError(f"Boundary '{b.name}' uses a different stream list")

        self.totalweight = float(totalweight)
        self.elementweight = float(elementweight)
        self.elementweights = None if elementweights is None else {a: float(w) for a, w in elementweights.items()}
        self.lam = float(lam)
        weights = [self.totalweight, self.elementweight, self.lam] + list((self.elementweights or {}).values())
        if any(w < 0.0 for w in weights):
            raise ConfigurationError("Weights and lam must be non-negative")

        names: List[str] = []
        for b in self.boundaries:
            for s in b.inlets + b.outlets:
                if s not in names:
                    names.append(s)
        self.streamnames = tuple(names)

        if anchor is not None and anchor not in self.streamnames:
            raise ConfigurationError(f"Anchor '{anchor}' is not an inlet or outlet of the boundaries")
        if anchor is None and self.lam == 0.0:
            raise ConfigurationError("Without an anchor stream lam must be > 0 (all factors could scale freely)")
        self.anchor = anchor
        self.free = tuple(s for s in self.streamnames if s != anchor)
        self._free_idx = np.array([self.streamnames.index(s) for s in self.free], dtype=int)

        self.customerror = customerror
        self.method = method
        self.options = dict(DEFAULT_OPTIONS.get(method, {}))
        self.options.update(options or {})
        self.print_diagnostics = bool(print_diagnostics)

        index = {s: i for i, s in enumerate(self.streamnames)}
        self._terms = [_BoundaryTerms(b, index, self.atom_weight) for b in self.boundaries]

    def atom_weight(self, atom: str) -> float:
        if self.elementweights is not None:
            return self.elementweights.get(atom, 0.0)
        return self.elementweight

    def expand(self, x: np.ndarray) -> np.ndarray:
        full = np.ones(len(self.streamnames), dtype=float)
        full[self._free_idx] = x
        return full

    def factors(self, x: np.ndarray) -> Dict[str, float]:
        return {s: float(f) for s, f in zip(self.streamnames, self.expand(x))}

    def objective(self, x: np.ndarray) -> float:
        x = np.asarray(x, dtype=float)
        full = self.expand(x)
        err = sum(t.error(full, self.totalweight, self.lam) for t in self._terms)
        if self.customerror is not None:
            err += float(self.customerror(self.factors(x)))
        return float(err)

    def _stationary(self, res) -> bool:
        """A line-search abort at a point whose gradient is already within ``gtol``."""
        jac = getattr(res, "jac", None)
        if jac is None or not np.size(jac):
            return False
        gtol = float(self.options.get("gtol", DEFAULT_OPTIONS["L-BFGS-B"]["gtol"]))
        return bool(np.all(np.isfinite(res.x))) and float(np.max(np.abs(jac))) <= gtol

    def solve(self) -> ReconciliationResult:
        x0 = np.ones(len(self.free), dtype=float)
        if not len(x0):
            return ReconciliationResult(self.factors(x0), True, 0, "Nothing to adjust",
                                        self.objective(x0), self.anchor)

        f0 = self.objective(x0)
        if f0 <= BALANCED_TOL:
            # already closed: the objective is non-negative, so x0 is the minimum
            result = ReconciliationResult(self.factors(x0), True, 0, "Balanced at the measured flows",
                                          f0, self.anchor)
            if self.print_diagnostics:
                print(f"[reconciliation] {result.message}, objective {f0:.6g}")
            return result

        res = minimize(self.objective, x0, method=self.method, options=self.options)
        result = ReconciliationResult(
            factors=self.factors(res.x),
            success=bool(res.success) or self._stationary(res),
            nit=int(getattr(res, "nit", 0)),
            message=str(res.message),
            objective=float(res.fun),
            anchor=self.anchor,
        )
        if self.print_diagnostics:
            print(f"[reconciliation] {result.message} after {result.nit} iterations, "
                  f"objective {result.objective:.6g}")
            for s, f in result.items():
                print(f"[reconciliation]   {s}: {f:.6f}")
        return result


def calccorrections(boundaries: Boundaries, anchor: Optional[str] = None,
                    customerror: Optional[Callable[[Dict[str, float]], float]] = None,
                    **knobs: Any) -> ReconciliationResult:
    """Correction factors for every stream crossing the given boundaries."""
    return ReconciliationEngine(boundaries, anchor, customerror=customerror, **knobs).solve()


def apply_corrections(streams: StreamList, corrections: Mapping) -> None:
    """Scale each named stream by its factor; nothing changes if any name or factor is invalid."""
    factors = {s: float(f) for s, f in corrections.items()}
    missing = [s for s in factors if s not in streams]
    if missing:
        raise KeyError(f"Corrections refer to unknown streams {missing}")
    bad = [s for s, f in factors.items() if not np.isfinite(f)]
    if bad:
        raise ValueError(f"Non-finite correction factors for {bad}")
    scaled = {s: scale(streams[s], f) for s, f in factors.items()}
    for s, stream in scaled.items():
        streams[s] = stream


def check_converged(corrections: Mapping) -> None:
    if isinstance(corrections, ReconciliationResult) and not corrections.success:
        raise NumericalNonConvergence(
            f"Reconciliation did not converge: {corrections.message}", corrections)


def closemb(boundaries: Boundaries, corrections: Optional[Mapping] = None, **knobs: Any):
    """
    Apply correction factors to the measured streams and return rebuilt boundaries.

    Corrections are computed when not given.  The result has the same shape as
    ``boundaries`` (single boundary, list, or name mapping).
    """
    blist = _as_boundary_list(boundaries)
    if not blist:
        raise ConfigurationError("No boundaries to close")
    if corrections is None:
        corrections = calccorrections(blist, **knobs)
    check_converged(corrections)
    apply_corrections(blist[0].streams, corrections)

    if isinstance(boundaries, BalanceBoundary):
        return boundaries.rebuild()
    if isinstance(boundaries, Mapping):
        return {k: b.rebuild() for k, b in boundaries.items()}
    return [b.rebuild() for b in blist]
