from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

import numpy as np

from ..flowsheet_tools import (
    NEG_CLIP,
    ComponentRegistry,
    ConsistencyError,
    DefinitionError,
    OverconversionError,
    StreamList,
    UnitOp,
    sum_streams,
)


@dataclass(frozen=True)
class Reaction:
    """
    Fixed-conversion reaction.

    ``targetconversion`` is the fraction of ``targetcomp`` in the reactor feed
    consumed by this reaction.  Atoms must balance between both sides.
    """

    registry: ComponentRegistry
    reactants: Tuple[str, ...]
    products: Tuple[str, ...]
    reactcoeffs: Tuple[float, ...]
    prodcoeffs: Tuple[float, ...]
    targetcomp: str
    targetconversion: float

    def __post_init__(self):
        object.__setattr__(self, "reactants", tuple(self.reactants))
        object.__setattr__(self, "products", tuple(self.products))
        object.__setattr__(self, "reactcoeffs", tuple(float(v) for v in self.reactcoeffs))
        object.__setattr__(self, "prodcoeffs", tuple(float(v) for v in self.prodcoeffs))
        object.__setattr__(self, "targetconversion", float(self.targetconversion))

        if not self.reactants or not self.products:
            raise DefinitionError(f"{self}: need at least one reactant and one product")
        if len(self.reactants) != len(self.reactcoeffs):
            raise DefinitionError(f"{self}: {len(self.reactants)} reactants but {len(self.reactcoeffs)} coefficients")
        if len(self.products) != len(self.prodcoeffs):
            raise DefinitionError(f"{self}: {len(self.products)} products but {len(self.prodcoeffs)} coefficients")
        for c in self.reactants + self.products:
            if c not in self.registry:
                raise DefinitionError(f"{self}: component '{c}' is not defined")
        if any(v <= 0.0 for v in self.reactcoeffs + self.prodcoeffs):
            raise DefinitionError(f"{self}: stoichiometric coefficients must be positive")
        if self.targetcomp not in self.reactants:
            raise DefinitionError(f"{self}: target component '{self.targetcomp}' is not a reactant")
        if not (0.0 <= self.targetconversion <= 1.0):
            raise DefinitionError(f"{self}: conversion must be in [0,1], got {self.targetconversion}")

        lhs = self._atom_totals(self.reactants, self.reactcoeffs)
        rhs = self._atom_totals(self.products, self.prodcoeffs)
        for atom in set(lhs) | set(rhs):
            a, b = lhs.get(atom, 0.0), rhs.get(atom, 0.0)
            if not math.isclose(a, b, rel_tol=1e-12, abs_tol=1e-12):
                raise DefinitionError(f"{self}: {atom} does not balance ({a:g} in, {b:g} out)")

    def _atom_totals(self, comps: Sequence[str], coeffs: Sequence[float]) -> Dict[str, float]:
        totals: Dict[str, float] = {}
        for c, nu in zip(comps, coeffs):
            comp = self.registry[c]
            for atom, n in zip(comp.atoms, comp.counts):
                totals[atom] = totals.get(atom, 0.0) + nu * n
        return totals

    @property
    def targetcoeff(self) -> float:
        return self.reactcoeffs[self.reactants.index(self.targetcomp)]

    @property
    def nu(self) -> Dict[str, float]:
        """Net stoichiometric coefficients (products positive)."""
        nu: Dict[str, float] = {}
        for c, v in zip(self.reactants, self.reactcoeffs):
            nu[c] = nu.get(c, 0.0) - v
        for c, v in zip(self.products, self.prodcoeffs):
            nu[c] = nu.get(c, 0.0) + v
        return nu

    def __str__(self) -> str:
        def side(comps, coeffs):
            return " + ".join(c if v == 1.0 else f"{v:g} {c}" for c, v in zip(comps, coeffs))
        return f"{side(self.reactants, self.reactcoeffs)} => {side(self.products, self.prodcoeffs)}"


def check_conversions(name: str, reactions: Iterable[Reaction]) -> Dict[str, float]:
    totals: Dict[str, float] = {}
    for rxn in reactions:
        if not isinstance(rxn, Reaction):
            raise DefinitionError(f"{name}: expected Reaction objects, got {type(rxn).__name__}")
        totals[rxn.targetcomp] = totals.get(rxn.targetcomp, 0.0) + rxn.targetconversion
    over = {c: x for c, x in totals.items() if x > 1.0 + 1e-12}
    if over:
        raise OverconversionError(f"{name}: total conversion above 1.0 for {over}")
    return totals


def stoichiometric_reactor(streams: StreamList, outlets: Sequence[str], inlets: Sequence[str],
                           params: Sequence[Reaction]) -> None:
    """Runs every reaction in parallel on the mixed feed, converting its key component."""
    if len(outlets) != 1:
        raise DefinitionError(f"Stoichiometric reactors can have only one outlet stream, got {len(outlets)}")
    reactions = list(params or ())
    check_conversions("stoichiometric_reactor", reactions)
    feed = sum_streams(streams.get_many(inlets))

    comps: List[str] = list(feed.components)
    for rxn in reactions:
        if rxn.registry is not feed.registry:
            raise ConsistencyError(f"Reaction {rxn} uses a different component registry than the feed")
        for c in rxn.reactants + rxn.products:
            if c not in comps:
                comps.append(c)
    idx = {c: i for i, c in enumerate(comps)}

    n_in = feed.to_dense(comps, basis="mole")
    Nu = np.zeros((len(comps), len(reactions)), dtype=float)
    xi = np.zeros(n_in.shape[:-1] + (len(reactions),), dtype=float)
    for r, rxn in enumerate(reactions):
        for c, v in rxn.nu.items():
            Nu[idx[c], r] = v
        xi[..., r] = n_in[..., idx[rxn.targetcomp]] * rxn.targetconversion / rxn.targetcoeff

    n_out = n_in + xi @ Nu.T
    n_out[(n_out < 0.0) & (n_out >= -NEG_CLIP)] = 0.0
    streams[outlets[0]] = feed.with_flows(outlets[0], comps, n_out, basis="mole")


class StoichiometricReactor(UnitOp):
    def __init__(self, name: str, streams: StreamList, inlets: Sequence[str], outlets: Sequence[str],
                 reactions: Sequence[Reaction], *, print_diagnostics: bool = False):
        if len(outlets) != 1:
            raise DefinitionError(f"{name}: only one outlet stream allowed, got {len(outlets)}")
        if not inlets:
            raise DefinitionError(f"{name}: reactors need at least one inlet stream")
        reactions = tuple(reactions)
        check_conversions(name, reactions)
        super().__init__(name, streams, inlets, outlets, params=reactions,
                         print_diagnostics=print_diagnostics)

    def calc(self, streams: StreamList, outlets: Sequence[str], inlets: Sequence[str],
             params: Optional[Sequence[Reaction]] = None) -> None:
        if self.print_diagnostics:
            for rxn in params or ():
                print(f"[{self.name}] {rxn}  ({rxn.targetcomp} conversion {rxn.targetconversion:g})")
        stoichiometric_reactor(streams, outlets, inlets, params)
