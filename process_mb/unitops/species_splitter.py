from __future__ import annotations

from typing import Dict, Mapping, Optional, Sequence, Tuple

import numpy as np

from ..flowsheet_tools import DefinitionError, StreamList, UnitOp, sum_streams

ComponentSplits = Mapping[str, Mapping[str, float]]


def resolve_component_splits(name: str, splits: ComponentSplits,
                             outlets: Sequence[str]) -> Dict[str, Tuple[float, ...]]:
    """
    Per-outlet fractions for every specified component.

    The remainder of a partially specified component goes to the last outlet
    it does not name; its other unnamed outlets get nothing.
    """
    outlets = list(outlets)
    n = len(outlets)
    table: Dict[str, Tuple[float, ...]] = {}
    for comp, targets in splits.items():
        if len(targets) > n - 1:
            raise DefinitionError(
                f"{name}: too many fractions for '{comp}' ({len(targets)} given, at most {n - 1})")
        row: list = [None] * n
        for sname, frac in targets.items():
            if sname not in outlets:
                raise DefinitionError(f"{name}: outlet '{sname}' for '{comp}' is not an outlet of this unit")
            frac = float(frac)
            if not (0.0 <= frac <= 1.0):
                raise DefinitionError(f"{name}: fraction of '{comp}' to '{sname}' must be in [0,1], got {frac}")
            row[outlets.index(sname)] = frac
        specified = sum(f for f in row if f is not None)
        if specified > 1.0 + 1e-12:
            raise DefinitionError(f"{name}: fractions of '{comp}' sum to {specified} > 1")
        free = [j for j, f in enumerate(row) if f is None]
        for j in free:
            row[j] = 0.0
        row[free[-1]] = max(1.0 - specified, 0.0)
        table[comp] = tuple(row)
    return table


def componentsplitter(streams: StreamList, outlets: Sequence[str], inlets: Sequence[str],
                      params: ComponentSplits) -> None:
    if not outlets:
        raise DefinitionError("Component splitters need at least one outlet stream")
    table = resolve_component_splits("componentsplitter", params or {}, outlets)
    feed = sum_streams(streams.get_many(inlets))
    default = (0.0,) * (len(outlets) - 1) + (1.0,)
    fractions = np.array([table.get(c, default) for c in feed.components], dtype=float)
    fractions = fractions.reshape(len(feed.components), len(outlets))
    for j, sname in enumerate(outlets):
        streams[sname] = feed.with_flows(sname, feed.components, feed.massflows * fractions[:, j])


class ComponentSplitter(UnitOp):
    """
    Routes each component by its own fractions, e.g.

        ComponentSplitter("Membrane", streams, ["Mixed"], ["Permeate", "Retentate"],
                          {"H2": {"Permeate": 0.9}})

    Components without an entry leave through the last outlet.
    """

    def __init__(self, name: str, streams: StreamList, inlets: Sequence[str], outlets: Sequence[str],
                 splits: ComponentSplits, *, print_diagnostics: bool = False):
        if not inlets:
            raise DefinitionError(f"{name}: splitters need at least one inlet stream")
        if not outlets:
            raise DefinitionError(f"{name}: splitters need at least one outlet stream")
        resolve_component_splits(name, splits, outlets)
        splits = {c: dict(t) for c, t in splits.items()}
        super().__init__(name, streams, inlets, outlets, params=splits,
                         print_diagnostics=print_diagnostics)

    def calc(self, streams: StreamList, outlets: Sequence[str], inlets: Sequence[str],
             params: Optional[ComponentSplits] = None) -> None:
        componentsplitter(streams, outlets, inlets, params)
