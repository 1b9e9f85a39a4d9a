from __future__ import annotations

from datetime import datetime
from typing import Any, Dict, List, Mapping, Optional, Sequence, Union

import numpy as np

from .boundaries import BalanceBoundary, StreamConnection, stream_connections
from .flowsheet_tools import (
    Component,
    ComponentRegistry,
    ConsistencyError,
    DefinitionError,
    Stream,
    StreamHistory,
    StreamList,
    UnitOp,
    copy_stream,
    empty_like,
)
from .reconciliation import (
    ReconciliationResult,
    apply_corrections,
    calccorrections,
    check_converged,
)
from .unitops import Reaction


def _component_refs(params: Any) -> List[str]:
    """Component names named by unit-op parameters: reactions and component-keyed maps."""
    if isinstance(params, Reaction):
        return list(params.reactants + params.products)
    if isinstance(params, Mapping):
        return [k for k in params if isinstance(k, str)]
    if isinstance(params, (list, tuple)):
        refs = []
        for p in params:
            refs += _component_refs(p)
        return refs
    return []


class Flowsheet:
    """
    Owns the component registry, the shared stream list, the unit operations,
    the balance boundaries and the execution order.
    """

    def __init__(self):
        self.comps = ComponentRegistry()
        self.streams = StreamList()
        self.unitops: Dict[str, UnitOp] = {}
        self.boundaries: Dict[str, BalanceBoundary] = {}
        self.rununits: List[str] = []
        self.runorder: List[int] = []

    # ------------------------------------------------------------------
    # Components
    # ------------------------------------------------------------------
    def add_component(self, name: str, atoms: Sequence[str], counts: Sequence[int]) -> Component:
        comp = self.comps.define(name, atoms, counts)
        self.refresh_streams()
        return comp

    def add_component_formula(self, name: str, formula: str) -> Component:
        comp = self.comps.define_formula(name, formula)
        self.refresh_streams()
        return comp

    def component_names(self) -> List[str]:
        return self.comps.names()

    def refresh_streams(self) -> None:
        """Recompute derived quantities of every stream from the registry."""
        for name in list(self.streams):
            s = self.streams[name]
            self.streams[name] = s.with_flows(name, s.components, s.massflows)

    # ------------------------------------------------------------------
    # Streams
    # ------------------------------------------------------------------
    def _store_new(self, s: Stream) -> Stream:
        if s.name in self.streams:
            raise ValueError(f"Stream '{s.name}' already exists")
        self.streams[s.name] = s
        return s

    def add_stream(self, name: str, flows: Mapping[str, float], basis: str = "mass") -> Stream:
        return self._store_new(Stream(name, self.comps, list(flows), list(flows.values()), basis))

    def add_stream_history(self, name: str, components: Sequence[str], timestamps: Sequence[datetime],
                           flows, basis: str = "mass") -> StreamHistory:
        return self._store_new(StreamHistory(name, self.comps, components, timestamps, flows, basis))

    def add_empty_stream(self, name: str) -> Stream:
        ref = self.streams.reference()
        if ref is None:
            return self._store_new(Stream(name, self.comps, (), ()))
        return self._store_new(empty_like(ref, name))

    def add_fixed_stream(self, name: str, flows: Mapping[str, float], basis: str = "mass") -> Stream:
        """Constant flows, repeated over the timestamps of the existing streams."""
        timestamps = self.streams.timestamps
        if timestamps is None:
            return self.add_stream(name, flows, basis)
        rows = np.tile(np.asarray(list(flows.values()), dtype=float), (len(timestamps), 1))
        return self.add_stream_history(name, list(flows), timestamps, rows, basis)

    def copy_stream(self, source: str, target: str, factor: float = 1.0) -> Stream:
        return self._store_new(copy_stream(self.streams[source], target, factor))

    def rename_stream(self, old: str, new: str) -> Stream:
        """Rename a stream and every unit-op reference to it."""
        s = self._store_new(copy_stream(self.streams[old], new))
        del self.streams[old]
        for unit in self.unitops.values():
            unit.inlets = tuple(new if n == old else n for n in unit.inlets)
            unit.outlets = tuple(new if n == old else n for n in unit.outlets)
        self.rebuild_boundaries()
        return s

    def stream_names(self) -> List[str]:
        return list(self.streams)

    # ------------------------------------------------------------------
    # Unit operations and execution order
    # ------------------------------------------------------------------
    def add_unitop(self, unit: UnitOp, run: bool = True) -> UnitOp:
        if unit.streams is not self.streams:
            raise ConsistencyError(f"Unit '{unit.name}' does not use this flowsheet's stream list")
        if unit.name in self.unitops:
            raise ValueError(f"Unit '{unit.name}' already exists")
        self.unitops[unit.name] = unit
        if run:
            self.add_to_run(unit.name)
        return unit

    def add_to_run(self, name: str) -> None:
        if name not in self.unitops:
            raise DefinitionError(f"Unknown unit operation '{name}'")
        if name not in self.rununits:
            self.rununits.append(name)
            self.runorder.append(len(self.rununits) - 1)

    def set_order(self, order: Sequence[int]) -> None:
        """Execution sequence as indices into ``rununits``; units may repeat or be left out."""
        order = [int(i) for i in order]
        for i in order:
            if not (0 <= i < len(self.rununits)):
                raise DefinitionError(f"Run order index {i} out of range for {len(self.rununits)} units")
        self.runorder = order

    def _unit_name(self, item: Union[int, str]) -> str:
        if isinstance(item, str):
            if item not in self.unitops:
                raise DefinitionError(f"Unknown unit operation '{item}'")
            return item
        return self.rununits[item]

    def run(self, order: Optional[Sequence[Union[int, str]]] = None, verbose: bool = False) -> None:
        """Execute each unit once, in ``order`` or the stored run order."""
        seq = self.runorder if order is None else order
        for k, item in enumerate(seq):
            name = self._unit_name(item)
            if verbose:
                print(f"[{k}] {name}")
            self.unitops[name]()

    # ------------------------------------------------------------------
    # Boundaries
    # ------------------------------------------------------------------
    def add_boundary(self, name: str, units: Sequence[str]) -> BalanceBoundary:
        b = BalanceBoundary(name, self.unitops, units)
        self.boundaries[name] = b
        return b

    def rebuild_boundaries(self) -> None:
        for name, b in list(self.boundaries.items()):
            self.boundaries[name] = b.rebuild()

    def connections(self, units: Optional[Sequence[str]] = None) -> List[StreamConnection]:
        return stream_connections(self.unitops, list(units) if units is not None else self.rununits)

    # ------------------------------------------------------------------
    # Removal and invalidation
    # ------------------------------------------------------------------
    def remove_component(self, name: str) -> Dict[str, List[str]]:
        self.comps.remove(name)
        return self._invalidate(components=[name])

    def remove_stream(self, name: str) -> Dict[str, List[str]]:
        if name not in self.streams:
            raise KeyError(name)
        return self._invalidate(streams=[name])

    def remove_unitop(self, name: str) -> Dict[str, List[str]]:
        if name not in self.unitops:
            raise KeyError(name)
        return self._invalidate(unitops=[name])

    def remove_boundary(self, name: str) -> BalanceBoundary:
        return self.boundaries.pop(name)

    def _invalidate(self, components: Sequence[str] = (), streams: Sequence[str] = (),
                    unitops: Sequence[str] = ()) -> Dict[str, List[str]]:
        """Drop everything that refers to removed components, streams or unit ops."""
        dropped_streams = [n for n, s in self.streams.items()
                           if n in streams or any(c in components for c in s.components)]
        for n in dropped_streams:
            del self.streams[n]

        dropped_units = [n for n, u in self.unitops.items()
                         if n in unitops
                         or any(s in dropped_streams for s in u.inlets + u.outlets)
                         or any(c in components for c in _component_refs(u.params))]
        for n in dropped_units:
            del self.unitops[n]
        kept = [n for n in self.rununits if n not in dropped_units]
        new_index = {n: i for i, n in enumerate(kept)}
        self.runorder = [new_index[self.rununits[i]] for i in self.runorder if self.rununits[i] in new_index]
        self.rununits = kept

        dropped_boundaries = [n for n, b in self.boundaries.items()
                              if any(u in dropped_units for u in b.units)]
        for n in dropped_boundaries:
            del self.boundaries[n]
        self.rebuild_boundaries()

        return {"streams": dropped_streams, "unitops": dropped_units, "boundaries": dropped_boundaries}

    # ------------------------------------------------------------------
    # Reconciliation
    # ------------------------------------------------------------------
    def _selected(self, boundaries: Optional[Sequence[str]]) -> List[BalanceBoundary]:
        if boundaries is None:
            return list(self.boundaries.values())
        return [self.boundaries[n] for n in boundaries]

    def calccorrections(self, anchor: Optional[str] = None, boundaries: Optional[Sequence[str]] = None,
                        **knobs: Any) -> ReconciliationResult:
        return calccorrections(self._selected(boundaries), anchor, **knobs)

    def closemb(self, corrections: Optional[Mapping] = None, anchor: Optional[str] = None,
                boundaries: Optional[Sequence[str]] = None, **knobs: Any) -> Mapping:
        """Apply corrections (computed when not given) and rebuild every boundary."""
        if corrections is None:
            corrections = self.calccorrections(anchor, boundaries, **knobs)
        check_converged(corrections)
        apply_corrections(self.streams, corrections)
        self.rebuild_boundaries()
        return corrections
