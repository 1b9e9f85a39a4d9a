from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np

from .flowsheet_tools import BoundaryError, ConsistencyError, Stream, StreamList, UnitOp, sum_streams

AtomClosures = Dict[str, Optional[float]]


def boundary_streams(unitops: Mapping[str, UnitOp],
                     units: Sequence[str]) -> Tuple[List[str], List[str], List[str]]:
    """
    Cut-set of a group of unit operations.

    Returns (inlets, outlets, internals): streams entering from outside the
    group, streams leaving it, and streams produced and consumed inside it.
    """
    if not units:
        raise BoundaryError("A boundary needs at least one unit operation")
    ins: List[str] = []
    outs: List[str] = []
    for uname in units:
        unit = unitops[uname]
        for s in unit.inlets:
            if s not in ins:
                ins.append(s)
        for s in unit.outlets:
            if s not in outs:
                outs.append(s)

    inlets = [s for s in ins if s not in outs]
    outlets = [s for s in outs if s not in ins]
    internals = [s for s in ins if s in outs]
    if not inlets:
        raise BoundaryError(f"Zero inlet streams to the boundary around {list(units)}")
    if not outlets:
        raise BoundaryError(f"Zero outlet streams from the boundary around {list(units)}")
    return inlets, outlets, internals


@dataclass(frozen=True)
class StreamConnection:
    stream: str
    kind: str
    source: Optional[str]
    sink: Optional[str]


def stream_connections(unitops: Mapping[str, UnitOp], units: Sequence[str]) -> List[StreamConnection]:
    """Feeds, products and internal streams of a group of units with the units they connect."""
    inlets, outlets, internals = boundary_streams(unitops, units)

    def producer(sname: str) -> Optional[str]:
        for uname in units:
            if sname in unitops[uname].outlets:
                return uname
        return None

    def consumer(sname: str) -> Optional[str]:
        for uname in units:
            if sname in unitops[uname].inlets:
                return uname
        return None

    conns = [StreamConnection(s, "feed", None, consumer(s)) for s in inlets]
    conns += [StreamConnection(s, "internal", producer(s), consumer(s)) for s in internals]
    conns += [StreamConnection(s, "product", producer(s), None) for s in outlets]
    return conns


def shared_streamlist(unitops: Mapping[str, UnitOp], units: Sequence[str]) -> StreamList:
    lists = [unitops[u].streams for u in units]
    for other in lists[1:]:
        if other is not lists[0]:
            raise ConsistencyError(f"Units {list(units)} do not share one stream list")
    return lists[0]


def _ratio(num, den):
    if np.ndim(den) == 0:
        den = float(den)
        return None if den == 0.0 else float(num) / den
    num = np.asarray(num, dtype=float)
    den = np.asarray(den, dtype=float)
    out = np.full(den.shape, np.nan)
    np.divide(num, den, out=out, where=den != 0.0)
    return out


class BalanceBoundary:
    """
    Mass balance envelope around a group of unit operations.

    ``closure`` is total mass out / in; ``atomclosures`` gives the same ratio
    per element (None where the element does not enter).  For stream histories
    ``closure`` is an array over time (NaN where nothing enters) and
    ``atomclosures`` is a list with one dict per timestamp.
    """

    def __init__(self, name: str, unitops: Mapping[str, UnitOp], units: Sequence[str]):
        self.name = str(name)
        self.unitops = unitops
        self.units: Tuple[str, ...] = tuple(units)
        inlets, outlets, internals = boundary_streams(unitops, self.units)
        self.streams = shared_streamlist(unitops, self.units)
        self.inlets: Tuple[str, ...] = tuple(inlets)
        self.outlets: Tuple[str, ...] = tuple(outlets)
        self.internals: Tuple[str, ...] = tuple(internals)

        self.total_in: Stream = sum_streams(self.streams.get_many(self.inlets))
        self.total_out: Stream = sum_streams(self.streams.get_many(self.outlets))
        self.total_in.check_compatible(self.total_out, "balance")

        self.closure = _ratio(self.total_out.totalmassflow, self.total_in.totalmassflow)
        self.atomclosures = self._atom_closures()

    @property
    def numdata(self) -> int:
        return self.total_in.numdata

    @property
    def atoms(self) -> List[str]:
        atoms = list(self.total_in.atoms)
        return atoms + [a for a in self.total_out.atoms if a not in atoms]

    def _atom_closures(self) -> Union[AtomClosures, List[AtomClosures]]:
        ratios = {a: _ratio(self.total_out.atomflow(a), self.total_in.atomflow(a)) for a in self.atoms}
        if self.total_in.timestamps is None:
            return ratios
        rows: List[AtomClosures] = []
        for t in range(self.numdata):
            rows.append({a: (None if np.isnan(r[t]) else float(r[t])) for a, r in ratios.items()})
        return rows

    def rebuild(self) -> BalanceBoundary:
        return BalanceBoundary(self.name, self.unitops, self.units)

    def __repr__(self) -> str:
        return (f"BalanceBoundary({self.name!r}, units={list(self.units)}, "
                f"inlets={list(self.inlets)}, outlets={list(self.outlets)})")
