from __future__ import annotations

from typing import Optional, Sequence, Tuple

from ..flowsheet_tools import DefinitionError, StreamList, UnitOp, copy_stream, sum_streams


def check_split_fractions(name: str, fractions: Sequence[float], n_outlets: int) -> Tuple[float, ...]:
    fr = tuple(float(f) for f in fractions)
    if len(fr) != n_outlets - 1:
        raise DefinitionError(
            f"{name}: need one fraction less than the number of outlets ({n_outlets - 1}), got {len(fr)}")
    for f in fr:
        if not (0.0 <= f <= 1.0):
            raise DefinitionError(f"{name}: split fractions must be in [0,1], got {f}")
    if sum(fr) > 1.0 + 1e-12:
        raise DefinitionError(f"{name}: split fractions sum to {sum(fr)} > 1")
    return fr


def flowsplitter(streams: StreamList, outlets: Sequence[str], inlets: Sequence[str],
                 params: Sequence[float]) -> None:
    """Every outlet gets the inlet composition; the last outlet takes the remainder."""
    fractions = check_split_fractions("flowsplitter", params, len(outlets))
    feed = sum_streams(streams.get_many(inlets))
    rest = max(1.0 - sum(fractions), 0.0)
    for sname, frac in zip(outlets, fractions + (rest,)):
        streams[sname] = copy_stream(feed, sname, frac)


class FlowSplitter(UnitOp):
    def __init__(self, name: str, streams: StreamList, inlets: Sequence[str], outlets: Sequence[str],
                 fractions: Sequence[float], *, print_diagnostics: bool = False):
        if not inlets:
            raise DefinitionError(f"{name}: splitters need at least one inlet stream")
        fractions = check_split_fractions(name, fractions, len(outlets))
        super().__init__(name, streams, inlets, outlets, params=fractions,
                         print_diagnostics=print_diagnostics)

    def calc(self, streams: StreamList, outlets: Sequence[str], inlets: Sequence[str],
             params: Optional[Sequence[float]] = None) -> None:
        flowsplitter(streams, outlets, inlets, params)
