from __future__ import annotations

from typing import Any, Optional, Sequence

from ..flowsheet_tools import DefinitionError, StreamList, UnitOp, sum_streams


def mixer(streams: StreamList, outlets: Sequence[str], inlets: Sequence[str], params: Any = None) -> None:
    if len(outlets) != 1:
        raise DefinitionError(f"Mixers can have only one outlet stream, got {len(outlets)}")
    if not inlets:
        raise DefinitionError("Mixers need at least one inlet stream")
    streams[outlets[0]] = sum_streams(streams.get_many(inlets), name=outlets[0])


class Mixer(UnitOp):
    """Sums every inlet into the single outlet."""

    def __init__(self, name: str, streams: StreamList, inlets: Sequence[str], outlets: Sequence[str], *,
                 print_diagnostics: bool = False):
        if len(outlets) != 1:
            raise DefinitionError(f"{name}: mixers can have only one outlet stream, got {len(outlets)}")
        if not inlets:
            raise DefinitionError(f"{name}: mixers need at least one inlet stream")
        super().__init__(name, streams, inlets, outlets, print_diagnostics=print_diagnostics)

    def calc(self, streams: StreamList, outlets: Sequence[str], inlets: Sequence[str],
             params: Optional[Any] = None) -> None:
        mixer(streams, outlets, inlets, params)
