from __future__ import annotations

import csv
import os
from datetime import datetime
from typing import Any, List, Sequence, Tuple

import numpy as np
from openpyxl import Workbook

from .flowsheet import Flowsheet
from .flowsheet_tools import EPS, Component, ComponentRegistry, DefinitionError, StreamHistory

TIMESTAMP_FORMAT = "%Y/%m/%d %H:%M"


# ----------------------------------------------------------------------------
# Component files
# ----------------------------------------------------------------------------
def write_component(path: str, comp: Component) -> None:
    """Name, number of atoms, the atoms, their counts and Mr, one per line."""
    lines = [comp.name, str(len(comp.atoms))]
    lines += list(comp.atoms)
    lines += [str(n) for n in comp.counts]
    lines.append(repr(comp.Mr))
    with open(path, "w", encoding="utf-8") as fh:
        fh.write("\n".join(lines) + "\n")


def read_component(path: str) -> Tuple[str, List[str], List[int]]:
    with open(path, encoding="utf-8") as fh:
        lines = [ln.strip() for ln in fh if ln.strip()]
    try:
        name = lines[0]
        n = int(lines[1])
        atoms = lines[2:2 + n]
        counts = [int(x) for x in lines[2 + n:2 + 2 * n]]
    except (IndexError, ValueError) as exc:
        raise DefinitionError(f"{path}: not a component file ({exc})") from exc
    if len(atoms) != n or len(counts) != n:
        raise DefinitionError(f"{path}: expected {n} atoms and {n} counts")
    return name, atoms, counts


def read_component_list(registry: ComponentRegistry, folder: str, names: Sequence[str]) -> int:
    """Define every component found as ``<folder>/<name>.comp`` (lower case); returns how many were read."""
    available = {f.lower(): f for f in os.listdir(folder)}
    count = 0
    for name in names:
        fname = available.get(f"{name}.comp".lower())
        if fname is None:
            print(f"[read_component_list] component file for '{name}' not found in {folder}")
            continue
        _, atoms, counts = read_component(os.path.join(folder, fname))
        registry.define(name, atoms, counts)
        count += 1
    return count


# ----------------------------------------------------------------------------
# Measured stream histories
# ----------------------------------------------------------------------------
def read_stream_history(path: str, name: str, registry: ComponentRegistry,
                        basis: str = "mass") -> StreamHistory:
    """
    CSV with a header row ``timestamp, comp1, comp2, ...`` and one row per
    sample, timestamps formatted ``yyyy/mm/dd HH:MM``.
    """
    with open(path, newline="", encoding="utf-8") as fh:
        reader = csv.reader(fh)
        header = next(reader, None)
        if not header or len(header) < 2:
            raise DefinitionError(f"{path}: header must list a timestamp column and components")
        components = [h.strip() for h in header[1:]]
        timestamps: List[datetime] = []
        rows: List[List[float]] = []
        for lineno, row in enumerate(reader, start=2):
            if not row or not "".join(row).strip():
                continue
            if len(row) != len(header):
                raise DefinitionError(f"{path}:{lineno}: expected {len(header)} columns, got {len(row)}")
            try:
                timestamps.append(datetime.strptime(row[0].strip(), TIMESTAMP_FORMAT))
                rows.append([float(x) for x in row[1:]])
            except ValueError as exc:
                raise DefinitionError(f"{path}:{lineno}: {exc}") from exc

    flows = np.array(rows, dtype=float).reshape(len(rows), len(components))
    return StreamHistory(name, registry, components, timestamps, flows, basis)


# ----------------------------------------------------------------------------
# Excel reports
# ----------------------------------------------------------------------------
def _safe_sheet_name(name: str) -> str:
    # Excel: <= 31 chars, no : \ / ? * [ ]
    for b in [":", "\\", "/", "?", "*", "[", "]"]:
        name = name.replace(b, "_")
    name = name.strip()
    if not name:
        name = "Sheet"
    return name[:31]


def _cell(v: Any) -> Any:
    # one Excel cell per value; histories are summarised by their mean
    if v is None:
        return ""
    if np.ndim(v) > 0:
        v = np.asarray(v, dtype=float)
        return float(np.nanmean(v)) if v.size and not np.all(np.isnan(v)) else ""
    return float(v)


def export_to_excel(fs: Flowsheet, path: str) -> None:
    """
    Stream table.  Stream histories are reported as their time-average.
    """
    wb = Workbook()
    ws = wb.active
    ws.title = "Streams"
    ws.append(["stream", "samples", "m_total [mass/time]", "n_total [mol/time]"])
    for sname in sorted(fs.streams.keys()):
        s = fs.streams[sname]
        ws.append([s.name, s.numdata, _cell(s.totalmassflow), _cell(s.totalmoleflow)])

    comps = fs.component_names()
    ws2 = wb.create_sheet("MassFlows")
    ws2.append(["stream"] + comps)
    for sname in sorted(fs.streams.keys()):
        s = fs.streams[sname]
        ws2.append([s.name] + [_cell(s.massflow(c)) for c in comps])

    ws3 = wb.create_sheet("MoleFlows")
    ws3.append(["stream"] + comps)
    for sname in sorted(fs.streams.keys()):
        s = fs.streams[sname]
        ws3.append([s.name] + [_cell(s.moleflow(c)) for c in comps])

    atoms: List[str] = []
    for c in fs.comps.enumerate():
        for a in c.atoms:
            if a not in atoms:
                atoms.append(a)
    ws4 = wb.create_sheet("AtomFlows")
    ws4.append(["stream"] + atoms)
    for sname in sorted(fs.streams.keys()):
        s = fs.streams[sname]
        ws4.append([s.name] + [_cell(s.atomflow(a)) for a in atoms])

    ws5 = wb.create_sheet("MoleFractions")
    ws5.append(["stream"] + comps)
    for sname in sorted(fs.streams.keys()):
        s = fs.streams[sname]
        n_tot = _cell(s.totalmoleflow)
        ws5.append([s.name] + [(_cell(s.moleflow(c)) / n_tot) if n_tot != "" and n_tot > EPS else 0.0
                               for c in comps])

    wb.save(path)


def export_boundaries_to_excel(fs: Flowsheet, path: str) -> None:
    """
    One sheet per balance boundary with:
      - enclosed units
      - feeds, products and internal streams
      - mass and element closures
      - total in/out flows per component
    """
    wb = Workbook()
    wb.remove(wb.active)

    for bname, b in fs.boundaries.items():
        ws = wb.create_sheet(_safe_sheet_name(bname))
        ws.append(["Boundary", bname])
        ws.append(["Units", ", ".join(b.units)])
        ws.append(["Inlets", ", ".join(b.inlets)])
        ws.append(["Outlets", ", ".join(b.outlets)])
        ws.append(["Internals", ", ".join(b.internals)])
        ws.append([])

        ws.append(["Closure", "out/in"])
        ws.append(["mass", _cell(b.closure)])
        atomclosures = b.atomclosures
        for a in b.atoms:
            if isinstance(atomclosures, dict):
                ws.append([a, _cell(atomclosures[a])])
            else:
                ws.append([a, _cell([np.nan if row[a] is None else row[a] for row in atomclosures])])
        ws.append([])

        ws.append(["component", "in [mass/time]", "out [mass/time]"])
        comps = list(b.total_in.components) + [c for c in b.total_out.components
                                               if c not in b.total_in.components]
        for c in comps:
            ws.append([c, _cell(b.total_in.massflow(c)), _cell(b.total_out.massflow(c))])
        ws.append(["total", _cell(b.total_in.totalmassflow), _cell(b.total_out.totalmassflow)])

    if not wb.sheetnames:
        wb.create_sheet("Boundaries").append(["No balance boundaries defined"])
    wb.save(path)
