from __future__ import annotations

import pytest

from process_mb.flowsheet import Flowsheet
from process_mb.flowsheet_tools import ComponentRegistry, UnitOp


@pytest.fixture
def registry():
    reg = ComponentRegistry()
    reg.define("Hydrogen", ["H"], [2])
    reg.define("Ethane", ["C", "H"], [2, 6])
    reg.define("Ethylene", ["C", "H"], [2, 4])
    return reg


@pytest.fixture
def ethylene_fs():
    """Measured ethylene hydrogenation: Feed -> Reactor -> Product -> Membrane -> H2, C2."""
    fs = Flowsheet()
    fs.add_component("Hydrogen", ["H"], [2])
    fs.add_component("Ethane", ["C", "H"], [2, 6])
    fs.add_component("Ethylene", ["C", "H"], [2, 4])

    fs.add_stream("Feed", {"Ethylene": 1.0, "Hydrogen": 2.0}, basis="mole")
    fs.add_stream("Product", {"Ethylene": 0.1, "Ethane": 0.9, "Hydrogen": 1.1}, basis="mole")
    fs.add_stream("H2", {"Hydrogen": 1.1}, basis="mole")
    fs.add_stream("C2", {"Ethylene": 0.1, "Ethane": 0.9}, basis="mole")

    fs.add_unitop(UnitOp("Reactor", fs.streams, ["Feed"], ["Product"]))
    fs.add_unitop(UnitOp("Membrane", fs.streams, ["Product"], ["H2", "C2"]))
    fs.add_boundary("B1", ["Reactor", "Membrane"])
    return fs


@pytest.fixture
def biased_fs(ethylene_fs):
    """ethylene_fs plus a feed measured 5 % low and a product measured 1 % high."""
    fs = ethylene_fs
    fs.copy_stream("Feed", "Feed2", 0.95)
    fs.copy_stream("Product", "Prod2", 1.01)
    fs.add_unitop(UnitOp("Reactor2", fs.streams, ["Feed2"], ["Prod2"]))
    fs.add_unitop(UnitOp("Membrane2", fs.streams, ["Prod2"], ["H2", "C2"]))
    fs.add_boundary("B2", ["Reactor2", "Membrane2"])
    return fs
