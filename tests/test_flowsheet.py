from __future__ import annotations

from datetime import datetime, timedelta

import pytest
from numpy.testing import assert_allclose

from process_mb.flowsheet import Flowsheet
from process_mb.flowsheet_tools import ConsistencyError, DefinitionError, StreamList, UnitOp
from process_mb.unitops import ComponentSplitter, Mixer, Reaction, StoichiometricReactor


def recorder(log):
    def calc(streams, outlets, inlets, params):
        log.append(params)
    return calc


@pytest.fixture
def ordered_fs():
    fs = Flowsheet()
    fs.add_component("Hydrogen", ["H"], [2])
    for name in ("A", "B", "C"):
        fs.add_stream(name, {"Hydrogen": 1.0})
    log = []
    fs.add_unitop(UnitOp("U1", fs.streams, ["A"], ["B"], recorder(log), "U1"))
    fs.add_unitop(UnitOp("U2", fs.streams, ["B"], ["C"], recorder(log), "U2"))
    return fs, log


def test_build_and_run_mixer():
    fs = Flowsheet()
    fs.add_component_formula("Hydrogen", "H2")
    fs.add_component_formula("Ethane", "C2H6")
    fs.add_stream("H2", {"Hydrogen": 1.0}, basis="mole")
    fs.add_stream("C2", {"Ethane": 1.0}, basis="mole")
    fs.add_empty_stream("Mixed")
    fs.add_unitop(Mixer("Mixer", fs.streams, ["H2", "C2"], ["Mixed"]))
    assert fs.rununits == ["Mixer"]
    assert fs.runorder == [0]

    fs.run()
    assert fs.streams["Mixed"].totalmoleflow == pytest.approx(2.0)
    assert fs.component_names() == ["Hydrogen", "Ethane"]
    assert fs.stream_names() == ["H2", "C2", "Mixed"]


def test_duplicates_are_rejected(ordered_fs):
    fs, _ = ordered_fs
    with pytest.raises(ValueError):
        fs.add_stream("A", {"Hydrogen": 2.0})
    with pytest.raises(ValueError):
        fs.add_unitop(UnitOp("U1", fs.streams, ["A"], ["C"]))


def test_unitop_must_use_flowsheet_streams(ordered_fs):
    fs, _ = ordered_fs
    foreign = StreamList([fs.streams["A"], fs.streams["B"]])
    with pytest.raises(ConsistencyError):
        fs.add_unitop(UnitOp("U3", foreign, ["A"], ["B"]))


def test_run_order_may_repeat_and_omit(ordered_fs):
    fs, log = ordered_fs
    fs.set_order([1, 0, 1])
    fs.run()
    assert log == ["U2", "U1", "U2"]

    log.clear()
    fs.set_order([1])
    fs.run()
    assert log == ["U2"]
    with pytest.raises(DefinitionError):
        fs.set_order([2])


def test_run_override_is_not_persisted(ordered_fs, capsys):
    fs, log = ordered_fs
    fs.run(order=["U2", 0], verbose=True)
    assert log == ["U2", "U1"]
    assert fs.runorder == [0, 1]
    assert "[0] U2" in capsys.readouterr().out
    with pytest.raises(DefinitionError):
        fs.run(order=["U9"])


def test_add_to_run(ordered_fs):
    fs, log = ordered_fs
    fs.add_unitop(UnitOp("U3", fs.streams, ["C"], ["A"], recorder(log), "U3"), run=False)
    assert fs.rununits == ["U1", "U2"]
    fs.add_to_run("U3")
    fs.add_to_run("U3")
    assert fs.rununits == ["U1", "U2", "U3"]
    assert fs.runorder == [0, 1, 2]
    with pytest.raises(DefinitionError):
        fs.add_to_run("U4")


def test_remove_component_cascades(ethylene_fs):
    removed = ethylene_fs.remove_component("Ethane")
    assert removed == {"streams": ["Product", "C2"], "unitops": ["Reactor", "Membrane"], "boundaries": ["B1"]}
    assert ethylene_fs.stream_names() == ["Feed", "H2"]
    assert ethylene_fs.unitops == {}
    assert ethylene_fs.rununits == []
    assert ethylene_fs.runorder == []
    assert ethylene_fs.boundaries == {}
    assert "Ethane" not in ethylene_fs.comps


def test_remove_component_drops_reactor_whose_reaction_uses_it():
    fs = Flowsheet()
    fs.add_component("Hydrogen", ["H"], [2])
    fs.add_component("Ethylene", ["C", "H"], [2, 4])
    fs.add_component("Ethane", ["C", "H"], [2, 6])
    fs.add_component("Nitrogen", ["N"], [2])
    fs.add_stream("Feed", {"Ethylene": 1.0, "Hydrogen": 1.0, "Nitrogen": 1.0}, basis="mole")
    for name in ("Product", "Gas", "Rest"):
        fs.add_empty_stream(name)
    rxn = Reaction(fs.comps, ["Ethylene", "Hydrogen"], ["Ethane"], [1, 1], [1], "Ethylene", 0.5)
    fs.add_unitop(StoichiometricReactor("Reactor", fs.streams, ["Feed"], ["Product"], [rxn]))
    fs.add_unitop(ComponentSplitter("Sep", fs.streams, ["Feed"], ["Gas", "Rest"],
                                    {"Nitrogen": {"Gas": 1.0}}))

    # no stream carries Ethane before the reactor has run
    removed = fs.remove_component("Ethane")
    assert removed["streams"] == []
    assert removed["unitops"] == ["Reactor"]
    assert list(fs.unitops) == ["Sep"]
    assert fs.rununits == ["Sep"]
    assert fs.runorder == [0]
    fs.run()
    assert fs.streams["Gas"].moleflow("Nitrogen") == pytest.approx(1.0)


def test_remove_stream_cascades(biased_fs):
    removed = biased_fs.remove_stream("Prod2")
    assert removed["unitops"] == ["Reactor2", "Membrane2"]
    assert removed["boundaries"] == ["B2"]
    assert biased_fs.rununits == ["Reactor", "Membrane"]
    assert list(biased_fs.boundaries) == ["B1"]


def test_remove_unitop_remaps_run_order(ordered_fs):
    fs, log = ordered_fs
    fs.set_order([1, 0, 1])
    fs.remove_unitop("U1")
    assert fs.rununits == ["U2"]
    assert fs.runorder == [0, 0]
    fs.run()
    assert log == ["U2", "U2"]


def test_remove_boundary(ethylene_fs):
    b = ethylene_fs.remove_boundary("B1")
    assert b.name == "B1"
    assert ethylene_fs.boundaries == {}


def test_rename_stream_updates_references(ethylene_fs):
    ethylene_fs.rename_stream("Feed", "FreshFeed")
    assert "Feed" not in ethylene_fs.streams
    assert ethylene_fs.unitops["Reactor"].inlets == ("FreshFeed",)
    assert ethylene_fs.boundaries["B1"].inlets == ("FreshFeed",)
    assert ethylene_fs.boundaries["B1"].closure == pytest.approx(1.0)


def test_adding_components_refreshes_streams(ethylene_fs):
    feed = ethylene_fs.streams["Feed"]
    ethylene_fs.add_component("Water", ["H", "O"], [2, 1])
    refreshed = ethylene_fs.streams["Feed"]
    assert refreshed is not feed
    assert_allclose(refreshed.massflows, feed.massflows)
    ethylene_fs.add_stream("Steam", {"Water": 18.0152})
    assert ethylene_fs.streams["Steam"].moleflow("Water") == pytest.approx(1.0)


def test_fixed_and_empty_streams_follow_history_axis():
    times = [datetime(2024, 1, 1) + timedelta(hours=h) for h in range(3)]
    fs = Flowsheet()
    fs.add_component("Hydrogen", ["H"], [2])
    fs.add_stream_history("Measured", ["Hydrogen"], times, [[1.0], [2.0], [3.0]])
    fixed = fs.add_fixed_stream("Makeup", {"Hydrogen": 0.5})
    empty = fs.add_empty_stream("Vent")
    assert fixed.timestamps == tuple(times)
    assert_allclose(fixed.totalmassflow, [0.5, 0.5, 0.5])
    assert_allclose(empty.totalmassflow, [0.0, 0.0, 0.0])


def test_flowsheet_closemb(biased_fs):
    corrections = biased_fs.closemb(anchor="Feed2", boundaries=["B2"], lam=0.0)
    assert corrections["Feed2"] == 1.0
    assert biased_fs.boundaries["B2"].closure == pytest.approx(1.0, abs=1e-4)
    # B1 shares H2 and C2 and is rebuilt from the corrected values
    assert biased_fs.boundaries["B1"].closure == pytest.approx(0.95, abs=1e-4)
