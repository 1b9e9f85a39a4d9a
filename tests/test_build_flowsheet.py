from __future__ import annotations

import os

import pytest

from process_mb.build_flowsheet import build_flowsheet
from process_mb.inputs import InputParameters
from process_mb.kpis import conversion, molar_selectivity
from process_mb.main import main


def test_simulated_section():
    fs = build_flowsheet()
    assert fs.component_names() == ["Hydrogen", "Ethane", "Ethylene"]
    product = fs.streams["Product"]
    assert product.moleflow("Ethane") == pytest.approx(0.9)
    assert product.moleflow("Ethylene") == pytest.approx(0.1)
    assert product.moleflow("Hydrogen") == pytest.approx(1.1)
    assert fs.streams["H2"].components == ("Ethylene", "Hydrogen", "Ethane")
    assert fs.streams["H2"].totalmoleflow == pytest.approx(1.1)
    assert fs.streams["C2"].moleflow("Hydrogen") == 0.0

    b1 = fs.boundaries["B1"]
    assert b1.closure == pytest.approx(1.0)
    assert b1.total_in.totalmassflow == pytest.approx(32.0846)
    assert conversion(b1, "Ethylene") == pytest.approx(0.9)
    assert molar_selectivity(b1, "Ethylene", "Ethane") == pytest.approx(1.0)


def test_measured_section():
    fs = build_flowsheet()
    assert fs.streams["Feed2"].totalmassflow == pytest.approx(0.95 * 32.0846)
    assert fs.boundaries["B2"].inlets == ("Feed2",)
    assert fs.boundaries["B2"].internals == ("Prod2",)
    assert fs.boundaries["B2"].closure == pytest.approx(1 / 0.95)


def test_reconcile_demo():
    fs = build_flowsheet()
    corrections = fs.calccorrections(InputParameters.RECONCILE_ANCHOR, InputParameters.RECONCILE_BOUNDARIES,
                                     lam=InputParameters.RECONCILE_LAMBDA)
    fs.closemb(corrections)
    assert fs.boundaries["B2"].closure == pytest.approx(1.0, abs=1e-2)


def test_main_writes_reports(tmp_path, monkeypatch, capsys):
    monkeypatch.chdir(tmp_path)
    main()
    assert os.path.exists(InputParameters.STREAM_TABLE_XLSX)
    assert os.path.exists(InputParameters.BOUNDARIES_XLSX)
    out = capsys.readouterr().out
    assert "Correction factors" in out
    assert "Feed2" in out
