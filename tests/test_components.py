from __future__ import annotations

import pytest

from process_mb.atoms import ATOMIC_WEIGHTS, atomic_weight, is_atom
from process_mb.flowsheet_tools import (
    ComponentRegistry,
    DefinitionError,
    FormulaError,
    parse_formula,
)


def test_atomic_weights():
    assert atomic_weight("H") == pytest.approx(1.0079)
    assert atomic_weight("C") == pytest.approx(12.0107)
    assert is_atom("Og")
    assert not is_atom("Xx")
    assert len(ATOMIC_WEIGHTS) == 118


def test_molar_masses(registry):
    assert registry.mr("Hydrogen") == pytest.approx(2.0158)
    assert registry.mr("Ethane") == pytest.approx(30.0688)
    assert registry["Ethylene"].Mr == pytest.approx(28.0530)


def test_registry_is_ordered_mapping(registry):
    assert registry.names() == ["Hydrogen", "Ethane", "Ethylene"]
    assert list(registry) == registry.names()
    assert len(registry) == 3
    assert "Ethane" in registry
    assert registry.lookup("Ethane").counts == (2, 6)
    assert [c.name for c in registry.enumerate()] == registry.names()
    with pytest.raises(KeyError):
        registry.lookup("Propane")


def test_define_rejects_bad_input():
    reg = ComponentRegistry()
    with pytest.raises(DefinitionError):
        reg.define("Bad", ["Xx"], [1])
    with pytest.raises(DefinitionError):
        reg.define("Bad", ["C", "H"], [1])
    with pytest.raises(DefinitionError):
        reg.define("Bad", [], [])
    with pytest.raises(DefinitionError):
        reg.define("Bad", ["C"], [0])
    with pytest.raises(DefinitionError):
        reg.define("Bad", ["C"], [1.5])
    assert len(reg) == 0


def test_duplicate_atoms_are_merged():
    reg = ComponentRegistry()
    water = reg.define("Water", ["H", "O", "H"], [1, 1, 1])
    assert water.atoms == ("H", "O")
    assert water.counts == (2, 1)
    assert water.count("H") == 2
    assert water.count("C") == 0


def test_redefinition(registry):
    same = registry.define("Ethane", ["C", "H"], [2, 6])
    assert same is registry["Ethane"]
    with pytest.raises(DefinitionError):
        registry.define("Ethane", ["C", "H"], [2, 4])


def test_parse_formula():
    assert parse_formula("C2H6") == {"C": 2, "H": 6}
    assert parse_formula("UO2(NO3)2") == {"U": 1, "O": 8, "N": 2}
    assert parse_formula("Ca(OH)2") == {"Ca": 1, "O": 2, "H": 2}
    assert parse_formula("K4(Fe(CN)6)") == {"K": 4, "Fe": 1, "C": 6, "N": 6}


@pytest.mark.parametrize("formula", ["", "C2H6)", "(CH2", "Xx2", "c2h6", "C0", "()"])
def test_parse_formula_errors(formula):
    with pytest.raises(FormulaError):
        parse_formula(formula)


def test_formula_error_is_definition_error():
    assert issubclass(FormulaError, DefinitionError)
    assert issubclass(DefinitionError, ValueError)


def test_define_formula(registry):
    comp = registry.define_formula("Propylene", "C3H6")
    assert comp.atoms == ("C", "H")
    assert comp.counts == (3, 6)
    assert comp.formula == "C3H6"
    assert comp.Mr == pytest.approx(3 * 12.0107 + 6 * 1.0079)
