from __future__ import annotations

from typing import Type

from .flowsheet import Flowsheet
from .flowsheet_tools import UnitOp
from .inputs import InputParameters
from .unitops import ComponentSplitter, Reaction, StoichiometricReactor


# ------------------------------------------------------------------------------
# COMPONENTS
# ------------------------------------------------------------------------------

def build_components(fs: Flowsheet, params: Type[InputParameters] = InputParameters) -> None:
    for name, formula in params.COMPONENTS.items():
        fs.add_component_formula(name, formula)


def build_reactions(fs: Flowsheet, params: Type[InputParameters] = InputParameters) -> list:
    return [
        Reaction(fs.comps, r["reactants"], r["products"], r["reactcoeffs"], r["prodcoeffs"],
                 r["targetcomp"], r["targetconversion"])
        for r in params.REACTIONS
    ]


# ------------------------------------------------------------------------------
# FLOWSHEET
# ------------------------------------------------------------------------------

def build_flowsheet(params: Type[InputParameters] = InputParameters, *, verbose: bool = False) -> Flowsheet:
    """
    Feed -> Reactor -> Product -> Membrane -> H2, C2

    After the simulated units run, biased copies of Feed and Product stand in
    for plant measurements and get their own (passive) Reactor2 / Membrane2.
    Boundaries: B1 around the simulated units, B2 around the measured ones.
    """
    fs = Flowsheet()
    build_components(fs, params)

    # --------------------------------------------------------------------------
    # Simulated section
    # --------------------------------------------------------------------------
    fs.add_stream("Feed", params.FEED_MOL, basis="mole")
    for name in ["Product"] + list(params.MEMBRANE_OUTLETS):
        fs.add_empty_stream(name)

    fs.add_unitop(StoichiometricReactor("Reactor", fs.streams, ["Feed"], ["Product"],
                                        build_reactions(fs, params), print_diagnostics=verbose))
    fs.add_unitop(ComponentSplitter("Membrane", fs.streams, ["Product"], params.MEMBRANE_OUTLETS,
                                    params.MEMBRANE_SPLITS, print_diagnostics=verbose))
    fs.run(verbose=verbose)

    # --------------------------------------------------------------------------
    # Measured section
    # --------------------------------------------------------------------------
    for source, (target, bias) in params.MEASUREMENT_BIAS.items():
        fs.copy_stream(source, target, bias)
    feed2, prod2 = (params.MEASUREMENT_BIAS[s][0] for s in ("Feed", "Product"))
    fs.add_unitop(UnitOp("Reactor2", fs.streams, [feed2], [prod2]))
    fs.add_unitop(UnitOp("Membrane2", fs.streams, [prod2], params.MEMBRANE_OUTLETS))

    fs.add_boundary("B1", ["Reactor", "Membrane"])
    fs.add_boundary("B2", ["Reactor2", "Membrane2"])
    return fs
