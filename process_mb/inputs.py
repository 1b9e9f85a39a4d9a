from __future__ import annotations


class InputParameters:
    # -------------------------------------------------------------------------
    # COMPONENTS (name -> formula)
    # -------------------------------------------------------------------------
    COMPONENTS = {
        "Hydrogen": "H2",
        "Ethane": "C2H6",
        "Ethylene": "C2H4",
    }

    # -------------------------------------------------------------------------
    # FEED (mol/time)
    # -------------------------------------------------------------------------
    FEED_MOL = {
        "Ethylene": 1.0,
        "Hydrogen": 2.0,
    }

    # -------------------------------------------------------------------------
    # REACTOR: ethylene hydrogenation, fixed conversion of the key component
    # -------------------------------------------------------------------------
    REACTIONS = [
        {
            "reactants": ["Ethylene", "Hydrogen"],
            "products": ["Ethane"],
            "reactcoeffs": [1.0, 1.0],
            "prodcoeffs": [1.0],
            "targetcomp": "Ethylene",
            "targetconversion": 0.9,
        },
    ]

    # -------------------------------------------------------------------------
    # MEMBRANE: hydrogen permeates; everything else leaves with the C2 product
    # -------------------------------------------------------------------------
    MEMBRANE_OUTLETS = ["H2", "C2"]
    MEMBRANE_SPLITS = {"Hydrogen": {"H2": 1.0}}

    # -------------------------------------------------------------------------
    # MEASUREMENTS: instrument bias applied to the simulated streams
    # -------------------------------------------------------------------------
    MEASUREMENT_BIAS = {
        "Feed": ("Feed2", 0.95),
        "Product": ("Prod2", 1.01),
    }

    # -------------------------------------------------------------------------
    # RECONCILIATION
    # -------------------------------------------------------------------------
    RECONCILE_BOUNDARIES = ["B2"]
    RECONCILE_ANCHOR = None
    RECONCILE_LAMBDA = 0.1
    RECONCILE_TOTAL_WEIGHT = 1.0
    RECONCILE_ELEMENT_WEIGHT = 1.0

    # -------------------------------------------------------------------------
    # REPORTS
    # -------------------------------------------------------------------------
    STREAM_TABLE_XLSX = "stream_table.xlsx"
    BOUNDARIES_XLSX = "mass_balances.xlsx"
