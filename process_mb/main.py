from __future__ import annotations

from .build_flowsheet import build_flowsheet
from .inputs import InputParameters
from .io_tools import export_boundaries_to_excel, export_to_excel
from .kpis import conversion, molar_selectivity


def print_boundaries(fs) -> None:
    for name, b in fs.boundaries.items():
        atoms = ", ".join(f"{a}={r:.5f}" for a, r in b.atomclosures.items() if r is not None)
        print(f"{name}: mass closure {b.closure:.5f}; {atoms}")


def main() -> None:
    params = InputParameters
    fs = build_flowsheet(params)

    b1 = fs.boundaries["B1"]
    print(f"Ethylene conversion: {conversion(b1, 'Ethylene'):.4f}")
    print(f"Ethane selectivity:  {molar_selectivity(b1, 'Ethylene', 'Ethane'):.4f}")

    print("\n--- Before reconciliation ---")
    print_boundaries(fs)

    corrections = fs.calccorrections(
        params.RECONCILE_ANCHOR,
        params.RECONCILE_BOUNDARIES,
        lam=params.RECONCILE_LAMBDA,
        totalweight=params.RECONCILE_TOTAL_WEIGHT,
        elementweight=params.RECONCILE_ELEMENT_WEIGHT,
    )
    print("\n--- Correction factors ---")
    for s, f in corrections.items():
        print(f"{s}: {f:.5f}")

    fs.closemb(corrections)
    print("\n--- After reconciliation ---")
    print_boundaries(fs)

    export_to_excel(fs, params.STREAM_TABLE_XLSX)
    export_boundaries_to_excel(fs, params.BOUNDARIES_XLSX)
    print(f"\nWrote {params.STREAM_TABLE_XLSX} and {params.BOUNDARIES_XLSX}")


if __name__ == "__main__":
    main()
