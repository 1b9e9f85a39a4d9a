from __future__ import annotations

import numpy as np

from .boundaries import BalanceBoundary


def _ratio_or_zero(num, den, defined):
    num = np.asarray(num, dtype=float)
    den = np.asarray(den, dtype=float)
    out = np.zeros(np.broadcast(num, den).shape, dtype=float)
    np.divide(num, den, out=out, where=np.broadcast_to(defined, out.shape))
    if out.ndim == 0:
        return float(out)
    return out


def conversion(b: BalanceBoundary, component: str):
    """Mass-based conversion (in - out) / in of a component over a boundary; 0 when none enters."""
    feed = b.total_in.massflow(component)
    prod = b.total_out.massflow(component)
    return _ratio_or_zero(np.subtract(feed, prod), feed, np.asarray(feed) > 0.0)


def molar_selectivity(b: BalanceBoundary, reactant: str, product: str):
    """Moles of product formed per mole of reactant consumed; 0 when no reactant enters or reacts."""
    r_in = np.asarray(b.total_in.moleflow(reactant))
    r_out = np.asarray(b.total_out.moleflow(reactant))
    p_in = np.asarray(b.total_in.moleflow(product))
    p_out = np.asarray(b.total_out.moleflow(product))
    consumed = r_in - r_out
    return _ratio_or_zero(p_out - p_in, consumed, (r_in > 0.0) & (consumed != 0.0))


selectivity = molar_selectivity
