"""
Centrality definition from the best fit Glauber refmult distribution

Thresholds are found from the simulated distribution, since it doesn't suffer
from the low multiplicity inefficiency; the reweighting function corrects
the data for that inefficiency.

"""
import sys
import logging
import pathlib
import numpy as np
import boost_histogram as bh
from iminuit import Minuit
from iminuit.cost import LeastSquares

sys.path.append(str(pathlib.Path(__file__).resolve().parents[2] / "refmult_corr"))
from lib_refmultcorr.corrector import reweight
from . import definitions, hists
from .scan import RefitResult


def centrality_bounds(simulated: bh.Histogram, xsec_mod: float = 0.0) -> np.ndarray:
    """
    Refmult thresholds for the 16 5%-wide centrality classes between 0 and 80%

    :param simulated: simulated refmult histogram
    :param xsec_mod: fractional change to the total cross section, e.g. 0.05 or -0.05
                     for the systematic variations

    :returns: 16 thresholds, ascending; the first is the lower edge of 75-80%,
              the last is the lower edge of 0-5%

    """
    values = hists.counts(simulated)
    bin_edges = hists.edges(simulated)

    total = np.sum(values) * (1.0 + xsec_mod)
    if total <= 0:
        raise ValueError(f"Simulated refmult has no entries: {total=}")

    # Number of events at or above each edge; 0 above the last edge
    tail = np.append(np.cumsum(values[::-1])[::-1], 0.0)

    fractions = definitions.CENTRALITY_UPPER[::-1] / 100.0
    return np.array(
        [bin_edges[np.argmax(tail <= fraction * total)] for fraction in fractions]
    )


def all_bounds(simulated: bh.Histogram) -> dict:
    """
    Nominal and cross section varied thresholds

    :returns: dict of name (from definitions.XSEC_MODS) to thresholds

    """
    return {
        name: centrality_bounds(simulated, mod)
        for name, mod in definitions.XSEC_MODS.items()
    }


def _weight_model(
    refmult: np.ndarray,
    p0: float,
    p1: float,
    p2: float,
    p3: float,
    p4: float,
    p5: float,
    p6: float,
) -> np.ndarray:
    """
    Reweighting function with no upper bound

    """
    return reweight(refmult, (p0, p1, p2, p3, p4, p5, p6), np.inf)


def fit_weights(
    refit: RefitResult,
    bound: float = definitions.WEIGHT_BOUND,
    fit_min: float = definitions.WEIGHT_FIT_MIN,
) -> np.ndarray:
    """
    Fit the reweighting function to the simulated / reference ratio

    Only bins with centres in [fit_min, bound) and a non-zero ratio are used.
    p2 and p3 (the scale and offset of the function's argument) are fixed.

    :param refit: high statistics best fit
    :param bound: upper end of the fit; the weight is 1 above here
    :param fit_min: lower end of the fit

    :returns: array of the 7 reweighting parameters
    :raises ValueError: if there are too few points to fit

    """
    centres = hists.centres(refit.ratio)
    ratio = hists.counts(refit.ratio)
    error = hists.errors(refit.ratio)

    keep = (centres >= fit_min) & (centres < bound) & (ratio > 0) & (error > 0)
    if np.sum(keep) < 6:
        raise ValueError(f"Not enough points to fit weights: {np.sum(keep)=}")

    cost = LeastSquares(centres[keep], ratio[keep], error[keep], _weight_model)

    fitter = Minuit(
        cost,
        p0=1.0,
        p1=0.0,
        p2=definitions.WEIGHT_SCALE,
        p3=definitions.WEIGHT_OFFSET,
        p4=0.0,
        p5=0.0,
        p6=0.0,
    )
    fitter.fixed["p2"] = True
    fitter.fixed["p3"] = True

    fitter.migrad(ncall=5000)
    if not fitter.valid:
        logging.warning(f"Weight fit not valid: {fitter.fval=}")

    return np.array(fitter.values)
