"""
Normalisation and goodness-of-fit between a simulated and a reference
refmult histogram

Only the bins from the one containing the minimum multiplicity upwards are
used in the chi2 (and in the StGlauber normalisation); the low multiplicity
region is where the trigger/vertex inefficiencies live.

"""
import logging
from typing import Tuple
import numpy as np
import boost_histogram as bh
from scipy.stats import chi2 as chi2_dist

from . import definitions, hists


class HistogramComparator:
    """
    Normalises a simulated histogram to a reference and scores the agreement

    """

    def __init__(
        self,
        norm_mode: str = "stglauber",
        chi2_mode: str = "stglauber",
        min_mult: float = definitions.MIN_MULT,
    ):
        """
        :param norm_mode: "integral" to normalise over every bin,
                          "stglauber" to normalise over the bins above min_mult
        :param chi2_mode: "root" for the ROOT Chi2Test "UU NORM" statistic,
                          "stglauber" for the chi2 using only the reference errors
        :param min_mult: minimum multiplicity used in the fit

        """
        assert norm_mode in {"integral", "stglauber"}
        assert chi2_mode in {"root", "stglauber"}

        self.norm_mode = norm_mode
        self.chi2_mode = chi2_mode
        self.min_mult = min_mult

    def normalize(self, simulated: bh.Histogram, reference: bh.Histogram) -> float:
        """
        Factor to multiply the simulated histogram by to match the reference

        :param simulated: simulated refmult histogram
        :param reference: reference (data) refmult histogram

        :returns: the scale factor

        """
        hists.check_binning(simulated, reference)

        if self.norm_mode == "integral":
            # ROOT's TH1::Integral convention, no flow bins
            numerator = hists.integral(reference)
            denominator = hists.integral(simulated)
            if denominator <= 0.0:
                logging.warning("Simulated histogram empty; using norm 1.0")
                return 1.0

            return numerator / denominator

        mask = hists.above(reference, self.min_mult)
        denominator = hists.integral(simulated, mask)
        if denominator <= 0.0:
            logging.warning(
                f"Simulated histogram empty above {self.min_mult}; using norm 1.0"
            )
            return 1.0

        return hists.integral(reference, mask) / denominator

    def _included(self, reference: bh.Histogram) -> np.ndarray:
        """
        Mask of bins used in the chi2

        """
        return (
            hists.above(reference, self.min_mult)
            & (hists.counts(reference) > 0)
            & (hists.errors(reference) > 0)
        )

    def chi2(
        self, simulated: bh.Histogram, reference: bh.Histogram
    ) -> Tuple[float, int]:
        """
        Chi2 and number of degrees of freedom

        :param simulated: simulated refmult histogram, already normalised
        :param reference: reference (data) refmult histogram

        :returns: chi2
        :returns: number of degrees of freedom

        """
        hists.check_binning(simulated, reference)

        mask = self._included(reference)
        ref = hists.counts(reference)[mask]
        sim = hists.counts(simulated)[mask]

        if self.chi2_mode == "stglauber":
            ref_err = hists.errors(reference)[mask]
            return float(np.sum(((ref - sim) / ref_err) ** 2)), int(np.sum(mask))

        # Both histograms are treated as unweighted and normalised to the
        # same total over the bins used
        in_range = hists.above(reference, self.min_mult)
        ref_total = hists.integral(reference, in_range)
        sim_total = hists.integral(simulated, in_range)
        if ref_total <= 0.0 or sim_total <= 0.0:
            logging.warning("Empty histogram in chi2 range")
            return 0.0, 0

        denominator = ref + sim
        filled = denominator > 0
        chi2 = np.sum(
            (sim_total * ref[filled] - ref_total * sim[filled]) ** 2
            / (ref_total * sim_total * denominator[filled])
        )

        return float(chi2), int(np.sum(mask)) - 1

    def chi2_ndf(self, simulated: bh.Histogram, reference: bh.Histogram) -> float:
        """
        chi2 / ndf; infinite if there are no degrees of freedom

        """
        chi2, ndf = self.chi2(simulated, reference)
        return chi2 / ndf if ndf > 0 else np.inf


def p_value(chi2: float, ndf: int) -> float:
    """
    Probability of a chi2 at least this large

    """
    if ndf <= 0:
        return np.nan

    return float(chi2_dist.sf(chi2, ndf))
