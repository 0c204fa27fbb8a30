"""
Grid scan over the NBD parameters (Npp, k, x)

Each point in the grid gets its own random stream, derived from the global
seed and the point's indices, so the scan gives the same results however it
is run.

"""
import logging
from functools import partial
from multiprocessing import get_context
from typing import Dict, Iterable, NamedTuple, Optional, Tuple
import numpy as np
import boost_histogram as bh
from tqdm import tqdm

from . import definitions, hists
from .comparator import HistogramComparator
from .model import (
    DetectorParams,
    ModelParameters,
    MultiplicityModel,
    ParticipantTable,
    model_parameters,
)
from .random_source import RandomSource


class Axis(NamedTuple):
    """
    Inclusive range of values for one of the scanned parameters

    """

    low: float
    high: float
    steps: int

    def values(self) -> np.ndarray:
        """
        Evenly spaced values; just the low value if there's only one step

        :raises ValueError: if steps < 1 or the range is backwards

        """
        if self.steps < 1:
            raise ValueError(f"Need at least one step: {self.steps=}")
        if self.high < self.low:
            raise ValueError(f"{self.low=} is above {self.high=}")

        return np.linspace(self.low, self.high, self.steps)


class ScanKey(NamedTuple):
    """Identifies a point in the grid"""

    npp: float
    k: float
    x: float


class FitResult(NamedTuple):
    """
    Normalised simulated histogram and the score at one grid point

    simulated is None if the histograms weren't kept

    """

    simulated: Optional[bh.Histogram]
    reference: bh.Histogram
    chi2: float
    ndf: int

    @property
    def chi2_ndf(self) -> float:
        """chi2 / ndf; infinite if there are no degrees of freedom"""
        return self.chi2 / self.ndf if self.ndf > 0 else np.inf


class RefitResult(NamedTuple):
    """
    The best fit point regenerated at high statistics

    """

    key: ScanKey
    simulated: bh.Histogram
    reference: bh.Histogram
    ratio: bh.Histogram
    chi2: float
    ndf: int

    @property
    def chi2_ndf(self) -> float:
        """chi2 / ndf; infinite if there are no degrees of freedom"""
        return self.chi2 / self.ndf if self.ndf > 0 else np.inf


def format_key(key: ScanKey) -> str:
    """
    String used to label a grid point in output files

    e.g. npp_2.380_k_1.650_x_0.130

    """
    return f"npp_{key.npp:.3f}_k_{key.k:.3f}_x_{key.x:.3f}"


def parse_key(label: str) -> ScanKey:
    """
    Inverse of `format_key`

    :raises ValueError: if the string isn't a key

    """
    parts = label.split("_")
    if len(parts) != 6 or parts[0::2] != ["npp", "k", "x"]:
        raise ValueError(f"Not a scan key: {label}")

    return ScanKey(*(float(value) for value in parts[1::2]))


def simulate(
    table: ParticipantTable,
    reference: bh.Histogram,
    params: ModelParameters,
    comparator: HistogramComparator,
    n_events: int,
    rng: RandomSource,
) -> Tuple[bh.Histogram, float, int]:
    """
    Generate a simulated histogram with the reference binning, normalise it and
    compare it to the reference

    :returns: normalised simulated histogram
    :returns: chi2
    :returns: number of degrees of freedom

    """
    simulated = MultiplicityModel(table, params).fill(
        hists.edges(reference), n_events, rng
    )
    simulated = hists.scaled(simulated, comparator.normalize(simulated, reference))

    chi2, ndf = comparator.chi2(simulated, reference)

    return simulated, chi2, ndf


def _fit_point(
    table: ParticipantTable,
    reference: bh.Histogram,
    comparator: HistogramComparator,
    n_events: int,
    seed: int,
    point: Tuple[Tuple[int, int, int], ModelParameters],
) -> Tuple[bh.Histogram, float, int]:
    """
    Evaluate one grid point with its own random stream

    Module level so that it can be sent to other processes

    """
    indices, params = point
    return simulate(
        table,
        reference,
        params,
        comparator,
        n_events,
        RandomSource(seed).child(*indices),
    )


def _points(
    npp_axis: Axis, k_axis: Axis, x_axis: Axis, detector: DetectorParams
) -> Iterable[Tuple[Tuple[int, int, int], ModelParameters]]:
    """
    Grid points in Npp-major, then k, then x order

    """
    for i, npp in enumerate(npp_axis.values()):
        for j, k in enumerate(k_axis.values()):
            for m, x in enumerate(x_axis.values()):
                yield (i, j, m), model_parameters(
                    float(npp), float(k), float(x), detector
                )


def scan(
    table: ParticipantTable,
    reference: bh.Histogram,
    npp_axis: Axis,
    k_axis: Axis,
    x_axis: Axis,
    *,
    detector: DetectorParams = DetectorParams(),
    comparator: HistogramComparator = None,
    n_events: int = definitions.N_EVENTS,
    seed: int = definitions.SEED,
    n_procs: int = 1,
    keep_histograms: bool = True,
    show_progress: bool = False,
) -> Dict[ScanKey, FitResult]:
    """
    Compare the reference to simulated refmult at every point in the grid

    :param table: Npart x Ncoll table to sample from
    :param reference: reference refmult histogram
    :param npp_axis: values of Npp to scan
    :param k_axis: values of k to scan
    :param x_axis: values of x to scan
    :param detector: efficiency/trigger settings, fixed for the whole scan
    :param comparator: how to normalise and score; StGlauber norm and chi2 by default
    :param n_events: number of events to generate at each point
    :param seed: global seed
    :param n_procs: number of processes to use
    :param keep_histograms: whether to keep the simulated histogram at each point
    :param show_progress: whether to display a progress bar

    :returns: dict of scan key to result, in scan order
    :raises ValueError: if an axis or the model parameters are invalid

    """
    if comparator is None:
        comparator = HistogramComparator()

    points = list(_points(npp_axis, k_axis, x_axis, detector))
    keys = [ScanKey(params.npp, params.k, params.x) for _, params in points]

    worker = partial(_fit_point, table, reference, comparator, n_events, seed)
    progress_fcn = (
        (lambda x: tqdm(x, total=len(points))) if show_progress else lambda x: x
    )

    if n_procs > 1:
        with get_context("spawn").Pool(n_procs) as pool:
            outputs = list(
                progress_fcn(
                    pool.imap(
                        worker, points, chunksize=max(1, len(points) // (4 * n_procs))
                    )
                )
            )
    else:
        outputs = [worker(point) for point in progress_fcn(points)]

    logging.info(f"Scanned {len(points)} points with {n_events} events each")

    return {
        key: FitResult(simulated if keep_histograms else None, reference, chi2, ndf)
        for key, (simulated, chi2, ndf) in zip(keys, outputs)
    }


def best_fit(results: Dict[ScanKey, FitResult]) -> Tuple[ScanKey, FitResult]:
    """
    Point with the lowest chi2 / ndf

    Ties keep the first point in scan order; points without any degrees of
    freedom are never chosen

    :raises ValueError: if there are no points with degrees of freedom

    """
    best_key, best_result = None, None
    for key, result in results.items():
        if result.ndf <= 0:
            continue
        if best_result is None or result.chi2_ndf < best_result.chi2_ndf:
            best_key, best_result = key, result

    if best_result is None:
        raise ValueError(f"No scan points with degrees of freedom ({len(results)=})")

    return best_key, best_result


def refit(
    table: ParticipantTable,
    reference: bh.Histogram,
    key: ScanKey,
    *,
    detector: DetectorParams = DetectorParams(),
    comparator: HistogramComparator = None,
    n_events: int = definitions.N_REFIT_EVENTS,
    seed: int = definitions.SEED,
) -> RefitResult:
    """
    Regenerate a point (usually the best fit) with more events

    :returns: the refit, including the simulated / reference ratio

    """
    if comparator is None:
        comparator = HistogramComparator()

    simulated, chi2, ndf = simulate(
        table,
        reference,
        model_parameters(*key, detector),
        comparator,
        n_events,
        RandomSource(seed),
    )

    return RefitResult(
        key, simulated, reference, hists.ratio(simulated, reference), chi2, ndf
    )
