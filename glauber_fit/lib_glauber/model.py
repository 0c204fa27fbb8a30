"""
Two-component negative binomial multiplicity model

Npart and Ncoll are drawn from a Glauber table; the number of particle
producing sources is (1 - x) Npart / 2 + x Ncoll, and each source produces a
negative binomial distributed number of particles with mean Npp and shape k.
A multiplicity-dependent detector efficiency and a trigger bias are then
applied to get the observed (simulated) refmult.

"""
from typing import NamedTuple, Tuple
import numpy as np
import boost_histogram as bh

from . import definitions, hists
from .random_source import RandomSource


class EmptyTableError(Exception):
    """The Npart x Ncoll table can't be sampled from"""

    def __init__(self, msg: str):
        """If there are no (or negative) entries in the table"""
        super().__init__(msg)


class DetectorParams(NamedTuple):
    """
    Efficiency and trigger settings; held fixed during a scan

    """

    pp_efficiency: float = definitions.PP_EFFICIENCY
    auau_efficiency: float = definitions.AUAU_EFFICIENCY
    central_multiplicity: float = definitions.CENTRAL_MULTIPLICITY
    trigger_bias: float = definitions.TRIGGER_BIAS
    const_efficiency: bool = False


class ModelParameters(NamedTuple):
    """
    Everything needed to generate a refmult distribution

    """

    npp: float
    k: float
    x: float
    pp_efficiency: float = definitions.PP_EFFICIENCY
    auau_efficiency: float = definitions.AUAU_EFFICIENCY
    central_multiplicity: float = definitions.CENTRAL_MULTIPLICITY
    trigger_bias: float = definitions.TRIGGER_BIAS
    const_efficiency: bool = False


def model_parameters(
    npp: float, k: float, x: float, detector: DetectorParams
) -> ModelParameters:
    """Combine NBD parameters with the detector settings"""
    return ModelParameters(npp, k, x, *detector)


def check_parameters(params: ModelParameters) -> None:
    """
    :raises ValueError: if the parameters don't make sense

    """
    if params.npp <= 0.0:
        raise ValueError(f"Npp must be positive: {params.npp=}")
    if params.k <= 0.0:
        raise ValueError(f"k must be positive: {params.k=}")
    if not 0.0 <= params.x <= 1.0:
        raise ValueError(f"x must be in [0, 1]: {params.x=}")
    if not params.const_efficiency and params.central_multiplicity <= 0.0:
        raise ValueError(
            f"Central multiplicity must be positive: {params.central_multiplicity=}"
        )


class ParticipantTable:
    """
    Npart x Ncoll probability table that we can draw (Npart, Ncoll) pairs from

    Read-only once built; the same table is shared by every point in a scan

    """

    def __init__(self, table: bh.Histogram):
        """
        Build the cumulative distribution over the 2d bins

        :param table: 2d histogram of Npart (x axis) vs Ncoll (y axis)
        :raises EmptyTableError: if the table has negative bins or nothing in it

        """
        values, x_edges, y_edges = hists.table_arrays(table)

        if np.any(values < 0):
            raise EmptyTableError(
                f"Npart x Ncoll table has {np.sum(values < 0)} negative bins"
            )

        total = np.sum(values)
        if not total > 0:
            raise EmptyTableError("Npart x Ncoll table has no positive bins")

        self._shape = values.shape
        self._cdf = np.cumsum(values.ravel()) / total
        self._x_edges, self._y_edges = x_edges, y_edges

    def sample(self, rng: RandomSource, n: int) -> Tuple[np.ndarray, np.ndarray]:
        """
        Draw (Npart, Ncoll) pairs

        Choose a bin according to its probability, put the point uniformly within
        the bin and truncate to an integer

        :param rng: random source
        :param n: number of pairs

        :returns: array of Npart
        :returns: array of Ncoll

        """
        flat = np.searchsorted(self._cdf, rng.uniform(n), side="right")
        # Protect against rounding in the last element of the cdf
        flat = np.minimum(flat, len(self._cdf) - 1)
        x_index, y_index = np.unravel_index(flat, self._shape)

        npart = self._x_edges[x_index] + rng.uniform(n) * (
            self._x_edges[x_index + 1] - self._x_edges[x_index]
        )
        ncoll = self._y_edges[y_index] + rng.uniform(n) * (
            self._y_edges[y_index + 1] - self._y_edges[y_index]
        )

        return np.floor(npart).astype(int), np.floor(ncoll).astype(int)


def n_sources(npart: np.ndarray, ncoll: np.ndarray, x: float) -> np.ndarray:
    """
    Two-component number of particle sources

    """
    return (1.0 - x) * 0.5 * npart + x * ncoll


class MultiplicityModel:
    """
    Generates simulated refmult given model parameters and an Npart x Ncoll table

    """

    def __init__(self, table: ParticipantTable, params: ModelParameters):
        """
        :raises ValueError: if the parameters are invalid

        """
        check_parameters(params)

        self.table = table
        self.params = params

    def efficiency(self, multiplicity: np.ndarray) -> np.ndarray:
        """
        Detection efficiency for each event

        Linear interpolation between the pp efficiency at zero multiplicity and the
        central AuAu efficiency at the central multiplicity; constant pp efficiency
        if requested

        """
        multiplicity = np.asarray(multiplicity, dtype=float)
        params = self.params

        if params.const_efficiency:
            return np.full_like(multiplicity, params.pp_efficiency)

        eff = (
            params.pp_efficiency
            - (params.pp_efficiency - params.auau_efficiency)
            * multiplicity
            / params.central_multiplicity
        )
        return np.clip(eff, 0.0, 1.0)

    def produced(
        self, npart: np.ndarray, ncoll: np.ndarray, rng: RandomSource
    ) -> np.ndarray:
        """
        Number of produced particles for each (Npart, Ncoll)

        The integer part of the number of sources is always used; the fractional
        part gives an extra source with that probability

        """
        sources = n_sources(npart, ncoll, self.params.x)
        whole = np.floor(sources)
        extra = rng.accept(sources - whole, len(sources))
        sources = whole.astype(int) + extra.astype(int)

        retval = np.zeros(len(sources), dtype=int)
        has_sources = sources > 0

        # Sum of n NBD(k, p) variates is NBD(n * k, p)
        k = self.params.k
        prob = k / (k + self.params.npp)
        retval[has_sources] = rng.negative_binomial(k * sources[has_sources], prob)

        return retval

    def generate(self, n_events: int, rng: RandomSource) -> np.ndarray:
        """
        Simulated refmult

        :param n_events: number of events to attempt; events failing the trigger
                         are dropped, so fewer than this may be returned
        :param rng: random source

        :returns: array of refmult for the accepted events

        """
        npart, ncoll = self.table.sample(rng, n_events)
        produced = self.produced(npart, ncoll, rng)

        detected = rng.binomial(produced, self.efficiency(produced))

        triggered = rng.accept(np.clip(self.params.trigger_bias, 0.0, 1.0), n_events)

        return detected[triggered]

    def fill(self, bins: np.ndarray, n_events: int, rng: RandomSource) -> bh.Histogram:
        """
        Histogram of simulated refmult, with the given binning

        """
        hist = hists.empty(bins)
        hist.fill(self.generate(n_events, rng))

        return hist
