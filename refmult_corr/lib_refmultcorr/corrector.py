"""
Per-event refmult correction, centrality binning and reweighting

Raw refmult is dithered within its integer bin, then corrected for the
vz and luminosity (zdc coincidence rate) dependence of the detector response.
The corrected refmult is binned into 16 (5% wide) and 9 centrality classes
using thresholds from the Glauber fit, and a weight correcting for the low
multiplicity trigger inefficiency is assigned.

Centrality indices count from the most central class (0 is 0-5% in the 16
bin definition) down to 75-80%; -1 if the event is below 80%.

"""
import logging
from typing import NamedTuple, Sequence, Tuple
import numpy as np
import pandas as pd

from . import definitions


class ConfigurationError(Exception):
    """The correction parameters haven't been set"""

    def __init__(self, msg: str):
        """Raised on an explicit configuration check"""
        super().__init__(msg)


class EventCorrectionResult(NamedTuple):
    """
    Corrected refmult, centrality and weight for one event

    """

    refmultcorr: float
    centrality_16: int
    centrality_9: int
    weight: float


def nine_bin_bounds(bounds_16: np.ndarray, rule: str) -> np.ndarray:
    """
    Thresholds for the 9 bin definition from the 16 bin thresholds

    :param bounds_16: 16 thresholds, 75-80% first and 0-5% last
    :param rule: "every_other_plus_last" takes every other threshold plus the
                 0-5% threshold, giving 0-5%, 5-10%, then 10% wide bins to 80%.
                 "every_other" takes only every other threshold, giving 8 bins.

    """
    assert rule in definitions.NINE_BIN_RULES

    indices = np.arange(len(bounds_16))
    if rule == "every_other":
        keep = (indices % 2 == 0) & (indices < len(bounds_16) - 1)
    else:
        keep = (indices % 2 == 0) | (indices == len(bounds_16) - 1)

    return np.asarray(bounds_16)[keep]


def centrality_index(refmultcorr: np.ndarray, bounds: np.ndarray) -> np.ndarray:
    """
    Centrality class of each event

    Thresholds are checked from the last one backwards; the index is the position
    in this scan of the first threshold that refmultcorr reaches, -1 if none

    """
    refmultcorr = np.atleast_1d(refmultcorr)
    if not len(bounds):
        return np.full(len(refmultcorr), -1)

    reached = refmultcorr[:, np.newaxis] >= np.asarray(bounds)[np.newaxis, ::-1]

    retval = np.argmax(reached, axis=1)
    retval[~np.any(reached, axis=1)] = -1

    return retval


def reweight(
    refmultcorr: np.ndarray, pars: Sequence[float], bound: float
) -> np.ndarray:
    """
    Weight for each event

    w = p0 + p1 / u + p4 u + p5 / u^2 + p6 u^2 with u = p2 * refmultcorr + p3,
    or 1 at or above the bound

    :param refmultcorr: corrected refmult
    :param pars: 7 weight parameters
    :param bound: weight is 1 above this

    """
    p0, p1, p2, p3, p4, p5, p6 = pars
    refmultcorr = np.asarray(refmultcorr, dtype=float)

    u = refmultcorr * p2 + p3
    with np.errstate(divide="ignore", invalid="ignore"):
        weight = p0 + p1 / u + p4 * u + p5 / u**2 + p6 * u**2

    return np.where(refmultcorr < bound, weight, 1.0)


class EventCorrector:
    """
    Holds the correction parameters and does the calculation

    Use one of the subclasses, which know how to select events

    """

    def __init__(
        self,
        *,
        vz_range: Tuple[float, float],
        zdc_range: Tuple[float, float] = definitions.ZDC_RANGE,
        vz_norm: float = 0.0,
        zdc_norm: float = 0.0,
        nine_bin_rule: str = "every_other_plus_last",
        gen: np.random.Generator = None,
    ):
        """
        :param vz_range: accepted (min, max) vz
        :param zdc_range: accepted (min, max) zdc coincidence rate
        :param vz_norm: vz that corrected refmult is normalised to
        :param zdc_norm: zdc rate that corrected refmult is normalised to
        :param nine_bin_rule: how to get the 9 bin thresholds from the 16 bin ones
        :param gen: random number generator used for dithering refmult

        """
        assert nine_bin_rule in definitions.NINE_BIN_RULES

        self.vz_range = vz_range
        self.zdc_range = zdc_range
        self.vz_norm = vz_norm
        self.zdc_norm = zdc_norm
        self.nine_bin_rule = nine_bin_rule
        self.gen = np.random.default_rng() if gen is None else gen

        self._zdc_par = np.array([])
        self._vz_par = np.array([])
        self._bounds_16 = np.array([])
        self._bounds_9 = np.array([])
        self._weight_par = np.array([])
        self._weight_bound = definitions.WEIGHT_BOUND

        self._warned = False

    @staticmethod
    def _check_length(pars: Sequence[float], length: int, name: str) -> np.ndarray:
        """
        :raises ValueError: if the parameters are the wrong length

        """
        pars = np.asarray(pars, dtype=float)
        if pars.shape != (length,):
            raise ValueError(f"{name} needs {length} parameters: got {pars.shape=}")

        return pars

    def set_zdc_parameters(self, pars: Sequence[float]) -> None:
        """
        Linear zdc scaling parameters

        :raises ValueError: if there aren't 2

        """
        self._zdc_par = self._check_length(pars, definitions.N_ZDC_PARS, "zdc")

    def set_vz_parameters(self, pars: Sequence[float]) -> None:
        """
        6th order vz polynomial coefficients, constant term first

        :raises ValueError: if there aren't 7

        """
        self._vz_par = self._check_length(pars, definitions.N_VZ_PARS, "vz")

    def set_centrality_bounds(self, bounds: Sequence[float]) -> None:
        """
        16 bin centrality thresholds; also sets the 9 bin thresholds

        :param bounds: thresholds in ascending order, 75-80% first and 0-5% last
        :raises ValueError: if there aren't 16

        """
        self._bounds_16 = self._check_length(
            bounds, definitions.N_CENTRALITY_BINS, "Centrality bounds"
        )
        self._bounds_9 = nine_bin_bounds(self._bounds_16, self.nine_bin_rule)

    def set_weight_parameters(
        self, pars: Sequence[float], bound: float = definitions.WEIGHT_BOUND
    ) -> None:
        """
        Reweighting parameters

        :param pars: 7 parameters of the weight function
        :param bound: weight is 1 above this
        :raises ValueError: if there aren't 7

        """
        self._weight_par = self._check_length(
            pars, definitions.N_WEIGHT_PARS, "Reweighting"
        )
        self._weight_bound = bound

    @property
    def zdc_parameters(self) -> np.ndarray:
        """zdc scaling parameters; empty if not set"""
        return self._zdc_par.copy()

    @property
    def vz_parameters(self) -> np.ndarray:
        """vz polynomial coefficients; empty if not set"""
        return self._vz_par.copy()

    @property
    def bounds_16(self) -> np.ndarray:
        """16 bin thresholds; empty if not set"""
        return self._bounds_16.copy()

    @property
    def bounds_9(self) -> np.ndarray:
        """9 bin thresholds; empty if not set"""
        return self._bounds_9.copy()

    @property
    def weight_parameters(self) -> np.ndarray:
        """Reweighting parameters; empty if not set"""
        return self._weight_par.copy()

    @property
    def weight_bound(self) -> float:
        """Weight is 1 above this"""
        return self._weight_bound

    def status(self) -> bool:
        """Whether every set of parameters has been set"""
        return all(
            len(pars)
            for pars in (self._zdc_par, self._vz_par, self._bounds_16, self._weight_par)
        )

    def check_configuration(self) -> None:
        """
        :raises ConfigurationError: if refmultcorr can't be calculated

        """
        missing = [
            name
            for name, pars in (("zdc", self._zdc_par), ("vz", self._vz_par))
            if not len(pars)
        ]
        if missing:
            raise ConfigurationError(
                f"{' and '.join(missing)} correction parameters must be set "
                "before refmultcorr can be calculated"
            )

    def _accepted(
        self, refmult: np.ndarray, zdc: np.ndarray, vz: np.ndarray
    ) -> np.ndarray:
        """
        Mask of events passing the refmult, vz and zdc selection

        """
        return (
            (refmult >= 0)
            & (self.vz_range[0] <= vz)
            & (vz <= self.vz_range[1])
            & (self.zdc_range[0] <= zdc)
            & (zdc <= self.zdc_range[1])
        )

    def _vz_correction(self, vz: np.ndarray) -> np.ndarray:
        """
        Ratio of the polynomial at the normalisation point to the polynomial at vz;
        1 where the polynomial isn't positive

        """
        scaling = np.polynomial.polynomial.polyval(vz, self._vz_par)
        norm = np.polynomial.polynomial.polyval(self.vz_norm, self._vz_par)

        retval = np.ones_like(scaling)
        positive = scaling > 0.0
        retval[positive] = norm / scaling[positive]

        return retval

    def _zdc_correction(self, zdc: np.ndarray) -> np.ndarray:
        """
        Ratio of the linear scaling at the normalisation point to the scaling at zdc;
        1 where the scaling isn't positive

        """
        p0, p1 = self._zdc_par
        scaling = p0 + p1 * zdc / 1000.0
        norm = p0 + p1 * self.zdc_norm / 1000.0

        retval = np.ones_like(scaling)
        positive = scaling > 0.0
        retval[positive] = norm / scaling[positive]

        return retval

    def _calculate(
        self, refmult: np.ndarray, zdc: np.ndarray, vz: np.ndarray
    ) -> pd.DataFrame:
        """
        Corrected refmult, centrality and weight for events that pass the selection

        """
        n_evts = len(refmult)

        try:
            self.check_configuration()
        except ConfigurationError as err:
            if not self._warned:
                logging.error(str(err))
                self._warned = True
            return pd.DataFrame(
                {
                    "refmultcorr": np.zeros(n_evts),
                    "centrality_16": np.full(n_evts, -1),
                    "centrality_9": np.full(n_evts, -1),
                    "weight": np.zeros(n_evts),
                }
            )

        # Randomise within the integer bin to avoid spiky structures at low refmult
        raw = refmult + self.gen.random(n_evts)

        refmultcorr = raw * self._vz_correction(vz) * self._zdc_correction(zdc)

        centrality_16 = centrality_index(refmultcorr, self._bounds_16)
        centrality_9 = centrality_index(refmultcorr, self._bounds_9)

        weight = np.ones(n_evts)
        if len(self._weight_par):
            central = (centrality_16 >= 0) & (centrality_9 >= 0)
            weight[central] = reweight(
                refmultcorr[central], self._weight_par, self._weight_bound
            )

        return pd.DataFrame(
            {
                "refmultcorr": refmultcorr,
                "centrality_16": centrality_16,
                "centrality_9": centrality_9,
                "weight": weight,
            }
        )

    def _correct(
        self, accepted: np.ndarray, refmult: np.ndarray, zdc: np.ndarray, vz: np.ndarray
    ) -> pd.DataFrame:
        """
        Corrected events where accepted, the rejected event values otherwise

        """
        # Rejected events keep their raw refmult
        retval = pd.DataFrame(
            {
                "refmultcorr": refmult.astype(float),
                "centrality_16": np.full(len(refmult), -1.0),
                "centrality_9": np.full(len(refmult), -1.0),
                "weight": np.zeros(len(refmult)),
            }
        )

        if np.any(accepted):
            retval.loc[accepted] = self._calculate(
                refmult[accepted], zdc[accepted], vz[accepted]
            ).to_numpy()

        return retval.astype({"centrality_16": int, "centrality_9": int})

    @staticmethod
    def _result(dataframe: pd.DataFrame) -> EventCorrectionResult:
        """The first row as a named tuple"""
        row = dataframe.iloc[0]
        return EventCorrectionResult(
            float(row["refmultcorr"]),
            int(row["centrality_16"]),
            int(row["centrality_9"]),
            float(row["weight"]),
        )


def _arrays(*args) -> Tuple[np.ndarray, ...]:
    """
    Convert to 1d arrays of the same length

    :raises ValueError: if the lengths don't match

    """
    arrays = tuple(np.atleast_1d(np.asarray(arg, dtype=float)) for arg in args)
    if len({len(array) for array in arrays}) != 1:
        raise ValueError(f"Length mismatch: {[len(array) for array in arrays]}")

    return arrays


class RefMultCorrTemplate(EventCorrector):
    """
    Corrector with no run range selection

    """

    def __init__(self, **kwargs):
        """
        Defaults to the |vz| < 30 cm window; see `EventCorrector` for the arguments

        """
        kwargs.setdefault("vz_range", definitions.VZ_RANGE)
        super().__init__(**kwargs)

    def check_event(self, refmult: float, zdc: float, vz: float) -> bool:
        """Whether an event passes the refmult, vz and zdc selection"""
        return bool(self._accepted(*_arrays(refmult, zdc, vz))[0])

    def correct(self, refmult, zdc, vz) -> pd.DataFrame:
        """
        Correct many events

        :param refmult: raw refmult
        :param zdc: zdc coincidence rate
        :param vz: vertex z position

        :returns: dataframe of refmultcorr, centrality_16, centrality_9, weight

        """
        refmult, zdc, vz = _arrays(refmult, zdc, vz)
        return self._correct(self._accepted(refmult, zdc, vz), refmult, zdc, vz)

    def set_event(self, refmult: float, zdc: float, vz: float) -> EventCorrectionResult:
        """
        Correct one event

        Rejected events get their raw refmult, centrality -1 and weight 0

        """
        return self._result(self.correct(refmult, zdc, vz))


class CentralityDef(EventCorrector):
    """
    Corrector that also selects on run number

    """

    def __init__(self, run_range: Tuple[int, int] = definitions.RUN_RANGE, **kwargs):
        """
        :param run_range: accepted (min, max) run; no run selection if max <= 0

        Defaults to the |vz| < 100 cm window; see `EventCorrector` for the other
        arguments

        """
        kwargs.setdefault("vz_range", definitions.RUN_VZ_RANGE)
        super().__init__(**kwargs)

        self.run_range = run_range

    def _in_runs(self, run_id: np.ndarray) -> np.ndarray:
        """Mask of events in the run range"""
        min_run, max_run = self.run_range
        if max_run <= 0:
            return np.ones(len(run_id), dtype=bool)

        return (min_run <= run_id) & (run_id <= max_run)

    def check_event(self, run_id: int, refmult: float, zdc: float, vz: float) -> bool:
        """Whether an event passes the run, refmult, vz and zdc selection"""
        run_id, refmult, zdc, vz = _arrays(run_id, refmult, zdc, vz)
        return bool((self._in_runs(run_id) & self._accepted(refmult, zdc, vz))[0])

    def correct(self, run_id, refmult, zdc, vz) -> pd.DataFrame:
        """
        Correct many events

        :param run_id: run number
        :param refmult: raw refmult
        :param zdc: zdc coincidence rate
        :param vz: vertex z position

        :returns: dataframe of refmultcorr, centrality_16, centrality_9, weight

        """
        run_id, refmult, zdc, vz = _arrays(run_id, refmult, zdc, vz)
        accepted = self._in_runs(run_id) & self._accepted(refmult, zdc, vz)

        return self._correct(accepted, refmult, zdc, vz)

    def set_event(
        self, run_id: int, refmult: float, zdc: float, vz: float
    ) -> EventCorrectionResult:
        """
        Correct one event

        Rejected events get their raw refmult, centrality -1 and weight 0

        """
        return self._result(self.correct(run_id, refmult, zdc, vz))
