"""
Histogram helpers

1d histograms (reference and simulated refmult) are boost_histogram histograms
with weighted storage, so each bin holds a sum of weights and a sum of squared
weights. The Npart x Ncoll table is a 2d histogram with double storage.

Under/overflow is never used in any of the calculations.

"""
from typing import Tuple
import numpy as np
import boost_histogram as bh


def empty(bins: np.ndarray) -> bh.Histogram:
    """
    Empty weighted histogram

    :param bins: bin edges; left edge of each bin plus the right edge of the last bin

    """
    return bh.Histogram(bh.axis.Variable(bins), storage=bh.storage.Weight())


def from_arrays(
    bins: np.ndarray, counts: np.ndarray, errors: np.ndarray = None
) -> bh.Histogram:
    """
    Weighted histogram with the given contents

    :param bins: bin edges
    :param counts: content of each bin
    :param errors: error on each bin. Poisson errors assumed if not provided

    :returns: the histogram
    :raises ValueError: if the lengths don't match

    """
    counts = np.asarray(counts, dtype=float)
    if errors is None:
        errors = np.sqrt(np.abs(counts))
    errors = np.asarray(errors, dtype=float)

    if len(counts) != len(bins) - 1:
        raise ValueError(f"{len(counts)=}\t{len(bins)=}")
    if len(errors) != len(counts):
        raise ValueError(f"{len(errors)=}\t{len(counts)=}")

    hist = empty(bins)
    hist[...] = np.stack([counts, errors**2], axis=-1)

    return hist


def table(x_bins: np.ndarray, y_bins: np.ndarray, counts: np.ndarray) -> bh.Histogram:
    """
    2d histogram, e.g. Npart (x) vs Ncoll (y)

    :param counts: shape (len(x_bins) - 1, len(y_bins) - 1) array of bin contents

    """
    counts = np.asarray(counts, dtype=float)
    if counts.shape != (len(x_bins) - 1, len(y_bins) - 1):
        raise ValueError(f"{counts.shape=}\t{len(x_bins)=}\t{len(y_bins)=}")

    hist = bh.Histogram(bh.axis.Variable(x_bins), bh.axis.Variable(y_bins))
    hist.view(flow=False)[...] = counts

    return hist


def edges(hist: bh.Histogram) -> np.ndarray:
    """Bin edges of a 1d histogram"""
    return hist.axes[0].edges


def counts(hist: bh.Histogram) -> np.ndarray:
    """Bin contents, no flow"""
    return hist.values(flow=False)


def errors(hist: bh.Histogram) -> np.ndarray:
    """Bin errors; sqrt of the sum of squared weights"""
    return np.sqrt(hist.variances(flow=False))


def integral(hist: bh.Histogram, mask: np.ndarray = None) -> float:
    """
    Sum of bin contents

    :param mask: optional boolean mask of which bins to include

    """
    values = counts(hist)
    if mask is not None:
        values = values[mask]

    return float(np.sum(values))


def scaled(hist: bh.Histogram, factor: float) -> bh.Histogram:
    """
    Copy of a histogram with its contents and errors multiplied by a factor

    """
    return from_arrays(edges(hist), factor * counts(hist), abs(factor) * errors(hist))


def above(hist: bh.Histogram, min_mult: float) -> np.ndarray:
    """
    Boolean mask of the bins from the one containing min_mult upwards

    i.e. the bins with upper edge above min_mult

    """
    return edges(hist)[1:] > min_mult


def centres(hist: bh.Histogram) -> np.ndarray:
    """Bin centres"""
    return hist.axes[0].centers


def check_binning(first: bh.Histogram, second: bh.Histogram) -> None:
    """
    Check two 1d histograms have the same binning

    :raises ValueError: if not

    """
    first_edges, second_edges = edges(first), edges(second)
    if len(first_edges) != len(second_edges) or not np.allclose(
        first_edges, second_edges
    ):
        raise ValueError(
            f"Binning mismatch: {len(first_edges) - 1} bins on "
            f"[{first_edges[0]}, {first_edges[-1]}] vs {len(second_edges) - 1} bins on "
            f"[{second_edges[0]}, {second_edges[-1]}]"
        )


def ratio(numerator: bh.Histogram, denominator: bh.Histogram) -> bh.Histogram:
    """
    Bin-wise ratio of two histograms, errors added in quadrature

    Bins where the denominator is empty are set to 0

    """
    check_binning(numerator, denominator)

    num, denom = counts(numerator), counts(denominator)
    num_err, denom_err = errors(numerator), errors(denominator)

    filled = denom > 0
    retval = np.zeros_like(num)
    err = np.zeros_like(num)

    retval[filled] = num[filled] / denom[filled]

    # Relative errors; bins with zero numerator just get the absolute numerator error
    rel_num = np.zeros_like(num)
    nonzero = filled & (num != 0)
    rel_num[nonzero] = num_err[nonzero] / num[nonzero]
    rel_denom = np.zeros_like(num)
    rel_denom[filled] = denom_err[filled] / denom[filled]

    err[nonzero] = np.abs(retval[nonzero]) * np.sqrt(
        rel_num[nonzero] ** 2 + rel_denom[nonzero] ** 2
    )
    empty_num = filled & (num == 0)
    err[empty_num] = num_err[empty_num] / denom[empty_num]

    return from_arrays(edges(numerator), retval, err)


def table_arrays(hist: bh.Histogram) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """
    Contents, x edges and y edges of a 2d histogram

    """
    return hist.values(flow=False), hist.axes[0].edges, hist.axes[1].edges
