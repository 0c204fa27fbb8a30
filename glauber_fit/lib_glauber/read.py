"""
Reading the inputs from and writing the outputs to ROOT files

"""
import logging
import pathlib
from typing import Dict, Tuple
import numpy as np
import boost_histogram as bh
import uproot

from . import definitions, hists
from .comparator import p_value
from .scan import FitResult, RefitResult, ScanKey, format_key, parse_key

# Names of the histograms in the output file
SIMULATED_NAME = "glauber"
RATIO_NAME = "ratio"


def _get(path: str, name: str):
    """
    Get an object from a ROOT file

    :raises FileNotFoundError: if the file doesn't exist
    :raises KeyError: if the object isn't in the file

    """
    if not pathlib.Path(path).is_file():
        raise FileNotFoundError(f"No ROOT file at {path}")

    with uproot.open(path) as root_file:
        try:
            return root_file[name]
        except uproot.KeyInFileError as err:
            raise KeyError(
                f"No object {name} in {path}; contains {root_file.keys()}"
            ) from err


def read_reference(path: str, name: str = definitions.REFERENCE_NAME) -> bh.Histogram:
    """
    Reference refmult histogram from a ROOT file

    :param path: path to the ROOT file
    :param name: name of the TH1 in the file

    """
    obj = _get(path, name)

    return hists.from_arrays(
        obj.axis().edges(flow=False), obj.values(flow=False), obj.errors(flow=False)
    )


def read_table(path: str, name: str = definitions.TABLE_NAME) -> bh.Histogram:
    """
    Npart x Ncoll table from a ROOT file

    :param path: path to the ROOT file
    :param name: name of the TH2 in the file

    """
    obj = _get(path, name)

    return hists.table(
        obj.axis(0).edges(flow=False), obj.axis(1).edges(flow=False), obj.values(flow=False)
    )


def _titled(hist: bh.Histogram, title: str) -> bh.Histogram:
    """
    Copy of a histogram with a title; uproot writes it as the TH1 title

    """
    hist = hist.copy()
    hist.title = title

    return hist


def _summary_path(path: pathlib.Path) -> pathlib.Path:
    """Text file next to a ROOT file"""
    return path.with_suffix(".txt")


def write_output(path: pathlib.Path, refit: RefitResult) -> None:
    """
    Write the reference, simulated and ratio histograms to a ROOT file and the
    best fit to a text file beside it

    """
    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with uproot.recreate(str(path)) as root_file:
        root_file[definitions.REFERENCE_NAME] = refit.reference
        root_file[SIMULATED_NAME] = _titled(refit.simulated, format_key(refit.key))
        root_file[RATIO_NAME] = refit.ratio

    with open(_summary_path(path), "w", encoding="utf8") as txt_f:
        txt_f.write(f"key: {format_key(refit.key)}\n")
        txt_f.write(f"chi2: {refit.chi2}\n")
        txt_f.write(f"ndf: {refit.ndf}\n")
        txt_f.write(f"chi2/ndf: {refit.chi2_ndf:.5f}\n")
        txt_f.write(f"p value: {p_value(refit.chi2, refit.ndf)}\n")

    logging.info(f"Wrote {path} and {_summary_path(path)}")


def read_output(path: pathlib.Path) -> RefitResult:
    """
    Read back a refit written by `write_output`

    """
    path = pathlib.Path(path)
    if not _summary_path(path).is_file():
        raise FileNotFoundError(f"No summary file at {_summary_path(path)}")

    with open(_summary_path(path), "r", encoding="utf8") as txt_f:
        summary = dict(line.strip().split(": ", 1) for line in txt_f if ": " in line)

    return RefitResult(
        parse_key(summary["key"]),
        read_reference(str(path), SIMULATED_NAME),
        read_reference(str(path), definitions.REFERENCE_NAME),
        read_reference(str(path), RATIO_NAME),
        float(summary["chi2"]),
        int(summary["ndf"]),
    )


def write_all(path: pathlib.Path, results: Dict[ScanKey, FitResult]) -> None:
    """
    Write the simulated histogram at every point in the scan, named by its key,
    and a text table of key and chi2/ndf

    Each histogram is titled with its key and chi2/ndf

    :raises ValueError: if a histogram wasn't kept, or if two keys give the
                        same label (axis steps finer than the label precision)

    """
    labels = [format_key(key) for key in results]
    if len(set(labels)) != len(labels):
        duplicates = sorted({label for label in labels if labels.count(label) > 1})
        raise ValueError(f"Scan keys with the same label: {duplicates}")

    path = pathlib.Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)

    with uproot.recreate(str(path)) as root_file:
        for label, result in zip(labels, results.values()):
            if result.simulated is None:
                raise ValueError(f"No histogram kept for {label}")
            root_file[label] = _titled(
                result.simulated, f"{label}_chi2/ndf={result.chi2_ndf:.5f}"
            )

    with open(_summary_path(path), "w", encoding="utf8") as txt_f:
        for key, result in results.items():
            txt_f.write(f"{format_key(key)}\t{result.chi2_ndf:.5f}\n")


def read_scan_table(path: pathlib.Path) -> Tuple[Tuple[ScanKey, ...], np.ndarray]:
    """
    Keys and chi2/ndf from a table written by `write_all`

    """
    with open(_summary_path(pathlib.Path(path)), "r", encoding="utf8") as txt_f:
        rows = [line.split() for line in txt_f if line.strip()]

    return (
        tuple(parse_key(row[0]) for row in rows),
        np.array([float(row[1]) for row in rows]),
    )
