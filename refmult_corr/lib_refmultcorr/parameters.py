"""
Reading and writing the correction parameters as text files

The vz/luminosity correction file has one set of parameters per line; a line
with 2 values holds the zdc parameters and a line with 7 values holds the vz
polynomial. The centrality definition file has one labelled line per set of
parameters, e.g. `nominal_cent: 10 14 ...`.

"""
import re
import logging
import pathlib
from typing import Dict, Tuple
import numpy as np

from . import definitions
from .corrector import EventCorrector


def _values(line: str) -> np.ndarray:
    """Whitespace or comma separated numbers"""
    return np.array([float(value) for value in re.split(r"[\s,]+", line.strip()) if value])


def read_parameters(path: pathlib.Path) -> Tuple[np.ndarray, np.ndarray]:
    """
    zdc and vz correction parameters

    Lines starting with # are ignored; if a line of either length appears more than
    once, the last one is used

    :param path: text file location
    :returns: zdc parameters
    :returns: vz parameters
    :raises FileNotFoundError: if the file doesn't exist
    :raises ValueError: if either set of parameters is missing

    """
    zdc_pars, vz_pars = None, None

    with open(path, "r", encoding="utf8") as txt_f:
        for line in txt_f:
            if not line.strip() or line.lstrip().startswith("#"):
                continue

            values = _values(line)
            if len(values) == definitions.N_ZDC_PARS:
                zdc_pars = values
            elif len(values) == definitions.N_VZ_PARS:
                vz_pars = values
            else:
                logging.warning(f"Ignoring line with {len(values)} values in {path}")

    if zdc_pars is None or vz_pars is None:
        raise ValueError(f"zdc and vz parameters not both found in {path}")

    return zdc_pars, vz_pars


def write_centrality_definition(
    path: pathlib.Path,
    bounds: Dict[str, np.ndarray],
    weights: np.ndarray,
    weight_bound: float = definitions.WEIGHT_BOUND,
) -> None:
    """
    Write the centrality thresholds and weight parameters

    :param path: text file location
    :param bounds: dict with "nominal", "plus5" and "minus5" 16 bin thresholds
    :param weights: the 7 weight parameters
    :param weight_bound: weight is 1 above this

    """
    labels = {
        "nominal": definitions.NOMINAL_LABEL,
        "plus5": definitions.PLUS5_LABEL,
        "minus5": definitions.MINUS5_LABEL,
    }
    with open(path, "w", encoding="utf8") as txt_f:
        for name, label in labels.items():
            txt_f.write(f"{label}: {' '.join(f'{bound:g}' for bound in bounds[name])}\n")
        txt_f.write(
            f"{definitions.WEIGHTS_LABEL}: {' '.join(repr(float(par)) for par in weights)}\n"
        )
        txt_f.write(f"{definitions.BOUND_LABEL}: {weight_bound!r}\n")


def read_centrality_definition(path: pathlib.Path) -> Dict[str, np.ndarray]:
    """
    Read a file written by `write_centrality_definition`

    :returns: dict of label to values

    """
    retval = {}
    with open(path, "r", encoding="utf8") as txt_f:
        for line in txt_f:
            if ":" not in line:
                continue
            label, values = line.split(":", 1)
            retval[label.strip()] = _values(values)

    missing = {
        definitions.NOMINAL_LABEL,
        definitions.WEIGHTS_LABEL,
        definitions.BOUND_LABEL,
    } - retval.keys()
    if missing:
        raise ValueError(f"{path} missing {missing}")

    return retval


def configure(
    corrector: EventCorrector,
    correction_path: pathlib.Path,
    centrality_path: pathlib.Path,
    label: str = definitions.NOMINAL_LABEL,
) -> None:
    """
    Set all the parameters of a corrector from files

    :param corrector: the corrector to configure
    :param correction_path: vz/zdc correction parameter file
    :param centrality_path: centrality definition file
    :param label: which set of thresholds to use

    """
    zdc_pars, vz_pars = read_parameters(correction_path)
    centrality = read_centrality_definition(centrality_path)

    corrector.set_zdc_parameters(zdc_pars)
    corrector.set_vz_parameters(vz_pars)
    corrector.set_centrality_bounds(centrality[label])
    corrector.set_weight_parameters(
        centrality[definitions.WEIGHTS_LABEL], centrality[definitions.BOUND_LABEL][0]
    )
