"""
Centrality thresholds and reweighting parameters from the output of
`scan_glauber_parameters.py`

"""
import sys
import pathlib
import argparse

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
sys.path.append(str(pathlib.Path(__file__).resolve().parents[2] / "refmult_corr"))
from lib_glauber import centrality, definitions, read
from lib_refmultcorr.parameters import write_centrality_definition


def main(*, fit_file: str, out_file: str, weight_bound: float, fit_min: float):
    """
    Read the refit, find the thresholds and weights, write them to a text file

    """
    refit = read.read_output(fit_file)

    bounds = centrality.all_bounds(refit.simulated)
    weights = centrality.fit_weights(refit, bound=weight_bound, fit_min=fit_min)

    for name, values in bounds.items():
        print(f"{name}:\t{values}")
    print(f"weights:\t{weights}")

    write_centrality_definition(out_file, bounds, weights, weight_bound)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Find centrality thresholds and reweighting parameters"
    )

    parser.add_argument("fit_file", type=str, help="ROOT file written by the scan")
    parser.add_argument("out_file", type=str, help="text file to write")
    parser.add_argument(
        "--weight_bound",
        type=float,
        default=definitions.WEIGHT_BOUND,
        help="weight is 1 above this refmult",
    )
    parser.add_argument(
        "--fit_min",
        type=float,
        default=definitions.WEIGHT_FIT_MIN,
        help="lowest refmult used in the weight fit",
    )

    main(**vars(parser.parse_args()))
