"""
Apply the refmult correction, centrality definition and reweighting to every
event in a tree

Writes a pickled DataFrame of the per-event results and a ROOT file holding the
weighted refmultcorr histogram

"""
import sys
import pickle
import pathlib
import argparse
import numpy as np
import boost_histogram as bh
import uproot

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from lib_refmultcorr import definitions, parameters
from lib_refmultcorr.corrector import CentralityDef, RefMultCorrTemplate


def main(
    *,
    tree_file: str,
    correction_file: str,
    centrality_file: str,
    tree_name: str,
    refmult_branch: str,
    vz_branch: str,
    zdc_branch: str,
    run_branch: str,
    run_min: int,
    run_max: int,
    vz_norm: float,
    zdc_norm: float,
    legacy_nine_bin: bool,
    seed: int,
    out_file: str,
):
    """
    Read the tree, correct the events, write the output

    """
    kwargs = {
        "vz_norm": vz_norm,
        "zdc_norm": zdc_norm,
        "nine_bin_rule": "every_other" if legacy_nine_bin else "every_other_plus_last",
        "gen": np.random.default_rng(seed=seed),
    }
    corrector = (
        CentralityDef(run_range=(run_min, run_max), **kwargs)
        if run_max > 0
        else RefMultCorrTemplate(**kwargs)
    )
    parameters.configure(corrector, correction_file, centrality_file)

    branches = [refmult_branch, zdc_branch, vz_branch]
    if run_max > 0:
        branches.append(run_branch)

    with uproot.open(tree_file) as root_file:
        dataframe = root_file[tree_name].arrays(branches, library="pd")

    args = (dataframe[refmult_branch], dataframe[zdc_branch], dataframe[vz_branch])
    corrected = (
        corrector.correct(dataframe[run_branch], *args)
        if run_max > 0
        else corrector.correct(*args)
    )
    corrected.index = dataframe.index

    accepted = corrected["weight"] > 0
    print(f"{np.sum(accepted)} of {len(corrected)} events accepted")

    out_path = pathlib.Path(out_file)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    with open(out_path.with_suffix(".pkl"), "wb") as pkl_f:
        pickle.dump(corrected, pkl_f)

    hist = bh.Histogram(bh.axis.Regular(800, 0.0, 800.0), storage=bh.storage.Weight())
    hist.fill(
        corrected["refmultcorr"][accepted], weight=corrected["weight"][accepted]
    )
    with uproot.recreate(str(out_path.with_suffix(".root"))) as root_file:
        root_file["weighted_refmult"] = hist


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Correct refmult and find centrality for every event in a tree"
    )

    parser.add_argument("tree_file", type=str, help="ROOT file with the event tree")
    parser.add_argument(
        "correction_file", type=str, help="text file of vz and zdc correction parameters"
    )
    parser.add_argument(
        "centrality_file",
        type=str,
        help="text file written by `centrality_definition.py`",
    )
    parser.add_argument("out_file", type=str, help="output path; .pkl and .root are written")

    parser.add_argument("--tree_name", type=str, default=definitions.TREE_NAME)
    parser.add_argument("--refmult_branch", type=str, default=definitions.REFMULT_BRANCH)
    parser.add_argument("--vz_branch", type=str, default=definitions.VZ_BRANCH)
    parser.add_argument("--zdc_branch", type=str, default=definitions.ZDC_BRANCH)
    parser.add_argument("--run_branch", type=str, default=definitions.RUN_BRANCH)
    parser.add_argument(
        "--run_min", type=int, default=definitions.RUN_RANGE[0], help="first run accepted"
    )
    parser.add_argument(
        "--run_max",
        type=int,
        default=definitions.RUN_RANGE[1],
        help="last run accepted; no run selection if not positive",
    )
    parser.add_argument("--vz_norm", type=float, default=0.0, help="vz normalisation point")
    parser.add_argument(
        "--zdc_norm", type=float, default=0.0, help="zdc normalisation point"
    )
    parser.add_argument(
        "--legacy_nine_bin",
        action="store_true",
        help="take only every other 16 bin threshold for the 9 bin definition",
    )
    parser.add_argument("--seed", type=int, default=None, help="seed for the dithering")

    main(**vars(parser.parse_args()))
