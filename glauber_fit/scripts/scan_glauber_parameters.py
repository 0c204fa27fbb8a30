"""
Scan the two-component NBD parameters (Npp, k, x) to find the best fit to a
reference refmult distribution, then refit the best point at high statistics

Writes the reference, best fit and ratio histograms to <out_dir>/<out_file>.root
with a summary of the best fit beside it; with --save_all, also writes the
histogram at every grid point to <out_dir>/<out_file>_all.root

"""
import sys
import time
import pathlib
import logging
import argparse

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1]))
from lib_glauber import definitions, read, scan
from lib_glauber.comparator import HistogramComparator, p_value
from lib_glauber.model import DetectorParams, ParticipantTable


def main(
    *,
    glauber_file: str,
    glauber_hist: str,
    data_file: str,
    data_hist: str,
    npp_min: float,
    npp_max: float,
    npp_steps: int,
    k_min: float,
    k_max: float,
    k_steps: int,
    x_min: float,
    x_max: float,
    x_steps: int,
    events: int,
    refit_events: int,
    pp_efficiency: float,
    auau_efficiency: float,
    cent_mult: float,
    const_eff: bool,
    trig_bias: float,
    root_chi2: bool,
    integral_norm: bool,
    min_mult: float,
    seed: int,
    n_procs: int,
    save_all: bool,
    out_dir: str,
    out_file: str,
):
    """
    Read the inputs, do the scan, write the outputs

    """
    logging.basicConfig(level=logging.INFO)

    # Read everything first so that bad inputs fail before the scan starts
    table = ParticipantTable(read.read_table(glauber_file, glauber_hist))
    reference = read.read_reference(data_file, data_hist)

    axes = (
        scan.Axis(npp_min, npp_max, npp_steps),
        scan.Axis(k_min, k_max, k_steps),
        scan.Axis(x_min, x_max, x_steps),
    )
    detector = DetectorParams(
        pp_efficiency, auau_efficiency, cent_mult, trig_bias, const_eff
    )
    comparator = HistogramComparator(
        norm_mode="integral" if integral_norm else "stglauber",
        chi2_mode="root" if root_chi2 else "stglauber",
        min_mult=min_mult,
    )

    start = time.time()
    results = scan.scan(
        table,
        reference,
        *axes,
        detector=detector,
        comparator=comparator,
        n_events=events,
        seed=seed,
        n_procs=n_procs,
        keep_histograms=save_all,
        show_progress=True,
    )
    print(f"Scan took {time.time() - start:.1f}s")

    best_key, best_result = scan.best_fit(results)
    print(f"Best fit: {scan.format_key(best_key)}\tchi2/ndf={best_result.chi2_ndf:.5f}")
    logging.info(f"best fit {scan.format_key(best_key)} {best_result.chi2_ndf}")

    refit = scan.refit(
        table,
        reference,
        best_key,
        detector=detector,
        comparator=comparator,
        n_events=refit_events,
        seed=seed,
    )
    print(
        f"Refit: chi2/ndf={refit.chi2_ndf:.5f}\tp={p_value(refit.chi2, refit.ndf):.3g}"
    )

    out_dir = pathlib.Path(out_dir)
    read.write_output(out_dir / f"{out_file}.root", refit)
    if save_all:
        read.write_all(out_dir / f"{out_file}_all.root", results)


if __name__ == "__main__":
    parser = argparse.ArgumentParser(
        description="Find the NBD parameters that best describe a refmult distribution"
    )

    parser.add_argument("glauber_file", type=str, help="ROOT file with the Npart x Ncoll table")
    parser.add_argument("data_file", type=str, help="ROOT file with the reference refmult")
    parser.add_argument(
        "--glauber_hist",
        type=str,
        default=definitions.TABLE_NAME,
        help="name of the Npart x Ncoll TH2",
    )
    parser.add_argument(
        "--data_hist",
        type=str,
        default=definitions.REFERENCE_NAME,
        help="name of the refmult TH1",
    )

    for name, (low, high, steps) in zip(
        ("npp", "k", "x"),
        (definitions.NPP_RANGE, definitions.K_RANGE, definitions.X_RANGE),
    ):
        parser.add_argument(f"--{name}_min", type=float, default=low, help=f"minimum {name}")
        parser.add_argument(f"--{name}_max", type=float, default=high, help=f"maximum {name}")
        parser.add_argument(
            f"--{name}_steps", type=int, default=steps, help=f"number of {name} values"
        )

    parser.add_argument(
        "--events", type=int, default=definitions.N_EVENTS, help="events per grid point"
    )
    parser.add_argument(
        "--refit_events",
        type=int,
        default=definitions.N_REFIT_EVENTS,
        help="events for the best fit refit",
    )
    parser.add_argument(
        "--pp_efficiency", type=float, default=definitions.PP_EFFICIENCY, help="pp efficiency"
    )
    parser.add_argument(
        "--auau_efficiency",
        type=float,
        default=definitions.AUAU_EFFICIENCY,
        help="0-5%% central AuAu efficiency",
    )
    parser.add_argument(
        "--cent_mult",
        type=float,
        default=definitions.CENTRAL_MULTIPLICITY,
        help="average 0-5%% central multiplicity",
    )
    parser.add_argument(
        "--const_eff", action="store_true", help="use only the pp efficiency"
    )
    parser.add_argument(
        "--trig_bias", type=float, default=definitions.TRIGGER_BIAS, help="trigger bias"
    )
    parser.add_argument(
        "--root_chi2",
        action="store_true",
        help="use the ROOT Chi2Test statistic instead of the StGlauber chi2",
    )
    parser.add_argument(
        "--integral_norm",
        action="store_true",
        help="normalise over every bin instead of above min_mult",
    )
    parser.add_argument(
        "--min_mult",
        type=float,
        default=definitions.MIN_MULT,
        help="minimum multiplicity used in the fit",
    )
    parser.add_argument("--seed", type=int, default=definitions.SEED, help="random seed")
    parser.add_argument("--n_procs", type=int, default=1, help="number of processes")
    parser.add_argument(
        "--save_all", action="store_true", help="write the histogram at every grid point"
    )
    parser.add_argument("--out_dir", type=str, default="tmp", help="output directory")
    parser.add_argument(
        "--out_file", type=str, default="fit_results", help="output file name, no extension"
    )

    main(**vars(parser.parse_args()))
