"""
Unit tests for the refmult correction and centrality binning

"""
import sys
import pathlib
import pytest
import numpy as np

sys.path.append(str(pathlib.Path(__file__).resolve().parents[1] / "refmult_corr"))

from lib_refmultcorr import corrector, definitions, parameters

BOUNDS = np.arange(10.0, 170.0, 10.0)
IDENTITY_VZ = [1.0, 0.0, 0.0, 0.0, 0.0, 0.0, 0.0]
IDENTITY_ZDC = [1.0, 0.0]


def _configured(cls=corrector.RefMultCorrTemplate, seed: int = 0, **kwargs):
    """Corrector with no vz/zdc correction and simple thresholds"""
    retval = cls(gen=np.random.default_rng(seed=seed), **kwargs)
    retval.set_vz_parameters(IDENTITY_VZ)
    retval.set_zdc_parameters(IDENTITY_ZDC)
    retval.set_centrality_bounds(BOUNDS)

    return retval


def _dither(seed: int) -> float:
    """The first uniform from a generator"""
    return np.random.default_rng(seed=seed).random(1)[0]


def test_nine_bin_rules():
    """9 thresholds from every other plus the last; 8 from every other"""
    nine = corrector.nine_bin_bounds(BOUNDS, "every_other_plus_last")
    eight = corrector.nine_bin_bounds(BOUNDS, "every_other")

    assert np.array_equal(nine, [10, 30, 50, 70, 90, 110, 130, 150, 160])
    assert np.array_equal(eight, [10, 30, 50, 70, 90, 110, 130, 150])


def test_nine_bin_default():
    """Corrector uses the 9 threshold rule unless told otherwise"""
    assert len(_configured().bounds_9) == 9
    assert len(_configured(nine_bin_rule="every_other").bounds_9) == 8


def test_centrality_index():
    """Most central class is 0"""
    refmultcorr = np.array([200.0, 160.0, 155.0, 10.0, 5.0])

    assert np.array_equal(
        corrector.centrality_index(refmultcorr, BOUNDS), [0, 0, 1, 15, -1]
    )
    assert np.array_equal(
        corrector.centrality_index(refmultcorr, np.array([])), [-1] * 5
    )


def test_reweight():
    """Weight function and bound"""
    pars = (1.0, 2.0, 1.0, 0.0, 0.5, 3.0, 0.25)
    refmult = np.array([2.0, 4.0, 500.0])

    expected = [1.0 + 1.0 + 1.0 + 0.75 + 1.0, 1.0 + 0.5 + 2.0 + 0.1875 + 4.0, 1.0]
    assert np.allclose(corrector.reweight(refmult, pars, 400.0), expected)


@pytest.mark.parametrize(
    "refmult, zdc, vz",
    [(-1.0, 100.0, 0.0), (10.0, -1.0, 0.0), (10.0, 2e7, 0.0), (10.0, 100.0, 31.0)],
)
def test_check_event_rejects(refmult, zdc, vz):
    """Negative refmult and out of range zdc/vz are rejected"""
    corr = _configured()

    assert not corr.check_event(refmult, zdc, vz)
    assert corr.set_event(refmult, zdc, vz) == (refmult, -1, -1, 0.0)


def test_check_event_accepts():
    """Events in range are accepted"""
    assert _configured().check_event(10.0, 100.0, 29.0)
    assert _configured(corrector.CentralityDef).check_event(1, 10.0, 100.0, 99.0)


def test_run_range():
    """Run selection only if the max run is positive"""
    corr = _configured(corrector.CentralityDef, run_range=(100, 200))

    assert not corr.check_event(50, 10.0, 100.0, 0.0)
    assert not corr.check_event(201, 10.0, 100.0, 0.0)
    assert corr.check_event(150, 10.0, 100.0, 0.0)

    assert corr.set_event(50, 10.0, 100.0, 0.0) == (10.0, -1, -1, 0.0)

    disabled = _configured(corrector.CentralityDef)
    assert disabled.check_event(50, 10.0, 100.0, 0.0)


def test_centrality():
    """Centrality from the corrected refmult"""
    result = _configured(seed=1).set_event(155.0, 100.0, 0.0)

    assert np.isclose(result.refmultcorr, 155.0 + _dither(1))
    assert result.centrality_16 == 1
    assert result.centrality_9 == 1
    assert result.weight == 1.0


def test_below_80():
    """Peripheral events get no centrality but weight 1"""
    result = _configured().set_event(5.0, 100.0, 0.0)

    assert result.centrality_16 == -1
    assert result.centrality_9 == -1
    assert result.weight == 1.0


def test_vz_correction():
    """6th order polynomial vz correction"""
    corr = _configured(seed=2, vz_norm=0.0)
    corr.set_vz_parameters([1.0, 0.01, 0.0, 0.0, 0.0, 0.0, 0.0])

    result = corr.set_event(100.0, 100.0, 10.0)

    assert np.isclose(result.refmultcorr, (100.0 + _dither(2)) / 1.1)


def test_vz_correction_negative():
    """No correction where the polynomial isn't positive"""
    corr = _configured(seed=3)
    corr.set_vz_parameters([1.0, -0.1, 0.0, 0.0, 0.0, 0.0, 0.0])

    result = corr.set_event(100.0, 100.0, 20.0)

    assert np.isclose(result.refmultcorr, 100.0 + _dither(3))


def test_zdc_correction():
    """Linear luminosity correction"""
    corr = _configured(seed=4, zdc_norm=0.0)
    corr.set_zdc_parameters([1.0, 0.5])

    result = corr.set_event(100.0, 2000.0, 0.0)

    assert np.isclose(result.refmultcorr, (100.0 + _dither(4)) / 2.0)


def test_weight():
    """Weight applied below the bound"""
    corr = _configured(seed=5)
    corr.set_weight_parameters([1.0, 2.0, 1.0, 0.0, 0.0, 0.0, 0.0], 400.0)

    result = corr.set_event(155.0, 100.0, 0.0)
    assert np.isclose(result.weight, 1.0 + 2.0 / result.refmultcorr)

    above = corr.set_event(500.0, 100.0, 0.0)
    assert above.weight == 1.0


def test_misconfigured():
    """No vz/zdc parameters"""
    corr = corrector.RefMultCorrTemplate()

    assert not corr.status()
    with pytest.raises(corrector.ConfigurationError):
        corr.check_configuration()

    assert corr.set_event(100.0, 100.0, 0.0) == (0.0, -1, -1, 0.0)

    # Rejected events still keep their refmult
    assert corr.set_event(100.0, 100.0, 50.0) == (100.0, -1, -1, 0.0)


def test_status():
    """Configured once every parameter is set"""
    corr = _configured()
    corr.check_configuration()
    assert not corr.status()

    corr.set_weight_parameters(np.zeros(7))
    assert corr.status()


@pytest.mark.parametrize(
    "setter, length",
    [
        ("set_zdc_parameters", 3),
        ("set_vz_parameters", 6),
        ("set_centrality_bounds", 9),
        ("set_weight_parameters", 8),
    ],
)
def test_wrong_length(setter, length):
    """Wrong number of parameters raises and keeps the old ones"""
    corr = _configured()
    corr.set_weight_parameters(np.ones(7))
    before = (
        corr.zdc_parameters,
        corr.vz_parameters,
        corr.bounds_16,
        corr.weight_parameters,
    )

    with pytest.raises(ValueError):
        getattr(corr, setter)(np.ones(length))

    after = (
        corr.zdc_parameters,
        corr.vz_parameters,
        corr.bounds_16,
        corr.weight_parameters,
    )
    for old, new in zip(before, after):
        assert np.array_equal(old, new)


def test_correct_many():
    """Batch correction gives a row per event"""
    corr = _configured(corrector.CentralityDef, run_range=(100, 200))

    dataframe = corr.correct(
        [150, 150, 50], [155.0, 5.0, 155.0], [100.0, 100.0, 100.0], [0.0, 0.0, 0.0]
    )

    assert list(dataframe.columns) == [
        "refmultcorr",
        "centrality_16",
        "centrality_9",
        "weight",
    ]
    assert np.array_equal(dataframe["centrality_16"], [1, -1, -1])
    assert np.array_equal(dataframe["weight"], [1.0, 1.0, 0.0])
    assert dataframe["refmultcorr"].iloc[2] == 155.0


def test_correct_length_mismatch():
    """Arrays must be the same length"""
    with pytest.raises(ValueError):
        _configured().correct([1.0, 2.0], [1.0], [1.0, 2.0])


def test_read_parameters(tmp_path):
    """zdc and vz parameters picked out by length"""
    path = tmp_path / "corrections.txt"
    path.write_text("# zdc then vz\n1.0 0.5\n1,2,3,4,5,6,7\n")

    zdc, vz = parameters.read_parameters(path)

    assert np.allclose(zdc, [1.0, 0.5])
    assert np.allclose(vz, np.arange(1.0, 8.0))


def test_read_parameters_missing(tmp_path):
    """Both sets are needed"""
    path = tmp_path / "corrections.txt"
    path.write_text("1.0 0.5\n")

    with pytest.raises(ValueError):
        parameters.read_parameters(path)


def test_configure(tmp_path):
    """Set up a corrector from files"""
    correction_path = tmp_path / "corrections.txt"
    correction_path.write_text("1.0 0.0\n1 0 0 0 0 0 0\n")

    centrality_path = tmp_path / "centrality.txt"
    weights = np.array([1.0, 2.0, 1.0, 0.0, 0.0, 0.0, 0.0])
    parameters.write_centrality_definition(
        centrality_path,
        {"nominal": BOUNDS, "plus5": BOUNDS - 1, "minus5": BOUNDS + 1},
        weights,
        300.0,
    )

    corr = corrector.RefMultCorrTemplate()
    parameters.configure(corr, correction_path, centrality_path)

    assert corr.status()
    assert np.allclose(corr.bounds_16, BOUNDS)
    assert np.allclose(corr.weight_parameters, weights)
    assert corr.weight_bound == 300.0

    parameters.configure(
        corr, correction_path, centrality_path, definitions.PLUS5_LABEL
    )
    assert np.allclose(corr.bounds_16, BOUNDS - 1)
