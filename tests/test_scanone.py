"""Tests for Haley-Knott regression, LOD scores and peaks."""

import numpy as np
import pytest

from hkscan.errors import DimensionMismatch
from hkscan.map import Chromosome, Marker
from hkscan.phenotype import PhenotypeMatrix
from hkscan.scanone import get_peak_scanone, rss_to_lod, scanone_hk, scanone_hk_null


@pytest.fixture
def rng():
    return np.random.default_rng(7)


@pytest.fixture
def genoprobs(rng):
    # 60 individuals, 4 positions, 3 genotypes
    return rng.dirichlet([1.0, 2.0, 1.0], size=(60, 4))


def test_null_rss_is_total_sum_of_squares(rng):
    y = rng.normal(size=(30, 2))
    rss0 = scanone_hk_null(y)
    assert np.allclose(rss0, ((y - y.mean(axis=0)) ** 2).sum(axis=0))
    assert np.allclose(scanone_hk_null(PhenotypeMatrix(y)), rss0)


def test_lod_is_zero_for_null_rss():
    rss0 = np.array([12.5, 3.0])
    assert np.allclose(rss_to_lod(np.vstack([rss0, rss0]), rss0, 50), 0.0)
    assert np.isclose(rss_to_lod(np.array([[5.0]]), np.array([10.0]), 20)[0, 0], 10 * np.log10(2))


def test_lod_is_non_negative(rng, genoprobs):
    y = rng.normal(size=(60, 3))
    covar = rng.normal(size=(60, 1))
    rss0 = scanone_hk_null(y, covar)
    rss = scanone_hk(genoprobs, y, covar)
    assert rss.shape == (4, 3)
    assert np.all(rss <= rss0 + 1e-9)
    assert np.all(rss_to_lod(rss, rss0, 60) >= -1e-9)


def test_baseline_does_not_change_rss(rng, genoprobs):
    y = rng.normal(size=(60, 2))
    addcovar = rng.normal(size=(60, 1))
    intcovar = (rng.random(60) < 0.5).astype(float)
    rss = [scanone_hk(genoprobs, y, addcovar, intcovar, baseline=b) for b in range(3)]
    assert np.allclose(rss[0], rss[1])
    assert np.allclose(rss[0], rss[2])


def test_genotype_effect_is_detected(rng):
    n = 80
    geno = rng.integers(0, 3, size=n)
    probs = np.zeros((n, 2, 3))
    probs[np.arange(n), 0, geno] = 1.0
    probs[:, 1, :] = [0.25, 0.5, 0.25]
    probs[:, 1, :] += rng.dirichlet([5, 5, 5], size=n) * 0.01
    probs[:, 1, :] /= probs[:, 1, :].sum(axis=1, keepdims=True)
    y = 2.0 * geno + rng.normal(0, 0.5, size=n)
    rss0 = scanone_hk_null(y)
    lod = rss_to_lod(scanone_hk(probs, y), rss0, n)
    assert lod[0, 0] > 20
    assert lod[0, 0] > lod[1, 0]


def test_unit_weights_match_unweighted(rng, genoprobs):
    y = rng.normal(size=(60, 1))
    assert np.allclose(scanone_hk(genoprobs, y, weights=np.ones(60)), scanone_hk(genoprobs, y))
    assert np.allclose(scanone_hk(genoprobs, y, weights=[]), scanone_hk(genoprobs, y))
    with pytest.raises(ValueError):
        scanone_hk(genoprobs, y, weights=-np.ones(60))


def test_weighted_null_rss(rng):
    y = rng.normal(size=(20, 1))
    w = rng.uniform(0.5, 2.0, size=20)
    mean = np.sum(w * y[:, 0]) / np.sum(w)
    expected = np.sum(w * (y[:, 0] - mean) ** 2)
    assert np.isclose(scanone_hk_null(y, weights=w)[0], expected)


def test_degenerate_position_gives_nan(rng, genoprobs):
    y = rng.normal(size=(60, 2))
    probs = genoprobs.copy()
    probs[:, 2, :] = [0.25, 0.5, 0.25]
    rss = scanone_hk(probs, y, chromosome="1",
                     positions=[Marker(f"m{k}", Chromosome("1"), 10.0 * k, id=k) for k in range(4)])
    assert np.all(np.isnan(rss[2]))
    assert not np.any(np.isnan(np.delete(rss, 2, axis=0)))


def test_dimension_mismatch(rng, genoprobs):
    with pytest.raises(DimensionMismatch):
        scanone_hk(genoprobs, rng.normal(size=(59, 1)))
    with pytest.raises(DimensionMismatch):
        scanone_hk(genoprobs, rng.normal(size=(60, 1)), addcovar=np.ones((10, 1)))
    with pytest.raises(DimensionMismatch):
        rss_to_lod(np.ones((3, 2)), np.ones(3), 10)


def test_peak_takes_first_maximum():
    chrom = Chromosome("1")
    positions = [Marker(f"m{k}", chrom, float(k), id=k) for k in range(4)]
    lod = np.array([[1.0, np.nan], [3.0, np.nan], [3.0, np.nan], [2.0, np.nan]])
    (lod1, marker1), (lod2, marker2) = get_peak_scanone(lod, positions)
    assert lod1 == 3.0 and marker1 is positions[1]
    assert np.isnan(lod2) and marker2 is None


def test_peak_skips_nan():
    chrom = Chromosome("1")
    positions = [Marker(f"m{k}", chrom, float(k), id=k) for k in range(3)]
    [(lod, marker)] = get_peak_scanone(np.array([np.nan, 0.5, 0.2]), positions)
    assert lod == 0.5 and marker is positions[1]
