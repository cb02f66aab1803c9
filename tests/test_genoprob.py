"""Tests for the forward genotype probability engine."""

import numpy as np
import pytest

from hkscan.cross import form_cross
from hkscan.errors import DimensionMismatch
from hkscan.genoprob import calc_geno_prob
from hkscan.genotype import convert_to_symbol_matrix, parse_genotype_ids
from hkscan.map import Chromosome, Marker, PseudoMarker, add_stepped_markers, recombination_fractions

CHR = Chromosome.from_name("1")

OBSERVED = {
    "F2": [["A", "H", "B"], ["-", "D", "B"], ["C", "-", "-"], ["A", "A", "A"]],
    "BC": [["A", "H", "-"], ["H", "H", "A"], ["-", "-", "-"]],
    "RISELF": [["A", "B", "B"], ["-", "A", "B"]],
    "RISIB": [["B", "B", "A"], ["A", "-", "A"]],
}


def marker_positions(n=3, spacing=10.0):
    return [Marker(f"m{k}", CHR, k * spacing, id=k) for k in range(n)]


@pytest.mark.parametrize("cross_name", sorted(OBSERVED))
def test_probabilities_sum_to_one(cross_name):
    cross = form_cross(cross_name)
    symbols = parse_genotype_ids(cross_name)
    geno = convert_to_symbol_matrix(OBSERVED[cross_name], symbols)
    (_, positions), = add_stepped_markers([(CHR, marker_positions())], step=2.5)
    probs = calc_geno_prob(cross, geno, positions, recombination_fractions(positions), 0.01)
    assert probs.shape == (len(geno), len(positions), cross.n_genotypes)
    assert np.all(probs >= 0)
    assert np.allclose(probs.sum(axis=2), 1.0)


def test_missing_data_gives_prior():
    cross = form_cross("F2")
    geno = convert_to_symbol_matrix([["-", "NA", "-"]], parse_genotype_ids("F2"))
    positions = marker_positions()
    probs = calc_geno_prob(cross, geno, positions, recombination_fractions(positions))
    assert np.allclose(probs[0], [0.25, 0.5, 0.25])


def test_zero_recombination_keeps_distribution():
    cross = form_cross("F2")
    geno = convert_to_symbol_matrix([["A"], ["H"], ["D"]], parse_genotype_ids("F2"))
    positions = [Marker("m0", CHR, 0.0, id=0), PseudoMarker("c1.loc0.5", CHR, 0.5)]
    probs = calc_geno_prob(cross, geno, positions, [0.0])
    assert np.allclose(probs[:, 0, :], probs[:, 1, :])


def test_observed_marker_dominates():
    cross = form_cross("BC")
    geno = convert_to_symbol_matrix([["A", "H"]], parse_genotype_ids("BC"))
    positions = marker_positions(2, spacing=50.0)
    probs = calc_geno_prob(cross, geno, positions, recombination_fractions(positions), 0.002)
    assert probs[0, 0, 0] > 0.99
    assert probs[0, 1, 1] > 0.99


def test_single_position():
    cross = form_cross("RISIB")
    geno = convert_to_symbol_matrix([["B"]], parse_genotype_ids("RISIB"))
    probs = calc_geno_prob(cross, geno, [Marker("m0", CHR, 0.0, id=0)], [], 0.1)
    assert np.allclose(probs[0, 0], [0.1, 0.9])


def test_dimension_errors():
    cross = form_cross("F2")
    geno = convert_to_symbol_matrix([["A", "B"]], parse_genotype_ids("F2"))
    positions = marker_positions(2)
    with pytest.raises(DimensionMismatch):
        calc_geno_prob(cross, geno, positions, [0.1, 0.1])
    with pytest.raises(DimensionMismatch):
        calc_geno_prob(cross, geno, marker_positions(3), [0.1, 0.1])
    with pytest.raises(ValueError):
        calc_geno_prob(cross, geno, positions, [0.1], error_prob=0.0)
    with pytest.raises(ValueError):
        calc_geno_prob(cross, geno, positions, [0.7])
