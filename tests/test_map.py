"""Tests for map functions and pseudomarker insertion."""

import math

import numpy as np
import pytest

from hkscan.map import (
    Chromosome,
    GeneticMapFunc,
    Marker,
    add_minimal_markers,
    add_pseudomarkers,
    add_stepped_markers,
    get_markers_by_chromosome,
    haldane,
    kosambi,
    recombination_fractions,
    sort_chromosomes_by_marker_id,
)


def make_markers(chrom_name, positions, first_id=0):
    chrom = Chromosome.from_name(chrom_name)
    return [Marker(f"m{first_id + k}", chrom, float(p), id=first_id + k) for k, p in enumerate(positions)]


def test_map_functions():
    assert haldane(0.0) == 0.0
    assert math.isclose(float(haldane(10.0)), 0.5 * (1 - math.exp(-0.2)))
    assert math.isclose(float(kosambi(10.0)), 0.5 * math.tanh(0.2))
    assert float(haldane(1e4)) == pytest.approx(0.5)
    assert GeneticMapFunc.from_name("Kosambi") is GeneticMapFunc.Kosambi
    with pytest.raises(ValueError):
        GeneticMapFunc.from_name("carter")


def test_recombination_fractions():
    markers = make_markers("1", [0, 10, 10, 30])
    rf = recombination_fractions(markers, "haldane")
    assert rf.shape == (3,)
    assert rf[1] == 0.0
    assert np.allclose(rf, haldane(np.array([10.0, 0.0, 20.0])))
    assert np.allclose(recombination_fractions(markers, kosambi), kosambi(np.array([10.0, 0.0, 20.0])))
    with pytest.raises(ValueError):
        recombination_fractions(make_markers("1", [10, 0]))


def test_markers_by_chromosome_sorted():
    markers = make_markers("2", [30, 0, 15], first_id=3) + make_markers("X", [5, 0], first_id=6) \
        + make_markers("1", [20, 10, 0])
    groups = sort_chromosomes_by_marker_id(get_markers_by_chromosome(markers))
    assert [c.name for c, _ in groups] == ["1", "2", "X"]
    assert groups[-1][0].is_x
    for _, ms in groups:
        positions = [m.position for m in ms]
        assert positions == sorted(positions)


def test_add_stepped_markers():
    markers = make_markers("1", [0, 10, 25])
    (chrom, result), = add_stepped_markers([(markers[0].chromosome, markers)], step=5.0)
    assert [m.position for m in result] == [0, 5, 10, 15, 20, 25]
    assert [m.is_pseudomarker for m in result] == [False, True, False, True, True, False]
    assert result[1].name == "c1.loc5"
    assert result[1].id is None


def test_add_minimal_markers():
    markers = make_markers("1", [0, 10, 12])
    (chrom, result), = add_minimal_markers([(markers[0].chromosome, markers)], step=3.0)
    positions = [m.position for m in result]
    assert positions == pytest.approx([0, 2.5, 5, 7.5, 10, 12])
    assert np.max(np.diff(positions)) <= 3.0
    assert sum(not m.is_pseudomarker for m in result) == 3


@pytest.mark.parametrize("policy", ["stepped", "minimal", "none"])
def test_pseudomarkers_never_duplicate_positions(policy):
    markers = make_markers("1", [0, 1, 2.5, 7, 9.5])
    (_, result), = add_pseudomarkers([(markers[0].chromosome, markers)], 1.0, policy)
    positions = [m.position for m in result]
    assert positions == sorted(positions)
    assert len(set(positions)) == len(positions)
    assert [m for m in result if not m.is_pseudomarker] == markers


def test_pseudomarker_errors():
    markers = make_markers("1", [0, 10])
    with pytest.raises(ValueError):
        add_stepped_markers([(markers[0].chromosome, markers)], step=0)
    with pytest.raises(ValueError):
        add_pseudomarkers([(markers[0].chromosome, markers)], 1.0, "dense")
