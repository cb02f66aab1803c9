"""Tests for cross models."""

import math
import pickle

import numpy as np
import pytest

from hkscan.cross import AA, AB, BB, CrossModel, CrossType, form_cross
from hkscan.errors import IncompatibleCross
from hkscan.genotype import GenotypeSymbolMapper, TrueGenotype, parse_genotype_ids

ALL_CROSSES = ["F2", "BC", "RISELF", "RISIB"]


@pytest.mark.parametrize("name", ALL_CROSSES)
def test_init_probabilities_sum_to_one(name):
    cross = form_cross(name)
    assert np.isclose(np.exp(cross.init_vector()).sum(), 1.0)


@pytest.mark.parametrize("name", ALL_CROSSES)
@pytest.mark.parametrize("rec_frac", [0.0, 0.01, 0.2, 0.5])
def test_transition_rows_sum_to_one(name, rec_frac):
    step = form_cross(name).transition_matrix(rec_frac)
    assert np.allclose(np.exp(step).sum(axis=1), 1.0)


def test_f2_probabilities():
    cross = form_cross("F2")
    assert cross.true_genotypes() == [AA, AB, BB]
    assert cross.labels() == ["A", "H", "B"]
    assert math.isclose(cross.init(AB), math.log(0.5))
    assert math.isclose(cross.init(AA), math.log(0.25))
    # phase unknown heterozygote
    assert math.isclose(cross.init(TrueGenotype(1, 0)), math.log(0.5))

    r = 0.1
    assert math.isclose(cross.step(AA, AA, r), 2 * math.log(1 - r))
    assert math.isclose(cross.step(AA, AB, r), math.log(2 * r * (1 - r)))
    assert math.isclose(cross.step(AA, BB, r), 2 * math.log(r))
    assert math.isclose(cross.step(AB, AA, r), math.log(r * (1 - r)))
    assert math.isclose(cross.step(AB, AB, r), math.log((1 - r) ** 2 + r ** 2))
    assert cross.step(AA, BB, 0.0) == -math.inf


def test_ri_transitions():
    r = 0.1
    riself = form_cross("RISELF")
    assert math.isclose(riself.step(AA, BB, r), math.log(2 * r / (1 + 2 * r)))
    risib = form_cross("RISIB")
    assert math.isclose(risib.step(BB, BB, r), math.log(1 - 4 * r / (1 + 6 * r)))
    bc = form_cross("BC")
    assert math.isclose(bc.step(AA, AB, r), math.log(r))


def test_emission_rules():
    cross = form_cross("F2")
    symbols = parse_genotype_ids("F2")
    e = 0.01
    a, h, na, d = (symbols.decode(s) for s in ("A", "H", "-", "D"))
    assert cross.emit(na, AA, e) == 0.0
    assert math.isclose(cross.emit(a, AA, e), math.log(1 - e))
    assert math.isclose(cross.emit(a, BB, e), math.log(e) - math.log(2))
    assert math.isclose(cross.emit(h, TrueGenotype(1, 0), e), math.log(1 - e))
    assert math.isclose(cross.emit(d, AA, e), math.log(1 - e / 2))
    assert math.isclose(cross.emit(d, AB, e), math.log(1 - e / 2))
    assert math.isclose(cross.emit(d, BB, e), math.log(e) - math.log(2))
    assert np.allclose(cross.emission_vector(na, e), 0.0)


def test_emission_two_genotype_cross():
    cross = form_cross("BC")
    a = GenotypeSymbolMapper("A", [AA])
    e = 0.002
    assert math.isclose(cross.emit(a, AB, e), math.log(e))


def test_incompatible_genotypes():
    cross = form_cross("BC")
    with pytest.raises(IncompatibleCross):
        cross.category(BB)
    with pytest.raises(IncompatibleCross):
        form_cross("F2").category(TrueGenotype(0, 2))
    with pytest.raises(IncompatibleCross):
        cross.emit(GenotypeSymbolMapper("B", [BB]), AA, 0.01)


def test_form_cross():
    assert form_cross("riself").cross_type is CrossType.RISELF
    assert form_cross(CrossType.BC) == CrossModel(CrossType.BC)
    model = form_cross("F2")
    assert form_cross(model) is model
    with pytest.raises(IncompatibleCross):
        form_cross("4way")


def test_cross_model_is_immutable_and_picklable():
    model = form_cross("F2")
    with pytest.raises(AttributeError):
        model.name = "BC"
    assert pickle.loads(pickle.dumps(model)) == model
    with pytest.raises(ValueError):
        model.transition_matrix(0.1)[0, 0] = 0.0
