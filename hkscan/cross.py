"""Cross models: HMM initial, emission and transition probabilities.

All probabilities are returned on the natural log scale. The set of cross
types is closed; each function matches every :class:`CrossType` explicitly and
raises :class:`IncompatibleCross` for anything it does not handle.
"""

import math
from enum import Enum
from functools import lru_cache
from typing import List, Tuple

import numpy as np

from hkscan.errors import IncompatibleCross
from hkscan.genotype import GenotypeSymbolMapper, TrueGenotype

LN2 = math.log(2.0)

AA = TrueGenotype(0, 0)
AB = TrueGenotype(0, 1)
BB = TrueGenotype(1, 1)


class CrossType(Enum):
    F2 = "F2"
    BC = "BC"
    RISELF = "RISELF"
    RISIB = "RISIB"


def _log(x: float) -> float:
    return math.log(x) if x > 0 else -math.inf


class CrossModel:
    """HMM probability functions of one cross design.

    True genotypes are ordered categories: F2 (A, H, B), BC (A, H) and
    RISELF/RISIB (A, B). Heterozygotes are phase unknown, so both (0,1) and
    (1,0) fall in the H category.
    """

    __slots__ = ("_cross_type",)

    def __init__(self, cross_type: CrossType):
        object.__setattr__(self, "_cross_type", CrossType(cross_type))

    def __setattr__(self, name, value):
        raise AttributeError("CrossModel is immutable")

    def __reduce__(self):
        return (CrossModel, (self._cross_type,))

    @property
    def cross_type(self) -> CrossType:
        return self._cross_type

    def __eq__(self, other):
        return isinstance(other, CrossModel) and other._cross_type is self._cross_type

    def __hash__(self):
        return hash(self._cross_type)

    def __repr__(self):
        return f"CrossModel({self._cross_type.value})"

    def true_genotypes(self) -> List[TrueGenotype]:
        ct = self._cross_type
        if ct is CrossType.F2:
            return [AA, AB, BB]
        elif ct is CrossType.BC:
            return [AA, AB]
        elif ct is CrossType.RISELF or ct is CrossType.RISIB:
            return [AA, BB]
        raise IncompatibleCross(f"Unsupported cross type {ct}")

    def labels(self) -> List[str]:
        ct = self._cross_type
        if ct is CrossType.F2:
            return ["A", "H", "B"]
        elif ct is CrossType.BC:
            return ["A", "H"]
        elif ct is CrossType.RISELF or ct is CrossType.RISIB:
            return ["A", "B"]
        raise IncompatibleCross(f"Unsupported cross type {ct}")

    @property
    def n_genotypes(self) -> int:
        return len(self.true_genotypes())

    def category(self, g: TrueGenotype) -> int:
        """Index of the true genotype category containing ``g``."""
        for i, tg in enumerate(self.true_genotypes()):
            if g == tg or g.reversed() == tg:
                return i
        raise IncompatibleCross(
            f"True genotype {g} is not possible in a {self._cross_type.value} cross"
        )

    def compatible(self, symbol: GenotypeSymbolMapper) -> Tuple[int, ...]:
        """Categories an observed symbol is compatible with."""
        return tuple(sorted({self.category(g) for g in symbol.genotypes}))

    # marginal genotype probability
    def init(self, true_gen: TrueGenotype) -> float:
        ct = self._cross_type
        k = self.category(true_gen)
        if ct is CrossType.F2:
            # H is the middle category
            return -LN2 if k == 1 else -2.0 * LN2
        elif ct is CrossType.BC or ct is CrossType.RISELF or ct is CrossType.RISIB:
            return -LN2
        raise IncompatibleCross(f"Unsupported cross type {ct}")

    # emission probability (marker genotype "penetrance")
    def emit(self, obs_gen: GenotypeSymbolMapper, true_gen: TrueGenotype, error_prob: float) -> float:
        if obs_gen.is_na:
            return 0.0
        k = self.category(true_gen)
        compatible = self.compatible(obs_gen)
        if k in compatible:
            if len(compatible) == 1:
                return _log(1.0 - error_prob)
            return _log(1.0 - error_prob / len(compatible))
        return _log(error_prob) - math.log(self.n_genotypes - 1)

    # transition probabilities
    def step(self, true_gen_left: TrueGenotype, true_gen_right: TrueGenotype, rec_frac: float) -> float:
        ct = self._cross_type
        left = self.category(true_gen_left)
        right = self.category(true_gen_right)
        r = rec_frac
        if ct is CrossType.F2:
            if left == 0 or left == 2:
                if right == left:
                    return 2.0 * _log(1.0 - r)
                if right == 1:
                    return LN2 + _log(1.0 - r) + _log(r)
                if right == 2 - left:
                    return 2.0 * _log(r)
            elif left == 1:
                if right == 0 or right == 2:
                    return _log(r) + _log(1.0 - r)
                if right == 1:
                    return _log((1.0 - r) ** 2 + r ** 2)
            raise IncompatibleCross(
                f"No F2 transition from {true_gen_left} to {true_gen_right}"
            )
        elif ct is CrossType.BC:
            return _log(1.0 - r) if left == right else _log(r)
        elif ct is CrossType.RISELF:
            big_r = 2.0 * r / (1.0 + 2.0 * r)
            return _log(1.0 - big_r) if left == right else _log(big_r)
        elif ct is CrossType.RISIB:
            big_r = 4.0 * r / (1.0 + 6.0 * r)
            return _log(1.0 - big_r) if left == right else _log(big_r)
        raise IncompatibleCross(f"Unsupported cross type {ct}")

    def init_vector(self) -> np.ndarray:
        return np.array([self.init(g) for g in self.true_genotypes()])

    def emission_vector(self, obs_gen: GenotypeSymbolMapper, error_prob: float) -> np.ndarray:
        return np.array([self.emit(obs_gen, g, error_prob) for g in self.true_genotypes()])

    def transition_matrix(self, rec_frac: float) -> np.ndarray:
        """Log transition matrix, rows are the left genotype."""
        return _transition_matrix(self, float(rec_frac))


@lru_cache(maxsize=4096)
def _transition_matrix(cross: CrossModel, rec_frac: float) -> np.ndarray:
    genotypes = cross.true_genotypes()
    mat = np.array([[cross.step(g1, g2, rec_frac) for g2 in genotypes] for g1 in genotypes])
    mat.setflags(write=False)
    return mat


def form_cross(name) -> CrossModel:
    """Return the cross model for a cross type name such as "F2" or "riself"."""
    if isinstance(name, CrossModel):
        return name
    if isinstance(name, CrossType):
        return CrossModel(name)
    try:
        return CrossModel(CrossType(str(name).strip().upper()))
    except ValueError:
        raise IncompatibleCross(
            f"Unknown cross type '{name}'; expected one of {[c.value for c in CrossType]}"
        )
