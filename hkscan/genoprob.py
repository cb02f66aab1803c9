"""Genotype probabilities by a forward HMM recursion.

For every individual on one chromosome:

    alpha[0][g] = init(g) + emit(obs[0], g)
    alpha[k][g] = emit(obs[k], g) + logsumexp_g'(alpha[k-1][g'] + step(g', g, r[k-1]))

Pseudomarkers have no observation (emission log-probability 0). Each row is
normalised on its own, giving the genotype probabilities conditional on the
data up to that position. This forward-only quantity is what Haley-Knott
regression uses here; no backward pass is applied.

The recursion is carried out in the log domain for all individuals at once;
individuals never interact.
"""

from typing import Dict, Sequence

import numpy as np
from scipy.special import logsumexp

from hkscan.cross import CrossModel
from hkscan.errors import DimensionMismatch
from hkscan.genotype import GenotypeMatrix, GenotypeSymbolMapper
from hkscan.log import logger
from hkscan.map import Marker


def emission_matrix(cross: CrossModel, genotype_matrix: GenotypeMatrix, column: int,
                    error_prob: float, cache: Dict[int, np.ndarray]) -> np.ndarray:
    """Log emission probabilities (individuals x true genotypes) of one marker column.

    Emission vectors are computed once per distinct symbol object.
    """
    n_ind = len(genotype_matrix)
    out = np.empty((n_ind, cross.n_genotypes))
    for i, row in enumerate(genotype_matrix):
        if column >= len(row):
            raise DimensionMismatch(
                f"Genotype row {i + 1} has {len(row)} markers; column {column + 1} requested"
            )
        symbol: GenotypeSymbolMapper = row[column]
        vec = cache.get(id(symbol))
        if vec is None:
            vec = cross.emission_vector(symbol, error_prob)
            cache[id(symbol)] = vec
        out[i] = vec
    return out


def calc_geno_prob(cross: CrossModel, genotype_matrix: GenotypeMatrix, positions: Sequence[Marker],
                   rec_frac: Sequence[float], error_prob: float = 0.002) -> np.ndarray:
    """Genotype probabilities at every marker and pseudomarker of a chromosome.

    :param cross: Cross model
    :param genotype_matrix: individuals x markers matrix of symbol references
    :param positions: Markers and pseudomarkers of one chromosome, sorted
    :param rec_frac: Recombination fractions between consecutive positions
    :param error_prob: Genotyping error probability, in (0, 1)
    :return: array individuals x positions x true genotypes of probabilities
    """
    if not 0.0 < error_prob < 1.0:
        raise ValueError(f"error_prob must be in (0, 1), got {error_prob}")
    n_pos = len(positions)
    rec_frac = np.asarray(rec_frac, dtype=float)
    if n_pos == 0:
        raise DimensionMismatch("No positions to compute genotype probabilities for")
    if rec_frac.shape[0] != n_pos - 1:
        raise DimensionMismatch(
            f"{rec_frac.shape[0]} recombination fractions for {n_pos} positions (expected {n_pos - 1})"
        )
    if np.any((rec_frac < 0) | (rec_frac > 0.5)):
        raise ValueError("Recombination fractions must lie in [0, 0.5]")

    n_ind = len(genotype_matrix)
    n_gen = cross.n_genotypes
    logger.debug(f"Calculating genotype probabilities for {n_ind} individuals at {n_pos} positions")

    cache: Dict[int, np.ndarray] = {}
    no_obs = np.zeros((n_ind, n_gen))

    def emissions(marker: Marker) -> np.ndarray:
        if marker.id is None:
            return no_obs
        return emission_matrix(cross, genotype_matrix, marker.id, error_prob, cache)

    probs = np.empty((n_ind, n_pos, n_gen))
    with np.errstate(divide="ignore"):
        alpha = cross.init_vector()[np.newaxis, :] + emissions(positions[0])
        probs[:, 0, :] = _normalize(alpha)
        for k in range(1, n_pos):
            step = cross.transition_matrix(rec_frac[k - 1])
            # alpha[i, g'] + step[g', g], summed over g'
            alpha = emissions(positions[k]) + logsumexp(alpha[:, :, np.newaxis] + step[np.newaxis, :, :], axis=1)
            probs[:, k, :] = _normalize(alpha)
    return probs


def _normalize(alpha: np.ndarray) -> np.ndarray:
    return np.exp(alpha - logsumexp(alpha, axis=1, keepdims=True))
