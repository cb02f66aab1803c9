"""Single-QTL genome scan by Haley-Knott regression.

The phenotypes are regressed on the genotype probabilities at each position
(plus covariates); LOD = (n/2) log10(RSS0 / RSS).
"""

from typing import List, Optional, Sequence, Tuple

import numpy as np

from hkscan.errors import DegenerateDesign, DimensionMismatch
from hkscan.log import logger
from hkscan.map import Marker
from hkscan.phenotype import PhenotypeMatrix


def _as_pheno(pheno) -> np.ndarray:
    if isinstance(pheno, PhenotypeMatrix):
        pheno = pheno.values
    pheno = np.asarray(pheno, dtype=float)
    if pheno.ndim == 1:
        pheno = pheno.reshape(-1, 1)
    return pheno


def _as_covar(covar, n_ind: int, label: str) -> np.ndarray:
    if covar is None:
        return np.empty((n_ind, 0))
    covar = np.asarray(covar, dtype=float)
    if covar.size == 0:
        return np.empty((n_ind, 0))
    if covar.ndim == 1:
        covar = covar.reshape(-1, 1)
    if covar.shape[0] != n_ind:
        raise DimensionMismatch(f"{label} has {covar.shape[0]} rows; phenotypes have {n_ind}")
    return covar


def _as_weights(weights, n_ind: int) -> Optional[np.ndarray]:
    if weights is None:
        return None
    weights = np.asarray(weights, dtype=float).ravel()
    if weights.size == 0:
        return None
    if weights.shape[0] != n_ind:
        raise DimensionMismatch(f"{weights.shape[0]} weights for {n_ind} individuals")
    if np.any(weights < 0):
        raise ValueError("Weights must be non-negative")
    return np.sqrt(weights)


def fit_rss(design: np.ndarray, pheno: np.ndarray, sqrt_weights: Optional[np.ndarray] = None) -> np.ndarray:
    """Least-squares residual sum of squares for each phenotype column.

    :raises DegenerateDesign: if the design matrix is rank deficient
    """
    if sqrt_weights is not None:
        design = design * sqrt_weights[:, np.newaxis]
        pheno = pheno * sqrt_weights[:, np.newaxis]
    coef, _, rank, _ = np.linalg.lstsq(design, pheno, rcond=None)
    if rank < design.shape[1]:
        raise DegenerateDesign("Rank-deficient design matrix", rank=int(rank), n_columns=design.shape[1])
    resid = pheno - design @ coef
    return np.sum(resid ** 2, axis=0)


def main_effects(addcovar: np.ndarray, intcovar: np.ndarray) -> np.ndarray:
    """Additive covariates plus any interactive covariate not already among them."""
    extra = [intcovar[:, j:j + 1] for j in range(intcovar.shape[1])
             if not any(np.array_equal(intcovar[:, j], addcovar[:, i]) for i in range(addcovar.shape[1]))]
    return np.hstack([addcovar] + extra)


def scanone_hk_null(pheno, addcovar=None, weights=None, intcovar=None) -> np.ndarray:
    """RSS of the null model (intercept and additive covariates) per phenotype.

    Interactive covariates, when given, enter the null model as additive terms.
    """
    y = _as_pheno(pheno)
    n_ind = y.shape[0]
    addcovar = _as_covar(addcovar, n_ind, "Additive covariate matrix")
    intcovar = _as_covar(intcovar, n_ind, "Interactive covariate matrix")
    design = np.hstack([np.ones((n_ind, 1)), main_effects(addcovar, intcovar)])
    return fit_rss(design, y, _as_weights(weights, n_ind))


def hk_design(genoprobs_at_pos: np.ndarray, addcovar: np.ndarray, intcovar: np.ndarray,
              baseline: int = 0) -> np.ndarray:
    """Design matrix at one position.

    Columns: intercept, additive covariates (interactive covariates included),
    probabilities of every genotype except ``baseline``, and those
    probabilities times each interactive covariate.
    """
    n_ind, n_gen = genoprobs_at_pos.shape
    keep = [g for g in range(n_gen) if g != baseline]
    geno = genoprobs_at_pos[:, keep]
    cols = [np.ones((n_ind, 1)), main_effects(addcovar, intcovar), geno]
    for j in range(intcovar.shape[1]):
        cols.append(geno * intcovar[:, j:j + 1])
    return np.hstack(cols)


def scanone_hk(genoprobs: np.ndarray, pheno, addcovar=None, intcovar=None, weights=None,
               baseline: int = 0, chromosome: Optional[str] = None,
               positions: Optional[Sequence[Marker]] = None) -> np.ndarray:
    """Haley-Knott regression RSS at each position.

    :param genoprobs: individuals x positions x genotypes probabilities
    :param pheno: individuals x phenotypes matrix (no missing values)
    :param addcovar: additive covariates, individuals x covariates (or empty)
    :param intcovar: interactive covariates, individuals x covariates (or empty)
    :param weights: per-individual weights (or empty for unweighted)
    :param baseline: genotype category left out of the design
    :param chromosome: chromosome name used in warnings
    :param positions: markers at each position, used in warnings
    :return: positions x phenotypes RSS; NaN where the design is rank deficient
    """
    y = _as_pheno(pheno)
    genoprobs = np.asarray(genoprobs, dtype=float)
    if genoprobs.ndim != 3:
        raise DimensionMismatch(f"Genotype probabilities must be 3-D, got {genoprobs.ndim} dimensions")
    n_ind, n_pos, n_gen = genoprobs.shape
    if y.shape[0] != n_ind:
        raise DimensionMismatch(
            f"Genotype probabilities have {n_ind} individuals; phenotypes have {y.shape[0]}",
            chromosome=chromosome,
        )
    if not 0 <= baseline < n_gen:
        raise ValueError(f"baseline must be a genotype index in [0, {n_gen}), got {baseline}")
    addcovar = _as_covar(addcovar, n_ind, "Additive covariate matrix")
    intcovar = _as_covar(intcovar, n_ind, "Interactive covariate matrix")
    sqrt_weights = _as_weights(weights, n_ind)

    rss = np.empty((n_pos, y.shape[1]))
    for k in range(n_pos):
        design = hk_design(genoprobs[:, k, :], addcovar, intcovar, baseline)
        try:
            rss[k] = fit_rss(design, y, sqrt_weights)
        except DegenerateDesign as e:
            pos = positions[k].position if positions is not None else None
            logger.warning("%s", DegenerateDesign(str(e), chromosome=chromosome, position=pos))
            rss[k] = np.nan
    return rss


def rss_to_lod(rss: np.ndarray, rss0: np.ndarray, n_ind: int) -> np.ndarray:
    """LOD = (n/2) * log10(rss0 / rss), per position and phenotype."""
    rss = np.asarray(rss, dtype=float)
    rss0 = np.asarray(rss0, dtype=float)
    if rss.shape[-1] != rss0.shape[-1]:
        raise DimensionMismatch(f"RSS has {rss.shape[-1]} phenotypes; null RSS has {rss0.shape[-1]}")
    with np.errstate(divide="ignore", invalid="ignore"):
        return (n_ind / 2.0) * np.log10(rss0 / rss)


def get_peak_scanone(lod: np.ndarray, positions: Sequence[Marker]) -> List[Tuple[float, Optional[Marker]]]:
    """Maximum LOD and its position for each phenotype.

    The first position reaching the maximum wins; NaN scores are skipped.
    """
    lod = np.asarray(lod, dtype=float)
    if lod.ndim == 1:
        lod = lod.reshape(-1, 1)
    if lod.shape[0] != len(positions):
        raise DimensionMismatch(f"{lod.shape[0]} LOD rows for {len(positions)} positions")
    peaks = []
    for j in range(lod.shape[1]):
        col = lod[:, j]
        if np.all(np.isnan(col)):
            peaks.append((float("nan"), None))
            continue
        k = int(np.nanargmax(col))
        peaks.append((float(col[k]), positions[k]))
    return peaks
