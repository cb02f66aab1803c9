"""Phenotype matrix with an explicit missing-value sentinel."""

import sys
from typing import List, Optional, Sequence

import numpy as np

from hkscan.errors import DimensionMismatch

# Missing phenotypes are stored as this value and tested by equality. NaN is
# kept for computed results (e.g. undefined LOD scores).
PHENOTYPE_NA = sys.float_info.max

NA_STRINGS = {"NA", "-", "", "na", "nan", "NaN"}


def set_phenotype(s) -> float:
    """Convert one input value to a phenotype; NA strings and NaN become PHENOTYPE_NA."""
    if s is None:
        return PHENOTYPE_NA
    if isinstance(s, str):
        if s.strip() in NA_STRINGS:
            return PHENOTYPE_NA
        try:
            return float(s.strip())
        except ValueError:
            raise ValueError(f'Can not parse phenotype value "{s}"')
    value = float(s)
    if np.isnan(value):
        return PHENOTYPE_NA
    return value


def is_na(value) -> bool:
    return value == PHENOTYPE_NA


class PhenotypeMatrix:
    """Individuals x phenotypes values.

    :param values: 2-D array-like, missing entries already set to PHENOTYPE_NA
    :param names: Phenotype names, one per column
    :param individuals: Optional individual identifiers, one per row
    """

    def __init__(self, values, names: Optional[Sequence[str]] = None,
                 individuals: Optional[Sequence[str]] = None):
        values = np.array(values, dtype=float)
        if values.ndim == 1:
            values = values.reshape(-1, 1)
        if values.ndim != 2:
            raise DimensionMismatch(f"Phenotype matrix must be 2-D, got {values.ndim} dimensions")
        self.values = values
        self.names: List[str] = list(names) if names is not None else [f"pheno{j + 1}" for j in range(values.shape[1])]
        if len(self.names) != values.shape[1]:
            raise DimensionMismatch(
                f"{len(self.names)} phenotype names for {values.shape[1]} phenotype columns"
            )
        self.individuals = list(individuals) if individuals is not None else [str(i + 1) for i in range(values.shape[0])]
        if len(self.individuals) != values.shape[0]:
            raise DimensionMismatch(
                f"{len(self.individuals)} individual ids for {values.shape[0]} phenotype rows"
            )

    @classmethod
    def from_strings(cls, rows: Sequence[Sequence[str]], names=None, individuals=None) -> "PhenotypeMatrix":
        return cls([[set_phenotype(v) for v in row] for row in rows], names, individuals)

    @property
    def n_individuals(self) -> int:
        return self.values.shape[0]

    @property
    def n_phenotypes(self) -> int:
        return self.values.shape[1]

    def missing(self) -> np.ndarray:
        return self.values == PHENOTYPE_NA

    def column(self, j: int) -> np.ndarray:
        return self.values[:, j]

    def omit(self, to_omit: Sequence[bool]) -> "PhenotypeMatrix":
        return omit_ind_from_phenotypes(self, to_omit)

    def __len__(self):
        return self.n_individuals

    def __repr__(self):
        return f"PhenotypeMatrix({self.n_individuals} individuals x {self.n_phenotypes} phenotypes)"


def is_any_phenotype_missing(pheno: PhenotypeMatrix) -> np.ndarray:
    """Boolean vector flagging individuals with at least one missing phenotype."""
    return pheno.missing().any(axis=1)


def omit_ind_from_phenotypes(pheno: PhenotypeMatrix, to_omit: Sequence[bool]) -> PhenotypeMatrix:
    to_omit = np.asarray(to_omit, dtype=bool)
    if to_omit.shape[0] != pheno.n_individuals:
        raise DimensionMismatch(
            f"no. individuals in pheno ({pheno.n_individuals}) doesn't match length of to_omit ({to_omit.shape[0]})"
        )
    keep = ~to_omit
    return PhenotypeMatrix(
        pheno.values[keep],
        pheno.names,
        [ind for ind, k in zip(pheno.individuals, keep) if k],
    )
