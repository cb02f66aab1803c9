"""Shared fixtures: a simulated F2 intercross written in csv layout."""

import numpy as np
import pytest

from hkscan.qtl import QTL

CHROMOSOMES = {
    "1": [0.0, 10.0, 20.0, 30.0, 40.0],
    "2": [0.0, 15.0, 30.0],
    "X": [0.0, 25.0],
}
QTL_CHR = "1"
QTL_MARKER = 2
N_IND = 100


def simulate_gametes(rng, n_ind, positions):
    """Founder alleles along one chromosome (Haldane crossovers)."""
    deltas = np.diff(positions) / 100.0
    rec = 0.5 * (1.0 - np.exp(-2.0 * deltas))
    alleles = np.empty((n_ind, len(positions)), dtype=int)
    alleles[:, 0] = rng.integers(0, 2, size=n_ind)
    for k, r in enumerate(rec, start=1):
        flip = rng.random(n_ind) < r
        alleles[:, k] = np.where(flip, 1 - alleles[:, k - 1], alleles[:, k - 1])
    return alleles


def simulate_f2(seed=20240611, n_ind=N_IND, missing_geno=0.05):
    rng = np.random.default_rng(seed)
    genotypes = {}
    for chrom, positions in CHROMOSOMES.items():
        positions = np.array(positions)
        genotypes[chrom] = simulate_gametes(rng, n_ind, positions) + simulate_gametes(rng, n_ind, positions)

    qtl_geno = genotypes[QTL_CHR][:, QTL_MARKER]
    pheno1 = 1.5 * (qtl_geno - 1) + rng.normal(0.0, 1.0, size=n_ind)
    pheno2 = rng.normal(10.0, 2.0, size=n_ind)

    symbols = np.array(["A", "H", "B"])
    calls = {}
    for chrom, geno in genotypes.items():
        text = symbols[geno].astype(object)
        text[rng.random(geno.shape) < missing_geno] = "-"
        calls[chrom] = text
    return pheno1, pheno2, calls


def write_cross_csv(path, n_ind=N_IND, missing_pheno=(0, 5)):
    pheno1, pheno2, calls = simulate_f2(n_ind=n_ind)
    names = ["pheno1", "pheno2", "id"]
    chroms = ["", "", ""]
    positions = ["", "", ""]
    for chrom, marker_positions in CHROMOSOMES.items():
        for k, pos in enumerate(marker_positions):
            names.append(f"D{chrom}M{k + 1}")
            chroms.append(chrom)
            positions.append(f"{pos:g}")
    lines = [",".join(names), ",".join(chroms), ",".join(positions)]
    for i in range(n_ind):
        p2 = "NA" if i in missing_pheno else f"{pheno2[i]:.4f}"
        row = [f"{pheno1[i]:.4f}", p2, f"ind{i + 1}"]
        for chrom in CHROMOSOMES:
            row.extend(calls[chrom][i])
        lines.append(",".join(row))
    with open(path, "w") as f:
        f.write("\n".join(lines) + "\n")
    return path


@pytest.fixture(scope="session")
def f2_csv(tmp_path_factory):
    return str(write_cross_csv(tmp_path_factory.mktemp("cross") / "f2.csv"))


@pytest.fixture
def f2_data(f2_csv):
    return QTL().read_cross_csv(f2_csv, cross="F2")


@pytest.fixture
def qtl_location():
    return QTL_CHR, CHROMOSOMES[QTL_CHR][QTL_MARKER]
