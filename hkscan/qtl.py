import os
from dataclasses import dataclass, field
from multiprocessing import Pool, cpu_count
from typing import List, Optional

import numpy as np
import pandas as pd

from hkscan.config import ScanConfig
from hkscan.cross import CrossModel, form_cross
from hkscan.errors import DimensionMismatch, IncompatibleCross
from hkscan.genoprob import calc_geno_prob
from hkscan.genotype import (
    GenotypeMatrix,
    ObservedGenotypeRegistry,
    convert_to_symbol_matrix,
    omit_ind_from_genotypes,
    parse_genotype_ids,
    read_genotype_symbols,
)
from hkscan.log import logger
from hkscan.map import (
    Chromosome,
    Marker,
    add_pseudomarkers,
    get_markers_by_chromosome,
    recombination_fractions,
    sort_chromosomes_by_marker_id,
)
from hkscan.phenotype import PhenotypeMatrix, is_any_phenotype_missing, set_phenotype
from hkscan.scanone import get_peak_scanone, rss_to_lod, scanone_hk, scanone_hk_null

ID_COLUMNS = ("id", "ID", "Id")


@dataclass
class CrossData:
    """Genotypes, phenotypes and genetic map of one experimental cross."""
    cross: CrossModel
    markers: List[Marker]
    genotypes: GenotypeMatrix
    phenotypes: PhenotypeMatrix
    symbols: ObservedGenotypeRegistry
    name: str = "cross"

    @property
    def n_individuals(self) -> int:
        return len(self.genotypes)

    @property
    def individuals(self) -> List[str]:
        return self.phenotypes.individuals


@dataclass
class ChromosomeScan:
    chromosome: Chromosome
    positions: List[Marker]
    lod: np.ndarray
    peaks: list = field(default_factory=list)


@dataclass
class ScanResult:
    lod: pd.DataFrame
    peaks: pd.DataFrame


def scan_chromosome(cross: CrossModel, genotypes: GenotypeMatrix, chromosome: Chromosome,
                    positions: List[Marker], pheno: np.ndarray, rss0: np.ndarray,
                    addcovar=None, intcovar=None, weights=None,
                    map_function: str = "haldane", error_prob: float = 0.002) -> ChromosomeScan:
    """Genotype probabilities, HK regression and LOD peaks of one chromosome.

    Module level so that it can be sent to a worker process.
    """
    logger.info(f"Scanning chromosome {chromosome.name} ({len(positions)} positions)...")
    try:
        rec_frac = recombination_fractions(positions, map_function)
        genoprobs = calc_geno_prob(cross, genotypes, positions, rec_frac, error_prob)
    except (IncompatibleCross, DimensionMismatch) as e:
        if e.chromosome is None:
            raise type(e)(str(e), chromosome=chromosome.name) from e
        raise
    rss = scanone_hk(genoprobs, pheno, addcovar, intcovar, weights,
                     chromosome=chromosome.name, positions=positions)
    lod = rss_to_lod(rss, rss0, pheno.shape[0])
    return ChromosomeScan(chromosome, positions, lod, get_peak_scanone(lod, positions))


class QTL:
    def __init__(self):
        """
        Initialize the QTL scan class.
        """
        self.result: Optional[ScanResult] = None

    def read_cross_csv(self, csv_file: str, cross: str = "F2", genotype_ids: Optional[str] = None,
                       na_ids: str = "NA -", symbols_file: Optional[str] = None) -> CrossData:
        """
        Read a cross in comma-separated layout.

        Row 1 holds phenotype and marker names, row 2 the chromosome of each
        marker (empty for phenotypes), row 3 the marker positions in cM, and
        every further row one individual.

        :param csv_file: Path to the cross file
        :param cross: Cross type: F2, BC, RISELF or RISIB
        :param genotype_ids: Genotype symbols of the cross, e.g. "A H B D C" for F2
        :param na_ids: Missing genotype symbols; the first is the symbol name
        :param symbols_file: File with GENOTYPE lines replacing the default symbols
        """
        if not os.path.exists(csv_file):
            raise FileNotFoundError(f"Cross file not found: {csv_file}")
        logger.info(f"Loading cross data from {csv_file}...")
        model = form_cross(cross)
        raw = pd.read_csv(csv_file, header=None, dtype=str, keep_default_na=False)
        if raw.shape[0] < 3:
            raise ValueError(
                f"The cross file {csv_file} must contain a header, a chromosome and a position row."
            )
        names = [str(v).strip() for v in raw.iloc[0]]
        chroms = [str(v).strip() for v in raw.iloc[1]]
        body = raw.iloc[3:]

        pheno_cols = [j for j, c in enumerate(chroms) if c == ""]
        marker_cols = [j for j, c in enumerate(chroms) if c != ""]
        if not marker_cols:
            raise ValueError(f"No marker columns found in {csv_file}.")

        id_cols = [j for j in pheno_cols if names[j] in ID_COLUMNS]
        trait_cols = [j for j in pheno_cols if j not in id_cols]
        if id_cols:
            individuals = [str(v).strip() for v in body.iloc[:, id_cols[0]]]
        else:
            individuals = [str(i + 1) for i in range(len(body))]

        if trait_cols:
            phenotypes = PhenotypeMatrix(
                [[set_phenotype(v) for v in row] for row in body.iloc[:, trait_cols].itertuples(index=False)],
                names=[names[j] for j in trait_cols],
                individuals=individuals,
            )
        else:
            phenotypes = PhenotypeMatrix(np.empty((len(body), 0)), names=[], individuals=individuals)

        markers = []
        for k, j in enumerate(marker_cols):
            try:
                position = float(raw.iloc[2, j])
            except ValueError:
                raise ValueError(f'Invalid position "{raw.iloc[2, j]}" for marker {names[j]}')
            markers.append(Marker(names[j], Chromosome.from_name(chroms[j]), position, id=k))

        if symbols_file:
            symbols = read_genotype_symbols(symbols_file)
        else:
            symbols = parse_genotype_ids(model.cross_type.value, genotype_ids, na_ids)
        genotypes = convert_to_symbol_matrix(
            [list(row) for row in body.iloc[:, marker_cols].itertuples(index=False)], symbols
        )
        # every symbol must be expressible in this cross
        for symbol in symbols:
            model.compatible(symbol)

        data = CrossData(model, markers, genotypes, phenotypes, symbols,
                         name=os.path.splitext(os.path.basename(csv_file))[0])
        logger.info(
            f"Loaded {data.n_individuals} individuals with {len(markers)} markers and "
            f"{phenotypes.n_phenotypes} phenotypes."
        )
        return data

    def read_phenotype_csv(self, phe_file: str, individuals: Optional[List[str]] = None) -> PhenotypeMatrix:
        """
        Read a table of traits or covariates (first column: sample ID).

        :param phe_file: Path to a csv file with a header row
        :param individuals: Sample IDs to align the rows to, e.g. those of the cross
        """
        logger.info(f"Loading phenotype file: {phe_file}")
        phe_df = pd.read_csv(phe_file, dtype=str, keep_default_na=False)
        if phe_df.shape[1] < 2:
            raise ValueError("The phenotype file must contain a sample column and at least one trait column.")
        phe_df.iloc[:, 0] = phe_df.iloc[:, 0].astype(str).str.strip()
        phe_df = phe_df.set_index(phe_df.columns[0])
        if individuals is not None:
            missing = [ind for ind in individuals if ind not in phe_df.index]
            if missing:
                raise DimensionMismatch(
                    f"{len(missing)} individuals are missing from {phe_file}: {', '.join(missing[:5])}"
                )
            phe_df = phe_df.loc[list(individuals)]
        pheno = PhenotypeMatrix(
            [[set_phenotype(v) for v in row] for row in phe_df.itertuples(index=False)],
            names=list(phe_df.columns),
            individuals=list(phe_df.index),
        )
        logger.info(f"Loaded {pheno.n_individuals} samples with {pheno.n_phenotypes} traits.")
        return pheno

    def scan(self, data: CrossData, config: Optional[ScanConfig] = None,
             addcovar=None, intcovar=None, weights=None) -> ScanResult:
        """
        Haley-Knott genome scan of every phenotype.

        :param data: Cross data
        :param config: Scan settings
        :param addcovar: Additive covariates (individuals x covariates)
        :param intcovar: Interactive covariates (individuals x covariates)
        :param weights: Per-individual weights
        """
        config = config or ScanConfig()
        pheno = data.phenotypes
        genotypes = data.genotypes
        if len(genotypes) != pheno.n_individuals:
            raise DimensionMismatch(
                f"no. individuals in geno ({len(genotypes)}) doesn't match pheno ({pheno.n_individuals})",
                dataset=data.name,
            )
        if pheno.n_phenotypes == 0:
            raise ValueError("No phenotypes to scan.")

        addcovar = self._covariate(addcovar)
        intcovar = self._covariate(intcovar)
        weights = None if weights is None else np.asarray(weights, dtype=float).ravel()
        if weights is not None and weights.size == 0:
            # empty weights mean unweighted
            weights = None
        for label, values in (("Additive covariates", addcovar), ("Interactive covariates", intcovar),
                              ("Weights", weights)):
            if values is not None and values.shape[0] != pheno.n_individuals:
                raise DimensionMismatch(
                    f"{label} have {values.shape[0]} rows; the cross has {pheno.n_individuals} individuals",
                    dataset=data.name,
                )

        to_omit = is_any_phenotype_missing(pheno)
        if to_omit.any():
            logger.info(f"Omitting {int(to_omit.sum())} individuals with missing phenotypes.")
            pheno = pheno.omit(to_omit)
            genotypes = omit_ind_from_genotypes(genotypes, to_omit)
            keep = ~to_omit
            addcovar = addcovar[keep] if addcovar is not None else None
            intcovar = intcovar[keep] if intcovar is not None else None
            weights = weights[keep] if weights is not None else None
        n_ind = pheno.n_individuals
        if n_ind == 0:
            raise DimensionMismatch("No individuals left after omitting missing phenotypes", dataset=data.name)

        markers_by_chr = sort_chromosomes_by_marker_id(get_markers_by_chromosome(data.markers))
        if config.drop_x:
            markers_by_chr = [(c, ms) for c, ms in markers_by_chr if not c.is_x]
        elif any(c.is_x for c, _ in markers_by_chr):
            logger.warning("The X chromosome is scanned with the autosomal model.")
        markers_by_chr = add_pseudomarkers(markers_by_chr, config.step, config.pseudomarkers)
        n_positions = sum(len(ms) for _, ms in markers_by_chr)
        logger.info(
            f"Scanning {pheno.n_phenotypes} phenotypes of {n_ind} individuals at "
            f"{n_positions} positions on {len(markers_by_chr)} chromosomes..."
        )

        rss0 = scanone_hk_null(pheno, addcovar, weights, intcovar)
        jobs = [
            (data.cross, genotypes, chrom, positions, pheno.values, rss0, addcovar, intcovar, weights,
             config.map_function, config.error_prob)
            for chrom, positions in markers_by_chr if positions
        ]

        threads = min(config.threads, cpu_count(), len(jobs))
        if threads > 1:
            pool = Pool(processes=threads)
            async_results = [pool.apply_async(scan_chromosome, args=job) for job in jobs]
            pool.close()
            pool.join()
            scans = [res.get() for res in async_results]
        else:
            scans = [scan_chromosome(*job) for job in jobs]

        result = self._collect(scans, pheno.names, config.lod_threshold)
        self.result = result
        logger.info(f"Scan completed: {len(result.lod)} positions, {len(result.peaks)} peaks.")
        return result

    @staticmethod
    def _covariate(values) -> Optional[np.ndarray]:
        if values is None:
            return None
        if isinstance(values, PhenotypeMatrix):
            if values.missing().any():
                raise ValueError("Covariates must not contain missing values.")
            values = values.values
        values = np.asarray(values, dtype=float)
        if values.size == 0:
            return None
        if values.ndim == 1:
            values = values.reshape(-1, 1)
        return values

    @staticmethod
    def _collect(scans: List[ChromosomeScan], pheno_names: List[str], lod_threshold: float) -> ScanResult:
        lod_frames = []
        peaks = []
        for s in scans:
            frame = pd.DataFrame(s.lod, columns=pheno_names)
            frame.insert(0, "is_pseudomarker", [m.is_pseudomarker for m in s.positions])
            frame.insert(0, "marker", [m.name for m in s.positions])
            frame.insert(0, "pos", [m.position for m in s.positions])
            frame.insert(0, "chr", s.chromosome.name)
            lod_frames.append(frame)
            for j, (max_lod, marker) in enumerate(s.peaks):
                if marker is not None and max_lod > lod_threshold:
                    logger.info(
                        " ----Chr %-2s : peak for phenotype %d: max lod = %7.2f at pos = %7.2f",
                        s.chromosome.name, j, max_lod, marker.position,
                    )
                peaks.append({
                    "chr": s.chromosome.name,
                    "phenotype": pheno_names[j],
                    "lod": max_lod,
                    "pos": marker.position if marker is not None else np.nan,
                    "marker": marker.name if marker is not None else "",
                })
        if lod_frames:
            lod_df = pd.concat(lod_frames, ignore_index=True)
        else:
            lod_df = pd.DataFrame(columns=["chr", "pos", "marker", "is_pseudomarker"] + list(pheno_names))
        peaks_df = pd.DataFrame(peaks, columns=["chr", "phenotype", "lod", "pos", "marker"])
        return ScanResult(lod_df, peaks_df)

    def save(self, result: Optional[ScanResult] = None, out_dir: str = ".", out_name: str = "hkscan"):
        """
        Save LOD scores and peaks to csv files.

        :param result: Scan result (default: the last scan)
        :param out_dir: Output directory
        :param out_name: Output file name prefix
        """
        result = result or self.result
        if result is None:
            raise ValueError("No scan result to save. Run scan() first.")
        os.makedirs(out_dir, exist_ok=True)
        lod_path = os.path.join(out_dir, out_name + ".lod.csv")
        result.lod.to_csv(lod_path, index=False, float_format="%.6g")
        logger.info(f"Saved {len(result.lod)} LOD scores to {lod_path}.")
        peaks_path = os.path.join(out_dir, out_name + ".peaks.csv")
        result.peaks.to_csv(peaks_path, index=False, float_format="%.6g")
        logger.info(f"Saved {len(result.peaks)} peaks to {peaks_path}.")
        return lod_path, peaks_path
