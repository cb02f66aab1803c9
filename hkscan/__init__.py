"""HKScan package

Core modules:
- hkscan.genotype: Genotype symbols, symbol tables and genotype matrices
- hkscan.cross: Cross models (F2, BC, RISELF, RISIB)
- hkscan.map: Markers, pseudomarkers and map functions
- hkscan.phenotype: Phenotype matrix with missing values
- hkscan.genoprob: Genotype probabilities (forward HMM)
- hkscan.scanone: Haley-Knott regression, LOD scores and peaks
- hkscan.qtl: Reading crosses, running and saving scans
- hkscan.viz: Visualization utilities
- hkscan.hkscan: CLI entry point (main)
"""

__all__ = [
    "genotype",
    "cross",
    "map",
    "phenotype",
    "genoprob",
    "scanone",
    "qtl",
    "viz",
    "hkscan",
]
