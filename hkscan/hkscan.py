from hkscan.config import ScanConfig
from hkscan.qtl import QTL
from hkscan.viz import Visualizer
from hkscan.log import logger, add_file_handler, set_verbosity

import argparse
import os

import pandas as pd
import matplotlib.pyplot as plt

__version__ = "1.0.0"


def run_scan(args):
    """Process scan subcommand."""
    logger.info("Starting scan subcommand...")
    base = ScanConfig.from_yaml(args.config) if args.config else None
    config = ScanConfig.from_args(args, base=base)
    logger.info(f"Scan settings: {config.show()}")

    qtl = QTL()
    data = qtl.read_cross_csv(args.csv, cross=args.cross, genotype_ids=args.genotypes,
                              na_ids=args.na, symbols_file=args.symbols)

    addcovar = qtl.read_phenotype_csv(args.addcovar, data.individuals) if args.addcovar else None
    intcovar = qtl.read_phenotype_csv(args.intcovar, data.individuals) if args.intcovar else None
    weights = None
    if args.weights:
        weights_matrix = qtl.read_phenotype_csv(args.weights, data.individuals)
        if weights_matrix.n_phenotypes != 1:
            raise ValueError("The weights file must contain exactly one weight column.")
        if weights_matrix.missing().any():
            raise ValueError("The weights file must not contain missing values.")
        weights = weights_matrix.column(0)

    result = qtl.scan(data, config, addcovar=addcovar, intcovar=intcovar, weights=weights)
    qtl.save(result, out_dir=args.out_dir, out_name=args.out_name)
    logger.info("Done!")


def plot_lod(args):
    """LOD profile plot"""
    logger.info("Starting plot subcommand...")
    visualizer = Visualizer()

    if not os.path.exists(args.lod):
        raise FileNotFoundError(f"LOD file not found: {args.lod}")
    lod_df = pd.read_csv(args.lod, dtype={"chr": str})
    logger.info(f"Loaded {len(lod_df)} LOD scores from {args.lod}.")

    fig = plt.figure(figsize=(args.width, args.height))
    ax = fig.add_subplot(111)
    visualizer.plot_lod(lod_df, phenotype=args.phenotype, threshold=args.threshold,
                        chr_colors=args.chr_colors, ax=ax)
    plt.tight_layout()
    plt.savefig(os.path.join(args.out_dir, f"{args.out_name}.{args.format}"), dpi=300, bbox_inches="tight")
    plt.close()

    logger.info("Plotting completed!")


def build_parser():
    description = """
    hkscan: single-QTL genome scan of experimental crosses by Haley-Knott regression.
    """

    epilog = """
    Example usage:
    hkscan scan --csv listeria.csv --cross F2 --step 1 --out_dir results --out_name listeria
    hkscan plot --lod results/listeria.lod.csv --phenotype T264 --threshold 3 --out_dir results
    """

    parser = argparse.ArgumentParser(
        description=description,
        epilog=epilog,
        formatter_class=argparse.RawDescriptionHelpFormatter  # Preserve formatting
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("-v", "--verbose", type=int, default=1, help="Verbosity: 0 warnings, 1 info, 2 debug (default: %(default)s)")

    subparsers = parser.add_subparsers(dest="command", help="Subcommands")

    # scan subcommand; scan settings default to None so that --config values are kept
    scan_parser = subparsers.add_parser("scan", help="Haley-Knott scan of a cross")
    scan_parser.add_argument("--csv", type=str, required=True, help="Path to the cross file (comma-separated; rows: names, chromosomes, positions, individuals)")
    scan_parser.add_argument("--cross", type=str, default="F2", help="Cross type: F2, BC, RISELF or RISIB (default: %(default)s)")
    scan_parser.add_argument("--genotypes", type=str, help="Genotype symbols, e.g. 'A H B D C' for F2, 'A H' for BC, 'A B' for RI")
    scan_parser.add_argument("--na", type=str, default="NA -", help="Missing genotype symbols (default: %(default)s)")
    scan_parser.add_argument("--symbols", type=str, help="File with GENOTYPE lines defining the genotype symbols")
    scan_parser.add_argument("--addcovar", type=str, help="Additive covariates csv (first column: sample ID)")
    scan_parser.add_argument("--intcovar", type=str, help="Interactive covariates csv (first column: sample ID)")
    scan_parser.add_argument("--weights", type=str, help="Weights csv (sample ID, weight)")
    scan_parser.add_argument("--config", type=str, help="YAML file with scan settings; command-line options take precedence")
    scan_parser.add_argument("--step", type=float, help="Maximum distance (cM) between scan positions (default: 2.0)")
    scan_parser.add_argument("--pseudomarkers", type=str, choices=["stepped", "minimal", "none"], help="Pseudomarker policy (default: minimal)")
    scan_parser.add_argument("--map_function", type=str, choices=["haldane", "kosambi", "morgan"], help="Genetic map function (default: haldane)")
    scan_parser.add_argument("--error_prob", type=float, help="Genotyping error probability (default: 0.002)")
    scan_parser.add_argument("--lod_threshold", type=float, help="Report peaks above this LOD (default: 2.0)")
    scan_parser.add_argument("--threads", type=int, help="Number of worker processes, one chromosome each (default: 1)")
    scan_parser.add_argument("--drop_x", action="store_true", default=None, help="Leave the X chromosome out of the scan")
    scan_parser.add_argument("--out_dir", type=str, default=".", help="Output directory (default: %(default)s)")
    scan_parser.add_argument("--out_name", type=str, default="hkscan", help="Output file name prefix (default: %(default)s)")
    scan_parser.set_defaults(func=run_scan)

    # plot subcommand
    plot_parser = subparsers.add_parser("plot", help="Plot a LOD profile")
    plot_parser.add_argument("--lod", type=str, required=True, help="Path to a .lod.csv file written by the scan subcommand")
    plot_parser.add_argument("--phenotype", type=str, help="Phenotype to plot (default: first phenotype)")
    plot_parser.add_argument("--threshold", type=float, nargs="+", help="LOD threshold line(s)")
    plot_parser.add_argument("--chr_colors", type=str, nargs="+", help="Colors for chromosomes")
    plot_parser.add_argument("--width", type=float, default=10, help="Figure width (default: %(default)s)")
    plot_parser.add_argument("--height", type=float, default=3, help="Figure height (default: %(default)s)")
    plot_parser.add_argument("--format", type=str, default="png", help="Output format, e.g., pdf or png (default: %(default)s)")
    plot_parser.add_argument("--out_dir", type=str, default=".", help="Output directory (default: %(default)s)")
    plot_parser.add_argument("--out_name", type=str, default="lod", help="Output file name prefix (default: %(default)s)")
    plot_parser.set_defaults(func=plot_lod)

    return parser


def main(argv=None):
    parser = build_parser()

    # Parse arguments and execute the corresponding subcommand
    args = parser.parse_args(argv)
    set_verbosity(args.verbose)
    if args.command:
        # Create output directory if it doesn't exist
        os.makedirs(args.out_dir, exist_ok=True)
        add_file_handler(os.path.join(args.out_dir, "hkscan.log"))
        args.func(args)
    else:
        parser.print_help()

if __name__ == "__main__":
    main()
