import numpy as np
import pandas as pd
import matplotlib as mpl
mpl.use('Agg')
import matplotlib.pyplot as plt

from hkscan.log import logger
from typing import List, Optional


class Visualizer:
    def __init__(self):
        pass

    def plot_lod(self, df: pd.DataFrame, phenotype: Optional[str] = None,
                 chr_gap: float = 10, chr_colors: Optional[List[str]] = None,
                 threshold: Optional[float] = None, threshold_style: Optional[dict] = None,
                 show_markers: bool = True, point_size: float = 8,
                 xlabel=None, ylabel=None, title=None, ax=None):
        """
        Plot the LOD profile of one phenotype along the genome.

        :param df: LOD table with columns chr, pos, marker, an optional is_pseudomarker flag and one column per phenotype
        :param phenotype: Phenotype column to draw, default is the first phenotype column
        :param chr_gap: Gap between chromosomes in cM
        :param chr_colors: List of colors for chromosomes. if the length of the list is less than the number of chromosomes, the colors will be cycled.
        :param threshold: LOD threshold line, can be a float or a list of floats
        :param threshold_style: Style of the threshold line
        :param show_markers: Draw genotyped markers (not pseudomarkers) as points
        :param point_size: Point size of the markers
        :param xlabel: X-axis label
        :param ylabel: Y-axis label
        :param title: Title of the plot
        :param ax: Matplotlib Axes object for plotting
        """
        required = {"chr", "pos", "marker"}
        missing = required - set(df.columns)
        if missing:
            raise ValueError(f"The LOD table is missing the following required columns: {missing}.")
        pheno_cols = [c for c in df.columns if c not in required and c != "is_pseudomarker"]
        if not pheno_cols:
            raise ValueError("The LOD table contains no phenotype columns.")
        if phenotype is None:
            phenotype = pheno_cols[0]
        elif phenotype not in pheno_cols:
            raise ValueError(f"Phenotype '{phenotype}' not found; available: {pheno_cols}")
        if ax is None:
            ax = plt.gca()

        logger.info(f"Plotting LOD profile of {phenotype}...")
        df = df.copy()
        df["chr"] = df["chr"].astype(str)

        # Set chromosome colors
        if chr_colors is None:
            chr_colors = ["#3B5B92", "#9AB6D8"]

        # chromosomes keep their order in the table
        chrom_order = list(dict.fromkeys(df["chr"]))
        chrom_start = {}
        chrom_center = {}
        current_pos = 0
        for chrom in chrom_order:
            group = df[df["chr"] == chrom]
            offset = current_pos - group["pos"].min()
            chrom_start[chrom] = offset
            length = group["pos"].max() - group["pos"].min()
            chrom_center[chrom] = current_pos + length / 2
            current_pos += length + chr_gap

        for i, chrom in enumerate(chrom_order):
            group = df[df["chr"] == chrom].sort_values("pos")
            color = chr_colors[i % len(chr_colors)]
            x = group["pos"] + chrom_start[chrom]
            ax.plot(x, group[phenotype], color=color, linewidth=1.2)
            if show_markers:
                if "is_pseudomarker" in group:
                    is_marker = ~group["is_pseudomarker"].astype(bool)
                else:
                    is_marker = pd.Series(True, index=group.index)
                ax.scatter(x[is_marker], np.zeros(int(is_marker.sum())), color=color, marker="|", s=point_size * 4)

        # Set default parameters for threshold line
        default_line_params = {
            'color': 'gray',
            'linestyle': '--',
            'linewidth': 1,
        }
        if threshold_style:
            default_line_params.update(threshold_style)

        if threshold is not None:
            thresholds = threshold if isinstance(threshold, (list, tuple)) else [threshold]
            for t in thresholds:
                ax.axhline(t, **default_line_params, label=f"LOD {t:g}")
            ax.legend(loc="upper right", frameon=False)
        else:
            logger.info("No LOD threshold provided; skipping threshold line.")

        # Set x-axis ticks and labels
        ax.set_xticks(list(chrom_center.values()), list(chrom_center.keys()))
        ax.spines[['top', 'right']].set_visible(False)
        ax.set_xlabel(xlabel if xlabel is not None else "Chromosome")
        ax.set_ylabel(ylabel if ylabel is not None else "LOD")
        ax.set_xlim(-chr_gap / 2, max(current_pos - chr_gap / 2, chr_gap / 2))
        ax.set_ylim(0, max(ax.get_ylim()[1], 1))
        ax.set_title(title if title is not None else phenotype)
        return ax
