"""Genetic map support: markers, pseudomarkers and map functions."""

import math
from dataclasses import dataclass
from enum import Enum
from typing import Callable, Dict, List, Optional, Sequence, Tuple

import numpy as np

from hkscan.log import logger

# two positions closer than this (cM) are the same position
POSITION_TOLERANCE = 1e-8


@dataclass(frozen=True)
class Chromosome:
    name: str
    is_x: bool = False

    @classmethod
    def from_name(cls, name: str) -> "Chromosome":
        name = str(name).strip()
        return cls(name=name, is_x=name.upper() == "X")


@dataclass(frozen=True)
class Marker:
    """A genotyped position; ``id`` is its column in the genotype matrix."""
    name: str
    chromosome: Chromosome
    position: float
    id: Optional[int] = None

    @property
    def is_pseudomarker(self) -> bool:
        return False


@dataclass(frozen=True)
class PseudoMarker(Marker):
    """Synthetic scan position without a genotype column."""

    @property
    def is_pseudomarker(self) -> bool:
        return True


MarkersByChromosome = List[Tuple[Chromosome, List[Marker]]]


# ------------------------
# map functions
# ------------------------

def haldane(d_cm: np.ndarray) -> np.ndarray:
    d = np.asarray(d_cm, dtype=float) / 100.0
    return 0.5 * (1.0 - np.exp(-2.0 * d))


def kosambi(d_cm: np.ndarray) -> np.ndarray:
    d = np.asarray(d_cm, dtype=float) / 100.0
    return 0.5 * np.tanh(2.0 * d)


def morgan(d_cm: np.ndarray) -> np.ndarray:
    d = np.asarray(d_cm, dtype=float) / 100.0
    return np.minimum(d, 0.5)


class GeneticMapFunc(Enum):
    Haldane = "haldane"
    Kosambi = "kosambi"
    Morgan = "morgan"

    @property
    def function(self) -> Callable[[np.ndarray], np.ndarray]:
        return _MAP_FUNCTIONS[self]

    @classmethod
    def from_name(cls, name) -> "GeneticMapFunc":
        if isinstance(name, cls):
            return name
        try:
            return cls(str(name).strip().lower())
        except ValueError:
            raise ValueError(f"Unknown map function '{name}'; expected one of {[m.value for m in cls]}")


_MAP_FUNCTIONS: Dict[GeneticMapFunc, Callable[[np.ndarray], np.ndarray]] = {
    GeneticMapFunc.Haldane: haldane,
    GeneticMapFunc.Kosambi: kosambi,
    GeneticMapFunc.Morgan: morgan,
}


def recombination_fractions(positions: Sequence[Marker], map_function=GeneticMapFunc.Haldane) -> np.ndarray:
    """Recombination fractions between consecutive positions.

    :param positions: Markers/pseudomarkers of one chromosome, sorted by position
    :param map_function: A :class:`GeneticMapFunc`, its name, or a callable mapping cM to r
    :return: array of length ``len(positions) - 1``
    """
    if callable(map_function) and not isinstance(map_function, GeneticMapFunc):
        func = map_function
    else:
        func = GeneticMapFunc.from_name(map_function).function
    cm = np.array([m.position for m in positions], dtype=float)
    deltas = np.diff(cm)
    if np.any(deltas < 0):
        raise ValueError("Positions must be sorted before computing recombination fractions")
    return np.asarray(func(deltas), dtype=float)


# ------------------------
# markers by chromosome
# ------------------------

def get_markers_by_chromosome(markers: Sequence[Marker]) -> MarkersByChromosome:
    """Group markers by chromosome, each group sorted by position (then column)."""
    groups: Dict[Chromosome, List[Marker]] = {}
    for m in markers:
        groups.setdefault(m.chromosome, []).append(m)
    result = []
    for chrom, ms in groups.items():
        ms = sorted(ms, key=lambda m: (m.position, -1 if m.id is None else m.id))
        result.append((chrom, ms))
    return result


def sort_chromosomes_by_marker_id(markers_by_chr: MarkersByChromosome) -> MarkersByChromosome:
    """Order chromosomes by their first genotype column; X goes last."""
    def key(item):
        chrom, ms = item
        ids = [m.id for m in ms if m.id is not None]
        return (chrom.is_x, min(ids) if ids else math.inf)
    return sorted(markers_by_chr, key=key)


def _pseudomarker(chrom: Chromosome, position: float) -> PseudoMarker:
    return PseudoMarker(name=f"c{chrom.name}.loc{position:g}", chromosome=chrom, position=float(position))


def _merge(chrom: Chromosome, markers: List[Marker], extra: List[float]) -> List[Marker]:
    existing = np.array([m.position for m in markers], dtype=float)
    added = []
    for pos in extra:
        if existing.size and np.min(np.abs(existing - pos)) < POSITION_TOLERANCE:
            continue
        added.append(_pseudomarker(chrom, pos))
    return sorted(markers + added, key=lambda m: (m.position, m.is_pseudomarker))


def add_stepped_markers(markers_by_chr: MarkersByChromosome, step: float = 1.0) -> MarkersByChromosome:
    """Insert pseudomarkers on a regular grid from the first to the last marker.

    Grid points coinciding with a marker are skipped, so marker positions are
    never duplicated.
    """
    if step <= 0:
        raise ValueError(f"Pseudomarker step must be positive, got {step}")
    result = []
    for chrom, markers in markers_by_chr:
        markers = sorted(markers, key=lambda m: m.position)
        if not markers:
            result.append((chrom, []))
            continue
        start, end = markers[0].position, markers[-1].position
        n = int(math.floor((end - start) / step + POSITION_TOLERANCE))
        grid = [start + k * step for k in range(n + 1)]
        merged = _merge(chrom, markers, grid)
        logger.debug(f"Chr {chrom.name}: added {len(merged) - len(markers)} stepped pseudomarkers")
        result.append((chrom, merged))
    return result


def add_minimal_markers(markers_by_chr: MarkersByChromosome, step: float = 1.0) -> MarkersByChromosome:
    """Insert the fewest evenly spaced pseudomarkers so that no gap exceeds ``step``."""
    if step <= 0:
        raise ValueError(f"Pseudomarker step must be positive, got {step}")
    result = []
    for chrom, markers in markers_by_chr:
        markers = sorted(markers, key=lambda m: m.position)
        extra = []
        for left, right in zip(markers[:-1], markers[1:]):
            gap = right.position - left.position
            if gap <= step + POSITION_TOLERANCE:
                continue
            n_new = int(math.ceil(gap / step - POSITION_TOLERANCE)) - 1
            extra.extend(left.position + gap * (k + 1) / (n_new + 1) for k in range(n_new))
        merged = _merge(chrom, markers, extra)
        logger.debug(f"Chr {chrom.name}: added {len(merged) - len(markers)} minimal pseudomarkers")
        result.append((chrom, merged))
    return result


def add_pseudomarkers(markers_by_chr: MarkersByChromosome, step: float, policy: str = "minimal") -> MarkersByChromosome:
    policy = policy.lower()
    if policy == "stepped":
        return add_stepped_markers(markers_by_chr, step)
    elif policy == "minimal":
        return add_minimal_markers(markers_by_chr, step)
    elif policy == "none":
        return [(chrom, sorted(ms, key=lambda m: m.position)) for chrom, ms in markers_by_chr]
    raise ValueError(f"Unknown pseudomarker policy '{policy}'; expected stepped, minimal or none")
