"""
Tissue-level DE gene sets from the three pairwise contrasts.

Each tissue is characterized by the two contrasts it takes part in. A gene
is "up" in a tissue when it is significantly higher in that tissue than in
both other tissues, and "down" when it is significantly lower than both.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Iterator, Mapping

import pandas as pd

from tissuede_pipeline.core.config import RunContext
from tissuede_pipeline.core.exceptions import InputError
from tissuede_pipeline.differential.contrasts import ContrastResult, contrast_name

logger = logging.getLogger(__name__)


UP = "up"
DOWN = "down"
DIRECTIONS = (UP, DOWN)

# Contrast slot -> (first, second) tissue slot. "A-B" has logFC = A - B.
CONTRAST_SLOTS: dict[str, tuple[str, str]] = {
    "A-B": ("A", "B"),
    "A-C": ("A", "C"),
    "B-C": ("B", "C"),
}

# Tissue slot -> its two defining contrasts, each with the logFC sign that
# means "higher in this tissue". The up-set takes the partition matching the
# sign in both contrasts; the down-set takes the opposite partition.
#   A up   = up(A-B)   & up(A-C)
#   B up   = up(B-C)   & down(A-B)
#   C up   = down(A-C) & down(B-C)
SIGN_TABLE: dict[str, tuple[tuple[str, int], tuple[str, int]]] = {
    "A": (("A-B", +1), ("A-C", +1)),
    "B": (("B-C", +1), ("A-B", -1)),
    "C": (("A-C", -1), ("B-C", -1)),
}


def partition_for(sign: int, direction: str) -> str:
    """
    Contrast partition to take for a tissue direction.

    Args:
        sign: +1 if a positive logFC means higher in the tissue, else -1.
        direction: "up" or "down" for the tissue.

    Returns:
        "up" or "down" partition of the contrast.
    """
    if direction not in DIRECTIONS:
        raise ValueError(f"Unknown direction: {direction}")
    if sign not in (1, -1):
        raise ValueError(f"Sign must be +1 or -1: {sign}")
    higher = direction == UP
    return UP if (sign > 0) == higher else DOWN


def resolve_sign_table(context: RunContext) -> dict[str, tuple[tuple[str, int], ...]]:
    """Map SIGN_TABLE slots onto the run's tissue labels and contrast names."""
    slots = dict(zip("ABC", context.tissues))
    resolved = {}
    for tissue_slot, rules in SIGN_TABLE.items():
        resolved[slots[tissue_slot]] = tuple(
            (contrast_name(slots[CONTRAST_SLOTS[c][0]], slots[CONTRAST_SLOTS[c][1]]), sign)
            for c, sign in rules
        )
    return resolved


@dataclass(frozen=True)
class DEGeneSet:
    """Gene ids characterizing one tissue in one direction."""

    tissue: str
    direction: str
    genes: tuple[str, ...]

    @property
    def name(self) -> str:
        return f"{self.tissue}_{self.direction}"

    def __len__(self) -> int:
        return len(self.genes)

    def __iter__(self) -> Iterator[str]:
        return iter(self.genes)

    def __contains__(self, gene: object) -> bool:
        return gene in self.genes


def split_contrast(contrast: ContrastResult, fdr_threshold: float = 0.05) -> dict[str, list[str]]:
    """Significant genes of one contrast split by logFC sign."""
    return {
        UP: contrast.up(fdr_threshold),
        DOWN: contrast.down(fdr_threshold),
    }


def derive_de_sets(
    contrasts: Mapping[str, ContrastResult],
    context: RunContext,
) -> dict[str, dict[str, DEGeneSet]]:
    """
    Intersect the pairwise contrasts into per-tissue up/down sets.

    Gene order follows the first defining contrast (by p-value).

    Args:
        contrasts: Contrast name -> result; must hold A-B, A-C and B-C
            with the run's orientation.
        context: Run context (tissue order and FDR threshold).

    Returns:
        tissue -> {"up": DEGeneSet, "down": DEGeneSet}.
    """
    partitions: dict[str, dict[str, list[str]]] = {}
    for first, second in context.contrasts:
        name = contrast_name(first, second)
        if name not in contrasts:
            raise InputError(
                f"Missing contrast '{name}' (have: {sorted(contrasts)})"
            )
        result = contrasts[name]
        if (result.first, result.second) != (first, second):
            raise InputError(
                f"Contrast '{name}' has orientation {result.first} - {result.second}"
            )
        partitions[name] = split_contrast(result, context.fdr_threshold)

    sets: dict[str, dict[str, DEGeneSet]] = {}
    for tissue, rules in resolve_sign_table(context).items():
        sets[tissue] = {}
        for direction in DIRECTIONS:
            (c1, s1), (c2, s2) = rules
            primary = partitions[c1][partition_for(s1, direction)]
            secondary = set(partitions[c2][partition_for(s2, direction)])
            genes = tuple(g for g in primary if g in secondary)
            sets[tissue][direction] = DEGeneSet(tissue=tissue, direction=direction, genes=genes)

        logger.info(
            "%s: %d up, %d down",
            tissue, len(sets[tissue][UP]), len(sets[tissue][DOWN]),
        )

    return {t: sets[t] for t in context.tissues}


def summarize_de_sets(sets: Mapping[str, Mapping[str, DEGeneSet]]) -> pd.DataFrame:
    """Counts per tissue (rows) and direction (columns)."""
    rows = {
        tissue: {direction: len(s) for direction, s in by_dir.items()}
        for tissue, by_dir in sets.items()
    }
    df = pd.DataFrame.from_dict(rows, orient="index").reindex(columns=list(DIRECTIONS))
    df.index.name = "tissue"
    return df
