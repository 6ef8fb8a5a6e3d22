"""Column-level removal of rare binary covariates and deny-listed columns."""
import logging
from typing import Iterable, List, Optional

import pandas as pd

from smm_charges.config.analysis_config import PRUNE_CONFIG
from smm_charges.validation.quality_report import QualityReport

logger = logging.getLogger(__name__)


def level_proportions(series: pd.Series) -> pd.Series:
    """Share of non-missing rows per declared level (unobserved levels count as 0)."""
    counts = series.value_counts(dropna=True)
    total = counts.sum()
    if total == 0:
        return counts.astype(float)
    return counts / total


def is_rare_binary(series: pd.Series, threshold: float = PRUNE_CONFIG.low_frequency_threshold) -> bool:
    """True if a two-level column should be removed.

    Flagged when the minority level's share is <= threshold, or the
    majority level's share is >= 1 (a column constant in practice).
    Both bounds are inclusive.
    """
    props = level_proportions(series)
    if props.empty:
        return True
    return bool(props.min() <= threshold or props.max() >= 1)


def find_rare_binary_columns(
    df: pd.DataFrame,
    threshold: float = PRUNE_CONFIG.low_frequency_threshold,
) -> List[str]:
    """Two-level categorical columns whose minority level is too rare."""
    flagged = []
    for col in df.columns:
        series = df[col]
        if not isinstance(series.dtype, pd.CategoricalDtype):
            continue
        if len(series.cat.categories) != 2:
            continue
        if is_rare_binary(series, threshold):
            flagged.append(col)
    return flagged


def prune_columns(
    df: pd.DataFrame,
    deny_list: Iterable[str] = (),
    threshold: float = PRUNE_CONFIG.low_frequency_threshold,
    report: Optional[QualityReport] = None,
) -> pd.DataFrame:
    """Drop rare binary columns and every deny-listed column present.

    Args:
        df: Imputed cohort table
        deny_list: Columns removed by project policy
        threshold: Minority-level share at or below which a column is removed
        report: Quality report receiving the removed columns

    Returns:
        New DataFrame without the removed columns
    """
    rare = find_rare_binary_columns(df, threshold)
    denied = [c for c in deny_list if c in df.columns and c not in rare]

    if report is not None:
        for col in rare:
            props = level_proportions(df[col])
            details = ", ".join(f"{lvl}={p:.3%}" for lvl, p in props.items())
            report.add("prune", f"Removed rare binary column {col}", details)
        if denied:
            report.add("prune", "Removed deny-listed columns", ", ".join(denied), len(denied))

    logger.info(f"Pruning {len(rare)} rare binary and {len(denied)} deny-listed columns")
    return df.drop(columns=rare + denied)
