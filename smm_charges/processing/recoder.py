"""
Categorical Recoder
===================

Maps raw NIS covariates to labelled categoricals with fixed reference
levels, derives the log-charge response, and drops columns that cannot
inform a model.

Reference levels are listed first in each category list; model formulas
use them as the treatment-coding baseline.
"""

import logging
from typing import Dict, List, Optional

import numpy as np
import pandas as pd

from smm_charges.config.analysis_config import (
    ADMISSION_ID,
    HOSPITAL_ID,
    STRATUM_ID,
    WEIGHT_COL,
    CHARGE_COL,
    RESPONSE_COL,
    COHORT_CONFIG,
    RECODE_CONFIG,
    RecodeConfig,
)
from smm_charges.config.schema import ColumnSpec, code_fields, recode_specs
from smm_charges.validation.errors import DataIntegrityError
from smm_charges.validation.quality_report import QualityReport

logger = logging.getLogger(__name__)


# =============================================================================
# LABEL MAPS (reference level first)
# =============================================================================

PAYER_LABELS = {
    3: "Private insurance",
    1: "Medicare",
    2: "Medicaid",
    4: "Self-pay",
    5: "No charge",
    6: "Other",
}

RACE_LABELS = {
    1: "White",
    2: "Black",
    3: "Hispanic",
    4: "Asian or Pacific Islander",
    5: "Native American",
    6: "Other",
}

HOSP_CONTROL_LABELS = {
    2: "Private, not-for-profit",
    1: "Government, nonfederal",
    3: "Private, investor-owned",
}

HOSP_REGION_LABELS = {
    3: "South",
    1: "Northeast",
    2: "Midwest",
    4: "West",
}

HOSP_LOCTEACH_LABELS = {
    3: "Urban teaching",
    1: "Rural",
    2: "Urban nonteaching",
}

HOSP_BEDSIZE_LABELS = {
    1: "Small",
    2: "Medium",
    3: "Large",
}

# Two lowest APR-DRG levels (0 = not specified, 1 = minor) share a band
SEVERITY_LABELS = {
    0: "0-1",
    1: "0-1",
    2: "2",
    3: "3",
    4: "4",
}

INDICATOR_LABELS = {
    0: "No",
    1: "Yes",
}

# rule -> (label map, ordered)
MAPPED_RULES = {
    "payer": (PAYER_LABELS, False),
    "race": (RACE_LABELS, False),
    "hosp_control": (HOSP_CONTROL_LABELS, False),
    "hosp_region": (HOSP_REGION_LABELS, False),
    "hosp_locteach": (HOSP_LOCTEACH_LABELS, False),
    "hosp_bedsize": (HOSP_BEDSIZE_LABELS, True),
    "severity": (SEVERITY_LABELS, True),
    "comorbidity": (INDICATOR_LABELS, False),
    "indicator": (INDICATOR_LABELS, False),
}

# Never recoded, lumped or dropped as near-constant
PROTECTED_COLUMNS = [ADMISSION_ID, HOSPITAL_ID, STRATUM_ID, WEIGHT_COL, CHARGE_COL, RESPONSE_COL]


def _levels(labels: Dict[int, str]) -> List[str]:
    """Distinct labels in declaration order."""
    return list(dict.fromkeys(labels.values()))


def reference_level(rule: str) -> str:
    """Baseline level a rule's categorical is coded against."""
    if rule == "age_band":
        return RECODE_CONFIG.age_labels[1]
    if rule == "los_band":
        return RECODE_CONFIG.los_labels[0]
    return _levels(MAPPED_RULES[rule][0])[0]


def declared_references(specs: Optional[List[ColumnSpec]] = None) -> Dict[str, str]:
    """Recoded column -> the level its treatment coding is measured against."""
    specs = recode_specs() if specs is None else specs
    return {spec.target: reference_level(spec.recode_rule) for spec in specs}


def comorbidity_targets(specs: Optional[List[ColumnSpec]] = None) -> List[str]:
    """Recoded names of the declared comorbidity indicators."""
    specs = recode_specs() if specs is None else specs
    return [spec.target for spec in specs if spec.recode_rule == "comorbidity"]


# =============================================================================
# SINGLE-COLUMN RULES
# =============================================================================

def recode_mapped(series: pd.Series, rule: str) -> pd.Series:
    """Map coded values to labels; unexpected values become missing."""
    labels, ordered = MAPPED_RULES[rule]
    values = pd.to_numeric(series, errors="coerce")
    mapped = values.map(labels)
    return pd.Series(
        pd.Categorical(mapped, categories=_levels(labels), ordered=ordered),
        index=series.index,
    )


def recode_band(series: pd.Series, bins: List[float], labels: List[str]) -> pd.Series:
    """Left-closed numeric bands; values outside the bins become missing."""
    values = pd.to_numeric(series, errors="coerce")
    banded = pd.cut(values, bins=bins, labels=labels, right=False, ordered=True)
    return pd.Series(banded, index=series.index)


def recode_age(series: pd.Series, config: RecodeConfig = RECODE_CONFIG) -> pd.Series:
    """AGE -> 0-17, 18-29, 30-44, 45-59, 60+ (ordered)."""
    return recode_band(series, config.age_bins, config.age_labels)


def recode_los(series: pd.Series, config: RecodeConfig = RECODE_CONFIG) -> pd.Series:
    """LOS -> 0-1, 2, 3, 4-5, 6-8, 9-12, 13-20, 21+ (ordered)."""
    return recode_band(series, config.los_bins, config.los_labels)


def apply_rule(series: pd.Series, rule: str, config: RecodeConfig = RECODE_CONFIG) -> pd.Series:
    if rule == "age_band":
        return recode_age(series, config)
    if rule == "los_band":
        return recode_los(series, config)
    if rule in MAPPED_RULES:
        return recode_mapped(series, rule)
    raise ValueError(f"Unknown recode rule: {rule}")


# =============================================================================
# TABLE-LEVEL TRANSFORMS
# =============================================================================

def recode_covariates(
    df: pd.DataFrame,
    specs: Optional[List[ColumnSpec]] = None,
    config: RecodeConfig = RECODE_CONFIG,
    keep_raw: bool = False,
) -> pd.DataFrame:
    """Apply every declared recode rule whose source column is present.

    Args:
        df: Cohort table with raw NIS columns
        specs: Column declarations (default: all declared recode rules)
        config: Band boundaries
        keep_raw: Keep the raw source columns next to the labels

    Returns:
        New DataFrame with labelled categorical columns
    """
    specs = recode_specs() if specs is None else specs
    result = df.copy()
    recoded = []
    for spec in specs:
        if spec.name not in result.columns:
            continue
        result[spec.target] = apply_rule(result[spec.name], spec.recode_rule, config)
        recoded.append(spec.name)

    if not keep_raw:
        result = result.drop(columns=recoded)

    logger.info(f"Recoded {len(recoded)} columns")
    return result


def drop_filter_columns(df: pd.DataFrame) -> pd.DataFrame:
    """Drop code fields and flags that only served the cohort filter."""
    flags = [COHORT_CONFIG.delivery_col] + list(COHORT_CONFIG.transfer_cols)
    to_drop = code_fields(df.columns) + [c for c in flags if c in df.columns]
    return df.drop(columns=to_drop)


def drop_missing_charges(df: pd.DataFrame, report: Optional[QualityReport] = None) -> pd.DataFrame:
    """Remove admissions with no recorded total charge."""
    missing = df[CHARGE_COL].isna()
    n_missing = int(missing.sum())
    if n_missing and report is not None:
        report.add("recode", f"Dropped admissions with missing {CHARGE_COL}", f"{n_missing:,} rows", n_missing)
    return df[~missing].copy()


def add_log_charge(df: pd.DataFrame) -> pd.DataFrame:
    """Add the natural log of total charge as the model response.

    Raises:
        DataIntegrityError: If any charge is missing or non-positive
    """
    charge = pd.to_numeric(df[CHARGE_COL], errors="coerce")
    bad = charge.isna() | (charge <= 0)
    if bad.any():
        ids = df.loc[bad, ADMISSION_ID].head(5).tolist() if ADMISSION_ID in df.columns else []
        raise DataIntegrityError(
            f"{int(bad.sum())} admissions have missing or non-positive {CHARGE_COL} "
            f"at the log transform, e.g. {ADMISSION_ID} {ids}"
        )
    result = df.copy()
    result[RESPONSE_COL] = np.log(charge)
    return result


def lump_rare_levels(
    df: pd.DataFrame,
    min_share: float = RECODE_CONFIG.min_level_share,
    report: Optional[QualityReport] = None,
) -> pd.DataFrame:
    """Merge rare levels of unordered categoricals into "Other".

    The first (reference) level is never lumped. Applies to columns with
    more than two levels; binary columns are left to the rare-level pruner.
    """
    result = df.copy()
    for col in result.columns:
        series = result[col]
        if not isinstance(series.dtype, pd.CategoricalDtype) or series.cat.ordered:
            continue
        categories = list(series.cat.categories)
        if len(categories) <= 2:
            continue

        shares = series.value_counts(normalize=True)
        rare = [lvl for lvl in categories[1:] if 0 < shares.get(lvl, 0.0) < min_share and lvl != "Other"]
        empty = [lvl for lvl in categories[1:] if shares.get(lvl, 0.0) == 0 and lvl != "Other"]
        if not rare and not empty:
            continue

        kept = [lvl for lvl in categories if lvl not in rare and lvl not in empty]
        if rare and "Other" not in kept:
            kept.append("Other")
        values = series.astype(object).where(~series.isin(rare), "Other")
        result[col] = pd.Categorical(values, categories=kept, ordered=False)
        if rare and report is not None:
            report.add("recode", f"Lumped rare levels of {col} into Other", ", ".join(map(str, rare)), len(rare))
    return result


def drop_near_constant_columns(
    df: pd.DataFrame,
    max_share: float = RECODE_CONFIG.near_constant_share,
    report: Optional[QualityReport] = None,
) -> pd.DataFrame:
    """Drop columns whose modal value covers at least `max_share` of rows."""
    to_drop = []
    for col in df.columns:
        if col in PROTECTED_COLUMNS:
            continue
        observed = df[col].dropna()
        if observed.empty:
            to_drop.append(col)
            continue
        top_share = observed.value_counts(normalize=True).iloc[0]
        if top_share >= max_share:
            to_drop.append(col)

    if to_drop and report is not None:
        report.add("recode", "Dropped near-constant columns", ", ".join(to_drop), len(to_drop))
    return df.drop(columns=to_drop)


def recode_cohort(
    df: pd.DataFrame,
    config: RecodeConfig = RECODE_CONFIG,
    report: Optional[QualityReport] = None,
) -> pd.DataFrame:
    """Full recode stage: response, labelled covariates, column cleanup."""
    result = drop_missing_charges(df, report)
    result = add_log_charge(result)
    result = recode_covariates(result, config=config)
    result = drop_filter_columns(result)
    result = lump_rare_levels(result, config.min_level_share, report)
    result = drop_near_constant_columns(result, config.near_constant_share, report)
    return result.reset_index(drop=True)
