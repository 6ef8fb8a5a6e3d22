"""
Record Merger
=============

Builds the wide per-admission table: core admissions left-joined to
hospital attributes and cost-to-charge ratios by hospital id, then to
severity and diagnosis/procedure group extensions by admission id.
"""

import logging
from typing import Dict, Optional, Sequence

import pandas as pd

from smm_charges.config.analysis_config import ADMISSION_ID, HOSPITAL_ID, MERGE_CONFIG, MergeConfig
from smm_charges.validation.errors import DataIntegrityError
from smm_charges.validation.quality_report import QualityReport

logger = logging.getLogger(__name__)

_DUP_SUFFIX = "__dup"


def check_unique_ids(df: pd.DataFrame, key: str, table: str):
    """Raise if `key` is duplicated in `df`."""
    dup_mask = df[key].duplicated(keep=False)
    if dup_mask.any():
        examples = df.loc[dup_mask, key].unique()[:5].tolist()
        raise DataIntegrityError(
            f"Duplicate {key} in '{table}' table: {int(dup_mask.sum())} rows, e.g. {examples}"
        )


def check_positional_alignment(left_ids: Sequence, right_ids: Sequence) -> bool:
    """True when both id sequences are identical position by position.

    Only a sanity check on source ordering; joins never rely on it.
    """
    left = list(left_ids)
    right = list(right_ids)
    return len(left) == len(right) and all(a == b for a, b in zip(left, right))


def _same_values(a: pd.Series, b: pd.Series) -> pd.Series:
    both_na = a.isna() & b.isna()
    if pd.api.types.is_numeric_dtype(a) and pd.api.types.is_numeric_dtype(b):
        return (a == b) | both_na
    return (a.astype(str) == b.astype(str)) | both_na


def _join_dedup(
    left: pd.DataFrame,
    right: pd.DataFrame,
    key: str,
    table: str,
    validate: str,
) -> pd.DataFrame:
    """Left join on `key`, collapsing columns duplicated across both sides.

    Returns:
        Joined frame with a `_merge` indicator column
    """
    merged = left.merge(
        right,
        on=key,
        how="left",
        suffixes=("", _DUP_SUFFIX),
        validate=validate,
        indicator=True,
    )

    matched = merged["_merge"] == "both"
    overlap = [c for c in right.columns if c != key and c in left.columns]
    for col in overlap:
        dup_col = col + _DUP_SUFFIX
        same = _same_values(merged.loc[matched, col], merged.loc[matched, dup_col])
        if not same.all():
            bad = merged.loc[matched, key][~same].head(5).tolist()
            raise DataIntegrityError(
                f"Column {col} disagrees between admissions and '{table}' for {key} {bad}"
            )
        merged = merged.drop(columns=dup_col)
        logger.info(f"Deduplicated column {col} shared with '{table}'")

    return merged


def merge_records(
    core: pd.DataFrame,
    hospital: pd.DataFrame,
    cost: pd.DataFrame,
    extensions: Optional[Dict[str, pd.DataFrame]] = None,
    config: MergeConfig = MERGE_CONFIG,
    report: Optional[QualityReport] = None,
) -> pd.DataFrame:
    """Merge NIS tables into one row per admission.

    Args:
        core: Core admissions keyed by KEY_NIS
        hospital: Hospital attributes keyed by HOSP_NIS
        cost: Cost-to-charge ratios keyed by HOSP_NIS
        extensions: Admission-keyed tables (severity, dx/pr groups) by name
        config: Merge tolerances
        report: Quality report receiving join-miss conditions

    Returns:
        New wide DataFrame, one row per core admission

    Raises:
        DataIntegrityError: Duplicate ids, conflicting duplicate columns,
            or hospital miss rate above tolerance
    """
    extensions = extensions or {}
    report = report if report is not None else QualityReport()

    check_unique_ids(core, ADMISSION_ID, "core")
    result = core.copy()

    for table, other in [("hospital", hospital), ("cost_to_charge", cost)]:
        check_unique_ids(other, HOSPITAL_ID, table)
        result = _join_dedup(result, other, HOSPITAL_ID, table, validate="many_to_one")

        missed = result["_merge"] == "left_only"
        n_missed = int(missed.sum())
        miss_rate = n_missed / len(result) if len(result) else 0.0
        if miss_rate > config.max_hospital_miss_rate:
            examples = result.loc[missed, HOSPITAL_ID].unique()[:5].tolist()
            raise DataIntegrityError(
                f"{n_missed:,} admissions ({miss_rate:.1%}) have no match in '{table}' "
                f"(tolerance {config.max_hospital_miss_rate:.1%}), e.g. {HOSPITAL_ID} {examples}"
            )
        if n_missed:
            report.add(
                "merge",
                f"Hospital join misses in '{table}'",
                f"{n_missed:,} admissions with null {table} attributes",
                n_missed,
            )
        result = result.drop(columns="_merge")

    for table, other in extensions.items():
        check_unique_ids(other, ADMISSION_ID, table)
        if not check_positional_alignment(core[ADMISSION_ID], other[ADMISSION_ID]):
            logger.info(f"'{table}' rows are not in core order; joining by {ADMISSION_ID}")
        result = _join_dedup(result, other, ADMISSION_ID, table, validate="one_to_one")
        n_missed = int((result["_merge"] == "left_only").sum())
        if n_missed:
            report.add("merge", f"Admissions missing from '{table}'", f"{n_missed:,} admissions", n_missed)
        result = result.drop(columns="_merge")

    check_unique_ids(result, ADMISSION_ID, "merged")
    logger.info(f"Merged table: {len(result):,} admissions x {result.shape[1]} columns")
    return result
