"""
Multiple Imputation by Chained Equations
========================================

Fills missing covariates before modeling with scikit-learn's
IterativeImputer (BayesianRidge per column, posterior draws). Each
column gets a method from its type:

- numeric      -> "bayesian_ridge" (imputed directly)
- categorical  -> "onehot" (imputed as level indicators, mapped back to
                  the level with the highest imputed indicator)
- complete     -> "" (used as a predictor only)

`n_imputations` completed datasets are produced from different seeds.
"""

import logging
import warnings
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Tuple

import numpy as np
import pandas as pd
from sklearn.exceptions import ConvergenceWarning
from sklearn.experimental import enable_iterative_imputer  # noqa: F401
from sklearn.impute import IterativeImputer

from smm_charges.config.analysis_config import (
    ADMISSION_ID,
    HOSPITAL_ID,
    STRATUM_ID,
    WEIGHT_COL,
    CHARGE_COL,
    IMPUTE_CONFIG,
    ImputeConfig,
)
from smm_charges.validation.quality_report import QualityReport

logger = logging.getLogger(__name__)

# Identifiers and design columns never enter the imputation model
NON_COVARIATES = [ADMISSION_ID, HOSPITAL_ID, STRATUM_ID, WEIGHT_COL, CHARGE_COL]


@dataclass
class ImputationResult:
    """Methods used and the completed datasets."""

    methods: Dict[str, str]
    imputations: List[pd.DataFrame] = field(default_factory=list)

    def complete(self, i: int = 0) -> pd.DataFrame:
        """Completed dataset number `i` (0-based)."""
        return self.imputations[i]


def _is_categorical(series: pd.Series) -> bool:
    return isinstance(series.dtype, pd.CategoricalDtype)


def select_methods(df: pd.DataFrame, exclude: Optional[List[str]] = None) -> Dict[str, str]:
    """Choose an imputation method per column.

    Args:
        df: Recoded cohort table
        exclude: Columns left out of the imputation model

    Returns:
        Dict column -> method; "" marks a complete predictor
    """
    exclude = NON_COVARIATES if exclude is None else exclude
    methods = {}
    for col in df.columns:
        if col in exclude:
            continue
        series = df[col]
        if not (_is_categorical(series) or pd.api.types.is_numeric_dtype(series)):
            continue
        if series.isna().all():
            logger.warning(f"Column {col} has no observed values, leaving it out of imputation")
            continue
        if series.notna().all():
            methods[col] = ""
        elif _is_categorical(series):
            methods[col] = "onehot"
        else:
            methods[col] = "bayesian_ridge"
    return methods


def imputation_matrix(df: pd.DataFrame, columns: List[str]) -> Tuple[pd.DataFrame, Dict[str, List[str]]]:
    """Numeric matrix for the imputer.

    Categoricals become one indicator column per level, all missing where
    the source value is missing.

    Returns:
        (matrix, indicator columns per categorical)
    """
    parts = []
    blocks = {}
    for col in columns:
        series = df[col]
        if _is_categorical(series):
            dummies = pd.get_dummies(series, prefix=col, prefix_sep="=", dtype=float)
            dummies.loc[series.isna(), :] = np.nan
            blocks[col] = list(dummies.columns)
            parts.append(dummies)
        else:
            parts.append(series.astype(float).rename(col).to_frame())
    return pd.concat(parts, axis=1), blocks


def _impute_once(
    df: pd.DataFrame,
    methods: Dict[str, str],
    max_iter: int,
    seed: int,
) -> pd.DataFrame:
    matrix, blocks = imputation_matrix(df, list(methods))
    imputer = IterativeImputer(
        random_state=seed,
        sample_posterior=True,
        max_iter=max_iter,
    )
    with warnings.catch_warnings():
        warnings.filterwarnings("ignore", category=ConvergenceWarning)
        filled = pd.DataFrame(imputer.fit_transform(matrix), index=matrix.index, columns=matrix.columns)

    result = df.copy()
    for col, method in methods.items():
        if not method:
            continue
        missing = df[col].isna().to_numpy()
        if col in blocks:
            levels = list(df[col].cat.categories)
            picked = filled.loc[missing, blocks[col]].to_numpy().argmax(axis=1)
            values = np.array(df[col].astype(object), dtype=object)
            values[missing] = [levels[i] for i in picked]
            result[col] = pd.Categorical(values, categories=levels, ordered=df[col].cat.ordered)
        else:
            values = df[col].astype(float).to_numpy(copy=True)
            values[missing] = filled.loc[missing, col].to_numpy()
            result[col] = values
    return result


def run_imputation(
    df: pd.DataFrame,
    config: ImputeConfig = IMPUTE_CONFIG,
    methods: Optional[Dict[str, str]] = None,
) -> ImputationResult:
    """Produce `config.n_imputations` completed datasets.

    Args:
        df: Recoded cohort table
        config: Number of imputations, sweeps and base seed
        methods: Override the per-column method selection

    Returns:
        ImputationResult with the method table and completed datasets
    """
    methods = select_methods(df) if methods is None else methods
    targets = [c for c, m in methods.items() if m]
    logger.info(f"Imputing {len(targets)} incomplete columns: {targets}")

    result = ImputationResult(methods=methods)
    for i in range(config.n_imputations):
        if not targets:
            result.imputations.append(df.copy())
            continue
        result.imputations.append(_impute_once(df, methods, config.max_iter, config.seed + i))
        logger.info(f"  Completed imputation {i + 1}/{config.n_imputations}")
    return result


def impute_covariates(
    df: pd.DataFrame,
    config: ImputeConfig = IMPUTE_CONFIG,
    report: Optional[QualityReport] = None,
) -> pd.DataFrame:
    """Record missingness, impute, and return the configured completed dataset."""
    methods = select_methods(df)
    if report is not None:
        report.add_missingness(df, "impute", columns=list(methods))
    imputed = run_imputation(df, config, methods)
    return imputed.complete(config.use_imputation)
