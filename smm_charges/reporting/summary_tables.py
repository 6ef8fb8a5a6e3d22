"""Survey-weighted descriptive tables and coefficient table export."""
import logging
from pathlib import Path
from typing import List, Optional

import numpy as np
import pandas as pd

from smm_charges.modeling.survey_design import SurveyDesign
from smm_charges.modeling.survey_lm import SurveyFit

logger = logging.getLogger(__name__)

DESCRIPTIVE_COLUMNS = [
    "variable", "level", "n", "weighted_n", "weighted_pct", "weighted_mean", "weighted_sd",
]


def _weighted_mean_sd(values: pd.Series, weights: pd.Series):
    mask = values.notna()
    v = values[mask].astype(float).to_numpy()
    w = weights[mask].astype(float).to_numpy()
    if w.sum() == 0:
        return np.nan, np.nan
    mean = np.average(v, weights=w)
    sd = np.sqrt(np.average((v - mean) ** 2, weights=w))
    return mean, sd


def weighted_descriptives(
    df: pd.DataFrame,
    design: SurveyDesign,
    columns: Optional[List[str]] = None,
) -> pd.DataFrame:
    """National estimates per variable.

    Categorical columns get one row per level with weighted count and
    percentage; numeric columns get the weighted mean and SD.
    """
    weights = df[design.weights]
    if columns is None:
        columns = [c for c in df.columns if c not in design.columns]

    rows = []
    for col in columns:
        series = df[col]
        if isinstance(series.dtype, pd.CategoricalDtype):
            total_w = weights[series.notna()].sum()
            for level in series.cat.categories:
                in_level = series == level
                w = weights[in_level].sum()
                rows.append({
                    "variable": col,
                    "level": level,
                    "n": int(in_level.sum()),
                    "weighted_n": w,
                    "weighted_pct": 100.0 * w / total_w if total_w else np.nan,
                })
        elif pd.api.types.is_numeric_dtype(series):
            mean, sd = _weighted_mean_sd(series, weights)
            rows.append({
                "variable": col,
                "level": "",
                "n": int(series.notna().sum()),
                "weighted_n": weights[series.notna()].sum(),
                "weighted_mean": mean,
                "weighted_sd": sd,
            })
    return pd.DataFrame(rows, columns=DESCRIPTIVE_COLUMNS)


def coefficient_table(fit: SurveyFit, model_name: str = "") -> pd.DataFrame:
    """Coefficient table of a fit, tagged with the model name."""
    table = fit.coef_table()
    if model_name:
        table.insert(0, "model", model_name)
    return table


def write_table(df: pd.DataFrame, path: Path) -> Path:
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.to_csv(path, index=False)
    logger.info(f"Wrote {len(df)} rows to {path}")
    return path
