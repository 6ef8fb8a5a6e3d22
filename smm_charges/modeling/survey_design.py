"""
Survey Design
=============

Stratified cluster sample description for NIS: hospitals are the primary
sampling units (PSUs), nested within NIS strata, and each discharge
carries a sampling weight.

Variances use Taylor linearisation: per-PSU score totals are centred
within their stratum and scaled by n_h / (n_h - 1). A stratum with a
single PSU has no within-stratum variation; the `lonely_psu` policy
decides what happens:

- "adjust"  centre the lone PSU on the mean of all PSU totals
- "remove"  contribute nothing to the variance
- "fail"    raise
"""

import logging
from dataclasses import dataclass
from typing import List

import numpy as np
import pandas as pd

from smm_charges.config.analysis_config import MODEL_CONFIG, ModelConfig
from smm_charges.validation.errors import DataIntegrityError

logger = logging.getLogger(__name__)

LONELY_PSU_POLICIES = ("adjust", "remove", "fail")


@dataclass(frozen=True)
class SurveyDesign:
    """Column roles of a stratified cluster design."""

    cluster: str
    strata: str
    weights: str
    lonely_psu: str = "adjust"

    def __post_init__(self):
        if self.lonely_psu not in LONELY_PSU_POLICIES:
            raise ValueError(f"Unknown lonely_psu policy: {self.lonely_psu}")

    @classmethod
    def from_config(cls, config: ModelConfig = MODEL_CONFIG) -> "SurveyDesign":
        return cls(config.cluster, config.strata, config.weights, config.lonely_psu)

    @property
    def columns(self) -> List[str]:
        return [self.cluster, self.strata, self.weights]

    def check(self, df: pd.DataFrame):
        """Raise if design columns are absent, incomplete, or weights are not positive."""
        missing = [c for c in self.columns if c not in df.columns]
        if missing:
            raise DataIntegrityError(f"Survey design columns missing from table: {missing}")
        incomplete = [c for c in self.columns if df[c].isna().any()]
        if incomplete:
            raise DataIntegrityError(f"Survey design columns have missing values: {incomplete}")
        if (df[self.weights] <= 0).any():
            raise DataIntegrityError(f"Non-positive survey weights in {self.weights}")

    def psu_counts(self, df: pd.DataFrame) -> pd.Series:
        """Number of distinct PSUs per stratum."""
        return df.groupby(self.strata, observed=True)[self.cluster].nunique()

    def singleton_strata(self, df: pd.DataFrame) -> list:
        counts = self.psu_counts(df)
        return counts[counts == 1].index.tolist()

    def degrees_of_freedom(self, df: pd.DataFrame) -> int:
        """Design degrees of freedom: PSUs minus strata."""
        counts = self.psu_counts(df)
        return int(counts.sum() - len(counts))

    def linearized_vcov(self, df: pd.DataFrame, scores: np.ndarray, bread: np.ndarray) -> np.ndarray:
        """Sandwich variance bread @ G @ bread for per-observation scores.

        Args:
            df: Rows the scores belong to (same order)
            scores: n x p matrix of estimating-function contributions
            bread: p x p inverse information matrix

        Returns:
            p x p variance-covariance matrix
        """
        p = scores.shape[1]
        score_df = pd.DataFrame(scores, index=df.index)
        score_df["_stratum"] = df[self.strata].to_numpy()
        score_df["_psu"] = df[self.cluster].to_numpy()

        totals = score_df.groupby(["_stratum", "_psu"], sort=True).sum()
        grand_mean = totals.to_numpy().mean(axis=0)

        meat = np.zeros((p, p))
        for stratum, block in totals.groupby(level="_stratum"):
            z = block.to_numpy()
            n_h = z.shape[0]
            if n_h > 1:
                centred = z - z.mean(axis=0)
                meat += n_h / (n_h - 1) * centred.T @ centred
            elif self.lonely_psu == "adjust":
                centred = z - grand_mean
                meat += centred.T @ centred
            elif self.lonely_psu == "fail":
                raise ValueError(f"Stratum {stratum} has a single PSU")

        return bread @ meat @ bread
