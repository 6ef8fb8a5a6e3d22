"""
Survey-Weighted Linear Model
============================

Gaussian model of the response fit with survey weights. Point estimates
are weighted least squares (statsmodels); standard errors come from the
design-based sandwich in `SurveyDesign.linearized_vcov`.

Residual degrees of freedom follow the design: PSUs - strata + 1 - p.
Dispersion is the weighted mean squared residual sum(w e^2) / sum(w).
"""

import logging
from dataclasses import dataclass, field
from typing import Dict, List, Optional

import numpy as np
import pandas as pd
import patsy
import statsmodels.api as sm
from scipy import stats

from smm_charges.config.analysis_config import RESPONSE_COL
from smm_charges.modeling.survey_design import SurveyDesign
from smm_charges.processing.recoder import declared_references

logger = logging.getLogger(__name__)


@dataclass
class SurveyFit:
    """Coefficients, design-based variance and dispersion of one fit."""

    formula: str
    terms: List[str]
    params: pd.Series
    vcov: pd.DataFrame
    df_resid: int
    dispersion: float
    n_obs: int
    term_slices: Dict[str, slice]
    row_index: pd.Index
    levels: Dict[str, list] = field(default_factory=dict)
    design_info: object = field(repr=False, default=None)

    @property
    def bse(self) -> pd.Series:
        return pd.Series(np.sqrt(np.diag(self.vcov.to_numpy())), index=self.params.index)

    @property
    def tvalues(self) -> pd.Series:
        return self.params / self.bse

    @property
    def pvalues(self) -> pd.Series:
        if self.df_resid < 1:
            return pd.Series(np.nan, index=self.params.index)
        return pd.Series(2 * stats.t.sf(np.abs(self.tvalues), self.df_resid), index=self.params.index)

    def coef_table(self) -> pd.DataFrame:
        """One row per coefficient: term, estimate, std error, t, p."""
        term_of = {}
        for term, sl in self.term_slices.items():
            for name in self.params.index[sl]:
                term_of[name] = term
        return pd.DataFrame({
            "term": [term_of.get(name, "(Intercept)") for name in self.params.index],
            "coefficient": self.params.index,
            "estimate": self.params.to_numpy(),
            "std_error": self.bse.to_numpy(),
            "t_value": self.tvalues.to_numpy(),
            "p_value": self.pvalues.to_numpy(),
        })

    def predict(self, df: pd.DataFrame) -> pd.Series:
        """Predicted response; rows with a level unseen in fitting get NaN."""
        data = df.copy()
        unseen = pd.Series(False, index=df.index)
        for term, levels in self.levels.items():
            unseen |= data[term].notna() & ~data[term].isin(levels)
            data[term] = data[term].cat.set_categories(levels)
        predicted = pd.Series(np.nan, index=df.index)
        if (~unseen).any():
            # Rows with a missing predictor are dropped by patsy and stay NaN
            (X,) = patsy.build_design_matrices([self.design_info], data[~unseen], return_type="dataframe")
            predicted[X.index] = X.to_numpy() @ self.params.to_numpy()
        return predicted


def has_variance(series: pd.Series) -> bool:
    """False for predictors with fewer than two distinct observed values."""
    return series.dropna().nunique() > 1


def term_expression(df: pd.DataFrame, term: str, references: Optional[Dict[str, str]] = None) -> str:
    """Formula expression for one predictor.

    Categoricals use treatment coding against their declared reference
    level (e.g. age_group against 18-29), or their first level when none is
    declared or the declared one is not among the categories.
    """
    references = declared_references() if references is None else references
    series = df[term]
    if isinstance(series.dtype, pd.CategoricalDtype):
        categories = list(series.cat.categories)
        reference = references.get(term)
        if reference not in categories:
            reference = categories[0]
        return f"C({term}, Treatment(reference={reference!r}))"
    return term


def _term_slice(design_info, expr: str) -> slice:
    """Column slice of a term; patsy may respace the expression it was given."""
    wanted = expr.replace(" ", "")
    for name, sl in design_info.term_name_slices.items():
        if name.replace(" ", "") == wanted:
            return sl
    raise KeyError(f"Term {expr} not found in design matrix")


def build_formula(
    df: pd.DataFrame,
    response: str,
    terms: List[str],
    references: Optional[Dict[str, str]] = None,
) -> str:
    rhs = " + ".join(term_expression(df, t, references) for t in terms) if terms else "1"
    return f"{response} ~ {rhs}"


def fit_survey_lm(
    df: pd.DataFrame,
    terms: List[str],
    design: SurveyDesign,
    response: str = RESPONSE_COL,
) -> SurveyFit:
    """Fit a survey-weighted linear model.

    Args:
        df: Cohort table
        terms: Predictor columns (main effects only)
        design: Survey design roles
        response: Response column

    Returns:
        SurveyFit with design-based standard errors
    """
    design.check(df)
    data = df[list(dict.fromkeys([response] + list(terms) + design.columns))].dropna().copy()
    if len(data) < len(df):
        logger.info(f"Dropped {len(df) - len(data):,} incomplete rows before fitting")

    # Unobserved levels would give all-zero design columns
    levels = {}
    for term in terms:
        if isinstance(data[term].dtype, pd.CategoricalDtype):
            data[term] = data[term].cat.remove_unused_categories()
            levels[term] = list(data[term].cat.categories)

    references = declared_references()
    formula = build_formula(data, response, list(terms), references)
    y_frame, X_frame = patsy.dmatrices(formula, data, return_type="dataframe")
    w = data[design.weights].to_numpy(dtype=float)
    results = sm.WLS(y_frame.iloc[:, 0], X_frame, weights=w).fit()

    X = X_frame.to_numpy()
    y = y_frame.iloc[:, 0].to_numpy()
    params = results.params
    resid = y - X @ params.to_numpy()

    bread = np.linalg.pinv(X.T @ (X * w[:, None]))
    scores = (w * resid)[:, None] * X
    vcov = design.linearized_vcov(data, scores, bread)

    design_info = X_frame.design_info
    term_slices = {
        term: _term_slice(design_info, term_expression(data, term, references)) for term in terms
    }

    df_resid = design.degrees_of_freedom(data) + 1 - X.shape[1]
    dispersion = float(np.sum(w * resid ** 2) / np.sum(w))

    return SurveyFit(
        formula=formula,
        terms=list(terms),
        params=params,
        vcov=pd.DataFrame(vcov, index=params.index, columns=params.index),
        df_resid=int(df_resid),
        dispersion=dispersion,
        n_obs=len(data),
        term_slices=term_slices,
        levels=levels,
        row_index=data.index,
        design_info=design_info,
    )


def term_wald_test(fit: SurveyFit, term: str) -> Dict[str, float]:
    """Joint Wald F test that every coefficient of `term` is zero."""
    sl = fit.term_slices[term]
    b = fit.params.to_numpy()[sl]
    V = fit.vcov.to_numpy()[sl, sl]
    k = len(b)
    F = float(b @ np.linalg.pinv(V) @ b) / k
    p = float(stats.f.sf(F, k, fit.df_resid)) if fit.df_resid >= 1 else float("nan")
    return {"F": F, "df_num": k, "df_den": fit.df_resid, "p_value": p}


def pseudo_r2(fit: SurveyFit, null_fit: SurveyFit) -> float:
    """1 - dispersion / null dispersion."""
    return 1.0 - fit.dispersion / null_fit.dispersion


def fit_null_model(
    df: pd.DataFrame,
    design: SurveyDesign,
    response: str = RESPONSE_COL,
    row_index: Optional[pd.Index] = None,
) -> SurveyFit:
    """Intercept-only fit, optionally on the rows used by another fit."""
    data = df.loc[row_index] if row_index is not None else df
    return fit_survey_lm(data, [], design, response)
