"""
Model Selection
===============

1. Univariate pass: one survey-weighted fit per candidate predictor
2. Selection: keep predictors whose term p-value beats alpha / n_tested
3. Multivariate pass: all selected predictors as main effects, with a
   pseudo-R2 against the intercept-only model on the same rows
4. Refinement: refit a curated subset of the significant terms and
   compare pseudo-R2 with the full model
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

import pandas as pd

from smm_charges.config.analysis_config import MODEL_CONFIG, RESPONSE_COL
from smm_charges.modeling.survey_design import SurveyDesign
from smm_charges.modeling.survey_lm import (
    SurveyFit,
    fit_null_model,
    fit_survey_lm,
    has_variance,
    pseudo_r2,
    term_wald_test,
)
from smm_charges.validation.quality_report import QualityReport

logger = logging.getLogger(__name__)


@dataclass
class UnivariateScreen:
    """Per-term tests from the univariate pass."""

    terms: pd.DataFrame
    coefficients: pd.DataFrame
    excluded: List[str] = field(default_factory=list)

    @property
    def n_tested(self) -> int:
        return len(self.terms)


@dataclass
class MultivariateResult:
    fit: SurveyFit
    null_fit: SurveyFit
    pseudo_r2: float
    term_tests: pd.DataFrame
    significant_terms: List[str]


@dataclass
class RefinementResult:
    fit: SurveyFit
    terms: List[str]
    pseudo_r2_full: float
    pseudo_r2_reduced: float


def report_singleton_strata(df: pd.DataFrame, design: SurveyDesign, report: Optional[QualityReport]):
    singletons = design.singleton_strata(df)
    if singletons and report is not None:
        report.add(
            "model",
            f"Strata with a single PSU handled by lonely_psu='{design.lonely_psu}'",
            f"{len(singletons)} strata, e.g. {singletons[:5]}",
            len(singletons),
        )


def exclude_zero_variance(
    df: pd.DataFrame,
    candidates: List[str],
    report: Optional[QualityReport] = None,
) -> List[str]:
    """Candidates present in `df` with at least two distinct values."""
    usable = []
    for term in candidates:
        if term not in df.columns:
            logger.info(f"Candidate {term} not in table, skipping")
            continue
        if not has_variance(df[term]):
            if report is not None:
                report.add("model", f"Excluded zero-variance predictor {term}")
            continue
        usable.append(term)
    return usable


def univariate_screen(
    df: pd.DataFrame,
    candidates: List[str],
    design: SurveyDesign,
    response: str = RESPONSE_COL,
    report: Optional[QualityReport] = None,
) -> UnivariateScreen:
    """Fit the response on each candidate alone.

    Returns:
        UnivariateScreen with one Wald test row per fitted term and the
        full coefficient table
    """
    report_singleton_strata(df, design, report)
    usable = exclude_zero_variance(df, candidates, report)
    excluded = [t for t in candidates if t not in usable]

    rows = []
    coef_tables = []
    for term in usable:
        fit = fit_survey_lm(df, [term], design, response)
        test = term_wald_test(fit, term)
        rows.append({"term": term, **test})
        coef_tables.append(fit.coef_table().assign(model=term))
        logger.info(f"  {term}: F={test['F']:.2f}, p={test['p_value']:.3g}")

    terms = pd.DataFrame(rows, columns=["term", "F", "df_num", "df_den", "p_value"])
    coefficients = pd.concat(coef_tables, ignore_index=True) if coef_tables else pd.DataFrame()
    return UnivariateScreen(terms=terms, coefficients=coefficients, excluded=excluded)


def bonferroni_threshold(alpha: float, n_tests: int) -> float:
    return alpha / max(n_tests, 1)


def select_by_bonferroni(screen: UnivariateScreen, alpha: float = MODEL_CONFIG.alpha) -> List[str]:
    """Terms whose univariate p-value is below alpha / number of terms tested."""
    threshold = bonferroni_threshold(alpha, screen.n_tested)
    selected = screen.terms.loc[screen.terms["p_value"] < threshold, "term"].tolist()
    logger.info(f"Selected {len(selected)}/{screen.n_tested} terms at p < {threshold:.3g}")
    return selected


def fit_multivariate(
    df: pd.DataFrame,
    selected: List[str],
    design: SurveyDesign,
    response: str = RESPONSE_COL,
    alpha: float = MODEL_CONFIG.alpha,
    report: Optional[QualityReport] = None,
) -> MultivariateResult:
    """Fit all selected terms together and compute pseudo-R2."""
    terms = exclude_zero_variance(df, selected, report)
    fit = fit_survey_lm(df, terms, design, response)
    null_fit = fit_null_model(df, design, response, row_index=fit.row_index)

    tests = pd.DataFrame(
        [{"term": t, **term_wald_test(fit, t)} for t in terms],
        columns=["term", "F", "df_num", "df_den", "p_value"],
    )
    significant = tests.loc[tests["p_value"] < alpha, "term"].tolist()
    lost = [t for t in terms if t not in significant]
    if lost and report is not None:
        report.add("model", "Terms no longer significant in the multivariate model", ", ".join(lost), len(lost))

    r2 = pseudo_r2(fit, null_fit)
    logger.info(f"Multivariate model: {len(terms)} terms, pseudo-R2 {r2:.3f}")
    return MultivariateResult(fit=fit, null_fit=null_fit, pseudo_r2=r2, term_tests=tests, significant_terms=significant)


def refine_model(
    df: pd.DataFrame,
    curated_terms: List[str],
    full: MultivariateResult,
    design: SurveyDesign,
    response: str = RESPONSE_COL,
) -> RefinementResult:
    """Refit a curated subset of the multivariate significant terms.

    Curated terms that were not significant in the full model are ignored;
    if none remain, all significant terms are used.
    """
    terms = [t for t in curated_terms if t in full.significant_terms]
    if not terms:
        logger.warning("No curated term is significant in the full model, refitting all significant terms")
        terms = list(full.significant_terms)

    fit = fit_survey_lm(df.loc[full.fit.row_index], terms, design, response)
    reduced_r2 = pseudo_r2(fit, full.null_fit)
    logger.info(f"Refined model: {len(terms)} terms, pseudo-R2 {reduced_r2:.3f} (full {full.pseudo_r2:.3f})")
    return RefinementResult(fit=fit, terms=terms, pseudo_r2_full=full.pseudo_r2, pseudo_r2_reduced=reduced_r2)
