"""Hold-out evaluation of the refined model."""
import logging
from dataclasses import dataclass
from typing import List, Tuple

import pandas as pd
import statsmodels.api as sm
from scipy import stats
from sklearn.model_selection import train_test_split

from smm_charges.config.analysis_config import ADMISSION_ID, RESPONSE_COL, SPLIT_CONFIG, SplitConfig
from smm_charges.modeling.survey_design import SurveyDesign
from smm_charges.modeling.survey_lm import SurveyFit, fit_null_model, fit_survey_lm, pseudo_r2
from smm_charges.validation.errors import DataIntegrityError

logger = logging.getLogger(__name__)


@dataclass
class EvaluationResult:
    fit: SurveyFit
    train_pseudo_r2: float
    test_r2: float
    test_pearson_r: float
    predictions: pd.DataFrame


def response_strata(y: pd.Series, n_bins: int) -> pd.Series:
    """Quantile bins of a numeric response for stratified sampling."""
    n_bins = max(1, min(n_bins, y.nunique()))
    return pd.qcut(y, q=n_bins, labels=False, duplicates="drop")


def stratified_split(
    df: pd.DataFrame,
    response: str = RESPONSE_COL,
    config: SplitConfig = SPLIT_CONFIG,
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """Split into train/test, stratified on response quantiles.

    Returns:
        (train, test) with no admission id in both

    Raises:
        DataIntegrityError: If the partitions overlap
    """
    bins = response_strata(df[response], config.n_bins)
    stratify = bins if bins.value_counts().min() >= 2 else None
    if stratify is None:
        logger.warning("Too few rows per response bin, splitting without stratification")

    train, test = train_test_split(
        df,
        train_size=config.train_fraction,
        random_state=config.seed,
        stratify=stratify,
    )

    overlap = set(train[ADMISSION_ID]) & set(test[ADMISSION_ID])
    if overlap:
        raise DataIntegrityError(f"{len(overlap)} admissions in both train and test, e.g. {sorted(overlap)[:5]}")

    logger.info(f"Split {len(df):,} rows into {len(train):,} train / {len(test):,} test")
    return train.reset_index(drop=True), test.reset_index(drop=True)


def evaluate_model(
    train: pd.DataFrame,
    test: pd.DataFrame,
    terms: List[str],
    design: SurveyDesign,
    response: str = RESPONSE_COL,
) -> EvaluationResult:
    """Fit on train, predict test, and compare predictions with actual values.

    test_r2 is the ordinary least-squares R2 of actual on predicted log
    charge; train_pseudo_r2 is the survey pseudo-R2 on the training rows.
    """
    fit = fit_survey_lm(train, terms, design, response)
    null_fit = fit_null_model(train, design, response, row_index=fit.row_index)

    predictions = pd.DataFrame({
        ADMISSION_ID: test[ADMISSION_ID].to_numpy(),
        "actual": test[response].to_numpy(),
        "predicted": fit.predict(test).to_numpy(),
    })
    scored = predictions.dropna(subset=["actual", "predicted"])
    if len(scored) < len(predictions):
        logger.warning(f"{len(predictions) - len(scored)} test rows have levels unseen in training, not scored")

    predicted = scored["predicted"].to_numpy()
    actual = scored["actual"].to_numpy()
    ols = sm.OLS(actual, sm.add_constant(predicted, has_constant="add")).fit()
    r, _ = stats.pearsonr(predicted, actual)
    result = EvaluationResult(
        fit=fit,
        train_pseudo_r2=pseudo_r2(fit, null_fit),
        test_r2=float(ols.rsquared),
        test_pearson_r=float(r),
        predictions=predictions,
    )
    logger.info(
        f"Evaluation: train pseudo-R2 {result.train_pseudo_r2:.3f}, "
        f"test R2 {result.test_r2:.3f}, r {result.test_pearson_r:.3f}"
    )
    return result
