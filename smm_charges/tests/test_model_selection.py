"""Tests for univariate screening, selection, refinement and evaluation."""
import numpy as np
import pandas as pd
import pytest

from smm_charges.config.analysis_config import SplitConfig
from smm_charges.modeling.evaluator import evaluate_model, stratified_split
from smm_charges.modeling.model_selection import (
    UnivariateScreen,
    bonferroni_threshold,
    exclude_zero_variance,
    fit_multivariate,
    refine_model,
    select_by_bonferroni,
    univariate_screen,
)
from smm_charges.validation.quality_report import QualityReport


class TestBonferroni:
    """Tests for the corrected threshold."""

    def test_threshold(self):
        assert bonferroni_threshold(0.05, 10) == pytest.approx(0.005)

    def test_selection_uses_tested_count(self):
        screen = UnivariateScreen(
            terms=pd.DataFrame({"term": ["a", "b", "c", "d"], "p_value": [0.001, 0.012, 0.013, 0.2]}),
            coefficients=pd.DataFrame(),
        )
        assert select_by_bonferroni(screen, alpha=0.05) == ["a", "b"]


class TestScreen:
    """Tests for the univariate pass."""

    def test_zero_variance_excluded_and_reported(self, analytic_frame):
        df = analytic_frame.assign(constant=1.0)
        report = QualityReport()
        usable = exclude_zero_variance(df, ["los_group", "constant", "not_there"], report)
        assert usable == ["los_group"]
        assert len(report.for_stage("model")) == 1

    def test_one_row_per_fitted_term(self, analytic_frame, design):
        df = analytic_frame.assign(constant=1.0)
        screen = univariate_screen(df, ["los_group", "payer", "CCR_NIS", "constant"], design)
        assert screen.terms["term"].tolist() == ["los_group", "payer", "CCR_NIS"]
        assert screen.excluded == ["constant"]
        assert screen.n_tested == 3

    def test_strong_term_selected(self, analytic_frame, design):
        screen = univariate_screen(analytic_frame, ["los_group", "payer", "CCR_NIS"], design)
        assert "los_group" in select_by_bonferroni(screen, alpha=0.05)


class TestMultivariate:
    """Tests for the joint fit and refinement."""

    def test_multivariate_pseudo_r2(self, analytic_frame, design):
        result = fit_multivariate(analytic_frame, ["los_group", "payer"], design)
        assert "los_group" in result.significant_terms
        assert 0 < result.pseudo_r2 < 1
        assert result.term_tests["term"].tolist() == ["los_group", "payer"]

    def test_refine_keeps_curated_significant_terms(self, analytic_frame, design):
        full = fit_multivariate(analytic_frame, ["los_group", "CCR_NIS"], design)
        refined = refine_model(analytic_frame, ["los_group", "WAGEINDEX"], full, design)
        assert refined.terms == ["los_group"]
        assert refined.pseudo_r2_reduced <= refined.pseudo_r2_full + 1e-12

    def test_refine_falls_back_to_significant_terms(self, analytic_frame, design):
        full = fit_multivariate(analytic_frame, ["los_group"], design)
        refined = refine_model(analytic_frame, ["WAGEINDEX"], full, design)
        assert refined.terms == full.significant_terms


class TestEvaluation:
    """Tests for the train/test split and hold-out metrics."""

    def test_split_disjoint_and_sized(self, analytic_frame):
        train, test = stratified_split(analytic_frame, config=SplitConfig(train_fraction=0.8, seed=123))
        assert len(train) == 320
        assert len(test) == 80
        assert not set(train["KEY_NIS"]) & set(test["KEY_NIS"])

    def test_split_deterministic(self, analytic_frame):
        first, _ = stratified_split(analytic_frame)
        second, _ = stratified_split(analytic_frame)
        assert first["KEY_NIS"].tolist() == second["KEY_NIS"].tolist()

    def test_split_balances_response(self, analytic_frame):
        train, test = stratified_split(analytic_frame)
        assert abs(train["log_charge"].mean() - test["log_charge"].mean()) < 0.15

    def test_evaluate_model(self, analytic_frame, design):
        train, test = stratified_split(analytic_frame)
        result = evaluate_model(train, test, ["los_group", "CCR_NIS"], design)
        assert len(result.predictions) == len(test)
        assert list(result.predictions.columns) == ["KEY_NIS", "actual", "predicted"]
        assert 0.3 < result.test_r2 < 1
        assert result.test_pearson_r == pytest.approx(np.sqrt(result.test_r2))
