"""Tests for categorical recoding and the log-charge response."""
import numpy as np
import pandas as pd
import pytest

from smm_charges.processing.recoder import (
    add_log_charge,
    apply_rule,
    comorbidity_targets,
    declared_references,
    drop_near_constant_columns,
    lump_rare_levels,
    recode_age,
    recode_cohort,
    recode_covariates,
    recode_los,
    recode_mapped,
    reference_level,
)
from smm_charges.validation.errors import DataIntegrityError
from smm_charges.validation.quality_report import QualityReport


class TestBands:
    """Tests for age and length-of-stay bands."""

    def test_age_boundaries(self):
        result = recode_age(pd.Series([17, 18, 29, 30, 44, 45, 59, 60, 85]))
        assert result.tolist() == [
            "0-17", "18-29", "18-29", "30-44", "30-44", "45-59", "45-59", "60+", "60+",
        ]

    def test_age_is_ordered(self):
        result = recode_age(pd.Series([25, 35]))
        assert result.cat.ordered
        assert list(result.cat.categories)[0] == "0-17"

    def test_los_bands(self):
        result = recode_los(pd.Series([0, 1, 2, 3, 4, 5, 6, 8, 9, 12, 13, 20, 21, 90]))
        assert result.tolist() == [
            "0-1", "0-1", "2", "3", "4-5", "4-5", "6-8", "6-8",
            "9-12", "9-12", "13-20", "13-20", "21+", "21+",
        ]

    def test_missing_age_stays_missing(self):
        result = recode_age(pd.Series([np.nan, 25]))
        assert pd.isna(result.iloc[0])


class TestMappedRules:
    """Tests for label maps and reference levels."""

    def test_payer_reference_first(self):
        result = recode_mapped(pd.Series([1, 3, 2]), "payer")
        assert result.cat.categories[0] == "Private insurance"
        assert result.tolist() == ["Medicare", "Private insurance", "Medicaid"]

    @pytest.mark.parametrize("rule,expected", [
        ("race", "White"),
        ("payer", "Private insurance"),
        ("hosp_control", "Private, not-for-profit"),
        ("hosp_region", "South"),
        ("hosp_locteach", "Urban teaching"),
        ("hosp_bedsize", "Small"),
        ("severity", "0-1"),
        ("comorbidity", "No"),
        ("age_band", "18-29"),
    ])
    def test_reference_levels(self, rule, expected):
        assert reference_level(rule) == expected

    def test_declared_references_by_target(self):
        references = declared_references()
        assert references["age_group"] == "18-29"
        assert references["los_group"] == "0-1"
        assert references["payer"] == "Private insurance"
        assert references["cmr_obese"] == "No"

    def test_comorbidity_targets(self):
        targets = comorbidity_targets()
        assert "cmr_obese" in targets
        assert "payer" not in targets
        assert all(t.startswith("cmr_") for t in targets)

    def test_severity_collapses_lowest_levels(self):
        result = recode_mapped(pd.Series([0, 1, 2, 3, 4]), "severity")
        assert result.tolist() == ["0-1", "0-1", "2", "3", "4"]
        assert result.cat.ordered

    def test_bedsize_ordered(self):
        result = recode_mapped(pd.Series([3, 1]), "hosp_bedsize")
        assert list(result.cat.categories) == ["Small", "Medium", "Large"]
        assert result.cat.ordered

    def test_unexpected_value_becomes_missing(self):
        result = recode_mapped(pd.Series([1, 9]), "race")
        assert result.iloc[0] == "White"
        assert pd.isna(result.iloc[1])

    def test_unknown_rule_raises(self):
        with pytest.raises(ValueError):
            apply_rule(pd.Series([1]), "bogus")


class TestRecodeCovariates:
    """Tests for table-level recoding."""

    def _raw(self):
        return pd.DataFrame({
            "KEY_NIS": ["K1", "K2", "K3"],
            "AGE": [17, 29, 30],
            "LOS": [1, 4, 30],
            "PAY1": [3, 2, 1],
            "RACE": [1, 2, 3],
            "APRDRG_Severity": [1, 2, 4],
            "CMR_OBESE": [0, 1, 0],
        })

    def test_targets_replace_raw(self):
        result = recode_covariates(self._raw())
        assert result["age_group"].tolist() == ["0-17", "18-29", "30-44"]
        assert result["aprdrg_severity"].tolist() == ["0-1", "2", "4"]
        assert result["cmr_obese"].tolist() == ["No", "Yes", "No"]
        assert "AGE" not in result.columns
        assert "PAY1" not in result.columns

    def test_idempotent_with_raw_columns(self):
        once = recode_covariates(self._raw(), keep_raw=True)
        twice = recode_covariates(once, keep_raw=True)
        pd.testing.assert_frame_equal(once, twice)

    def test_input_not_modified(self):
        raw = self._raw()
        recode_covariates(raw)
        assert "AGE" in raw.columns


class TestLogCharge:
    """Tests for the response transform."""

    def test_log_charge(self):
        df = pd.DataFrame({"KEY_NIS": ["K1"], "TOTCHG": [np.e ** 9]})
        result = add_log_charge(df)
        assert result["log_charge"].iloc[0] == pytest.approx(9.0)

    def test_zero_charge_raises(self):
        df = pd.DataFrame({"KEY_NIS": ["K1", "K2"], "TOTCHG": [1000.0, 0.0]})
        with pytest.raises(DataIntegrityError, match="K2"):
            add_log_charge(df)

    def test_missing_charge_at_log_raises(self):
        df = pd.DataFrame({"KEY_NIS": ["K1"], "TOTCHG": [np.nan]})
        with pytest.raises(DataIntegrityError):
            add_log_charge(df)

    def test_recode_cohort_drops_and_reports_missing_charges(self):
        df = pd.DataFrame({
            "KEY_NIS": [f"K{i}" for i in range(6)],
            "TOTCHG": [1000.0, np.nan, 2000.0, 3000.0, 4000.0, 5000.0],
            "AGE": [20, 25, 30, 35, 40, 45],
            "I10_DX1": ["O99.89"] * 6,
            "I10_DELIVERY": [1] * 6,
        })
        report = QualityReport()
        result = recode_cohort(df, report=report)
        assert len(result) == 5
        assert "K1" not in result["KEY_NIS"].tolist()
        assert any("TOTCHG" in c["description"] for c in report.for_stage("recode"))
        assert "I10_DX1" not in result.columns
        assert "I10_DELIVERY" not in result.columns


class TestColumnCleanup:
    """Tests for rare-level lumping and near-constant columns."""

    def test_rare_level_lumped_into_other(self):
        values = ["White"] * 600 + ["Black"] * 398 + ["Native American"] * 2
        df = pd.DataFrame({"race": pd.Categorical(values, categories=["White", "Black", "Native American"])})
        report = QualityReport()
        result = lump_rare_levels(df, min_share=0.005, report=report)
        assert list(result["race"].cat.categories) == ["White", "Black", "Other"]
        assert (result["race"] == "Other").sum() == 2
        assert len(report.for_stage("recode")) == 1

    def test_reference_never_lumped(self):
        values = ["White"] * 2 + ["Black"] * 499 + ["Hispanic"] * 499
        df = pd.DataFrame({"race": pd.Categorical(values, categories=["White", "Black", "Hispanic"])})
        result = lump_rare_levels(df, min_share=0.005)
        assert result["race"].cat.categories[0] == "White"
        assert (result["race"] == "White").sum() == 2

    def test_ordered_untouched(self):
        values = ["0-1"] * 999 + ["4"]
        df = pd.DataFrame({"sev": pd.Categorical(values, categories=["0-1", "2", "4"], ordered=True)})
        result = lump_rare_levels(df, min_share=0.005)
        assert list(result["sev"].cat.categories) == ["0-1", "2", "4"]

    def test_near_constant_dropped(self):
        df = pd.DataFrame({
            "KEY_NIS": ["K1"] * 1000,
            "flag": ["No"] * 999 + ["Yes"],
            "varied": ["No"] * 500 + ["Yes"] * 500,
            "empty": [np.nan] * 1000,
        })
        result = drop_near_constant_columns(df, max_share=0.999)
        assert list(result.columns) == ["KEY_NIS", "varied"]
