"""Tests for configuration and the declared input schema."""
from dataclasses import fields

import pandas as pd
import pytest

from smm_charges.config.analysis_config import (
    CohortConfig,
    MODEL_CONFIG,
    RECODE_CONFIG,
    load_column_policy,
    ensure_directories,
    output_dir_for,
)
from smm_charges.config.schema import (
    DX_FIELDS,
    PR_FIELDS,
    code_fields,
    recode_specs,
    validate_schema,
)
from smm_charges.validation.errors import DataIntegrityError


class TestAnalysisConfig:
    """Tests for stage settings."""

    def test_band_labels_match_bins(self):
        assert len(RECODE_CONFIG.age_labels) == len(RECODE_CONFIG.age_bins) - 1
        assert len(RECODE_CONFIG.los_labels) == len(RECODE_CONFIG.los_bins) - 1

    def test_candidate_terms_are_recoded_targets_or_numeric(self):
        targets = {s.target for s in recode_specs()}
        for term in MODEL_CONFIG.candidate_terms:
            assert term in targets or term in ("CCR_NIS", "WAGEINDEX")

    def test_cohort_config_has_no_code_prefixes(self):
        # Code fields come from the declared schema lists
        names = {f.name for f in fields(CohortConfig)}
        assert names == {"delivery_col", "delivery_value", "transfer_cols", "n_jobs", "chunk_size"}

    def test_column_policy_loads(self):
        policy = load_column_policy()
        assert "YEAR" in policy["deny_list"]
        assert "los_group" in policy["refined_terms"]

    def test_column_policy_defaults(self, tmp_path):
        path = tmp_path / "policy.yaml"
        path.write_text("deny_list:\n  - YEAR\n")
        policy = load_column_policy(path)
        assert policy["deny_list"] == ["YEAR"]
        assert policy["refined_terms"] == []

    def test_ensure_directories(self, tmp_path):
        ensure_directories(tmp_path)
        out = output_dir_for(tmp_path)
        assert (out / "tables").is_dir()
        assert (out / "plots").is_dir()


class TestSchema:
    """Tests for schema validation at load time."""

    def test_code_fields_in_declared_order(self):
        cols = ["I10_PR1", "AGE", "I10_DX2", "I10_DX1"]
        assert code_fields(cols) == ["I10_DX1", "I10_DX2", "I10_PR1"]

    def test_field_counts(self):
        assert len(DX_FIELDS) == 40
        assert len(PR_FIELDS) == 25

    def test_missing_required_column_raises(self):
        df = pd.DataFrame({"HOSP_NIS": ["1"], "CCR_NIS": [0.3]})
        with pytest.raises(DataIntegrityError, match="Schema drift"):
            validate_schema(df, "cost_to_charge")

    def test_undeclared_columns_dropped(self):
        df = pd.DataFrame({"HOSP_NIS": ["1"], "CCR_NIS": [0.3], "WAGEINDEX": [1.0], "EXTRA": [5]})
        result = validate_schema(df, "cost_to_charge")
        assert "EXTRA" not in result.columns
        assert list(result.columns) == ["HOSP_NIS", "CCR_NIS", "WAGEINDEX"]

    def test_optional_column_may_be_absent(self):
        df = pd.DataFrame({
            "HOSP_NIS": ["1"], "HOSP_REGION": [1], "HOSP_BEDSIZE": [2],
            "HOSP_LOCTEACH": [3], "H_CONTRL": [2],
        })
        result = validate_schema(df, "hospital")
        assert "NIS_STRATUM" not in result.columns
