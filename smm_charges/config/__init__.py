"""
SMM Charges Configuration Package
"""

from .analysis_config import (
    # Paths
    MODULE_ROOT,
    DATA_DIR,
    REFERENCE_DIR,
    COLUMN_POLICY_YAML,
    INPUT_FILES,
    REFERENCE_FILES,

    # Identifiers
    ADMISSION_ID,
    HOSPITAL_ID,
    STRATUM_ID,
    WEIGHT_COL,
    CHARGE_COL,
    RESPONSE_COL,

    # Configs
    MERGE_CONFIG,
    COHORT_CONFIG,
    RECODE_CONFIG,
    PRUNE_CONFIG,
    IMPUTE_CONFIG,
    MODEL_CONFIG,
    SPLIT_CONFIG,

    # Helpers
    load_column_policy,
    ensure_directories,
    output_dir_for,
)

__all__ = [
    'MODULE_ROOT',
    'DATA_DIR',
    'REFERENCE_DIR',
    'COLUMN_POLICY_YAML',
    'INPUT_FILES',
    'REFERENCE_FILES',
    'ADMISSION_ID',
    'HOSPITAL_ID',
    'STRATUM_ID',
    'WEIGHT_COL',
    'CHARGE_COL',
    'RESPONSE_COL',
    'MERGE_CONFIG',
    'COHORT_CONFIG',
    'RECODE_CONFIG',
    'PRUNE_CONFIG',
    'IMPUTE_CONFIG',
    'MODEL_CONFIG',
    'SPLIT_CONFIG',
    'load_column_policy',
    'ensure_directories',
    'output_dir_for',
]
