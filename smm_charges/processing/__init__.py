"""
Processing
==========

Cohort construction and covariate preparation stages. Every stage takes
a DataFrame and returns a new one.
"""

from .code_universe import load_code_list, build_code_universe, load_code_universe
from .record_merger import merge_records
from .cohort_filter import (
    filter_deliveries,
    row_has_smm_code,
    flag_smm_rows,
    filter_smm,
    exclude_transfers,
    build_cohort,
)
from .recoder import recode_covariates, add_log_charge, recode_cohort
from .imputer import select_methods, run_imputation, impute_covariates
from .rare_level_pruner import find_rare_binary_columns, prune_columns

__all__ = [
    'load_code_list',
    'build_code_universe',
    'load_code_universe',
    'merge_records',
    'filter_deliveries',
    'row_has_smm_code',
    'flag_smm_rows',
    'filter_smm',
    'exclude_transfers',
    'build_cohort',
    'recode_covariates',
    'add_log_charge',
    'recode_cohort',
    'select_methods',
    'run_imputation',
    'impute_covariates',
    'find_rare_binary_columns',
    'prune_columns',
]
