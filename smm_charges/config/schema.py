"""
Declared Input Schema
=====================

Every column the pipeline consumes is listed here with its semantic type
and the recode rule applied to it. Tables are checked against these
declarations at load time.
"""

import logging
from dataclasses import dataclass
from typing import Dict, List, Optional

import pandas as pd

from smm_charges.validation.errors import DataIntegrityError

logger = logging.getLogger(__name__)


# Semantic types
ID = "id"
DESIGN = "design"
NUMERIC = "numeric"
CODE = "code"
FLAG = "flag"
CATEGORICAL = "categorical"
COMORBIDITY = "comorbidity"
ADMIN = "admin"

N_DX_FIELDS = 40
N_PR_FIELDS = 25


@dataclass(frozen=True)
class ColumnSpec:
    """One declared input column."""

    name: str
    semantic_type: str
    recode_rule: Optional[str] = None
    target: Optional[str] = None
    required: bool = True


# Elixhauser comorbidity measures (CMR_ prefix in the NIS severity file)
COMORBIDITY_COLUMNS = [
    "CMR_AIDS", "CMR_ALCOHOL", "CMR_ANEMDEF", "CMR_ARTH", "CMR_BLDLOSS",
    "CMR_CANCER_LEUK", "CMR_CANCER_LYMPH", "CMR_CANCER_METS", "CMR_CANCER_NSITU",
    "CMR_CANCER_SOLID", "CMR_CBVD", "CMR_COAG", "CMR_DEMENTIA", "CMR_DEPRESS",
    "CMR_DIAB_CX", "CMR_DIAB_UNCX", "CMR_DRUG_ABUSE", "CMR_HF", "CMR_HTN_CX",
    "CMR_HTN_UNCX", "CMR_LIVER_MLD", "CMR_LIVER_SEV", "CMR_LUNG_CHRONIC",
    "CMR_NEURO_MOVT", "CMR_NEURO_OTH", "CMR_NEURO_SEIZ", "CMR_OBESE",
    "CMR_PARALYSIS", "CMR_PERIVASC", "CMR_PSYCHOSES", "CMR_PULMCIRC",
    "CMR_RENLFAIL_MOD", "CMR_RENLFAIL_SEV", "CMR_THYROID_HYPO",
    "CMR_THYROID_OTH", "CMR_ULCER_PEPTIC", "CMR_VALVE", "CMR_WGHTLOSS",
]

DX_FIELDS = [f"I10_DX{i}" for i in range(1, N_DX_FIELDS + 1)]
PR_FIELDS = [f"I10_PR{i}" for i in range(1, N_PR_FIELDS + 1)]


# =============================================================================
# TABLE SCHEMAS
# =============================================================================

CORE_SCHEMA: List[ColumnSpec] = [
    ColumnSpec("KEY_NIS", ID),
    ColumnSpec("HOSP_NIS", ID),
    ColumnSpec("NIS_STRATUM", DESIGN),
    ColumnSpec("DISCWT", DESIGN),
    ColumnSpec("AGE", NUMERIC, "age_band", "age_group"),
    ColumnSpec("LOS", NUMERIC, "los_band", "los_group"),
    ColumnSpec("PAY1", CATEGORICAL, "payer", "payer"),
    ColumnSpec("RACE", CATEGORICAL, "race", "race"),
    ColumnSpec("I10_DELIVERY", FLAG),
    ColumnSpec("TRAN_IN", FLAG),
    ColumnSpec("TRAN_OUT", FLAG),
    ColumnSpec("TOTCHG", NUMERIC),
    ColumnSpec("ZIPINC_QRTL", CATEGORICAL, required=False),
    ColumnSpec("FEMALE", ADMIN, required=False),
    ColumnSpec("YEAR", ADMIN, required=False),
    ColumnSpec("DQTR", ADMIN, required=False),
    ColumnSpec("I10_NDX", ADMIN, required=False),
    ColumnSpec("I10_NPR", ADMIN, required=False),
    ColumnSpec("DRG", ADMIN, required=False),
] + [
    ColumnSpec(name, CODE, required=(name in ("I10_DX1", "I10_PR1")))
    for name in DX_FIELDS + PR_FIELDS
]

HOSPITAL_SCHEMA: List[ColumnSpec] = [
    ColumnSpec("HOSP_NIS", ID),
    ColumnSpec("HOSP_REGION", CATEGORICAL, "hosp_region", "hosp_region"),
    ColumnSpec("HOSP_BEDSIZE", CATEGORICAL, "hosp_bedsize", "hosp_bedsize"),
    ColumnSpec("HOSP_LOCTEACH", CATEGORICAL, "hosp_locteach", "hosp_locteach"),
    ColumnSpec("H_CONTRL", CATEGORICAL, "hosp_control", "hosp_control"),
    ColumnSpec("NIS_STRATUM", DESIGN, required=False),
    ColumnSpec("HOSP_DIVISION", ADMIN, required=False),
    ColumnSpec("YEAR", ADMIN, required=False),
]

COST_SCHEMA: List[ColumnSpec] = [
    ColumnSpec("HOSP_NIS", ID),
    ColumnSpec("CCR_NIS", NUMERIC),
    ColumnSpec("WAGEINDEX", NUMERIC),
    ColumnSpec("YEAR", ADMIN, required=False),
]

SEVERITY_SCHEMA: List[ColumnSpec] = [
    ColumnSpec("KEY_NIS", ID),
    ColumnSpec("HOSP_NIS", ID, required=False),
    ColumnSpec("APRDRG", ADMIN, required=False),
    ColumnSpec("APRDRG_Severity", CATEGORICAL, "severity", "aprdrg_severity"),
    ColumnSpec("APRDRG_Risk_Mortality", CATEGORICAL, "severity", "aprdrg_risk_mortality"),
] + [
    ColumnSpec(name, COMORBIDITY, "comorbidity", name.lower(), required=False)
    for name in COMORBIDITY_COLUMNS
]

DX_PR_GROUPS_SCHEMA: List[ColumnSpec] = [
    ColumnSpec("KEY_NIS", ID),
    ColumnSpec("HOSP_NIS", ID, required=False),
    ColumnSpec("PCLASS_ORPROC", FLAG, "indicator", "or_procedure", required=False),
    ColumnSpec("DXCCSR_DEFAULT_DX1", ADMIN, required=False),
]

SCHEMAS: Dict[str, List[ColumnSpec]] = {
    "core": CORE_SCHEMA,
    "hospital": HOSPITAL_SCHEMA,
    "cost_to_charge": COST_SCHEMA,
    "severity": SEVERITY_SCHEMA,
    "dx_pr_groups": DX_PR_GROUPS_SCHEMA,
}


def all_specs() -> List[ColumnSpec]:
    """Every declared column across all tables, first declaration wins."""
    seen = {}
    for specs in SCHEMAS.values():
        for spec in specs:
            seen.setdefault(spec.name, spec)
    return list(seen.values())


def recode_specs() -> List[ColumnSpec]:
    """Declared columns that carry a recode rule."""
    return [s for s in all_specs() if s.recode_rule is not None]


def code_fields(columns) -> List[str]:
    """Diagnosis and procedure code fields present in `columns`, in declared order."""
    present = set(columns)
    return [c for c in DX_FIELDS + PR_FIELDS if c in present]


def validate_schema(df: pd.DataFrame, table: str) -> pd.DataFrame:
    """Check a loaded table against its declared schema.

    Args:
        df: Table as read from disk
        table: Schema name (key of SCHEMAS)

    Returns:
        New DataFrame restricted to the declared columns, in file order

    Raises:
        DataIntegrityError: If a required column is missing
    """
    specs = SCHEMAS[table]
    declared = {s.name for s in specs}

    missing = [s.name for s in specs if s.required and s.name not in df.columns]
    if missing:
        raise DataIntegrityError(
            f"Schema drift in '{table}' table: missing required columns {missing}"
        )

    undeclared = [c for c in df.columns if c not in declared]
    if undeclared:
        logger.info(f"Ignoring {len(undeclared)} undeclared columns in '{table}': {undeclared[:10]}")

    return df[[c for c in df.columns if c in declared]].copy()
