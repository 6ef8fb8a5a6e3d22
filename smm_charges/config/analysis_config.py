"""
SMM Charge Analysis Configuration
=================================

Central configuration for the NIS severe maternal morbidity pipeline.
"""

import os
from pathlib import Path
from dataclasses import dataclass, field
from typing import Dict, List, Optional
import yaml


# =============================================================================
# PATH CONFIGURATION
# =============================================================================

MODULE_ROOT = Path(__file__).parent.parent
PROJECT_ROOT = MODULE_ROOT.parent
CONFIG_DIR = MODULE_ROOT / "config"
REFERENCE_DIR = CONFIG_DIR / "reference"
COLUMN_POLICY_YAML = CONFIG_DIR / "column_policy.yaml"

DATA_DIR = Path(os.environ.get("SMM_DATA_DIR", PROJECT_ROOT / "Data"))

# NIS input files (relative to the data directory)
INPUT_FILES = {
    "core": "NIS_Core.csv",
    "hospital": "NIS_Hospital.csv",
    "severity": "NIS_Severity.csv",
    "dx_pr_groups": "NIS_DX_PR_GRPS.csv",
    "cost_to_charge": "NIS_CostToCharge.csv",
}

# SMM reference code tables
REFERENCE_FILES = {
    "diagnosis": "smm_dx_codes.txt",
    "procedure": "smm_pr_codes.txt",
    "transfusion": "smm_transfusion_codes.txt",
}

# Persisted snapshot stages
SNAPSHOT_STAGES = ["merged", "cohort", "imputed", "train", "test"]


def output_dir_for(data_dir: Path) -> Path:
    """Snapshot and report directory for a data directory."""
    return Path(data_dir) / "outputs"


# =============================================================================
# IDENTIFIERS
# =============================================================================

ADMISSION_ID = "KEY_NIS"
HOSPITAL_ID = "HOSP_NIS"
STRATUM_ID = "NIS_STRATUM"
WEIGHT_COL = "DISCWT"
CHARGE_COL = "TOTCHG"
RESPONSE_COL = "log_charge"


# =============================================================================
# STAGE CONFIGURATION
# =============================================================================

@dataclass
class MergeConfig:
    """Record merger settings."""

    # Share of admissions allowed to miss the hospital join before it is fatal
    max_hospital_miss_rate: float = 0.01


MERGE_CONFIG = MergeConfig()


@dataclass
class CohortConfig:
    """Cohort filter settings."""

    delivery_col: str = "I10_DELIVERY"
    delivery_value: int = 1
    transfer_cols: List[str] = field(default_factory=lambda: ["TRAN_IN", "TRAN_OUT"])

    # Parallel SMM matching; None = cpu_count() - 1
    n_jobs: Optional[int] = None
    chunk_size: int = 50_000


COHORT_CONFIG = CohortConfig()


@dataclass
class RecodeConfig:
    """Categorical recoder settings."""

    age_bins: List[float] = field(default_factory=lambda: [0, 18, 30, 45, 60, float("inf")])
    age_labels: List[str] = field(default_factory=lambda: ["0-17", "18-29", "30-44", "45-59", "60+"])
    los_bins: List[float] = field(default_factory=lambda: [0, 2, 3, 4, 6, 9, 13, 21, float("inf")])
    los_labels: List[str] = field(default_factory=lambda: [
        "0-1", "2", "3", "4-5", "6-8", "9-12", "13-20", "21+",
    ])

    # Unordered levels below this share are lumped into "Other"
    min_level_share: float = 0.005
    # Columns whose modal value covers at least this share are dropped
    near_constant_share: float = 0.999


RECODE_CONFIG = RecodeConfig()


@dataclass
class PruneConfig:
    """Rare-level pruner settings."""

    low_frequency_threshold: float = 0.01


PRUNE_CONFIG = PruneConfig()


@dataclass
class ImputeConfig:
    """Chained-equation imputation settings."""

    n_imputations: int = 5
    max_iter: int = 5
    seed: int = 500
    # Which completed dataset to carry forward (0-based)
    use_imputation: int = 0


IMPUTE_CONFIG = ImputeConfig()


@dataclass
class ModelConfig:
    """Survey design and model selection settings."""

    cluster: str = HOSPITAL_ID
    strata: str = STRATUM_ID
    weights: str = WEIGHT_COL
    lonely_psu: str = "adjust"

    alpha: float = 0.05

    candidate_terms: List[str] = field(default_factory=lambda: [
        "age_group", "los_group", "race", "payer", "hosp_control",
        "hosp_region", "hosp_bedsize", "hosp_locteach",
        "aprdrg_severity", "aprdrg_risk_mortality", "CCR_NIS", "WAGEINDEX",
    ])


MODEL_CONFIG = ModelConfig()


@dataclass
class SplitConfig:
    """Train/test split settings."""

    train_fraction: float = 0.8
    seed: int = 123
    n_bins: int = 5


SPLIT_CONFIG = SplitConfig()


# =============================================================================
# HELPER FUNCTIONS
# =============================================================================

def load_column_policy(path: Path = COLUMN_POLICY_YAML) -> Dict:
    """Load the column deny list and refined model terms from YAML."""
    with open(path, 'r') as f:
        policy = yaml.safe_load(f) or {}
    policy.setdefault("deny_list", [])
    policy.setdefault("refined_terms", [])
    return policy


def ensure_directories(data_dir: Path = DATA_DIR):
    """Create all required output directories."""
    out = output_dir_for(data_dir)
    for dir_path in [out, out / "tables", out / "plots"]:
        dir_path.mkdir(parents=True, exist_ok=True)


# =============================================================================
# MAIN
# =============================================================================

if __name__ == "__main__":
    print("=" * 60)
    print("SMM Charge Analysis Configuration")
    print("=" * 60)
    print(f"\nModule Root: {MODULE_ROOT}")
    print(f"Data Dir: {DATA_DIR}")
    print(f"\nInput files:")
    for name, filename in INPUT_FILES.items():
        print(f"  {name}: {filename}")
    print(f"\nCandidate terms: {len(MODEL_CONFIG.candidate_terms)}")
    print(f"Bonferroni threshold: {MODEL_CONFIG.alpha / len(MODEL_CONFIG.candidate_terms):.5f}")
    print("=" * 60)
