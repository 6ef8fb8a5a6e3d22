"""Read NIS delimited files and check them against the declared schema."""
import logging
from pathlib import Path
from typing import Dict, TextIO, Union

import numpy as np
import pandas as pd

from smm_charges.config.analysis_config import INPUT_FILES
from smm_charges.config.schema import (
    SCHEMAS,
    ID,
    CODE,
    ADMIN,
    validate_schema,
)

logger = logging.getLogger(__name__)

# Tables the pipeline cannot run without
REQUIRED_TABLES = ["core", "hospital", "cost_to_charge"]


def _clean_nis_values(df: pd.DataFrame, table: str) -> pd.DataFrame:
    """Apply NIS value conventions by semantic type.

    Code fields become strings with "" for absent entries. Numeric, flag
    and categorical fields become numbers with NIS negative missing codes
    (-9 missing, -8 invalid, -6 inconsistent, ...) turned into NaN.
    """
    result = df.copy()
    for spec in SCHEMAS[table]:
        if spec.name not in result.columns:
            continue
        col = spec.name
        if spec.semantic_type == ID:
            result[col] = result[col].astype(str).str.strip()
        elif spec.semantic_type == CODE:
            result[col] = result[col].fillna("").astype(str).str.strip()
        elif spec.semantic_type == ADMIN:
            continue
        else:
            values = pd.to_numeric(result[col], errors="coerce")
            result[col] = values.where(~(values < 0), np.nan)
    return result


def read_nis_table(source: Union[str, Path, TextIO], table: str) -> pd.DataFrame:
    """Read one NIS table.

    Args:
        source: CSV path or file handle
        table: Schema name (core, hospital, cost_to_charge, severity, dx_pr_groups)

    Returns:
        DataFrame restricted to declared columns with NIS conventions applied
    """
    code_cols = {s.name: str for s in SCHEMAS[table] if s.semantic_type in (ID, CODE)}
    df = pd.read_csv(source, dtype=code_cols, keep_default_na=True, low_memory=False)
    df = validate_schema(df, table)
    df = _clean_nis_values(df, table)
    logger.info(f"Read {len(df):,} rows x {df.shape[1]} columns for '{table}'")
    return df


def load_nis_tables(data_dir: Union[str, Path]) -> Dict[str, pd.DataFrame]:
    """Load every NIS input table present under `data_dir`.

    Raises:
        FileNotFoundError: If a required table is missing
    """
    data_dir = Path(data_dir)
    tables = {}
    for table, filename in INPUT_FILES.items():
        path = data_dir / filename
        if not path.exists():
            if table in REQUIRED_TABLES:
                raise FileNotFoundError(f"Required NIS file not found: {path}")
            logger.info(f"Optional extension '{table}' not found at {path}, skipping")
            continue
        tables[table] = read_nis_table(path, table)
    return tables
