"""
Cohort Filter
=============

Three stages applied strictly in order:

A. Delivery admissions (I10_DELIVERY == 1)
B. Severe maternal morbidity: any diagnosis/procedure code field in the
   SMM code universe
C. No inbound or outbound transfer (both flags present and 0)

Stage B is a pure per-row predicate, so it is evaluated in row chunks
across a process pool; results come back in the original row order.
"""

import logging
import multiprocessing as mp
from concurrent.futures import ProcessPoolExecutor
from itertools import repeat
from typing import FrozenSet, Iterable, List, Optional, Sequence

import pandas as pd
from tqdm import tqdm

from smm_charges.config.analysis_config import COHORT_CONFIG, CohortConfig
from smm_charges.config.schema import code_fields
from smm_charges.validation.errors import DataIntegrityError

logger = logging.getLogger(__name__)


# =============================================================================
# STAGE A: DELIVERIES
# =============================================================================

def filter_deliveries(df: pd.DataFrame, config: CohortConfig = COHORT_CONFIG) -> pd.DataFrame:
    """Keep admissions flagged as a delivery."""
    mask = df[config.delivery_col] == config.delivery_value
    return df[mask].copy()


# =============================================================================
# STAGE B: SMM CODE MATCHING
# =============================================================================

def row_has_smm_code(codes: Iterable, universe: FrozenSet[str]) -> bool:
    """True if any non-empty code of one admission is in the universe.

    Pure and side-effect free: the result depends only on the arguments,
    so rows may be evaluated in any order or batching.
    """
    row_codes = {c for c in codes if isinstance(c, str) and c}
    return not row_codes.isdisjoint(universe)


def _match_chunk(rows: Sequence[Sequence], universe: FrozenSet[str]) -> List[bool]:
    """Evaluate the predicate over one chunk of rows (for multiprocessing)."""
    return [row_has_smm_code(row, universe) for row in rows]


def flag_smm_rows(
    df: pd.DataFrame,
    universe: FrozenSet[str],
    n_jobs: Optional[int] = None,
    chunk_size: int = COHORT_CONFIG.chunk_size,
) -> pd.Series:
    """Evaluate the SMM predicate for every row.

    Args:
        df: Admissions with I10_DX*/I10_PR* code fields
        universe: SMM code universe
        n_jobs: Worker processes (default: cpu_count() - 1; 1 = serial)
        chunk_size: Rows per worker task

    Returns:
        Boolean Series aligned to df.index
    """
    fields = code_fields(df.columns)
    if not fields:
        raise DataIntegrityError("No diagnosis or procedure code fields (I10_DX*, I10_PR*) in table")

    if n_jobs is None:
        n_jobs = max(1, mp.cpu_count() - 1)

    if not universe:
        logger.warning("Empty SMM code universe: no admission can match")
        return pd.Series(False, index=df.index, name="smm")

    rows = df[fields].to_numpy(dtype=object).tolist()
    chunks = [rows[i:i + chunk_size] for i in range(0, len(rows), chunk_size)]

    flags: List[bool] = []
    if n_jobs == 1 or len(chunks) <= 1:
        for chunk in chunks:
            flags.extend(_match_chunk(chunk, universe))
    else:
        logger.info(f"Matching {len(rows):,} rows in {len(chunks)} chunks with {n_jobs} workers")
        with ProcessPoolExecutor(max_workers=n_jobs) as executor:
            results = executor.map(_match_chunk, chunks, repeat(universe))
            for chunk_flags in tqdm(results, total=len(chunks), desc="  SMM matching", unit="chunk"):
                flags.extend(chunk_flags)

    return pd.Series(flags, index=df.index, name="smm", dtype=bool)


def filter_smm(
    df: pd.DataFrame,
    universe: FrozenSet[str],
    n_jobs: Optional[int] = None,
    chunk_size: int = COHORT_CONFIG.chunk_size,
) -> pd.DataFrame:
    """Keep admissions with at least one SMM-defining code."""
    mask = flag_smm_rows(df, universe, n_jobs=n_jobs, chunk_size=chunk_size)
    return df[mask].copy()


# =============================================================================
# STAGE C: TRANSFERS
# =============================================================================

def exclude_transfers(df: pd.DataFrame, config: CohortConfig = COHORT_CONFIG) -> pd.DataFrame:
    """Drop admissions with a missing or non-zero transfer flag."""
    mask = pd.Series(True, index=df.index)
    for col in config.transfer_cols:
        mask &= df[col].notna() & (df[col] == 0)
    return df[mask].copy()


def build_cohort(
    df: pd.DataFrame,
    universe: FrozenSet[str],
    config: CohortConfig = COHORT_CONFIG,
) -> pd.DataFrame:
    """Apply delivery, SMM and transfer filters in order.

    Args:
        df: Merged admission table
        universe: SMM code universe
        config: Filter settings

    Returns:
        New DataFrame of SMM delivery admissions without transfers
    """
    logger.info(f"Cohort filter input: {len(df):,} admissions")

    deliveries = filter_deliveries(df, config)
    logger.info(f"  A. Deliveries: {len(deliveries):,}")

    smm = filter_smm(deliveries, universe, n_jobs=config.n_jobs, chunk_size=config.chunk_size)
    logger.info(f"  B. SMM deliveries: {len(smm):,}")

    cohort = exclude_transfers(smm, config)
    logger.info(f"  C. SMM deliveries without transfers: {len(cohort):,}")

    return cohort.reset_index(drop=True)
