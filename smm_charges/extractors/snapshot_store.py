"""Parquet snapshots of intermediate pipeline tables."""
import logging
from pathlib import Path
from typing import Union

import pandas as pd

from smm_charges.config.analysis_config import SNAPSHOT_STAGES

logger = logging.getLogger(__name__)


def snapshot_path(stage: str, output_dir: Union[str, Path]) -> Path:
    if stage not in SNAPSHOT_STAGES:
        raise ValueError(f"Unknown snapshot stage: {stage}")
    return Path(output_dir) / f"{stage}.parquet"


def snapshot_exists(stage: str, output_dir: Union[str, Path]) -> bool:
    return snapshot_path(stage, output_dir).exists()


def save_snapshot(df: pd.DataFrame, stage: str, output_dir: Union[str, Path]) -> Path:
    """Persist a stage table. Categorical levels and ordering are kept."""
    path = snapshot_path(stage, output_dir)
    path.parent.mkdir(parents=True, exist_ok=True)
    df.reset_index(drop=True).to_parquet(path, index=False)
    logger.info(f"Saved {len(df):,} rows to {path}")
    return path


def load_snapshot(stage: str, output_dir: Union[str, Path]) -> pd.DataFrame:
    path = snapshot_path(stage, output_dir)
    df = pd.read_parquet(path)
    logger.info(f"Loaded {len(df):,} rows from {path}")
    return df
