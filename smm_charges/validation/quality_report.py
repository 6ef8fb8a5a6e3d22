"""
Data Quality Report
===================

Accumulates non-fatal conditions raised by pipeline stages so they reach
the human review step instead of being dropped:

- Missing covariate values before imputation
- Hospital join misses
- Rows dropped for missing charges
- Rare-level columns pruned
- Zero-variance predictors excluded from models
- Singleton survey strata adjusted
"""

import logging
from pathlib import Path
from typing import Optional

import pandas as pd

logger = logging.getLogger(__name__)


class QualityReport:
    """Container for data-quality and modeling conditions."""

    def __init__(self, name: str = "SMM pipeline"):
        self.name = name
        self.conditions = []

    def add(self, stage: str, description: str, details: str = "", count: Optional[int] = None):
        """Record one non-fatal condition."""
        self.conditions.append({
            'stage': stage,
            'description': description,
            'details': details,
            'count': count,
        })
        logger.warning(f"[{stage}] {description}" + (f" ({details})" if details else ""))

    def add_missingness(self, df: pd.DataFrame, stage: str, columns=None):
        """Record per-column missing counts for `columns` (default: all)."""
        columns = list(df.columns) if columns is None else columns
        n = len(df)
        for col in columns:
            n_missing = int(df[col].isna().sum())
            if n_missing:
                pct = 100.0 * n_missing / n if n else 0.0
                self.add(stage, f"Missing values in {col}", f"{n_missing:,} rows, {pct:.1f}%", n_missing)

    def for_stage(self, stage: str) -> list:
        return [c for c in self.conditions if c['stage'] == stage]

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame(self.conditions, columns=['stage', 'description', 'details', 'count'])

    def summary(self) -> str:
        """Get summary string."""
        stages = sorted({c['stage'] for c in self.conditions})
        return f"{self.name}: {len(self.conditions)} conditions across {len(stages)} stages"

    def report(self) -> str:
        """Get full report string."""
        lines = [f"\n{'='*60}", f"{self.name}", "="*60]
        for cond in self.conditions:
            lines.append(f"  [{cond['stage']}] {cond['description']}")
            if cond['details']:
                lines.append(f"      {cond['details']}")
        lines.append(self.summary())
        return "\n".join(lines)

    def write(self, path: Path):
        """Write the text report and a CSV of conditions next to it."""
        path = Path(path)
        path.parent.mkdir(parents=True, exist_ok=True)
        path.write_text(self.report())
        self.to_frame().to_csv(path.with_suffix('.csv'), index=False)
