"""
Diagnostic plots for manual review.
"""

import matplotlib
matplotlib.use('Agg')  # Non-interactive backend
import matplotlib.pyplot as plt
import seaborn as sns
import pandas as pd
from pathlib import Path
from typing import Optional


def plot_charge_distribution(
    df: pd.DataFrame,
    output_path: Path,
    column: str = "log_charge",
    weights: Optional[str] = None,
    title: str = "Distribution of log total charge",
):
    """
    Histogram of the response, optionally survey-weighted.

    Args:
        df: Cohort table
        output_path: Path to save PNG
        column: Column to plot
        weights: Optional weight column
        title: Plot title
    """
    plt.figure(figsize=(10, 6))
    sns.histplot(data=df, x=column, weights=weights, bins=50, kde=True)
    plt.title(title, fontsize=14)
    plt.xlabel(column, fontsize=12)
    plt.tight_layout()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close()
    print(f"  Saved histogram to: {output_path}")


def plot_predicted_vs_actual(
    predictions: pd.DataFrame,
    output_path: Path,
    title: str = "Predicted vs actual log charge (test set)",
):
    """
    Scatter of predicted against actual values with the identity line.

    Args:
        predictions: DataFrame with 'actual' and 'predicted' columns
        output_path: Path to save PNG
        title: Plot title
    """
    plt.figure(figsize=(8, 8))
    sns.scatterplot(data=predictions, x="predicted", y="actual", alpha=0.4, s=15)

    lo = min(predictions["predicted"].min(), predictions["actual"].min())
    hi = max(predictions["predicted"].max(), predictions["actual"].max())
    plt.plot([lo, hi], [lo, hi], color="red", linestyle="--", linewidth=1)

    plt.title(title, fontsize=14)
    plt.xlabel("Predicted", fontsize=12)
    plt.ylabel("Actual", fontsize=12)
    plt.tight_layout()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close()
    print(f"  Saved scatter to: {output_path}")


def plot_violin_by_category(
    df: pd.DataFrame,
    category: str,
    output_path: Path,
    column: str = "log_charge",
):
    """
    Violin plot of the response for each level of a categorical.

    Args:
        df: Cohort table
        category: Categorical column on the x axis
        output_path: Path to save PNG
        column: Numeric column on the y axis
    """
    plt.figure(figsize=(12, 6))
    sns.violinplot(data=df, x=category, y=column, cut=0)
    plt.title(f"{column} by {category}", fontsize=14)
    plt.xticks(rotation=45, ha="right")
    plt.tight_layout()

    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.savefig(output_path, dpi=150, bbox_inches='tight')
    plt.close()
    print(f"  Saved violin plot to: {output_path}")
