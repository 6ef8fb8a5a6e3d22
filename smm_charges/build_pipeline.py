"""Main pipeline: NIS files -> SMM cohort -> survey-weighted charge models."""
import logging
from pathlib import Path
from typing import Dict, FrozenSet, List, Optional, Union

import pandas as pd

from smm_charges.config.analysis_config import (
    DATA_DIR,
    COHORT_CONFIG,
    RECODE_CONFIG,
    IMPUTE_CONFIG,
    PRUNE_CONFIG,
    MODEL_CONFIG,
    SPLIT_CONFIG,
    CohortConfig,
    RecodeConfig,
    ImputeConfig,
    ModelConfig,
    SplitConfig,
    load_column_policy,
    ensure_directories,
    output_dir_for,
)
from smm_charges.extractors.nis_loader import load_nis_tables
from smm_charges.extractors.snapshot_store import save_snapshot, load_snapshot, snapshot_exists
from smm_charges.processing.code_universe import load_code_universe
from smm_charges.processing.record_merger import merge_records
from smm_charges.processing.cohort_filter import build_cohort
from smm_charges.processing.recoder import comorbidity_targets, recode_cohort
from smm_charges.processing.imputer import impute_covariates
from smm_charges.processing.rare_level_pruner import prune_columns
from smm_charges.modeling.survey_design import SurveyDesign
from smm_charges.modeling.model_selection import (
    univariate_screen,
    select_by_bonferroni,
    fit_multivariate,
    refine_model,
)
from smm_charges.modeling.evaluator import stratified_split, evaluate_model
from smm_charges.reporting.summary_tables import weighted_descriptives, coefficient_table, write_table
from smm_charges.reporting.plots import (
    plot_charge_distribution,
    plot_predicted_vs_actual,
    plot_violin_by_category,
)
from smm_charges.validation.quality_report import QualityReport

logger = logging.getLogger(__name__)

VIOLIN_COLUMNS = ["los_group", "payer", "race", "aprdrg_severity"]


def _banner(title: str):
    print("\n" + "=" * 60)
    print(title)
    print("=" * 60)


def screening_candidates(analytic: pd.DataFrame, base_terms: List[str]) -> List[str]:
    """Configured terms plus every comorbidity indicator that survived pruning."""
    extra = [t for t in comorbidity_targets() if t in analytic.columns and t not in base_terms]
    return list(base_terms) + extra


def build_merged_table(
    data_dir: Path,
    report: QualityReport,
    tables: Optional[Dict[str, pd.DataFrame]] = None,
) -> pd.DataFrame:
    """Load NIS tables (unless given) and merge them."""
    tables = load_nis_tables(data_dir) if tables is None else tables
    extensions = {name: tables[name] for name in ("severity", "dx_pr_groups") if name in tables}
    return merge_records(
        tables["core"],
        tables["hospital"],
        tables["cost_to_charge"],
        extensions=extensions,
        report=report,
    )


def run_pipeline(
    data_dir: Union[str, Path] = DATA_DIR,
    output_dir: Optional[Path] = None,
    tables: Optional[Dict[str, pd.DataFrame]] = None,
    universe: Optional[FrozenSet[str]] = None,
    policy: Optional[Dict] = None,
    resume: bool = True,
    cohort_config: CohortConfig = COHORT_CONFIG,
    recode_config: RecodeConfig = RECODE_CONFIG,
    impute_config: ImputeConfig = IMPUTE_CONFIG,
    model_config: ModelConfig = MODEL_CONFIG,
    split_config: SplitConfig = SPLIT_CONFIG,
) -> Dict:
    """Run the full SMM charge analysis.

    Args:
        data_dir: Directory holding the NIS CSV files
        output_dir: Snapshot/report directory (default: <data_dir>/outputs)
        tables: Pre-loaded NIS tables, skipping file reads
        universe: SMM code universe (default: shipped reference lists)
        policy: Column policy (default: column_policy.yaml)
        resume: Reuse existing merged/cohort/imputed/split snapshots
        cohort_config: Cohort filter settings
        recode_config: Recoder settings
        impute_config: Imputation settings
        model_config: Survey design and selection settings
        split_config: Train/test split settings

    Returns:
        Dict with the stage tables, model results and quality report
    """
    data_dir = Path(data_dir)
    output_dir = Path(output_dir) if output_dir else output_dir_for(data_dir)
    output_dir.mkdir(parents=True, exist_ok=True)
    tables_dir = output_dir / "tables"
    plots_dir = output_dir / "plots"

    report = QualityReport()
    universe = load_code_universe() if universe is None else universe
    policy = load_column_policy() if policy is None else policy
    design = SurveyDesign.from_config(model_config)

    # Stage 1: merge
    _banner("1. Merging NIS tables")
    if resume and snapshot_exists("merged", output_dir):
        merged = load_snapshot("merged", output_dir)
    else:
        merged = build_merged_table(data_dir, report, tables)
        save_snapshot(merged, "merged", output_dir)
    print(f"  Merged: {len(merged):,} admissions")

    # Stage 2: cohort
    _banner("2. Building SMM delivery cohort")
    if resume and snapshot_exists("cohort", output_dir):
        cohort = load_snapshot("cohort", output_dir)
    else:
        cohort = build_cohort(merged, universe, cohort_config)
        save_snapshot(cohort, "cohort", output_dir)
    print(f"  Cohort: {len(cohort):,} admissions")

    # Stage 3: recode + impute
    _banner("3. Recoding and imputing covariates")
    if resume and snapshot_exists("imputed", output_dir):
        imputed = load_snapshot("imputed", output_dir)
    else:
        recoded = recode_cohort(cohort, recode_config, report)
        imputed = impute_covariates(recoded, impute_config, report)
        save_snapshot(imputed, "imputed", output_dir)
    print(f"  Imputed: {len(imputed):,} admissions x {imputed.shape[1]} columns")

    # Stage 4: prune
    _banner("4. Pruning rare and deny-listed columns")
    analytic = prune_columns(imputed, policy["deny_list"], PRUNE_CONFIG.low_frequency_threshold, report)
    print(f"  Analytic table: {analytic.shape[1]} columns")

    write_table(weighted_descriptives(analytic, design), tables_dir / "descriptives.csv")
    plot_charge_distribution(analytic, plots_dir / "log_charge_hist.png", weights=design.weights)
    for col in VIOLIN_COLUMNS:
        if col in analytic.columns:
            plot_violin_by_category(analytic, col, plots_dir / f"violin_{col}.png")

    # Stage 5: models
    _banner("5. Fitting survey-weighted models")
    candidates = screening_candidates(analytic, model_config.candidate_terms)
    print(f"  Screening {len(candidates)} candidate terms")
    screen = univariate_screen(analytic, candidates, design, report=report)
    selected = select_by_bonferroni(screen, model_config.alpha)
    full = fit_multivariate(analytic, selected, design, alpha=model_config.alpha, report=report)
    refined = refine_model(analytic, policy["refined_terms"], full, design)
    print(f"  Selected {len(selected)} terms, pseudo-R2 full {refined.pseudo_r2_full:.3f}, "
          f"refined {refined.pseudo_r2_reduced:.3f}")

    write_table(screen.terms, tables_dir / "univariate_tests.csv")
    write_table(screen.coefficients, tables_dir / "univariate_coefficients.csv")
    write_table(coefficient_table(full.fit, "multivariate"), tables_dir / "multivariate_coefficients.csv")
    write_table(coefficient_table(refined.fit, "refined"), tables_dir / "refined_coefficients.csv")

    # Stage 6: evaluation
    _banner("6. Train/test evaluation")
    if resume and snapshot_exists("train", output_dir) and snapshot_exists("test", output_dir):
        train = load_snapshot("train", output_dir)
        test = load_snapshot("test", output_dir)
    else:
        train, test = stratified_split(analytic, config=split_config)
        save_snapshot(train, "train", output_dir)
        save_snapshot(test, "test", output_dir)

    evaluation = evaluate_model(train, test, refined.terms, design)
    write_table(evaluation.predictions, tables_dir / "test_predictions.csv")
    plot_predicted_vs_actual(evaluation.predictions, plots_dir / "predicted_vs_actual.png")
    print(f"  Test R2 {evaluation.test_r2:.3f}, r {evaluation.test_pearson_r:.3f}")

    report.write(output_dir / "quality_report.txt")
    print(report.report())
    print("Pipeline complete!")

    return {
        "merged": merged,
        "cohort": cohort,
        "imputed": imputed,
        "analytic": analytic,
        "screen": screen,
        "selected": selected,
        "multivariate": full,
        "refined": refined,
        "evaluation": evaluation,
        "report": report,
    }


def main():
    """Main entry point for CLI."""
    import argparse

    parser = argparse.ArgumentParser(description="SMM delivery cohort and charge models from NIS")
    parser.add_argument("--data-dir", type=str, default=str(DATA_DIR), help="Directory with NIS CSV files")
    args = parser.parse_args()

    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s %(levelname)s %(name)s: %(message)s",
    )

    ensure_directories(Path(args.data_dir))
    run_pipeline(data_dir=args.data_dir)


if __name__ == "__main__":
    main()
