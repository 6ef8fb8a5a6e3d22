"""Shared fixtures: small synthetic NIS-like tables."""
import numpy as np
import pandas as pd
import pytest

from smm_charges.modeling.survey_design import SurveyDesign


def make_analytic_frame(n_strata=4, n_hosp=5, per_hosp=20, seed=0):
    """Recoded cohort with a strong length-of-stay effect on log charge."""
    rng = np.random.default_rng(seed)
    rows = []
    key = 0
    for s in range(n_strata):
        for h in range(n_hosp):
            hosp_effect = rng.normal(0, 0.1)
            for _ in range(per_hosp):
                key += 1
                los = rng.choice(["short", "medium", "long"], p=[0.5, 0.3, 0.2])
                ccr = rng.uniform(0.2, 0.6)
                rows.append({
                    "KEY_NIS": f"K{key:05d}",
                    "HOSP_NIS": f"H{s}{h}",
                    "NIS_STRATUM": s + 1,
                    "DISCWT": rng.uniform(4.0, 6.0),
                    "los_group": los,
                    "payer": rng.choice(["Private insurance", "Medicaid", "Medicare"]),
                    "CCR_NIS": ccr,
                    "log_charge": 9.0
                    + {"short": 0.0, "medium": 0.6, "long": 1.4}[los]
                    + 0.5 * ccr
                    + hosp_effect
                    + rng.normal(0, 0.3),
                })
    df = pd.DataFrame(rows)
    df["los_group"] = pd.Categorical(df["los_group"], categories=["short", "medium", "long"], ordered=True)
    df["payer"] = pd.Categorical(df["payer"], categories=["Private insurance", "Medicaid", "Medicare"])
    return df


@pytest.fixture
def analytic_frame():
    return make_analytic_frame()


@pytest.fixture
def design():
    return SurveyDesign(cluster="HOSP_NIS", strata="NIS_STRATUM", weights="DISCWT")
