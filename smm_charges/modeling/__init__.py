"""
Modeling
========

Survey-weighted linear models of log total charge.
"""

from .survey_design import SurveyDesign
from .survey_lm import SurveyFit, fit_survey_lm, term_wald_test, pseudo_r2
from .model_selection import (
    univariate_screen,
    select_by_bonferroni,
    fit_multivariate,
    refine_model,
)
from .evaluator import stratified_split, evaluate_model

__all__ = [
    'SurveyDesign',
    'SurveyFit',
    'fit_survey_lm',
    'term_wald_test',
    'pseudo_r2',
    'univariate_screen',
    'select_by_bonferroni',
    'fit_multivariate',
    'refine_model',
    'stratified_split',
    'evaluate_model',
]
