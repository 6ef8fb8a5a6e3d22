"""
Reporting
=========

Descriptive tables, coefficient tables and diagnostic plots.
"""

from .summary_tables import weighted_descriptives, coefficient_table, write_table
from .plots import plot_charge_distribution, plot_predicted_vs_actual, plot_violin_by_category

__all__ = [
    'weighted_descriptives',
    'coefficient_table',
    'write_table',
    'plot_charge_distribution',
    'plot_predicted_vs_actual',
    'plot_violin_by_category',
]
