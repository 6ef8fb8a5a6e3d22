"""
SMM Charges
===========

Severe maternal morbidity delivery cohort from the National Inpatient
Sample and survey-weighted models of log hospital charges.
"""

__version__ = "0.1.0"
