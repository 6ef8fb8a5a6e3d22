"""
Validation
==========

Fatal error types and the non-fatal data quality report.
"""

from .errors import DataIntegrityError
from .quality_report import QualityReport

__all__ = [
    'DataIntegrityError',
    'QualityReport',
]
