"""
Ligand-Target Evaluation Core Modules
=====================================
Modular components shared by the evaluation pipeline.

This package contains:
- data_structures: Core data classes (ExpressionSetting)
- statistics: Classification/correlation metrics, FDR correction and
  bootstrap confidence intervals
"""

from .data_structures import ExpressionSetting

from .statistics import (
    apply_fdr_correction,
    bootstrap_confidence_interval,
    classification_evaluation_continuous_pred,
)

__all__ = [
    # Data structures
    'ExpressionSetting',
    # Statistics
    'apply_fdr_correction',
    'bootstrap_confidence_interval',
    'classification_evaluation_continuous_pred',
]

__version__ = '1.0.0'
