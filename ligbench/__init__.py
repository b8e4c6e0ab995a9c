"""
ligbench: Ligand-target prediction benchmark
============================================
Evaluates a ligand-target regulatory potential matrix against
ligand-treatment expression experiments: target-gene prediction per
experiment, and ligand activity prediction across candidate ligands.
"""

from ligbench.constants import METRICS, METRIC_NAMES, DEFAULT_PLOT_METRICS, EvaluationConfig
from ligbench.data_loader import DatasetLoader, DatasetLoadError, load_datasets
from ligbench.settings import normalize_settings, convert_expression_setting, extract_ligands
from ligbench.target_prediction import evaluate_target_prediction, evaluate_target_predictions
from ligbench.ligand_activity import (
    get_single_ligand_importances,
    rank_true_ligands,
    evaluate_importances_ligand_prediction,
)

__all__ = [
    "METRICS",
    "METRIC_NAMES",
    "DEFAULT_PLOT_METRICS",
    "EvaluationConfig",
    "DatasetLoader",
    "DatasetLoadError",
    "load_datasets",
    "normalize_settings",
    "convert_expression_setting",
    "extract_ligands",
    "evaluate_target_prediction",
    "evaluate_target_predictions",
    "get_single_ligand_importances",
    "rank_true_ligands",
    "evaluate_importances_ligand_prediction",
]

# Reporting is imported on demand (matplotlib backend setup):
# - ligbench.reporting: plot_metric_distributions, metrics_to_long, etc.
