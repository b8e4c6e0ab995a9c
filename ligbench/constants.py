#!/usr/bin/env python3
"""
Canonical constants for the ligand-target benchmark
===================================================
Single source of truth for the metric schema, random baselines,
normalization cutoffs and run configuration. All other modules should
import from here instead of maintaining their own copies.
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Dict, List, Optional, Tuple

# ---------------------------------------------------------------------------
# METRIC SCHEMA
# Every evaluator emits exactly these columns; the reporter looks up the
# random baseline of each one here. NaN baseline = prevalence dependent,
# no reference line is drawn.
# ---------------------------------------------------------------------------

@dataclass(frozen=True)
class MetricSpec:
    """One evaluation metric and its random-ranking baseline."""
    name: str
    label: str
    baseline: float
    higher_is_better: bool = True


METRICS: Tuple[MetricSpec, ...] = (
    MetricSpec('auroc', 'AUROC', 0.5),
    MetricSpec('aupr', 'AUPR', float('nan')),
    MetricSpec('aupr_corrected', 'AUPR (corrected)', 0.0),
    MetricSpec('auc_iregulon', 'AUC-iRegulon', float('nan')),
    MetricSpec('auc_iregulon_corrected', 'AUC-iRegulon (corrected)', 0.0),
    MetricSpec('pearson', 'Pearson correlation', 0.0),
    MetricSpec('spearman', 'Spearman correlation', 0.0),
    MetricSpec('mean_rank_GST_log_pval', 'Mean-rank gene-set enrichment (-log10 p)', 0.0),
)

METRIC_NAMES: List[str] = [m.name for m in METRICS]
METRIC_BY_NAME: Dict[str, MetricSpec] = {m.name: m for m in METRICS}

# Metrics shown in the default distribution plots
DEFAULT_PLOT_METRICS: List[str] = [
    'auroc',
    'aupr_corrected',
    'auc_iregulon_corrected',
    'pearson',
    'spearman',
    'mean_rank_GST_log_pval',
]

# Metrics computed for ligand-activity prediction (pooled over candidates)
ACTIVITY_METRIC_NAMES: List[str] = ['auroc', 'aupr', 'aupr_corrected']

# ---------------------------------------------------------------------------
# NORMALIZATION & SCORING DEFAULTS
# ---------------------------------------------------------------------------

LFC_CUTOFF = 1.0          # |logFC| at or above this counts as a response
QVAL_CUTOFF = 0.1         # adjusted p-value at or below this counts as significant
TOP_FRACTION = 0.05       # fraction of the ranking used for the recovery curve

NORMALIZATION_METHODS = (None, 'median')

# ---------------------------------------------------------------------------
# DATA SOURCES
# ---------------------------------------------------------------------------

CACHE_DIR = Path('data_cache')
DOWNLOAD_TIMEOUT = 120    # seconds
MATRIX_SUFFIXES = ('.csv', '.tsv', '.txt', '.pkl', '.pickle')
SETTINGS_SUFFIXES = ('.json', '.pkl', '.pickle')


@dataclass
class EvaluationConfig:
    """Parameters for one evaluation run."""
    matrix_source: str
    settings_source: str
    output_dir: Path = Path('results')
    cache_dir: Path = CACHE_DIR
    timeout: int = DOWNLOAD_TIMEOUT
    lfc_cutoff: float = LFC_CUTOFF
    qval_cutoff: float = QVAL_CUTOFF
    top_fraction: float = TOP_FRACTION
    ligand_activity: bool = True
    normalization: Optional[str] = None
    plot_metrics: List[str] = field(default_factory=lambda: list(DEFAULT_PLOT_METRICS))

    def __post_init__(self):
        self.output_dir = Path(self.output_dir)
        self.cache_dir = Path(self.cache_dir)
        if not 0 < self.top_fraction <= 1:
            raise ValueError(f"top_fraction must be in (0, 1], got {self.top_fraction}")
        if self.normalization not in NORMALIZATION_METHODS:
            raise ValueError(
                f"Unknown normalization {self.normalization!r}; expected one of {NORMALIZATION_METHODS}"
            )
        unknown = [m for m in self.plot_metrics if m not in METRIC_BY_NAME]
        if unknown:
            raise ValueError(f"Unknown plot metrics: {unknown}")
