#!/usr/bin/env python3
"""
Reporting for the ligand-target benchmark
=========================================
Reshapes metric tables to long form, attaches random baselines and draws
per-metric violin + box plots. Also produces tabular summaries.
"""

import logging
import math
from pathlib import Path
from typing import Optional, Sequence, Union

import numpy as np
import pandas as pd
import matplotlib
matplotlib.use('Agg')
import matplotlib.pyplot as plt

from core.statistics import apply_fdr_correction, bootstrap_confidence_interval
from ligbench.constants import (
    DEFAULT_PLOT_METRICS,
    METRIC_BY_NAME,
    METRIC_NAMES,
    METRICS,
)

logger = logging.getLogger(__name__)

# ── Style ────────────────────────────────────────────────────────────────────
STYLE = {
    'font.family': 'sans-serif',
    'font.sans-serif': ['Arial', 'Helvetica', 'DejaVu Sans'],
    'font.size': 9,
    'axes.titlesize': 10,
    'axes.labelsize': 9,
    'xtick.labelsize': 7.5,
    'ytick.labelsize': 7.5,
    'figure.dpi': 150,
    'savefig.dpi': 300,
    'savefig.bbox': 'tight',
    'axes.spines.top': False,
    'axes.spines.right': False,
}
VIOLIN_COLOR = '#1f77b4'
BASELINE_COLOR = '#d62728'

ID_COLUMNS = ('setting', 'ligand', 'test_ligand', 'importance_measure')


def baseline_table() -> pd.DataFrame:
    """Metric name, display label and random baseline for every metric."""
    return pd.DataFrame(
        [{'metric': m.name, 'label': m.label, 'baseline': m.baseline} for m in METRICS],
        columns=['metric', 'label', 'baseline'],
    )


def _check_metrics(metrics: Sequence[str]) -> None:
    unknown = [m for m in metrics if m not in METRIC_BY_NAME]
    if unknown:
        raise ValueError(f"No baseline defined for metrics: {unknown}")


def metrics_to_long(table: pd.DataFrame,
                    metrics: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Reshape a wide metric table to (id columns, metric, value) rows.

    Args:
        table: Performance, importance or activity table
        metrics: Metric columns to keep; defaults to every schema metric
                 present in ``table``

    Raises:
        ValueError: if a requested metric is not in the metric schema
    """
    if metrics is None:
        metrics = [m for m in METRIC_NAMES if m in table.columns]
    else:
        _check_metrics(metrics)
        missing = [m for m in metrics if m not in table.columns]
        if missing:
            raise ValueError(f"Metric columns missing from table: {missing}")
    id_vars = [c for c in ID_COLUMNS if c in table.columns]
    return table.melt(id_vars=id_vars, value_vars=list(metrics),
                      var_name='metric', value_name='value')


def attach_baselines(long_df: pd.DataFrame) -> pd.DataFrame:
    """Add ``label`` and ``baseline`` columns to a long metric table."""
    _check_metrics(long_df['metric'].unique().tolist())
    return long_df.merge(baseline_table(), on='metric', how='left')


def plot_metric_distributions(table: pd.DataFrame,
                              metrics: Sequence[str] = DEFAULT_PLOT_METRICS,
                              output_path: Optional[Union[str, Path]] = None,
                              title: Optional[str] = None,
                              ncols: int = 3):
    """
    One subplot per metric: violin + box of values across settings, with
    the metric's random baseline as a dashed reference line.

    Undefined (NaN) values are left out; a metric without any defined
    value gets an empty panel. Metrics with a NaN baseline get no line.

    Returns:
        matplotlib Figure (saved to ``output_path`` when given)
    """
    long_df = attach_baselines(metrics_to_long(table, metrics))
    metrics = list(metrics)
    ncols = max(1, min(ncols, len(metrics)))
    nrows = max(1, math.ceil(len(metrics) / ncols))

    with plt.rc_context(STYLE):
        fig, axes = plt.subplots(nrows, ncols, figsize=(3.2 * ncols, 3.0 * nrows), squeeze=False)
        for ax, metric in zip(axes.flat, metrics):
            entry = METRIC_BY_NAME[metric]
            values = long_df.loc[long_df['metric'] == metric, 'value'].astype(float).dropna().to_numpy()

            if len(values) == 0:
                ax.text(0.5, 0.5, 'No defined values', ha='center', va='center', transform=ax.transAxes)
            else:
                if len(values) > 1 and np.ptp(values) > 0:
                    parts = ax.violinplot([values], positions=[0], widths=0.8,
                                          showextrema=False)
                    for body in parts['bodies']:
                        body.set_facecolor(VIOLIN_COLOR)
                        body.set_alpha(0.35)
                ax.boxplot([values], positions=[0], widths=0.15, showfliers=False,
                           medianprops={'color': 'black'})
            if not np.isnan(entry.baseline):
                ax.axhline(entry.baseline, color=BASELINE_COLOR, linestyle='--', linewidth=1)

            ax.set_title(entry.label)
            ax.set_xticks([])
            ax.set_xlabel(f"n = {len(values)}")

        for ax in list(axes.flat)[len(metrics):]:
            ax.set_visible(False)

        if title:
            fig.suptitle(title, fontweight='bold')
        fig.tight_layout()

        if output_path is not None:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(output_path)
            logger.info(f"Saved {output_path}")
    return fig


def plot_ligand_activity_performance(performance: pd.DataFrame,
                                     metrics: Sequence[str] = ('auroc', 'aupr_corrected'),
                                     output_path: Optional[Union[str, Path]] = None,
                                     title: Optional[str] = None):
    """
    Bar chart of pooled ligand activity performance per importance measure,
    one panel per metric with its random baseline.
    """
    metrics = list(metrics)
    _check_metrics(metrics)
    order = performance.sort_values(metrics[0], ascending=True)
    labels = [METRIC_BY_NAME[m].label for m in order['importance_measure']]

    with plt.rc_context(STYLE):
        fig, axes = plt.subplots(1, len(metrics), figsize=(4.0 * len(metrics), 0.35 * len(order) + 1.5),
                                 squeeze=False)
        for ax, metric in zip(axes.flat, metrics):
            entry = METRIC_BY_NAME[metric]
            ax.barh(labels, order[metric].astype(float), color=VIOLIN_COLOR, alpha=0.7)
            if not np.isnan(entry.baseline):
                ax.axvline(entry.baseline, color=BASELINE_COLOR, linestyle='--', linewidth=1)
            ax.set_xlabel(entry.label)
        axes[0, 0].set_ylabel('Importance measure')
        if title:
            fig.suptitle(title, fontweight='bold')
        fig.tight_layout()

        if output_path is not None:
            output_path = Path(output_path)
            output_path.parent.mkdir(parents=True, exist_ok=True)
            fig.savefig(output_path)
            logger.info(f"Saved {output_path}")
    return fig


def summarize_performance(table: pd.DataFrame,
                          metrics: Optional[Sequence[str]] = None,
                          n_bootstrap: int = 1000,
                          random_state: Optional[int] = 0) -> pd.DataFrame:
    """
    Per-metric summary across settings: count of defined values, mean,
    median, bootstrap 95% CI of the mean and the random baseline.
    """
    long_df = attach_baselines(metrics_to_long(table, metrics))
    rows = []
    for metric, group in long_df.groupby('metric', sort=False):
        values = group['value'].astype(float).dropna().to_numpy()
        lower, upper = bootstrap_confidence_interval(
            values, n_bootstrap=n_bootstrap, random_state=random_state
        )
        rows.append({
            'metric': metric,
            'n': len(values),
            'mean': values.mean() if len(values) else np.nan,
            'median': np.median(values) if len(values) else np.nan,
            'ci_lower': lower,
            'ci_upper': upper,
            'baseline': group['baseline'].iloc[0],
        })
    return pd.DataFrame(rows, columns=['metric', 'n', 'mean', 'median', 'ci_lower', 'ci_upper', 'baseline'])


def enrichment_significance(table: pd.DataFrame, alpha: float = 0.05) -> pd.DataFrame:
    """
    Benjamini-Hochberg correction of the per-setting mean-rank gene-set
    test p-values. Settings with an undefined p-value keep NaN q-values
    and are never significant.
    """
    pvals = np.power(10.0, -table['mean_rank_GST_log_pval'].astype(float).to_numpy())
    result = pd.DataFrame({
        'setting': table['setting'].to_numpy(),
        'ligand': table['ligand'].to_numpy(),
        'pval': pvals,
        'qval': np.nan,
        'significant': False,
    })
    defined = ~np.isnan(pvals)
    qvals, reject = apply_fdr_correction(pvals[defined].tolist(), method='fdr_bh', alpha=alpha)
    result.loc[defined, 'qval'] = qvals
    result.loc[defined, 'significant'] = reject
    result['significant'] = result['significant'].astype(bool)

    logger.info(f"{int(result['significant'].sum())}/{int(defined.sum())} settings with significant "
                f"target enrichment (FDR {alpha})")
    return result
