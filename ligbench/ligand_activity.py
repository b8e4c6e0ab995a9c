#!/usr/bin/env python3
"""
Ligand activity prediction evaluation
=====================================
Every candidate ligand's target predictions are scored against every
setting as though that candidate had been applied. The resulting
importance scores are then used to judge whether the truly applied
ligand stands out among the candidates:

- per setting: rank of the true ligand under each importance measure
- pooled: AUROC/AUPR of each importance measure for classifying
  (setting, candidate) pairs as true vs. decoy ligand
"""

import logging
from typing import List, Optional, Sequence

import numpy as np
import pandas as pd
from tqdm import tqdm

from core.data_structures import ExpressionSetting
from core.statistics import aupr, auroc, classification_evaluation_continuous_pred
from ligbench.constants import (
    ACTIVITY_METRIC_NAMES,
    METRIC_BY_NAME,
    METRIC_NAMES,
    NORMALIZATION_METHODS,
    TOP_FRACTION,
)
from ligbench.settings import extract_ligands
from ligbench.target_prediction import align_setting

logger = logging.getLogger(__name__)

IMPORTANCE_ID_COLUMNS = ['setting', 'ligand', 'test_ligand']


def _metric_columns(table: pd.DataFrame, metrics: Optional[Sequence[str]]) -> List[str]:
    if metrics is None:
        return [m for m in METRIC_NAMES if m in table.columns]
    unknown = [m for m in metrics if m not in METRIC_BY_NAME]
    if unknown:
        raise ValueError(f"Unknown importance measures: {unknown}")
    return list(metrics)


def candidate_ligands(settings: Sequence[ExpressionSetting],
                      matrix: pd.DataFrame,
                      candidates: Optional[Sequence[str]] = None) -> List[str]:
    """
    Candidate ligand universe restricted to ligands present in the matrix.

    Defaults to every ligand applied in at least one setting.
    """
    pool = list(candidates) if candidates is not None else extract_ligands(settings)
    missing = [lig for lig in pool if lig not in matrix.columns]
    if missing:
        logger.warning(f"{len(missing)} candidate ligands not in matrix, ignored: {missing[:10]}")
    return [lig for lig in pool if lig in matrix.columns]


def get_single_ligand_importances(settings: Sequence[ExpressionSetting],
                                  matrix: pd.DataFrame,
                                  candidates: Optional[Sequence[str]] = None,
                                  top_fraction: float = TOP_FRACTION,
                                  progress: bool = True) -> pd.DataFrame:
    """
    Score every candidate ligand on every setting.

    Args:
        settings: Single-ligand expression settings
        matrix: Ligand-target matrix (rows = genes, columns = ligands)
        candidates: Candidate ligands; defaults to all ligands applied
                    across ``settings``
        top_fraction: Fraction of the ranking used for the recovery curve

    Returns:
        DataFrame with one row per (setting, candidate): ``setting``,
        ``ligand`` (applied), ``test_ligand`` (candidate) and one column
        per metric
    """
    pool = candidate_ligands(settings, matrix, candidates)
    records = []
    for setting in tqdm(settings, desc='Ligand importances', disable=not progress):
        genes, response = align_setting(setting, matrix)
        scores = matrix.loc[genes, pool]
        for test_ligand in pool:
            record = {
                'setting': setting.name,
                'ligand': setting.ligand,
                'test_ligand': test_ligand,
            }
            record.update(classification_evaluation_continuous_pred(
                scores[test_ligand].to_numpy(dtype=float), response, top_fraction
            ))
            records.append(record)

    logger.info(f"Computed {len(records)} ligand importances ({len(settings)} settings x {len(pool)} candidates)")
    return pd.DataFrame(records, columns=IMPORTANCE_ID_COLUMNS + METRIC_NAMES)


def rank_true_ligands(importances: pd.DataFrame,
                      metrics: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Rank of the applied ligand among all candidates of its setting.

    Candidates are ranked per importance measure from best (1) to worst.
    Ties get their average rank; undefined importances rank last. The
    rank is NaN when the applied ligand is not among the candidates.

    Returns:
        DataFrame with one row per setting: ``setting``, ``ligand``,
        ``n_candidates`` and one rank column per importance measure
    """
    metrics = _metric_columns(importances, metrics)
    rows = []
    for setting, group in importances.groupby('setting', sort=False):
        true_ligand = group['ligand'].iloc[0]
        is_true = (group['test_ligand'] == true_ligand).to_numpy()
        row = {'setting': setting, 'ligand': true_ligand, 'n_candidates': len(group)}
        for m in metrics:
            ranks = group[m].rank(method='average',
                                  ascending=not METRIC_BY_NAME[m].higher_is_better,
                                  na_option='bottom')
            row[m] = float(ranks.to_numpy()[is_true][0]) if is_true.any() else np.nan
        rows.append(row)

    ranking = pd.DataFrame(rows, columns=['setting', 'ligand', 'n_candidates'] + metrics)
    if len(ranking) and ranking[metrics].isna().all(axis=1).any():
        n_absent = int(ranking[metrics].isna().all(axis=1).sum())
        logger.warning(f"Applied ligand absent from candidates in {n_absent} settings")
    return ranking


def normalize_importances(importances: pd.DataFrame,
                          method: Optional[str] = 'median',
                          metrics: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Per-setting normalization of importance scores.

    ``'median'`` subtracts each setting's median importance so that
    settings with globally easier responses do not dominate pooled
    evaluation. ``None`` returns an unmodified copy.
    """
    if method not in NORMALIZATION_METHODS:
        raise ValueError(f"Unknown normalization {method!r}; expected one of {NORMALIZATION_METHODS}")
    normalized = importances.copy()
    if method is None:
        return normalized
    for m in _metric_columns(importances, metrics):
        normalized[m] = normalized[m] - normalized.groupby('setting')[m].transform('median')
    return normalized


def evaluate_importances_ligand_prediction(importances: pd.DataFrame,
                                           normalization: Optional[str] = None,
                                           metrics: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    How well does each importance measure separate applied from decoy ligands?

    All (setting, candidate) pairs are pooled; the label is whether the
    candidate is the setting's applied ligand. Pairs with an undefined
    importance are left out for that measure.

    Returns:
        DataFrame with one row per importance measure and columns
        ``importance_measure``, ``auroc``, ``aupr``, ``aupr_corrected``
    """
    metrics = _metric_columns(importances, metrics)
    data = normalize_importances(importances, normalization, metrics)
    labels = (data['test_ligand'] == data['ligand']).to_numpy()

    rows = []
    for m in metrics:
        scores = data[m].to_numpy(dtype=float)
        if not METRIC_BY_NAME[m].higher_is_better:
            scores = -scores
        valid = ~np.isnan(scores)
        aupr_value, aupr_corrected = aupr(scores[valid], labels[valid])
        rows.append({
            'importance_measure': m,
            'auroc': auroc(scores[valid], labels[valid]),
            'aupr': aupr_value,
            'aupr_corrected': aupr_corrected,
        })

    performance = pd.DataFrame(rows, columns=['importance_measure'] + ACTIVITY_METRIC_NAMES)
    if len(performance) and performance['auroc'].notna().any():
        best = performance.loc[performance['auroc'].idxmax()]
        logger.info(f"Best ligand activity measure: {best['importance_measure']} (AUROC {best['auroc']:.3f})")
    return performance


def summarize_ligand_ranks(ranking: pd.DataFrame,
                           metrics: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """Mean/median rank of the applied ligand and fraction ranked first, per measure."""
    metrics = _metric_columns(ranking, metrics)
    rows = []
    for m in metrics:
        ranks = ranking[m].dropna()
        rows.append({
            'importance_measure': m,
            'n_settings': len(ranks),
            'mean_rank': ranks.mean() if len(ranks) else np.nan,
            'median_rank': ranks.median() if len(ranks) else np.nan,
            'top1_fraction': (ranks <= 1).mean() if len(ranks) else np.nan,
        })
    return pd.DataFrame(rows, columns=['importance_measure', 'n_settings', 'mean_rank',
                                       'median_rank', 'top1_fraction'])
