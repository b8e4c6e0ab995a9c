#!/usr/bin/env python3
"""
Target-gene prediction evaluation
=================================
Scores how well a ligand's column of the ligand-target matrix separates
the responding genes of a setting from the non-responding ones.

Join policy: only genes both measured in the setting and present in the
matrix are scored. Unmeasured matrix genes carry no label and setting
genes missing from the matrix carry no prediction, so both are dropped.
"""

import logging
from typing import Any, Dict, Optional, Sequence, Tuple

import numpy as np
import pandas as pd
from tqdm import tqdm

from core.data_structures import ExpressionSetting
from core.statistics import classification_evaluation_continuous_pred
from ligbench.constants import METRIC_NAMES, TOP_FRACTION

logger = logging.getLogger(__name__)


def align_setting(setting: ExpressionSetting,
                  matrix: pd.DataFrame) -> Tuple[pd.Index, np.ndarray]:
    """
    Inner-join a setting's genes with the matrix rows.

    Returns:
        (genes, response) with genes in setting order and the matching
        boolean response vector
    """
    response = setting.response_series()
    genes = response.index.intersection(matrix.index, sort=False)
    n_dropped = len(response) - len(genes)
    if n_dropped:
        logger.debug(f"{setting.name}: {n_dropped}/{len(response)} genes absent from matrix")
    return genes, response.loc[genes].to_numpy(dtype=bool)


def empty_record(setting_name: str, ligand: str) -> Dict[str, Any]:
    """Performance record with every metric undefined."""
    record = {'setting': setting_name, 'ligand': ligand, 'n_genes': 0, 'n_responders': 0}
    record.update({m: np.nan for m in METRIC_NAMES})
    return record


def evaluate_target_prediction(setting: ExpressionSetting,
                               matrix: pd.DataFrame,
                               ligand: Optional[str] = None,
                               top_fraction: float = TOP_FRACTION) -> Dict[str, Any]:
    """
    Evaluate the target predictions of one ligand on one setting.

    Args:
        setting: Single-ligand expression setting
        matrix: Ligand-target matrix (rows = genes, columns = ligands)
        ligand: Ligand whose scores are evaluated; defaults to the
                setting's own ligand
        top_fraction: Fraction of the ranking used for the recovery curve

    Returns:
        Dict with ``setting``, ``ligand``, ``n_genes``, ``n_responders``
        and one entry per metric. Metrics are NaN when the ligand is not
        in the matrix or the scored genes have no responders.
    """
    ligand = ligand if ligand is not None else setting.ligand
    if ligand not in matrix.columns:
        logger.warning(f"{setting.name}: ligand {ligand} not in ligand-target matrix")
        return empty_record(setting.name, ligand)

    genes, response = align_setting(setting, matrix)
    prediction = matrix.loc[genes, ligand].to_numpy(dtype=float)
    scored = ~np.isnan(prediction)
    if not scored.all():
        logger.warning(f"{setting.name}: {int((~scored).sum())} genes without a {ligand} score left out")
        genes, prediction, response = genes[scored], prediction[scored], response[scored]
    record = {
        'setting': setting.name,
        'ligand': ligand,
        'n_genes': len(genes),
        'n_responders': int(response.sum()),
    }
    record.update(classification_evaluation_continuous_pred(prediction, response, top_fraction))
    return record


def evaluate_target_predictions(settings: Sequence[ExpressionSetting],
                                matrix: pd.DataFrame,
                                top_fraction: float = TOP_FRACTION,
                                progress: bool = True) -> pd.DataFrame:
    """
    Evaluate every setting against its own ligand.

    Returns:
        DataFrame with one performance record per setting
    """
    records = [
        evaluate_target_prediction(s, matrix, top_fraction=top_fraction)
        for s in tqdm(settings, desc='Target prediction', disable=not progress)
    ]
    columns = ['setting', 'ligand', 'n_genes', 'n_responders'] + METRIC_NAMES
    df = pd.DataFrame(records, columns=columns)

    n_undefined = int(df['auroc'].isna().sum())
    if n_undefined:
        logger.warning(f"{n_undefined}/{len(df)} settings have undefined metrics (no responders or unknown ligand)")
    logger.info(f"Evaluated target prediction for {len(df)} settings; median AUROC {df['auroc'].median():.3f}")
    return df
