"""
Statistical Methods for Ligand-Target Evaluation
================================================
Classification, recovery-curve and correlation metrics for scoring a
continuous per-gene prediction against a boolean response, plus FDR
correction and bootstrap confidence intervals used in summaries.
"""

import math
import warnings
from typing import Callable, Dict, List, Optional, Tuple

import numpy as np
from scipy import stats
from sklearn.metrics import average_precision_score, roc_auc_score
from statsmodels.stats.multitest import multipletests


def apply_fdr_correction(p_values: List[float],
                         method: str = 'fdr_bh',
                         alpha: float = 0.05) -> Tuple[List[float], List[bool]]:
    """
    Multiple-testing correction across settings, e.g. of gene-set test
    p-values. ``method`` is any ``multipletests`` method name.

    Returns:
        (adjusted p-values, significant flags), both empty for no input
    """
    if len(p_values) == 0:
        return [], []
    significant, adjusted, _, _ = multipletests(p_values, alpha=alpha, method=method)
    return adjusted.tolist(), [bool(s) for s in significant]


def bootstrap_confidence_interval(values: List[float],
                                  statistic: Callable = np.mean,
                                  n_bootstrap: int = 1000,
                                  confidence: float = 0.95,
                                  random_state: Optional[int] = None) -> Tuple[float, float]:
    """
    Percentile bootstrap interval of ``statistic`` over per-setting values.

    With fewer than two values there is nothing to resample and the
    interval collapses to the statistic itself (NaN when empty).
    """
    values = np.asarray(values, dtype=float)
    if len(values) < 2:
        point = statistic(values) if len(values) else float('nan')
        return (point, point)

    rng = np.random.RandomState(random_state)
    resamples = rng.choice(values, size=(n_bootstrap, len(values)), replace=True)
    estimates = [statistic(row) for row in resamples]

    tail = (1 - confidence) / 2 * 100
    return (float(np.percentile(estimates, tail)), float(np.percentile(estimates, 100 - tail)))


# ============================================================================
# CLASSIFICATION METRICS FOR CONTINUOUS PREDICTIONS
# ============================================================================

def is_degenerate(response: np.ndarray) -> bool:
    """True when a boolean response has no positives, no negatives or < 2 entries."""
    response = np.asarray(response, dtype=bool)
    n_pos = int(response.sum())
    return len(response) < 2 or n_pos == 0 or n_pos == len(response)


def auroc(prediction: np.ndarray, response: np.ndarray) -> float:
    """Area under the ROC curve; NaN for degenerate responses."""
    if is_degenerate(response):
        return float('nan')
    return float(roc_auc_score(np.asarray(response, dtype=int), prediction))


def aupr(prediction: np.ndarray, response: np.ndarray) -> Tuple[float, float]:
    """
    Area under the precision-recall curve (average precision).

    Returns:
        (aupr, aupr_corrected) where the corrected value subtracts the
        fraction of positives, i.e. the AUPR of a random ranking.
    """
    if is_degenerate(response):
        return float('nan'), float('nan')
    response = np.asarray(response, dtype=int)
    value = float(average_precision_score(response, prediction))
    return value, value - float(response.mean())


def auc_iregulon(prediction: np.ndarray,
                 response: np.ndarray,
                 top_fraction: float = 0.05) -> Tuple[float, float]:
    """
    Area under the recovery curve over the top of the ranking.

    Genes are ordered by decreasing prediction (ties broken by original
    order) and the cumulative number of recovered responders is summed
    over the first ``ceil(top_fraction * n)`` positions. The area is
    normalised by the best achievable area for that many responders.

    Returns:
        (auc, auc_corrected) where the corrected value subtracts the
        expected normalised area of a random ranking.
    """
    if is_degenerate(response):
        return float('nan'), float('nan')
    response = np.asarray(response, dtype=bool)
    prediction = np.asarray(prediction, dtype=float)
    n = len(response)
    n_pos = int(response.sum())
    max_rank = max(1, int(math.ceil(top_fraction * n)))

    order = np.argsort(-prediction, kind='mergesort')
    recovery = np.cumsum(response[order][:max_rank])
    ranks = np.arange(1, max_rank + 1)

    max_area = float(np.minimum(ranks, n_pos).sum())
    area = float(recovery.sum()) / max_area
    random_area = (n_pos / n) * float(ranks.sum()) / max_area
    return area, area - random_area


def correlations(prediction: np.ndarray, response: np.ndarray) -> Tuple[float, float]:
    """Pearson and Spearman correlation of predictions against the 0/1 response."""
    if is_degenerate(response):
        return float('nan'), float('nan')
    prediction = np.asarray(prediction, dtype=float)
    if np.all(prediction == prediction[0]):
        return float('nan'), float('nan')
    response = np.asarray(response, dtype=float)
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        pearson = stats.pearsonr(prediction, response)[0]
        spearman = stats.spearmanr(prediction, response)[0]
    return float(pearson), float(spearman)


def mean_rank_gene_set_test(prediction: np.ndarray, response: np.ndarray) -> float:
    """
    Wilcoxon rank-sum gene-set test: are responders ranked higher than the rest?

    Returns:
        One-sided p-value (alternative: responder scores are greater), or
        NaN for degenerate responses.
    """
    if is_degenerate(response):
        return float('nan')
    response = np.asarray(response, dtype=bool)
    prediction = np.asarray(prediction, dtype=float)
    with warnings.catch_warnings():
        warnings.simplefilter('ignore')
        result = stats.mannwhitneyu(prediction[response], prediction[~response],
                                    alternative='greater')
    return float(result.pvalue)


def neg_log10_pvalue(p_value: float) -> float:
    """-log10(p), with p clipped to the smallest positive float."""
    if np.isnan(p_value):
        return float('nan')
    return float(-np.log10(max(p_value, np.finfo(float).tiny)))


def classification_evaluation_continuous_pred(prediction: np.ndarray,
                                              response: np.ndarray,
                                              top_fraction: float = 0.05) -> Dict[str, float]:
    """
    Compute the full metric set for one continuous prediction vector.

    Args:
        prediction: Per-gene prediction scores
        response: Per-gene boolean labels (True = responder)
        top_fraction: Fraction of the ranking used for the recovery curve

    Returns:
        Dict keyed by metric name; every value is NaN when the response
        has no positives or no negatives.
    """
    prediction = np.asarray(prediction, dtype=float)
    response = np.asarray(response, dtype=bool)
    if prediction.shape != response.shape:
        raise ValueError(
            f"prediction and response differ in length: {prediction.shape} vs {response.shape}"
        )

    aupr_value, aupr_corrected = aupr(prediction, response)
    iregulon, iregulon_corrected = auc_iregulon(prediction, response, top_fraction)
    pearson, spearman = correlations(prediction, response)

    return {
        'auroc': auroc(prediction, response),
        'aupr': aupr_value,
        'aupr_corrected': aupr_corrected,
        'auc_iregulon': iregulon,
        'auc_iregulon_corrected': iregulon_corrected,
        'pearson': pearson,
        'spearman': spearman,
        'mean_rank_GST_log_pval': neg_log10_pvalue(mean_rank_gene_set_test(prediction, response)),
    }
