"""
Unit Tests for Ligand Activity Evaluation
=========================================
Importance scoring, ranking of the applied ligand and pooled
true-vs-decoy classification.
"""

import pytest
import numpy as np
import pandas as pd

from ligbench.constants import METRIC_NAMES, ACTIVITY_METRIC_NAMES
from ligbench.settings import convert_expression_setting
from ligbench.ligand_activity import (
    candidate_ligands,
    get_single_ligand_importances,
    rank_true_ligands,
    normalize_importances,
    evaluate_importances_ligand_prediction,
    summarize_ligand_ranks,
)

GENES = ['G1', 'G2', 'G3', 'G4', 'G5', 'G6']


def make_setting(name, ligand, responders):
    diffexp = {
        'gene': GENES,
        'lfc': [2.0 if g in responders else 0.1 for g in GENES],
        'qval': [0.01 if g in responders else 0.8 for g in GENES],
    }
    return convert_expression_setting({'name': name, 'from': ligand, 'diffexp': diffexp})


@pytest.fixture
def matrix():
    """L2 is an exact copy of L1; L3 is L1 reversed"""
    return pd.DataFrame({
        'L1': [6.0, 5.0, 4.0, 3.0, 2.0, 1.0],
        'L2': [6.0, 5.0, 4.0, 3.0, 2.0, 1.0],
        'L3': [1.0, 2.0, 3.0, 4.0, 5.0, 6.0],
    }, index=GENES)


@pytest.fixture
def settings():
    return [
        make_setting('s1', 'L1', {'G1', 'G2'}),
        make_setting('s3', 'L3', {'G5', 'G6'}),
    ]


class TestImportances:
    """Every candidate is scored on every setting"""

    def test_default_candidates_are_applied_ligands(self, settings, matrix):
        assert candidate_ligands(settings, matrix) == ['L1', 'L3']
        importances = get_single_ligand_importances(settings, matrix, progress=False)
        assert len(importances) == 4
        assert list(importances.columns) == ['setting', 'ligand', 'test_ligand'] + METRIC_NAMES

    def test_explicit_candidates(self, settings, matrix):
        importances = get_single_ligand_importances(settings, matrix, candidates=['L1', 'L2', 'L3'],
                                                    progress=False)
        assert len(importances) == 6
        s1 = importances[importances['setting'] == 's1'].set_index('test_ligand')
        assert s1.loc['L1', 'auroc'] == pytest.approx(1.0)
        assert s1.loc['L3', 'auroc'] == pytest.approx(0.0)

    def test_candidates_missing_from_matrix_ignored(self, settings, matrix):
        assert candidate_ligands(settings, matrix, ['L1', 'WNT3A']) == ['L1']

    def test_importance_of_true_ligand_matches_target_prediction(self, settings, matrix):
        from ligbench.target_prediction import evaluate_target_prediction
        importances = get_single_ligand_importances(settings, matrix, progress=False)
        row = importances[(importances['setting'] == 's1') & (importances['test_ligand'] == 'L1')].iloc[0]
        record = evaluate_target_prediction(settings[0], matrix)
        for m in METRIC_NAMES:
            assert row[m] == pytest.approx(record[m], nan_ok=True)


class TestRankTrueLigands:
    """Rank of the applied ligand among candidates"""

    def test_true_ligand_ranked_first(self, settings, matrix):
        importances = get_single_ligand_importances(settings, matrix, progress=False)
        ranking = rank_true_ligands(importances)

        assert ranking['setting'].tolist() == ['s1', 's3']
        assert (ranking['n_candidates'] == 2).all()
        for m in METRIC_NAMES:
            assert (ranking[m] == 1.0).all(), m

    def test_identical_decoy_ties_with_true_ligand(self, settings, matrix):
        """A decoy with the same score column gets the same rank under every metric"""
        importances = get_single_ligand_importances(settings[:1], matrix, candidates=['L1', 'L2', 'L3'],
                                                    progress=False)
        ranking = rank_true_ligands(importances)
        for m in METRIC_NAMES:
            assert ranking.loc[0, m] == pytest.approx(1.5), m

        # Swapping which of the two identical ligands is "applied" changes nothing
        swapped = importances.assign(ligand='L2')
        swapped_ranking = rank_true_ligands(swapped)
        for m in METRIC_NAMES:
            assert swapped_ranking.loc[0, m] == ranking.loc[0, m]

    def test_undefined_importances_rank_last(self):
        importances = pd.DataFrame({
            'setting': ['s', 's', 's'],
            'ligand': ['A', 'A', 'A'],
            'test_ligand': ['A', 'B', 'C'],
            'auroc': [np.nan, 0.7, 0.6],
        })
        ranking = rank_true_ligands(importances, metrics=['auroc'])
        assert ranking.loc[0, 'auroc'] == 3.0

    def test_true_ligand_not_candidate(self, settings, matrix):
        importances = get_single_ligand_importances(settings[:1], matrix, candidates=['L2', 'L3'],
                                                    progress=False)
        ranking = rank_true_ligands(importances)
        assert ranking[METRIC_NAMES].isna().to_numpy().all()

    def test_unknown_measure_rejected(self, settings, matrix):
        importances = get_single_ligand_importances(settings, matrix, progress=False)
        with pytest.raises(ValueError):
            rank_true_ligands(importances, metrics=['accuracy'])


class TestLigandActivityPerformance:
    """Pooled true-vs-decoy classification per importance measure"""

    def test_perfect_separation(self, settings, matrix):
        importances = get_single_ligand_importances(settings, matrix, progress=False)
        performance = evaluate_importances_ligand_prediction(importances)

        assert performance['importance_measure'].tolist() == METRIC_NAMES
        assert list(performance.columns) == ['importance_measure'] + ACTIVITY_METRIC_NAMES
        auroc = performance.set_index('importance_measure')['auroc']
        assert auroc['auroc'] == pytest.approx(1.0)
        assert auroc['pearson'] == pytest.approx(1.0)

    def test_median_normalization(self, settings, matrix):
        importances = get_single_ligand_importances(settings, matrix, progress=False)
        normalized = normalize_importances(importances, 'median')
        medians = normalized.groupby('setting')['auroc'].median()
        assert np.allclose(medians.to_numpy(), 0.0)

        performance = evaluate_importances_ligand_prediction(importances, normalization='median')
        assert performance.set_index('importance_measure').loc['auroc', 'auroc'] == pytest.approx(1.0)

    def test_no_normalization_is_copy(self, settings, matrix):
        importances = get_single_ligand_importances(settings, matrix, progress=False)
        normalized = normalize_importances(importances, None)
        pd.testing.assert_frame_equal(normalized, importances)
        assert normalized is not importances

    def test_unknown_normalization(self, settings, matrix):
        importances = get_single_ligand_importances(settings, matrix, progress=False)
        with pytest.raises(ValueError):
            evaluate_importances_ligand_prediction(importances, normalization='zscore')


class TestSummarizeRanks:

    def test_summary(self):
        ranking = pd.DataFrame({
            'setting': ['a', 'b', 'c', 'd'],
            'ligand': ['L1', 'L2', 'L3', 'L4'],
            'n_candidates': [5, 5, 5, 5],
            'auroc': [1.0, 2.0, 1.0, np.nan],
        })
        summary = summarize_ligand_ranks(ranking, metrics=['auroc']).iloc[0]
        assert summary['n_settings'] == 3
        assert summary['mean_rank'] == pytest.approx(4 / 3)
        assert summary['median_rank'] == 1.0
        assert summary['top1_fraction'] == pytest.approx(2 / 3)
