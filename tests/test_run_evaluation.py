"""
Integration Tests for the Evaluation CLI
========================================
"""

import json

import pytest
import numpy as np
import pandas as pd

from ligbench.constants import EvaluationConfig
from run_evaluation import main, parse_args, run

GENES = [f"G{i}" for i in range(15)]


@pytest.fixture
def inputs(tmp_path):
    rng = np.random.RandomState(3)
    matrix = pd.DataFrame(rng.uniform(0, 1, (len(GENES), 3)), index=GENES, columns=['TNF', 'IL6', 'TGFB1'])
    matrix_path = tmp_path / 'ligand_target.csv'
    matrix.to_csv(matrix_path)

    def record(name, ligands, responders):
        return {
            'name': name,
            'from': ligands,
            'diffexp': {
                'gene': GENES,
                'lfc': [2.0 if g in responders else 0.1 for g in GENES],
                'qval': [0.01 if g in responders else 0.5 for g in GENES],
            },
        }

    records = [
        record('tnf_1', ['TNF'], {'G0', 'G1', 'G2'}),
        record('il6_1', ['IL6'], {'G5', 'G6'}),
        record('tgfb_1', ['TGFB1'], {'G9', 'G10', 'G11', 'G12'}),
        record('combo', ['TNF', 'IL6'], {'G0'}),
        record('wnt', ['WNT3A'], {'G3'}),
    ]
    settings_path = tmp_path / 'settings.json'
    settings_path.write_text(json.dumps(records))
    return matrix_path, settings_path


class TestConfig:

    def test_parse_args(self, inputs, tmp_path):
        matrix_path, settings_path = inputs
        config = parse_args(['--matrix', str(matrix_path), '--settings', str(settings_path),
                             '--output', str(tmp_path / 'out'), '--top-fraction', '0.1',
                             '--skip-ligand-activity'])
        assert config.top_fraction == 0.1
        assert not config.ligand_activity
        assert config.normalization is None

    @pytest.mark.parametrize('kwargs', [
        {'top_fraction': 0.0},
        {'top_fraction': 1.5},
        {'normalization': 'zscore'},
        {'plot_metrics': ['auroc', 'f1']},
    ])
    def test_invalid_config(self, kwargs):
        with pytest.raises(ValueError):
            EvaluationConfig(matrix_source='m.csv', settings_source='s.json', **kwargs)


class TestRun:

    def test_full_run_writes_outputs(self, inputs, tmp_path):
        matrix_path, settings_path = inputs
        out = tmp_path / 'out'
        code = main(['--matrix', str(matrix_path), '--settings', str(settings_path),
                     '--output', str(out), '--cache-dir', str(tmp_path / 'cache'),
                     '--normalization', 'median'])
        assert code == 0

        for name in ('settings', 'target_prediction', 'target_prediction_summary', 'gst_significance',
                     'ligand_importances', 'ligand_ranking', 'ligand_ranking_summary',
                     'ligand_activity_performance'):
            assert (out / f"{name}.csv").exists(), name
        assert (out / 'target_prediction.png').exists()
        assert (out / 'ligand_activity.png').exists()

        performance = pd.read_csv(out / 'target_prediction.csv')
        # multi-ligand and unknown-ligand settings are excluded
        assert sorted(performance['setting']) == ['il6_1', 'tgfb_1', 'tnf_1']

    def test_run_returns_tables(self, inputs, tmp_path):
        matrix_path, settings_path = inputs
        config = EvaluationConfig(matrix_source=matrix_path, settings_source=settings_path,
                                  output_dir=tmp_path / 'out', cache_dir=tmp_path / 'cache',
                                  ligand_activity=False)
        tables = run(config)
        assert 'ligand_ranking' not in tables
        assert len(tables['target_prediction']) == 3

    def test_missing_input_returns_error(self, inputs, tmp_path):
        _, settings_path = inputs
        code = main(['--matrix', str(tmp_path / 'missing.csv'), '--settings', str(settings_path),
                     '--output', str(tmp_path / 'out')])
        assert code == 1

    def test_matrix_with_blank_cell_returns_error(self, inputs, tmp_path):
        matrix_path, settings_path = inputs
        matrix = pd.read_csv(matrix_path, index_col=0)
        matrix.loc['G4', 'IL6'] = np.nan
        matrix.to_csv(matrix_path)
        code = main(['--matrix', str(matrix_path), '--settings', str(settings_path),
                     '--output', str(tmp_path / 'out')])
        assert code == 1
        assert not (tmp_path / 'out' / 'target_prediction.csv').exists()

    def test_no_usable_settings_returns_error(self, inputs, tmp_path):
        matrix_path, _ = inputs
        settings_path = tmp_path / 'empty.json'
        settings_path.write_text('[]')
        code = main(['--matrix', str(matrix_path), '--settings', str(settings_path),
                     '--output', str(tmp_path / 'out')])
        assert code == 1
