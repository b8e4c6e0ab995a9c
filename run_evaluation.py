#!/usr/bin/env python3
"""
Run the ligand-target benchmark.

Loads a ligand-target matrix and a collection of ligand-treatment
expression settings, evaluates target-gene prediction per setting and
ligand activity prediction across candidate ligands, and writes tables
and plots to the output directory.

Usage:
  python run_evaluation.py --matrix ligand_target_matrix.csv \\
      --settings expression_settings.json --output results

Flags:
  --skip-ligand-activity  Only evaluate target-gene prediction.
  --normalization median  Median-center importances per setting before
                          pooled ligand activity evaluation.
"""
import sys
import time
import logging
import argparse
from pathlib import Path

from ligbench.constants import (
    CACHE_DIR,
    DOWNLOAD_TIMEOUT,
    LFC_CUTOFF,
    QVAL_CUTOFF,
    TOP_FRACTION,
    EvaluationConfig,
)

logger = logging.getLogger('run_evaluation')


def parse_args(argv=None) -> EvaluationConfig:
    parser = argparse.ArgumentParser(description='Evaluate ligand-target predictions against expression settings')
    parser.add_argument('--matrix', required=True,
                        help='Ligand-target matrix (URL or path; csv/tsv/pkl)')
    parser.add_argument('--settings', required=True,
                        help='Expression settings (URL or path; json/pkl)')
    parser.add_argument('--output', type=str, default='results')
    parser.add_argument('--cache-dir', type=str, default=str(CACHE_DIR),
                        help='Directory for downloaded inputs')
    parser.add_argument('--timeout', type=int, default=DOWNLOAD_TIMEOUT,
                        help='Download timeout in seconds')
    parser.add_argument('--lfc-cutoff', type=float, default=LFC_CUTOFF,
                        help='Minimum |logFC| for a responding gene')
    parser.add_argument('--qval-cutoff', type=float, default=QVAL_CUTOFF,
                        help='Maximum adjusted p-value for a responding gene')
    parser.add_argument('--top-fraction', type=float, default=TOP_FRACTION,
                        help='Fraction of the ranking used for AUC-iRegulon')
    parser.add_argument('--skip-ligand-activity', action='store_true',
                        help='Skip the ligand activity evaluation')
    parser.add_argument('--normalization', choices=['median'], default=None,
                        help='Per-setting importance normalization for ligand activity')
    parser.add_argument('--verbose', action='store_true', help='Debug logging')
    args = parser.parse_args(argv)

    logging.basicConfig(level=logging.DEBUG if args.verbose else logging.INFO,
                        format='%(levelname)s:%(name)s:%(message)s')

    return EvaluationConfig(
        matrix_source=args.matrix,
        settings_source=args.settings,
        output_dir=Path(args.output),
        cache_dir=Path(args.cache_dir),
        timeout=args.timeout,
        lfc_cutoff=args.lfc_cutoff,
        qval_cutoff=args.qval_cutoff,
        top_fraction=args.top_fraction,
        ligand_activity=not args.skip_ligand_activity,
        normalization=args.normalization,
    )


def run(config: EvaluationConfig) -> dict:
    """Execute one evaluation run and return the result tables by name."""
    from ligbench.data_loader import load_datasets
    from ligbench.settings import normalize_settings, settings_summary
    from ligbench.target_prediction import evaluate_target_predictions
    from ligbench.ligand_activity import (
        get_single_ligand_importances,
        rank_true_ligands,
        evaluate_importances_ligand_prediction,
        summarize_ligand_ranks,
    )
    from ligbench.reporting import (
        plot_metric_distributions,
        plot_ligand_activity_performance,
        summarize_performance,
        enrichment_significance,
    )

    matrix, raw_settings = load_datasets(config.matrix_source, config.settings_source,
                                         cache_dir=config.cache_dir, timeout=config.timeout)
    settings = normalize_settings(raw_settings, ligands=matrix.columns,
                                  lfc_cutoff=config.lfc_cutoff, qval_cutoff=config.qval_cutoff)
    if not settings:
        raise ValueError('No single-ligand settings with a ligand in the matrix')

    out = config.output_dir
    out.mkdir(parents=True, exist_ok=True)
    tables = {'settings': settings_summary(settings)}

    performance = evaluate_target_predictions(settings, matrix, top_fraction=config.top_fraction)
    tables['target_prediction'] = performance
    tables['target_prediction_summary'] = summarize_performance(performance)
    tables['gst_significance'] = enrichment_significance(performance)
    plot_metric_distributions(performance, metrics=config.plot_metrics,
                              output_path=out / 'target_prediction.png',
                              title='Target gene prediction')

    if config.ligand_activity:
        importances = get_single_ligand_importances(settings, matrix, top_fraction=config.top_fraction)
        ranking = rank_true_ligands(importances)
        activity = evaluate_importances_ligand_prediction(importances, normalization=config.normalization)
        tables['ligand_importances'] = importances
        tables['ligand_ranking'] = ranking
        tables['ligand_ranking_summary'] = summarize_ligand_ranks(ranking)
        tables['ligand_activity_performance'] = activity
        plot_ligand_activity_performance(activity, output_path=out / 'ligand_activity.png',
                                         title='Ligand activity prediction')

    for name, df in tables.items():
        path = out / f"{name}.csv"
        df.to_csv(path, index=False)
        logger.info(f"Saved {len(df)} rows to {path}")
    return tables


def main(argv=None):
    config = parse_args(argv)
    from ligbench.data_loader import DatasetLoadError

    t0 = time.time()
    try:
        tables = run(config)
    except DatasetLoadError as e:
        logger.error(f"Could not load inputs: {e}")
        return 1
    except ValueError as e:
        logger.error(str(e))
        return 1

    summary = tables['target_prediction_summary'].set_index('metric')
    print(f"\n{'='*70}")
    print(f"Settings evaluated: {len(tables['target_prediction'])}")
    for metric, row in summary.iterrows():
        print(f"  {metric:<26s} mean={row['mean']:.3f}  median={row['median']:.3f}  (baseline {row['baseline']:.2f})")
    if 'ligand_ranking_summary' in tables:
        ranks = tables['ligand_ranking_summary'].set_index('importance_measure')
        print("Ligand activity (mean rank of applied ligand):")
        for measure, row in ranks.iterrows():
            print(f"  {measure:<26s} {row['mean_rank']:.2f}  top-1 {row['top1_fraction']:.1%}")
    print(f"Results written to {config.output_dir}")
    print(f"{'='*70}")
    print(f"\nTotal time: {time.time()-t0:.1f}s")
    return 0


if __name__ == '__main__':
    sys.exit(main())
