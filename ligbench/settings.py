#!/usr/bin/env python3
"""
Expression-setting normalization
================================
Converts raw ligand-treatment records into ExpressionSetting objects:
- responder genes are called from |logFC| and (adjusted) p-value cutoffs
- multi-ligand experiments are excluded
- malformed records are excluded as a whole, never partially converted
"""

import logging
from typing import Any, Dict, Iterable, List, Optional, Sequence

import numpy as np
import pandas as pd

from core.data_structures import ExpressionSetting
from ligbench.constants import LFC_CUTOFF, QVAL_CUTOFF

logger = logging.getLogger(__name__)


def _as_ligand_tuple(value: Any) -> tuple:
    if value is None:
        return ()
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def _as_diffexp_frame(diffexp: Any) -> pd.DataFrame:
    if isinstance(diffexp, pd.DataFrame):
        return diffexp.copy()
    if isinstance(diffexp, dict):
        return pd.DataFrame(diffexp)
    if isinstance(diffexp, (list, tuple)):
        return pd.DataFrame(list(diffexp))
    raise ValueError(f"diffexp must be a table, got {type(diffexp).__name__}")


def convert_expression_setting(raw: Dict[str, Any],
                               lfc_cutoff: float = LFC_CUTOFF,
                               qval_cutoff: float = QVAL_CUTOFF) -> ExpressionSetting:
    """
    Convert one raw record into an ExpressionSetting.

    A gene responds when ``abs(lfc) >= lfc_cutoff`` and its q-value (or
    p-value when no q-values are given) is ``<= qval_cutoff``. Without
    any p-values the lfc cutoff alone decides.

    Args:
        raw: Record with ``name``, ``from`` (ligand id or list of ids) and
             ``diffexp`` (table with ``gene``, ``lfc`` and optional
             ``pval``/``qval`` columns)

    Raises:
        ValueError: if the record is malformed
    """
    if not isinstance(raw, dict):
        raise ValueError(f"Setting record must be a mapping, got {type(raw).__name__}")
    name = raw.get('name')
    if not name:
        raise ValueError("Setting record has no name")
    ligands = _as_ligand_tuple(raw.get('from'))
    if not ligands:
        raise ValueError(f"Setting {name!r} has no ligand")
    if 'diffexp' not in raw:
        raise ValueError(f"Setting {name!r} has no diffexp table")

    diffexp = _as_diffexp_frame(raw['diffexp'])
    missing = {'gene', 'lfc'} - set(diffexp.columns)
    if missing:
        raise ValueError(f"Setting {name!r} diffexp lacks columns {sorted(missing)}")
    if diffexp.empty:
        raise ValueError(f"Setting {name!r} has an empty diffexp table")

    diffexp['gene'] = diffexp['gene'].astype(str)
    if diffexp['gene'].duplicated().any():
        n_dup = int(diffexp['gene'].duplicated().sum())
        raise ValueError(f"Setting {name!r} has {n_dup} duplicated genes")

    lfc = pd.to_numeric(diffexp['lfc'], errors='coerce').to_numpy(dtype=float)
    if np.isnan(lfc).any():
        raise ValueError(f"Setting {name!r} has missing or non-numeric lfc values")

    pval = pd.to_numeric(diffexp['pval'], errors='coerce').to_numpy(dtype=float) \
        if 'pval' in diffexp.columns else None
    qval = pd.to_numeric(diffexp['qval'], errors='coerce').to_numpy(dtype=float) \
        if 'qval' in diffexp.columns else None

    response = np.abs(lfc) >= lfc_cutoff
    significance = qval if qval is not None else pval
    if significance is not None:
        # NaN p-values never pass the cutoff
        response &= np.nan_to_num(significance, nan=np.inf) <= qval_cutoff

    metadata = {k: v for k, v in raw.items() if k not in ('name', 'from', 'diffexp')}
    return ExpressionSetting(
        name=str(name),
        ligands=ligands,
        genes=tuple(diffexp['gene']),
        lfc=lfc,
        response=response,
        pval=pval,
        qval=qval,
        metadata=metadata,
    )


def normalize_settings(raws: Iterable[Dict[str, Any]],
                       ligands: Optional[Iterable[str]] = None,
                       lfc_cutoff: float = LFC_CUTOFF,
                       qval_cutoff: float = QVAL_CUTOFF) -> List[ExpressionSetting]:
    """
    Convert raw records and keep only usable single-ligand settings.

    Args:
        raws: Raw setting records
        ligands: If given, drop settings whose ligand is not in this set
                 (typically the ligand-target matrix columns)
        lfc_cutoff: Minimum |logFC| for a responder
        qval_cutoff: Maximum adjusted p-value for a responder

    Returns:
        Settings that each reference exactly one ligand, in input order
    """
    allowed = set(ligands) if ligands is not None else None
    settings = []
    seen = set()
    n_malformed = n_multi = n_unknown = n_duplicate = 0

    for i, raw in enumerate(raws):
        try:
            setting = convert_expression_setting(raw, lfc_cutoff, qval_cutoff)
        except ValueError as e:
            n_malformed += 1
            logger.warning(f"Skipping malformed setting #{i}: {e}")
            continue

        if not setting.is_single_ligand:
            n_multi += 1
            logger.debug(f"Skipping multi-ligand setting {setting.name} ({', '.join(setting.ligands)})")
            continue
        if allowed is not None and setting.ligand not in allowed:
            n_unknown += 1
            logger.debug(f"Skipping setting {setting.name}: ligand {setting.ligand} not in matrix")
            continue
        if setting.name in seen:
            n_duplicate += 1
            logger.warning(f"Skipping duplicate setting name {setting.name}")
            continue
        seen.add(setting.name)
        settings.append(setting)

    logger.info(
        f"Normalized {len(settings)} settings "
        f"(excluded: {n_multi} multi-ligand, {n_unknown} unknown ligand, "
        f"{n_duplicate} duplicate name, {n_malformed} malformed)"
    )
    return settings


def extract_ligands(settings: Sequence[ExpressionSetting]) -> List[str]:
    """Sorted unique ligands applied across settings."""
    return sorted({lig for s in settings for lig in s.ligands})


def settings_summary(settings: Sequence[ExpressionSetting]) -> pd.DataFrame:
    """One row per setting: name, ligand(s), number of genes and responders."""
    rows = []
    for s in settings:
        rows.append({
            'setting': s.name,
            'ligand': ','.join(s.ligands),
            'n_genes': len(s),
            'n_responders': s.n_responders,
        })
    return pd.DataFrame(rows, columns=['setting', 'ligand', 'n_genes', 'n_responders'])
