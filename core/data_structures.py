"""
Core Data Structures for Ligand-Target Evaluation
=================================================
Dataclasses representing normalized expression settings.
"""

from dataclasses import dataclass, field
from typing import Dict, Optional, Tuple

import numpy as np
import pandas as pd


@dataclass(frozen=True, eq=False)
class ExpressionSetting:
    """
    One ligand-treatment experiment, normalized for evaluation.

    Attributes:
        name: Setting identifier
        ligands: Ligand(s) applied in the experiment
        genes: Measured genes
        lfc: Per-gene log fold change, aligned with ``genes``
        response: Per-gene responder flag, aligned with ``genes``
        pval: Optional per-gene p-values
        qval: Optional per-gene adjusted p-values
    """
    name: str
    ligands: Tuple[str, ...]
    genes: Tuple[str, ...]
    lfc: np.ndarray
    response: np.ndarray
    pval: Optional[np.ndarray] = None
    qval: Optional[np.ndarray] = None
    metadata: Dict[str, object] = field(default_factory=dict, compare=False)

    def __post_init__(self):
        n = len(self.genes)
        for attr in ('lfc', 'response', 'pval', 'qval'):
            values = getattr(self, attr)
            if values is not None and len(values) != n:
                raise ValueError(
                    f"Setting {self.name!r}: {attr} has {len(values)} values for {n} genes"
                )

    def __len__(self):
        return len(self.genes)

    @property
    def is_single_ligand(self) -> bool:
        return len(self.ligands) == 1

    @property
    def ligand(self) -> str:
        """The applied ligand; only defined for single-ligand settings."""
        if not self.is_single_ligand:
            raise ValueError(
                f"Setting {self.name!r} has {len(self.ligands)} ligands, expected exactly one"
            )
        return self.ligands[0]

    @property
    def n_responders(self) -> int:
        return int(np.sum(self.response))

    @property
    def responders(self) -> Tuple[str, ...]:
        return tuple(g for g, r in zip(self.genes, self.response) if r)

    def response_series(self) -> pd.Series:
        """Boolean response indexed by gene."""
        return pd.Series(np.asarray(self.response, dtype=bool), index=list(self.genes), name=self.name)

    def to_frame(self) -> pd.DataFrame:
        """Gene-level table with lfc, p-values and response."""
        df = pd.DataFrame({'gene': list(self.genes), 'lfc': self.lfc})
        if self.pval is not None:
            df['pval'] = self.pval
        if self.qval is not None:
            df['qval'] = self.qval
        df['response'] = np.asarray(self.response, dtype=bool)
        return df
