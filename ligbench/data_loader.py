#!/usr/bin/env python3
"""
Dataset loading for the ligand-target benchmark
===============================================
Fetches the ligand-target matrix and the expression-setting collection
from a URL or local path, caching downloads on disk.
"""

import bz2
import gzip
import json
import lzma
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union
from urllib.parse import urlparse

import pandas as pd
import requests

from ligbench.constants import (
    CACHE_DIR,
    DOWNLOAD_TIMEOUT,
    MATRIX_SUFFIXES,
    SETTINGS_SUFFIXES,
)

logger = logging.getLogger(__name__)


class DatasetLoadError(RuntimeError):
    """A dataset could not be fetched or deserialized."""


def _is_url(source: str) -> bool:
    return urlparse(str(source)).scheme in ('http', 'https')


def _base_suffix(path: Path) -> str:
    """File suffix ignoring a trailing .gz/.bz2/.xz/.zip compression suffix."""
    suffixes = [s.lower() for s in path.suffixes]
    if suffixes and suffixes[-1] in ('.gz', '.bz2', '.xz', '.zip'):
        suffixes = suffixes[:-1]
    return suffixes[-1] if suffixes else ''


# Text openers for JSON settings, keyed by the file's last suffix
JSON_OPENERS = {
    '.json': open,
    '.gz': gzip.open,
    '.bz2': bz2.open,
    '.xz': lzma.open,
}


def validate_ligand_target_matrix(matrix: pd.DataFrame) -> pd.DataFrame:
    """
    Check that a ligand-target matrix is usable for evaluation.

    Rows are target genes, columns are ligands, values are non-negative
    regulatory potential scores.

    Raises:
        ValueError: on an empty matrix, duplicated genes or ligands, or
                    scores that are non-numeric, missing or negative
    """
    if matrix.empty:
        raise ValueError("Ligand-target matrix is empty")
    if matrix.index.has_duplicates:
        dups = matrix.index[matrix.index.duplicated()].unique().tolist()
        raise ValueError(f"Duplicated target genes in matrix: {dups[:10]}")
    if matrix.columns.has_duplicates:
        dups = matrix.columns[matrix.columns.duplicated()].unique().tolist()
        raise ValueError(f"Duplicated ligands in matrix: {dups[:10]}")
    non_numeric = [c for c in matrix.columns if not pd.api.types.is_numeric_dtype(matrix[c])]
    if non_numeric:
        raise ValueError(f"Non-numeric ligand columns: {non_numeric[:10]}")
    if matrix.isna().to_numpy().any():
        genes = matrix.index[matrix.isna().any(axis=1)].tolist()
        raise ValueError(f"Ligand-target matrix contains missing scores for genes: {genes[:10]}")
    if (matrix.to_numpy(dtype=float) < 0).any():
        raise ValueError("Ligand-target matrix contains negative scores")
    return matrix


class DatasetLoader:
    """
    Load the two inputs of an evaluation run.

    Sources may be http(s) URLs or local paths. Downloads are cached in
    ``cache_dir`` under the URL's file name and reused on later runs.
    """

    def __init__(self, cache_dir: Union[str, Path] = CACHE_DIR,
                 timeout: int = DOWNLOAD_TIMEOUT,
                 session: Optional[requests.Session] = None):
        self.cache_dir = Path(cache_dir)
        self.timeout = timeout
        self.session = session or requests.Session()

    def fetch(self, source: Union[str, Path]) -> Path:
        """
        Resolve a source to a local file, downloading it if needed.

        Raises:
            DatasetLoadError: if the file is missing or the download fails
        """
        if not _is_url(str(source)):
            path = Path(source)
            if not path.exists():
                raise DatasetLoadError(f"Input file not found: {path}")
            return path

        file_name = Path(urlparse(str(source)).path).name
        if not file_name:
            raise DatasetLoadError(f"Cannot derive a file name from URL: {source}")
        cache_path = self.cache_dir / file_name
        if cache_path.exists():
            logger.info(f"Loading {file_name} from cache: {cache_path}")
            return cache_path

        logger.info(f"Downloading {source}...")
        try:
            response = self.session.get(str(source), timeout=self.timeout)
            response.raise_for_status()
        except requests.RequestException as e:
            raise DatasetLoadError(f"Failed to download {source}: {e}") from e

        self.cache_dir.mkdir(parents=True, exist_ok=True)
        tmp_path = cache_path.with_name(cache_path.name + '.part')
        tmp_path.write_bytes(response.content)
        tmp_path.replace(cache_path)
        logger.info(f"Saved {len(response.content)} bytes to {cache_path}")
        return cache_path

    def load_ligand_target_matrix(self, source: Union[str, Path]) -> pd.DataFrame:
        """
        Load a ligand-target matrix (rows = target genes, columns = ligands).

        Supported formats: csv, tsv/txt and pickle, optionally compressed.
        """
        path = self.fetch(source)
        suffix = _base_suffix(path)
        if suffix not in MATRIX_SUFFIXES:
            raise DatasetLoadError(f"Unsupported matrix format {suffix!r} for {path}")

        try:
            if suffix == '.csv':
                matrix = pd.read_csv(path, index_col=0)
            elif suffix in ('.tsv', '.txt'):
                matrix = pd.read_csv(path, sep='\t', index_col=0)
            else:
                matrix = pd.read_pickle(path)
        except Exception as e:
            raise DatasetLoadError(f"Failed to read ligand-target matrix from {path}: {e}") from e

        if not isinstance(matrix, pd.DataFrame):
            raise DatasetLoadError(
                f"Expected a DataFrame in {path}, got {type(matrix).__name__}"
            )
        matrix.index = matrix.index.astype(str)
        matrix.columns = matrix.columns.astype(str)
        try:
            validate_ligand_target_matrix(matrix)
        except ValueError as e:
            raise DatasetLoadError(f"Invalid ligand-target matrix in {path}: {e}") from e

        logger.info(f"Loaded ligand-target matrix: {matrix.shape[0]} genes x {matrix.shape[1]} ligands")
        return matrix

    def load_expression_settings(self, source: Union[str, Path]) -> List[Dict[str, Any]]:
        """
        Load raw expression-setting records.

        The file holds either a list of records or a mapping of setting
        name to record; in the latter case a missing ``name`` field is
        filled in from the key.
        """
        path = self.fetch(source)
        suffix = _base_suffix(path)
        if suffix not in SETTINGS_SUFFIXES:
            raise DatasetLoadError(f"Unsupported settings format {suffix!r} for {path}")

        opener = JSON_OPENERS.get(path.suffix.lower())
        if suffix == '.json' and opener is None:
            raise DatasetLoadError(f"Unsupported compression for JSON settings: {path}")

        try:
            if suffix == '.json':
                with opener(path, 'rt') as f:
                    data = json.load(f)
            else:
                data = pd.read_pickle(path)
        except Exception as e:
            raise DatasetLoadError(f"Failed to read expression settings from {path}: {e}") from e

        if isinstance(data, dict):
            records = []
            for name, record in data.items():
                if not isinstance(record, dict):
                    raise DatasetLoadError(
                        f"Setting {name!r} in {path} is a {type(record).__name__}, expected a mapping"
                    )
                record = dict(record)
                record.setdefault('name', name)
                records.append(record)
        elif isinstance(data, list):
            records = list(data)
        else:
            raise DatasetLoadError(
                f"Expected a list or mapping of settings in {path}, got {type(data).__name__}"
            )

        logger.info(f"Loaded {len(records)} expression settings from {path}")
        return records


def load_datasets(matrix_source: Union[str, Path],
                  settings_source: Union[str, Path],
                  cache_dir: Union[str, Path] = CACHE_DIR,
                  timeout: int = DOWNLOAD_TIMEOUT):
    """Load (ligand_target_matrix, raw_settings) in one call."""
    loader = DatasetLoader(cache_dir=cache_dir, timeout=timeout)
    matrix = loader.load_ligand_target_matrix(matrix_source)
    settings = loader.load_expression_settings(settings_source)
    return matrix, settings
