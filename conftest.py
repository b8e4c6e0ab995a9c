"""Root conftest.py: puts the project root on sys.path so tests import core, ligbench and run_evaluation."""
import sys
from pathlib import Path

import matplotlib
matplotlib.use('Agg')

sys.path.insert(0, str(Path(__file__).parent))
