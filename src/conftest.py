"""
Pytest Configuration
====================

Puts src/ on sys.path so `import vdc` works from a plain checkout,
whether pytest is started from the repository root or from src/.
"""

import sys
from pathlib import Path

SRC_ROOT = Path(__file__).parent


def _add_src_root():
    if str(SRC_ROOT) not in sys.path:
        sys.path.insert(0, str(SRC_ROOT))


def pytest_configure(config):
    _add_src_root()


_add_src_root()
