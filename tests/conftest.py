"""
Pytest and unittest configuration for the MPR cross-reference tests.

Adds project src/ to sys.path so tests can import from core, utils and tools,
and selects the offscreen Qt platform so Qt-based tests run headless.
Run tests from project root with:
  - pytest
  - python -m unittest discover -s tests -p "test_*.py"
  - python tests/run_tests.py
"""

import sys
import os

import pytest

# Must be set before the first QApplication is created
os.environ.setdefault("QT_QPA_PLATFORM", "offscreen")

# Add src to path so that "from core.xxx" and "from utils.xxx" work
_project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
_src_dir = os.path.join(_project_root, "src")
if _src_dir not in sys.path:
    sys.path.insert(0, _src_dir)


def pytest_configure(config):
    """Register the qt marker for tests that need a QApplication."""
    config.addinivalue_line("markers", "qt: mark test as requiring QApplication (PySide6)")


@pytest.fixture(scope="session")
def qapp():
    """Provide QApplication for tests that need Qt. One per test session."""
    try:
        from PySide6.QtWidgets import QApplication
    except ImportError:
        pytest.skip("PySide6 not installed")
    app = QApplication.instance()
    if app is None:
        app = QApplication(sys.argv)
    return app
