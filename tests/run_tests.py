"""
Test runner script for the MPR cross-reference engine.

Ensures src is on PYTHONPATH and runs pytest (or unittest if pytest not installed).
Run from project root:
  python tests/run_tests.py
  python tests/run_tests.py --unittest   # force unittest instead of pytest
"""

import os
import sys
import subprocess


def main():
    project_root = os.path.dirname(os.path.dirname(os.path.abspath(__file__)))
    src_dir = os.path.join(project_root, "src")

    os.chdir(project_root)
    env = os.environ.copy()
    env["PYTHONPATH"] = src_dir + os.pathsep + env.get("PYTHONPATH", "")
    env.setdefault("QT_QPA_PLATFORM", "offscreen")

    use_unittest = "--unittest" in sys.argv
    extra_args = [a for a in sys.argv[1:] if a != "--unittest"]

    unittest_cmd = [sys.executable, "-m", "unittest", "discover", "-s", "tests", "-p", "test_*.py", "-v"]
    if use_unittest:
        return subprocess.call(unittest_cmd, env=env, cwd=project_root)
    try:
        import pytest  # noqa: F401
    except ImportError:
        print("pytest not installed; falling back to unittest. Install with: pip install pytest")
        return subprocess.call(unittest_cmd, env=env, cwd=project_root)
    return subprocess.call(
        [sys.executable, "-m", "pytest", "tests", "-v", "--tb=short"] + extra_args,
        env=env,
        cwd=project_root,
    )


if __name__ == "__main__":
    sys.exit(main())
