import sys

from cli._runner import run


def main() -> None:
    """Run tests."""
    sys.exit(run([sys.executable, "-m", "pytest"]))


def test_v() -> None:
    """Run tests with verbose output."""
    sys.exit(run([sys.executable, "-m", "pytest", "-v"]))


def test_unit() -> None:
    """Run unit tests only."""
    sys.exit(run([sys.executable, "-m", "pytest", "tests/unit"]))
