import sys

from cli._runner import run

LINT_PATHS = ["risk_evaluation", "cli", "tests"]


def main() -> None:
    """Run linting."""
    sys.exit(run([sys.executable, "-m", "ruff", "check", *LINT_PATHS]))


def format() -> None:
    """Run code formatting."""
    sys.exit(run([sys.executable, "-m", "ruff", "format", *LINT_PATHS]))
