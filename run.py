#!/usr/bin/env python3
"""
Radioactive Decay Fit - Application Runner.

Fits A(t) = A0 · exp(-λ · t) to the embedded measurements and prints the
best-fit parameters, their errors and the minimum chi-square.
"""

import argparse
import sys
from pathlib import Path
from typing import Optional, Sequence

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent))


def build_config(overrides: Optional[dict] = None):
    """
    Fit settings with command-line overrides applied.

    Overrides go through the same validation as environment settings.

    Raises:
        pydantic.ValidationError: If an override is out of range
    """
    from config.settings import FitSettings, get_settings

    config = get_settings().fit
    if overrides:
        config = FitSettings.model_validate({**config.model_dump(), **overrides})
    return config


def run_fit(config) -> int:
    """
    Run the fit and print the report.

    Returns:
        Process exit code: 0 on completion (converged or not), 1 if the
        minimizer cannot be created
    """
    from decay_fit.analysis.fitting import DecayFitter, format_fit_report

    fitter = DecayFitter(config)
    try:
        minimizer = fitter.create_minimizer()
    except ValueError as e:
        print(
            f"Error: cannot create {config.minimizer}/{config.algorithm} minimizer: {e}",
            file=sys.stderr
        )
        return 1

    result = fitter.fit(minimizer=minimizer)
    print(format_fit_report(result))
    return 0


def main(argv: Optional[Sequence[str]] = None) -> int:
    parser = argparse.ArgumentParser(
        description="Radioactive decay parameter estimation",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  python3 run.py                                  # Fit with configured defaults
  python3 run.py --strategy 0                     # Errors from the BFGS Hessian estimate
  python3 run.py --algorithm L-BFGS-B             # Use a different algorithm

Settings can also be given as FIT_* environment variables or in .env.
        """
    )
    parser.add_argument("--minimizer", help="Registered minimizer name")
    parser.add_argument("--algorithm", help="Minimization algorithm")
    parser.add_argument("--strategy", type=int, choices=[0, 1, 2], help="Error estimation strategy")
    parser.add_argument("--tolerance", type=float, help="Convergence tolerance")

    args = parser.parse_args(argv)

    from pydantic import ValidationError

    overrides = {
        key: value
        for key, value in vars(args).items()
        if value is not None
    }
    try:
        config = build_config(overrides)
    except ValidationError as e:
        parser.error(str(e))

    return run_fit(config)


if __name__ == "__main__":
    sys.exit(main())
