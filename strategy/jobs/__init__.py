# PATH: strategy/jobs/__init__.py
"""
Strategy jobs package.

Available entry points:
    python -m strategy.jobs.run_bot     # Monitoring loop (dry run unless --live)
    python -m strategy.jobs.simulate    # One-shot plan print, never submits

NOTE: This __init__.py intentionally does NOT import the jobs to avoid
side effects (dotenv loading, signal handlers) when importing the package.
"""

__all__: list[str] = []
