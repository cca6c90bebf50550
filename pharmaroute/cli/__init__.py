# =============================================================================
# pharmaroute/cli/__init__.py -- CLI Module Overview
# =============================================================================
#
# Command-line access to the fallback engine for operators and developers
# who want to run an extraction outside of the calling application.
#
#   ROUTE (route.py)
#      Runs the full fallback ladder (primary providers -> preprocessing
#      retries -> graceful degradation) on one or more local packaging
#      photos and prints the extracted fields, the attempt log and any
#      recommendations.
#
# Architecture Notes:
#   - argparse only, no Click/Typer.
#   - The engine (pharmaroute.main) is imported inside the run function so
#     argument errors are reported before adapters and stores are built.
# =============================================================================

"""CLI tools for the pharmaroute engine.

- ``python -m pharmaroute.cli`` or ``python -m pharmaroute.cli.route`` --
  extract packaging fields from local images through the fallback ladder.
"""
