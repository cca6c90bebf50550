# =============================================================================
# pharmaroute/cli/__main__.py -- Package Entry Point
# =============================================================================
#
# Enables running the CLI package itself as a module:
#     python -m pharmaroute.cli /path/to/pack.jpg --tier standard
#
# Delegates to the route command, the only CLI tool.
# =============================================================================

"""Allow ``python -m pharmaroute.cli`` execution."""

from pharmaroute.cli.route import main

main()
