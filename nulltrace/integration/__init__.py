"""Integration package.

IMPORTANT:
Run the CLI via module execution from the repository root, e.g.:
  python3 -m nulltrace.cli auth-token

or through the installed `nulltrace` console script.
"""
