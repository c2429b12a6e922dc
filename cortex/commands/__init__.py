"""Command implementations behind the cortex CLI.

Each ``run_*`` function prints its own output and returns a process exit
code; ``cortex.cli`` only parses arguments and exits with that code.
"""
