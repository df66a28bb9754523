"""Allow ``python -m mycontext``."""

from mycontext.cli.main import cli_entrypoint

cli_entrypoint()
