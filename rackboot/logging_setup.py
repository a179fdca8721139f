"""CLI logging setup: simple %(message)s format plus inline progress dots."""

import logging
import sys

from rackboot.redact import SecretRedactingFilter


def setup_cli_logging(verbose=False):
    """Configure root logger with plain message format for CLI commands.

    Produces output identical to print(). ``verbose`` lowers the level to
    DEBUG so sshd banners and DNS fallbacks become visible.
    """
    root = logging.getLogger()
    root.setLevel(logging.DEBUG if verbose else logging.INFO)
    root.handlers.clear()
    handler = logging.StreamHandler(sys.stdout)
    handler.setFormatter(logging.Formatter("%(message)s"))
    handler.addFilter(SecretRedactingFilter())
    root.addHandler(handler)


def progress_dot():
    """Write a single progress dot to stdout, without a newline."""
    sys.stdout.write(".")
    sys.stdout.flush()
