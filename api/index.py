"""Serverless entry point; the platform imports ``app`` from here."""

import sys
import traceback

try:
    from app import create_app
    app = create_app()
except Exception:
    traceback.print_exc(file=sys.stderr)
    raise
