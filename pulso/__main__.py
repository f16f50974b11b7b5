"""Allow ``python -m pulso``."""

from pulso.cli import app

app()
