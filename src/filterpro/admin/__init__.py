"""Admin HTTP API for the rule console."""

from filterpro.admin.app import create_app

__all__ = ["create_app"]
