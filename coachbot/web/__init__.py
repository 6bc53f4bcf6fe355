"""HTTP surface."""

from coachbot.web.server import create_app

__all__ = ["create_app"]
