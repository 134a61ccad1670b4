"""Order desk backend: auth, designs, parties and transport."""

from .api import app

__all__ = ["app"]
