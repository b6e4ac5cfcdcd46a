"""HTTP API for the classroom attendance monitor."""
from .api_server import create_app
__all__ = ['create_app']
