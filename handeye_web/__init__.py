"""JSON control API for the hand-eye calibration toolkit."""

from .app import create_app

__all__ = ['create_app']
