"""
Platform import pipeline
"""
from .sync import SyncService

__all__ = ["SyncService"]
