# MIT License
# Copyright (c) 2025 Hashborn

"""
Worker-side helpers for pool miners.

- worker.py: template tracking and share self-check before submission
"""

from .worker import PoolWorker

__all__ = ['PoolWorker']
