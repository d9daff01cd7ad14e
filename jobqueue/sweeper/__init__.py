"""
Sweeper module.
Contains the sweeper that returns orphaned claims to the queue.
"""

from jobqueue.sweeper.main import Sweeper, run

__all__ = ["Sweeper", "run"]
