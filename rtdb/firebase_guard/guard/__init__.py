"""
Guard module - snapshot -> write -> record orchestration.

Invariants:
    - Ordering within one run is causal, not transactional: concurrent runs
      on overlapping paths may interleave
    - No retries; every action is attempted exactly once
"""

from .write_guard import BackupOutcome, GuardResult, WriteAction, WriteGuard

__all__ = ["WriteGuard", "GuardResult", "BackupOutcome", "WriteAction"]
