"""
Concurrent tracking framework.

Main Components:
- TrackingContext: run-wide cancellation and deadline
- WaitGroup: countdown trackers use to report completion
- TrackingOrchestrator: bounded pool running one tracker per repository
"""

from .context import TrackingContext
from .models import TrackingRunResult
from .thread_safe import ThreadSafeCounter, WaitGroup
from .orchestrator import TrackingOrchestrator

__all__ = [
    'TrackingContext',
    'TrackingRunResult',
    'ThreadSafeCounter',
    'WaitGroup',
    'TrackingOrchestrator'
]
