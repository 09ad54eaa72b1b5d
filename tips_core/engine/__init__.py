"""
Timer engine.

The reconciliation engine, its per-session timer context and the
foreground ticker.
"""

from tips_core.engine.context import TimerContext
from tips_core.engine.reconciler import TimerPhase, TimerReconciliationEngine
from tips_core.engine.ticker import ForegroundTicker

__all__ = [
    "TimerReconciliationEngine",
    "TimerPhase",
    "TimerContext",
    "ForegroundTicker",
]
