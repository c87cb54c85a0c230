"""
Spaced-repetition study engine.

Packages:
    fsrs              memory model, scheduler, storage adapters
    session_builders  daily queue construction
    session           study session state machine
    analytics         retention by topic, deck and daily stats
"""

__version__ = "0.1.0"
