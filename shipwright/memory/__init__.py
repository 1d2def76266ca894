from .store import GuardedMemory, InMemoryMemory, outcome_score, summarize_trajectory

__all__ = [
    "GuardedMemory",
    "InMemoryMemory",
    "outcome_score",
    "summarize_trajectory",
]
