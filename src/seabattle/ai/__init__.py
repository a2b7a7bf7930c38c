"""AI package exports."""

from .opponent import choose_move, target_candidates

__all__ = ["choose_move", "target_candidates"]
