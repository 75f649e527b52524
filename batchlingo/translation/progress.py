"""
Translation Progress Data Class

Contains the ProgressState dataclass reported to observers after every batch.
current/total count canonical-string x language units.
"""

from dataclasses import dataclass, asdict
from typing import Any, Dict


@dataclass
class ProgressState:
    """Progress information for an ongoing translation run."""
    current: int = 0
    total: int = 0
    current_language: str = ""
    phase: str = "pending"           # pending|translating|paused|language_completed|completed|cancelled|failed
    paused: bool = False
    cancelled: bool = False
    # Language progress fields
    current_language_name: str = ""
    total_languages: int = 0
    completed_languages: int = 0
    # Batch progress fields
    current_batch: int = 0           # Current batch number (1-indexed)
    total_batches: int = 0           # Total batches for current language
    # Counters for the current run
    success_count: int = 0
    failure_count: int = 0
    saved_calls: int = 0             # glossary and memory hits

    @property
    def percentage(self) -> float:
        return round(self.current / self.total * 100, 1) if self.total else 0.0

    def to_dict(self) -> Dict[str, Any]:
        payload = asdict(self)
        payload["percentage"] = self.percentage
        return payload
