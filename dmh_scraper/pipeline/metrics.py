from collections import Counter
from dataclasses import dataclass, field


@dataclass
class RunMetrics:
    """Track what one scrape run found and how availability was settled."""
    pages: int = 0
    pages_failed: int = 0
    rendered_pages: int = 0
    cards: int = 0
    events: int = 0
    invalid: int = 0
    refined_starts: int = 0
    sources: Counter = field(default_factory=Counter)
    errors: int = 0
    error_messages: list = field(default_factory=list)
    duration_ms: float = 0.0

    def record_error(self, message):
        self.errors += 1
        self.error_messages.append(message)

    def as_dict(self):
        return {
            "pages": self.pages,
            "pages_failed": self.pages_failed,
            "rendered_pages": self.rendered_pages,
            "cards": self.cards,
            "events": self.events,
            "invalid": self.invalid,
            "refined_starts": self.refined_starts,
            "sources": dict(self.sources),
            "errors": self.errors,
            "error_messages": self.error_messages,
            "duration_ms": round(self.duration_ms),
        }
