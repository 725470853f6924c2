from dataclasses import dataclass, field


@dataclass(frozen=True)
class BlobRef:
    uri: str
    size: int


@dataclass(frozen=True)
class CounterEvent:
    """One (old, new) transition expressed as counter deltas; `event_id` makes it idempotent."""

    event_id: str
    deltas: dict[str, int] = field(default_factory=dict)

    @property
    def is_empty(self) -> bool:
        return not any(self.deltas.values())
