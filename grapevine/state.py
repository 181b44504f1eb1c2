from __future__ import annotations
from dataclasses import dataclass, field
from typing import Iterable, Iterator, List


@dataclass
class PlayerRegistry:
    """Online players reported in heartbeats. Ordered, no duplicates."""
    players: List[str] = field(default_factory=list)

    def __post_init__(self) -> None:
        initial, self.players = self.players, []
        for name in initial:
            self.add(name)

    def add(self, name: str) -> bool:
        if name in self.players:
            return False
        self.players.append(name)
        return True

    def remove(self, name: str) -> bool:
        try:
            self.players.remove(name)
        except ValueError:
            return False
        return True

    def extend(self, names: Iterable[str]) -> int:
        return sum(1 for name in names if self.add(name))

    def snapshot(self) -> List[str]:
        return list(self.players)

    def __contains__(self, name: object) -> bool:
        return name in self.players

    def __len__(self) -> int:
        return len(self.players)

    def __iter__(self) -> Iterator[str]:
        return iter(self.snapshot())
