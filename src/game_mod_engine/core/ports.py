from __future__ import annotations

from datetime import datetime
from typing import Any, MutableSequence, Protocol, Sequence

from .types import ItemStack


class Clock(Protocol):
    def __call__(self) -> datetime:
        ...


class RandomPort(Protocol):
    def shuffle(self, x: MutableSequence[Any]) -> None:
        ...

    def randrange(self, stop: int) -> int:
        ...


class MessengerPort(Protocol):
    def broadcast(self, text: str) -> None:
        ...

    def send_private(self, player_id: int, text: str) -> None:
        ...


class RewardGrantorPort(Protocol):
    def grant(self, player_id: int, reward: Any) -> bool:
        ...


class NameResolverPort(Protocol):
    async def resolve(self, player_id: int) -> str | None:
        ...


class ConsoleCommandPort(Protocol):
    def execute(self, command: str) -> None:
        ...


class BackpackUIPort(Protocol):
    def show(self, player_id: int, title: str, items: Sequence[ItemStack]) -> None:
        ...
