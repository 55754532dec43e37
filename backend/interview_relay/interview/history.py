from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Literal

logger = logging.getLogger("history")

Role = Literal["system", "user", "assistant"]


@dataclass(frozen=True)
class Turn:
    role: Role
    text: str

    def as_message(self) -> dict:
        return {"role": self.role, "content": self.text}


class HistoryBuffer:
    """Ordered conversation log. Entry 0 is the system instruction once set."""

    def __init__(self, max_entries: int = 20):
        self.max_entries = max(2, int(max_entries))
        self._turns: list[Turn] = []

    def __len__(self) -> int:
        return len(self._turns)

    @property
    def turns(self) -> list[Turn]:
        return list(self._turns)

    @property
    def has_system(self) -> bool:
        return bool(self._turns) and self._turns[0].role == "system"

    def set_system(self, text: str) -> bool:
        if self.has_system:
            logger.info("System turn already set, ignoring")
            return False
        self._turns.insert(0, Turn(role="system", text=text))
        return True

    def add_user(self, text: str) -> None:
        self._turns.append(Turn(role="user", text=text))

    def add_assistant(self, text: str) -> None:
        self._turns.append(Turn(role="assistant", text=text))

    def prune(self) -> int:
        if len(self._turns) <= self.max_entries:
            return 0

        before = len(self._turns)
        if self.has_system:
            recent = self._turns[-(self.max_entries - 1):]
            self._turns = [self._turns[0], *recent]
        else:
            self._turns = self._turns[-self.max_entries:]
        dropped = before - len(self._turns)
        logger.debug("History pruned | dropped=%s size=%s", dropped, len(self._turns))
        return dropped

    def as_messages(self) -> list[dict]:
        return [turn.as_message() for turn in self._turns]

    def count(self, role: Role) -> int:
        return sum(1 for turn in self._turns if turn.role == role)
