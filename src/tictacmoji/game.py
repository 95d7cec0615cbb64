"""Board state for a single tic-tac-toe match, as tracked by the server."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import List, Optional

from .errors import IllegalMove

Slot = int  # 0 for the host ("X"), 1 for the guest ("O")

BOARD_SIZE = 9


@dataclass
class Board:
    # None for empty, otherwise the slot that claimed the cell
    cells: List[Optional[Slot]] = field(default_factory=lambda: [None] * BOARD_SIZE)

    def is_empty(self) -> bool:
        return all(c is None for c in self.cells)

    def place(self, slot: Slot, idx: int) -> None:
        """Claim ``idx`` for ``slot``; occupied or out-of-range cells are refused."""
        if not isinstance(idx, int) or isinstance(idx, bool):
            raise IllegalMove(f"Cell index must be an integer, got {idx!r}")
        if not 0 <= idx < BOARD_SIZE:
            raise IllegalMove(f"Cell index {idx} is off the board")
        if self.cells[idx] is not None:
            raise IllegalMove(f"Cell {idx} already occupied")
        self.cells[idx] = slot

    def reset(self) -> None:
        self.cells = [None] * BOARD_SIZE
