"""Board rules for a single 3x3 tic-tac-toe match."""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import List, Optional, Tuple

Mark = str  # "X" or "O"

X: Mark = "X"
O: Mark = "O"
EMPTY = ""
SIZE = 3

# Flat cell indexes, row-major.
WINNING_LINES: Tuple[Tuple[int, int, int], ...] = (
    (0, 1, 2),
    (3, 4, 5),
    (6, 7, 8),
    (0, 3, 6),
    (1, 4, 7),
    (2, 5, 8),
    (0, 4, 8),
    (2, 4, 6),
)


class PlaceResult(Enum):
    SUCCESS = "success"
    OCCUPIED = "already-occupied"
    OUT_OF_BOUNDS = "out-of-bounds"


@dataclass
class Board:
    cells: List[str] = field(default_factory=lambda: [EMPTY] * (SIZE * SIZE))

    def place_mark(self, row: int, col: int, mark: Mark) -> PlaceResult:
        """Write ``mark`` at (row, col) if that cell exists and is empty."""
        if not (0 <= row < SIZE and 0 <= col < SIZE):
            return PlaceResult.OUT_OF_BOUNDS
        idx = row * SIZE + col
        if self.cells[idx] != EMPTY:
            return PlaceResult.OCCUPIED
        self.cells[idx] = mark
        return PlaceResult.SUCCESS

    def evaluate_winner(self) -> Optional[Mark]:
        for a, b, c in WINNING_LINES:
            v = self.cells[a]
            if v != EMPTY and v == self.cells[b] == self.cells[c]:
                return v
        return None

    def is_full(self) -> bool:
        return all(c != EMPTY for c in self.cells)

    def reset(self) -> None:
        self.cells = [EMPTY] * (SIZE * SIZE)

    def cell(self, row: int, col: int) -> str:
        return self.cells[row * SIZE + col]

    def rows(self) -> List[List[str]]:
        """Copy of the grid as a list of rows, as sent to clients."""
        return [self.cells[r * SIZE : (r + 1) * SIZE] for r in range(SIZE)]
