"""
Periodic (toroidal) continuous space with a uniform-grid neighbour index.

Positions are keyed by agent id. Every coordinate is wrapped into
[0, width) x [0, height) after each add or move.
"""

from __future__ import annotations

import math
from typing import Dict, List, Optional, Set, Tuple

Position = Tuple[float, float]
Cell = Tuple[int, int]


def _wrap(value: float, extent: float) -> float:
    wrapped = value % extent
    # -1e-17 % 70.0 == 70.0
    if wrapped >= extent:
        wrapped = 0.0
    return wrapped


class PeriodicSpace:
    def __init__(self, width: float, height: float, cell_size: float = 2.0):
        if width <= 0 or height <= 0:
            raise ValueError("width and height must be positive")
        if cell_size <= 0:
            raise ValueError("cell_size must be positive")
        self.width = float(width)
        self.height = float(height)
        self.cols = max(1, int(self.width // cell_size))
        self.rows = max(1, int(self.height // cell_size))
        self.cell_width = self.width / self.cols
        self.cell_height = self.height / self.rows
        self._positions: Dict[int, Position] = {}
        self._cell_of: Dict[int, Cell] = {}
        self._cells: Dict[Cell, Set[int]] = {}

    def __len__(self) -> int:
        return len(self._positions)

    def __contains__(self, agent_id: int) -> bool:
        return agent_id in self._positions

    def wrap(self, pos: Position) -> Position:
        return (_wrap(pos[0], self.width), _wrap(pos[1], self.height))

    def distance(self, a: Position, b: Position) -> float:
        dx = abs(a[0] - b[0])
        dy = abs(a[1] - b[1])
        dx = min(dx, self.width - dx)
        dy = min(dy, self.height - dy)
        return math.hypot(dx, dy)

    def _cell_for(self, pos: Position) -> Cell:
        col = min(int(pos[0] / self.cell_width), self.cols - 1)
        row = min(int(pos[1] / self.cell_height), self.rows - 1)
        return col, row

    def _place(self, agent_id: int, pos: Position) -> None:
        cell = self._cell_for(pos)
        old_cell = self._cell_of.get(agent_id)
        if old_cell != cell:
            if old_cell is not None:
                self._discard_from_cell(agent_id, old_cell)
            self._cells.setdefault(cell, set()).add(agent_id)
            self._cell_of[agent_id] = cell
        self._positions[agent_id] = pos

    def _discard_from_cell(self, agent_id: int, cell: Cell) -> None:
        members = self._cells.get(cell)
        if members is None:
            return
        members.discard(agent_id)
        if not members:
            del self._cells[cell]

    def add(self, agent_id: int, pos: Position) -> Position:
        wrapped = self.wrap(pos)
        self._place(agent_id, wrapped)
        return wrapped

    def remove(self, agent_id: int) -> None:
        if agent_id not in self._positions:
            return
        del self._positions[agent_id]
        self._discard_from_cell(agent_id, self._cell_of.pop(agent_id))

    def position(self, agent_id: int) -> Optional[Position]:
        return self._positions.get(agent_id)

    def move(self, agent_id: int, dx: float, dy: float) -> Position:
        x, y = self._positions[agent_id]
        new_pos = self.wrap((x + dx, y + dy))
        self._place(agent_id, new_pos)
        return new_pos

    def _axis_cells(self, low: float, high: float, size: float, count: int) -> List[int]:
        first = math.floor(low / size)
        last = math.floor(high / size)
        if last - first + 1 >= count:
            return list(range(count))
        # Dedupe, since a narrow grid can wrap onto the same index twice.
        return sorted({index % count for index in range(first, last + 1)})

    def neighbors_within(self, point: Position, radius: float) -> List[int]:
        """Ids whose toroidal distance to ``point`` is at most ``radius``.

        The caller is responsible for dropping its own id. Result order
        follows the grid scan and carries no meaning.
        """
        if radius < 0:
            return []
        px, py = self.wrap(point)
        cols = self._axis_cells(px - radius, px + radius, self.cell_width, self.cols)
        rows = self._axis_cells(py - radius, py + radius, self.cell_height, self.rows)
        found: List[int] = []
        for col in cols:
            for row in rows:
                members = self._cells.get((col, row))
                if not members:
                    continue
                for agent_id in members:
                    if self.distance((px, py), self._positions[agent_id]) <= radius:
                        found.append(agent_id)
        return found
