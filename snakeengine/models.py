"""Game data: points, snakes, frames and games, with dict (JSON) conversion."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

_STEPS = {
    "up": (0, -1),
    "down": (0, 1),
    "left": (-1, 0),
    "right": (1, 0),
}


@dataclass
class Point:
    """A cell on the board."""

    x: int = 0
    y: int = 0

    def clone(self) -> Point:
        """Return an independent copy of this point."""
        return Point(x=self.x, y=self.y)

    def to_dict(self) -> Dict[str, Any]:
        return {"X": self.x, "Y": self.y}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Point:
        return cls(x=int(data.get("X", 0)), y=int(data.get("Y", 0)))


@dataclass
class Death:
    """Why and when a snake died."""

    cause: str = ""
    turn: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {"Cause": self.cause, "Turn": self.turn}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Death:
        return cls(cause=str(data.get("Cause", "")), turn=int(data.get("Turn", 0)))


@dataclass
class Snake:
    """A snake; the first body point is its head."""

    id: str = ""
    name: str = ""
    url: str = ""
    body: List[Point] = field(default_factory=list)
    health: int = 0
    death: Optional[Death] = None
    color: str = ""

    def move(self, direction: str) -> None:
        """Grow a new head one cell in ``direction``.

        The tail is not removed here; that happens after snakes have eaten.
        Unknown directions fall back to :meth:`default_move`.
        """
        head = self.head()
        if head is None:
            return
        step = _STEPS.get(direction)
        if step is None:
            self.default_move()
            return
        dx, dy = step
        self.body.insert(0, Point(x=head.x + dx, y=head.y + dy))

    def default_move(self) -> None:
        """Move one cell in the direction the snake is already heading."""
        if len(self.body) < 2:
            self.move("up")
            return
        head, neck = self.body[0], self.body[1]
        if head.x == neck.x and head.y == neck.y:
            # All segments still stacked at the start of a game.
            self.move("up")
        elif head.x == neck.x:
            self.move("down" if head.y > neck.y else "up")
        elif head.y == neck.y:
            self.move("right" if head.x > neck.x else "left")

    def head(self) -> Optional[Point]:
        """The first body point, or None for an empty body."""
        return self.body[0] if self.body else None

    def tail(self) -> Optional[Point]:
        """The last body point, or None for an empty body."""
        return self.body[-1] if self.body else None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ID": self.id,
            "Name": self.name,
            "URL": self.url,
            "Body": [p.to_dict() for p in self.body],
            "Health": self.health,
            "Death": self.death.to_dict() if self.death is not None else None,
            "Color": self.color,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Snake:
        death = data.get("Death")
        return cls(
            id=str(data.get("ID", "")),
            name=str(data.get("Name", "")),
            url=str(data.get("URL", "")),
            body=[Point.from_dict(p) for p in data.get("Body") or []],
            health=int(data.get("Health", 0)),
            death=Death.from_dict(death) if death is not None else None,
            color=str(data.get("Color", "")),
        )


@dataclass
class GameFrame:
    """The board state at one turn."""

    turn: int = 0
    snakes: List[Snake] = field(default_factory=list)
    food: List[Point] = field(default_factory=list)

    def alive_snakes(self) -> List[Snake]:
        return [s for s in self.snakes if s.death is None]

    def dead_snakes(self) -> List[Snake]:
        return [s for s in self.snakes if s.death is not None]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "Turn": self.turn,
            "Snakes": [s.to_dict() for s in self.snakes],
            "Food": [p.to_dict() for p in self.food],
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> GameFrame:
        return cls(
            turn=int(data.get("Turn", 0)),
            snakes=[Snake.from_dict(s) for s in data.get("Snakes") or []],
            food=[Point.from_dict(p) for p in data.get("Food") or []],
        )


@dataclass
class Game:
    """A game's settings and status."""

    id: str = ""
    status: str = ""
    width: int = 0
    height: int = 0
    snake_timeout: int = 0
    mode: str = ""

    def to_dict(self) -> Dict[str, Any]:
        return {
            "ID": self.id,
            "Status": self.status,
            "Width": self.width,
            "Height": self.height,
            "SnakeTimeout": self.snake_timeout,
            "Mode": self.mode,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> Game:
        return cls(
            id=str(data.get("ID", "")),
            status=str(data.get("Status", "")),
            width=int(data.get("Width", 0)),
            height=int(data.get("Height", 0)),
            snake_timeout=int(data.get("SnakeTimeout", 0)),
            mode=str(data.get("Mode", "")),
        )