from typing import Iterator


class HeaderList:
    """Ordered, append-only list of raw header lines, e.g. ``"Content-Type: text/xml"``."""

    def __init__(self) -> None:
        self._lines: list[str] = []

    def append(self, line: str) -> None:
        self._lines.append(line)

    def __iter__(self) -> Iterator[str]:
        return iter(tuple(self._lines))

    def __len__(self) -> int:
        return len(self._lines)

    def __repr__(self) -> str:
        return f"HeaderList({self._lines!r})"
