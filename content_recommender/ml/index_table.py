from typing import Dict, Iterable, List, Optional

UNKNOWN_INDEX = 0


class IdentifierIndex:
    """Append-only mapping from identifiers to embedding rows.

    Row 0 is reserved for identifiers the model has never seen, so the
    embedding input dimension is ``len(index) + 1``. Existing identifiers
    keep their row forever; growing the table only appends.
    """

    def __init__(self, identifiers: Optional[Iterable[str]] = None):
        self._identifiers: List[str] = []
        self._positions: Dict[str, int] = {}
        for identifier in identifiers or ():
            self._append(str(identifier))

    def _append(self, identifier: str) -> None:
        if identifier not in self._positions:
            self._identifiers.append(identifier)
            self._positions[identifier] = len(self._identifiers)

    def __len__(self) -> int:
        return len(self._identifiers)

    def __contains__(self, identifier: str) -> bool:
        return str(identifier) in self._positions

    @property
    def identifiers(self) -> List[str]:
        return list(self._identifiers)

    @property
    def input_dim(self) -> int:
        return len(self._identifiers) + 1

    def index_of(self, identifier: str) -> int:
        return self._positions.get(str(identifier), UNKNOWN_INDEX)

    def extended(self, identifiers: Iterable[str]) -> "IdentifierIndex":
        """Return a new table with unseen ``identifiers`` appended."""
        table = IdentifierIndex(self._identifiers)
        for identifier in identifiers:
            table._append(str(identifier))
        return table
