"""In-memory collaborators shared by the test-suite."""
from __future__ import annotations

from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from adsync.ads import CreationResult
from settings import ERROR_COLUMN, SheetConfig


class FakeSheet:
    """A worksheet kept in memory, rows and columns are 1-based."""

    def __init__(self, rows: Optional[Dict[int, Sequence[Any]]] = None, width: int = 0) -> None:
        self.grid: Dict[int, List[Any]] = {}
        self.width = width
        self.backgrounds: Dict[Tuple[int, int], Optional[str]] = {}
        self.writes: List[Tuple[int, int, Any]] = []
        for index, values in (rows or {}).items():
            self.put_row(index, values)

    def put_row(self, row_index: int, values: Sequence[Any]) -> None:
        self.grid[row_index] = list(values)
        self.width = max(self.width, len(values))

    def put(self, row_index: int, column_index: int, value: Any) -> None:
        row = self.grid.setdefault(row_index, [])
        while len(row) < column_index:
            row.append("")
        row[column_index - 1] = value
        self.width = max(self.width, len(row))

    def cell(self, row_index: int, column_index: int) -> Any:
        row = self.grid.get(row_index, [])
        return row[column_index - 1] if column_index - 1 < len(row) else ""

    def background(self, row_index: int, column_index: int) -> Optional[str]:
        return self.backgrounds.get((row_index, column_index))

    # TabularStore -----------------------------------------------------
    def read_rows(self, first_row: int, last_row: int) -> List[List[Any]]:
        return [self.read_row(index) for index in range(first_row, last_row + 1)]

    def read_row(self, row_index: int) -> List[Any]:
        row = list(self.grid.get(row_index, []))
        row.extend([""] * (self.width - len(row)))
        return row

    def write_cell(self, row_index: int, column_index: int, value: Any) -> None:
        self.writes.append((row_index, column_index, value))
        self.put(row_index, column_index, value)

    def set_background(self, row_index: int, column_index: Optional[int], color: Optional[str]) -> None:
        columns = [column_index] if column_index is not None else range(1, self.width + 1)
        for column in columns:
            self.backgrounds[(row_index, column)] = color

    def last_row(self) -> int:
        filled = [index for index, row in self.grid.items() if any(cell not in (None, "") for cell in row)]
        return max(filled, default=0)

    def last_column(self) -> int:
        return self.width

    def read_cell(self, reference: str) -> Any:
        from adsync.sheets_client import parse_a1_cell

        row_index, column_index = parse_a1_cell(reference)
        return self.cell(row_index, column_index)


class FakeEntity:
    def __init__(
        self,
        ad_id: Any,
        status: str = "enabled",
        labels: Iterable[str] = (),
        approval_status: Optional[str] = None,
        failing_labels: Iterable[str] = (),
    ) -> None:
        self.ad_id = ad_id
        self.status = status
        self.labels = list(labels)
        self.approval_status = approval_status
        self.failing_labels = set(failing_labels)
        self.mutations: List[str] = []

    def get_id(self) -> Any:
        return self.ad_id

    def get_status(self) -> str:
        return self.status

    def enable(self) -> None:
        self.mutations.append("enable")
        self.status = "enabled"

    def pause(self) -> None:
        self.mutations.append("pause")
        self.status = "paused"

    def get_labels(self) -> List[str]:
        return list(self.labels)

    def apply_label(self, name: str) -> None:
        if name in self.failing_labels:
            raise RuntimeError(f"label {name} rejected")
        self.mutations.append(f"label:{name}")
        self.labels.append(name)

    def get_approval_status(self) -> Optional[str]:
        return self.approval_status


class FakePlatform:
    def __init__(self, groups: Iterable[Any] = ()) -> None:
        self.groups = set(groups)
        self.entities: Dict[Tuple[Any, Any], FakeEntity] = {}
        self.created: List[Mapping[str, Any]] = []
        self.lookups: List[Tuple[Any, Any]] = []
        self.known_labels: set[str] = set()
        self.rejected_labels: set[str] = set()
        self.create_errors: List[str] = []
        self._next_id = 9000

    def add(self, ad_group_id: Any, entity: FakeEntity) -> FakeEntity:
        self.groups.add(ad_group_id)
        self.entities[(ad_group_id, entity.ad_id)] = entity
        return entity

    def find_entity(self, ad_group_id: Any, ad_id: Any) -> Optional[FakeEntity]:
        self.lookups.append((ad_group_id, ad_id))
        return self.entities.get((ad_group_id, ad_id))

    def find_parent_group(self, ad_group_id: Any) -> bool:
        return ad_group_id in self.groups

    def create_entity(self, ad_group_id: Any, fields: Mapping[str, Any]) -> CreationResult:
        if self.create_errors:
            return CreationResult(success=False, errors=list(self.create_errors))
        self._next_id += 1
        entity = FakeEntity(self._next_id, status="enabled")
        self.entities[(ad_group_id, entity.ad_id)] = entity
        self.created.append(dict(fields))
        return CreationResult(success=True, entity=entity)

    def ensure_label_exists(self, name: str) -> bool:
        if name in self.rejected_labels:
            return False
        self.known_labels.add(name)
        return True


def make_config(**overrides: Any) -> SheetConfig:
    return SheetConfig(**overrides)


def make_row(config: SheetConfig, **values: Any) -> List[Any]:
    row: List[Any] = [""] * len(config.columns)
    for name, value in values.items():
        row[config.columns.index(name)] = value
    return row


def header_row(config: SheetConfig) -> List[str]:
    headers: List[str] = []
    for name in config.columns:
        if name in config.header_special_cases:
            headers.append("Characters Remaining")
        else:
            headers.append(name.replace("_", " ").title())
    return headers


__all__ = [
    "ERROR_COLUMN",
    "FakeEntity",
    "FakePlatform",
    "FakeSheet",
    "header_row",
    "make_config",
    "make_row",
]
