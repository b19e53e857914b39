"""Configuration objects for the record store service."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import timedelta
from pathlib import Path

DEFAULT_TABLES = ("users", "products")


def _default_label(name: str) -> str:
    singular = name[:-1] if len(name) > 1 and name.endswith("s") else name
    return singular.replace("_", " ").capitalize()


@dataclass(frozen=True)
class TableSpec:
    """Name, backing file and display label for one collection."""

    name: str
    path: Path | None = None
    label: str | None = None

    def __post_init__(self) -> None:
        if not self.name or "/" in self.name:
            msg = f"Invalid table name {self.name!r}"
            raise ValueError(msg)
        if self.path is not None:
            object.__setattr__(self, "path", Path(self.path))
        object.__setattr__(self, "label", self.label or _default_label(self.name))

    @property
    def cache_key(self) -> str:
        """Key under which the full collection read is cached."""
        return f"/{self.name}"


def _default_table_specs() -> tuple[TableSpec, ...]:
    return tuple(TableSpec(name) for name in DEFAULT_TABLES)


@dataclass(frozen=True)
class StoreSettings:
    """Service configuration: where tables live and how long reads are cached."""

    data_root: Path = Path(".")
    tables: tuple[TableSpec, ...] = field(default_factory=_default_table_specs)
    ttl: timedelta = timedelta(seconds=60)
    delimiter: str = ","

    def __post_init__(self) -> None:
        object.__setattr__(self, "data_root", Path(self.data_root))
        specs = tuple(
            spec if isinstance(spec, TableSpec) else TableSpec(str(spec))
            for spec in self.tables
        )
        object.__setattr__(self, "tables", specs)
        names = [spec.name for spec in specs]
        if len(set(names)) != len(names):
            msg = "table names must be unique"
            raise ValueError(msg)
        if self.ttl <= timedelta(0):
            msg = "ttl must be positive"
            raise ValueError(msg)
        if len(self.delimiter) != 1 or self.delimiter in {'"', "\n", "\r"}:
            msg = "delimiter must be a single non-quote character"
            raise ValueError(msg)

    def resolve_path(self, spec: TableSpec) -> Path:
        if spec.path is None:
            return self.data_root / f"{spec.name}.csv"
        if spec.path.is_absolute():
            return spec.path
        return self.data_root / spec.path


__all__ = ["DEFAULT_TABLES", "StoreSettings", "TableSpec"]
