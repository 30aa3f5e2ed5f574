"""Typed definitions shared by the catalog, the binary codec and the CSV layers."""
from __future__ import annotations

from dataclasses import dataclass, field, replace
from typing import Any, Iterator, Sequence, TypedDict

from ..core.errors import ValidationFailed

# kind -> (struct format, byte width, minimum, maximum)
INT_KINDS: dict[str, tuple[str, int, int, int]] = {
    "u8": (">B", 1, 0, 0xFF),
    "i8": (">b", 1, -0x80, 0x7F),
    "u16": (">H", 2, 0, 0xFFFF),
    "i16": (">h", 2, -0x8000, 0x7FFF),
    "u32": (">I", 4, 0, 0xFFFFFFFF),
    "i32": (">i", 4, -0x80000000, 0x7FFFFFFF),
}
FLOAT_KINDS: dict[str, tuple[str, int]] = {
    "f32": (">f", 4),
}
STRING_KIND = "str"

# Item references: plain items, or items plus gold amounts (0x200 and up).
REFERENCE_ITEM = "item"
REFERENCE_ITEM_OR_GOLD = "item_or_gold"


class RangeSpec(TypedDict):
    start: int
    end: int


class EntryOffsets(TypedDict, total=False):
    file: str
    data: RangeSpec
    description: RangeSpec


@dataclass(frozen=True)
class FieldSpec:
    name: str
    offset: int
    kind: str
    size: int = 0
    encoding: str = "auto"
    display: str = "dec"
    minimum: int | None = None
    maximum: int | None = None
    reference: str | None = None

    @property
    def width(self) -> int:
        if self.kind in INT_KINDS:
            return INT_KINDS[self.kind][1]
        if self.kind in FLOAT_KINDS:
            return FLOAT_KINDS[self.kind][1]
        return self.size

    @property
    def is_int(self) -> bool:
        return self.kind in INT_KINDS

    @property
    def is_float(self) -> bool:
        return self.kind in FLOAT_KINDS

    @property
    def is_string(self) -> bool:
        return self.kind == STRING_KIND

    @property
    def bounds(self) -> tuple[int, int]:
        """Representable range of an integer field."""
        _, _, low, high = INT_KINDS[self.kind]
        return low, high

    @property
    def domain(self) -> tuple[int, int]:
        """Accepted range: representable range narrowed by the game-semantic limits."""
        low, high = self.bounds
        if self.minimum is not None:
            low = max(low, self.minimum)
        if self.maximum is not None:
            high = min(high, self.maximum)
        return low, high

    @property
    def end(self) -> int:
        return self.offset + self.width

    def default(self) -> Any:
        if self.is_string:
            return ""
        if self.is_float:
            return 0.0
        return 0


@dataclass(frozen=True)
class SourceRange:
    """
    A run of records inside one file of the disc.

    ``offsets`` overrides the contiguous ``start + i * width`` layout for
    containers that address records through a header table; ``ids`` carries
    the per-record identifiers those headers declare and ``slots`` the
    1-based position of each record inside its parent (enemy task slots).
    """

    path: str
    start: int
    count: int
    width: int
    compressed: bool = False
    offsets: tuple[int, ...] | None = None
    ids: tuple[int, ...] | None = None
    label: str | None = None
    slots: tuple[int, ...] | None = None

    def record_offset(self, index: int) -> int:
        if self.offsets is not None:
            return self.offsets[index]
        return self.start + index * self.width

    @property
    def end(self) -> int:
        if self.offsets:
            return max(self.offsets) + self.width
        return self.start + self.count * self.width

    @property
    def display_name(self) -> str:
        return self.label or self.path


@dataclass(frozen=True)
class DescriptionRange:
    path: str
    start: int
    end: int

    @property
    def size(self) -> int:
        return self.end - self.start


@dataclass(frozen=True)
class EntryDescriptor:
    name: str
    width: int
    fields: tuple[FieldSpec, ...]
    sources: tuple[SourceRange, ...] = ()
    description: DescriptionRange | None = None
    item_base: int | None = None
    dynamic: bool = False
    extras: tuple[str, ...] = ()

    @property
    def count(self) -> int:
        return sum(source.count for source in self.sources)

    @property
    def field_names(self) -> tuple[str, ...]:
        return tuple(spec.name for spec in self.fields)

    @property
    def columns(self) -> tuple[str, ...]:
        return ("id",) + self.field_names + self.extras

    def field(self, name: str) -> FieldSpec:
        for spec in self.fields:
            if spec.name == name:
                return spec
        raise KeyError(f"{self.name} has no field {name!r}")

    def with_sources(self, sources: Sequence[SourceRange]) -> "EntryDescriptor":
        return replace(self, sources=tuple(sources))


@dataclass
class Record:
    id: int
    values: dict[str, Any]
    extras: dict[str, Any] = field(default_factory=dict)

    def __getitem__(self, key: str) -> Any:
        if key in self.values:
            return self.values[key]
        return self.extras[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if key not in self.values:
            raise KeyError(f"{key!r} is not a writable field")
        self.values[key] = value

    def __contains__(self, key: object) -> bool:
        return key in self.values or key in self.extras

    def __iter__(self) -> Iterator[str]:
        yield from self.values
        yield from self.extras

    def copy(self) -> "Record":
        return Record(self.id, dict(self.values), dict(self.extras))


@dataclass(frozen=True)
class ValidationIssue:
    row: int | None
    field: str | None
    reason: str

    def __str__(self) -> str:
        where = "import" if self.row is None else f"row {self.row}"
        if self.field:
            where = f"{where}, {self.field}"
        return f"{where}: {self.reason}"


@dataclass
class ImportResult:
    type_name: str
    records: list[Record]
    issues: list[ValidationIssue]

    @property
    def ok(self) -> bool:
        return not self.issues

    def require_clean(self) -> list[Record]:
        """Return the records, raising ValidationFailed if any issue was collected."""
        if self.issues:
            raise ValidationFailed(self.type_name, self.issues)
        return self.records

    def __iter__(self) -> Iterator[Any]:
        # Allows ``records, issues = import_csv(...)``.
        yield self.records
        yield self.issues


__all__ = [
    "INT_KINDS",
    "FLOAT_KINDS",
    "STRING_KIND",
    "REFERENCE_ITEM",
    "REFERENCE_ITEM_OR_GOLD",
    "RangeSpec",
    "EntryOffsets",
    "FieldSpec",
    "SourceRange",
    "DescriptionRange",
    "EntryDescriptor",
    "Record",
    "ValidationIssue",
    "ImportResult",
]
