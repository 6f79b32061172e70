"""Repository: the CRUD engine for one table.

A repository is the only component that mutates its table in the
backing store. It validates records, enforces primary key, unique and
foreign key constraints, propagates CASCADE deletes, blocks RESTRICT
deletes, and keeps a per-instance field index cache that is dropped on
every mutation.
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any
from uuid import uuid4

from sheetbase.core.types import (
    BatchItem,
    BatchResult,
    FieldSpec,
    FieldType,
    OnDeleteAction,
    TableSchema,
)
from sheetbase.data.index_cache import (
    DEFAULT_INDEX_TTL_SECONDS,
    FieldIndex,
    IndexCache,
    build_index,
    index_key,
)
from sheetbase.exceptions import (
    ForeignKeyViolationError,
    QueryError,
    RestrictDeleteError,
    SheetbaseError,
    UniqueConstraintError,
    ValidationError,
)
from sheetbase.schema.registry import SchemaRegistry
from sheetbase.storage.base import TabularStore
from sheetbase.validation.validator import Validator, is_missing, today_iso, utc_now_iso

logger = logging.getLogger(__name__)

Record = dict[str, Any]
RecordFilter = Callable[[Record], bool] | Mapping[str, Any]
RepositoryResolver = Callable[[str], "Repository"]

ORDERS = ("asc", "desc")


def generate_id() -> str:
    """Generate a new record ID (UUID4 string)."""
    return str(uuid4())


def normalize_order(order: str) -> str:
    normalized = (order or "asc").lower()
    if normalized not in ORDERS:
        raise QueryError(f"Invalid sort order '{order}'. Use 'asc' or 'desc'.", {"order": order})
    return normalized


def _sort_key(value: Any) -> tuple[int, float, str]:
    if isinstance(value, (int, float)):
        return (0, float(value), "")
    return (1, 0.0, str(value))


def sort_records(records: list[Record], field: str, order: str = "asc") -> list[Record]:
    """Sort on a single field: numbers numerically, everything else as strings.

    Records without a value always come last, whatever the order.
    """
    descending = normalize_order(order) == "desc"
    present = [r for r in records if not is_missing(r.get(field))]
    absent = [r for r in records if is_missing(r.get(field))]
    present.sort(key=lambda r: _sort_key(r.get(field)), reverse=descending)
    return present + absent


def as_predicate(filter: RecordFilter | None) -> Callable[[Record], bool] | None:
    """Turn a mapping of field -> expected value into an AND predicate."""
    if filter is None or callable(filter):
        return filter
    expected = {name: index_key(value) for name, value in filter.items()}
    return lambda record: all(index_key(record.get(k)) == v for k, v in expected.items())


class Repository:
    """CRUD operations on one table.

    Obtain instances through ``Sheetbase.repository(name)`` so that
    foreign key checks and cascades reuse the same instances (and caches).
    """

    def __init__(
        self,
        table: str,
        store: TabularStore,
        registry: SchemaRegistry,
        validator: Validator | None = None,
        resolver: RepositoryResolver | None = None,
        index_ttl: float = DEFAULT_INDEX_TTL_SECONDS,
        clock: Callable[[], float] | None = None,
    ) -> None:
        """Initialize repository.

        Args:
            table: Registered table name
            store: Backing tabular store
            registry: Schema registry
            validator: Validator to use (a new one is created if omitted)
            resolver: Returns the repository of another table (for FK checks and cascades)
            index_ttl: Seconds an index stays fresh
            clock: Monotonic time source for the index cache

        Raises:
            SchemaNotFoundError: If the table is not registered
        """
        self._schema: TableSchema = registry.get(table)
        self._store = store
        self._registry = registry
        self._validator = validator or Validator(registry)
        self._resolver = resolver or self._standalone_resolver
        self._index_ttl = index_ttl
        self._indexes = IndexCache(index_ttl, clock) if clock else IndexCache(index_ttl)
        self._siblings: dict[str, Repository] = {}
        if not self._validator.has_lookup:
            self._validator.bind_lookup(
                lambda name, field, value: self._resolver(name).find_by(field, value)
            )

    def _standalone_resolver(self, table: str) -> Repository:
        if table == self.name:
            return self
        if table not in self._siblings:
            self._siblings[table] = Repository(
                table,
                self._store,
                self._registry,
                self._validator,
                resolver=self._resolver,
                index_ttl=self._index_ttl,
            )
        return self._siblings[table]

    # === Introspection ===

    @property
    def name(self) -> str:
        return self._schema.name

    @property
    def schema(self) -> TableSchema:
        return self._schema

    @property
    def primary_key(self) -> str:
        return self._schema.primary_key

    @property
    def storage_name(self) -> str:
        return self._schema.storage_name or self._schema.name

    @property
    def index_cache(self) -> IndexCache:
        return self._indexes

    def ensure_table(self) -> None:
        """Create the backing table (header row in schema order) if needed."""
        self._store.ensure_table(self.storage_name, self._schema.field_names)

    # === Row mapping ===

    def _row_to_record(self, row: list[Any]) -> Record:
        record: Record = {}
        for position, name in enumerate(self._schema.field_names):
            value = row[position] if position < len(row) else None
            record[name] = None if value == "" else value
        return record

    def _record_to_row(self, record: Record) -> list[Any]:
        return [record.get(name) for name in self._schema.field_names]

    def _read_records(self) -> list[Record]:
        return [self._row_to_record(row) for row in self._store.read_all_rows(self.storage_name)]

    def _locate(self, record_id: Any) -> tuple[int, Record] | tuple[None, None]:
        wanted = index_key(record_id)
        for position, record in enumerate(self._read_records()):
            if index_key(record.get(self.primary_key)) == wanted:
                return position, record
        return None, None

    # === Reads ===

    def find_all(
        self,
        filter: RecordFilter | None = None,
        sort_by: str | None = None,
        order: str = "asc",
        limit: int | None = None,
    ) -> list[Record]:
        """Read every record, then filter, sort and limit.

        Args:
            filter: Predicate, or mapping of field -> value (all must match)
            sort_by: Single field to sort on
            order: "asc" or "desc"
            limit: Maximum number of records

        Returns:
            Matching records (empty list for an empty table)
        """
        if sort_by is not None:
            self._schema.get_field(sort_by)
        if isinstance(filter, Mapping):
            for name in filter:
                self._schema.get_field(name)
        if limit is not None and limit < 0:
            raise QueryError(f"Limit must be >= 0, got {limit}", {"limit": limit})

        records = self._read_records()
        predicate = as_predicate(filter)
        if predicate is not None:
            records = [r for r in records if predicate(r)]
        if sort_by is not None:
            records = sort_records(records, sort_by, order)
        if limit is not None:
            records = records[:limit]
        return records

    def find_by_id(self, record_id: Any) -> Record | None:
        """Find a record by primary key, or None."""
        _, record = self._locate(record_id)
        return record

    def find_one(self, filter: RecordFilter) -> Record | None:
        matches = self.find_all(filter=filter, limit=1)
        return matches[0] if matches else None

    def find_by(self, field: str, value: Any) -> list[Record]:
        """All records whose ``field`` equals ``value``, served from the index cache."""
        index = self.get_index(field)
        return [dict(record) for record in index.get(index_key(value), [])]

    def get_index(self, field: str) -> FieldIndex:
        """Return the value -> records index for ``field``, building it if needed.

        The returned mapping is owned by the cache; don't mutate it.
        """
        self._schema.get_field(field)
        index = self._indexes.get(field)
        if index is None:
            index = build_index(self._read_records(), field)
            self._indexes.put(field, index)
            logger.debug(f"Built index on {self.name}.{field} ({len(index)} keys)")
        return index

    def count(self, filter: RecordFilter | None = None) -> int:
        return len(self.find_all(filter=filter))

    def exists(self, record_id: Any) -> bool:
        return self.find_by_id(record_id) is not None

    def invalidate_indexes(self) -> None:
        self._indexes.invalidate()

    # === Constraint checks ===

    def _generated_value(self, spec: FieldSpec, now: str) -> Any:
        if spec.type == FieldType.TIMESTAMP:
            return now
        if spec.type == FieldType.DATE:
            return today_iso()
        if spec.type == FieldType.NUMBER:
            existing = [
                r[spec.name]
                for r in self._read_records()
                if isinstance(r.get(spec.name), (int, float))
            ]
            return int(max(existing, default=0)) + 1
        return generate_id()

    def _stamp(self, spec: FieldSpec, now: str) -> Any:
        return today_iso() if spec.type == FieldType.DATE else now

    def _check_foreign_keys(self, record: Record) -> None:
        for spec in self._schema.foreign_key_fields:
            value = record.get(spec.name)
            fk = spec.foreign_key
            if fk is None or is_missing(value):
                continue
            parent = self._resolver(fk.table)
            if not parent.find_by(fk.field, value):
                raise ForeignKeyViolationError(self.name, spec.name, fk.table, fk.field, value)

    def _check_unique(self, record: Record, exclude_id: Any = None) -> None:
        for group in self._schema.unique_constraints():
            values = [record.get(name) for name in group]
            if any(is_missing(v) for v in values):
                continue

            if len(group) == 1:
                if not self._validator.is_unique(self.name, group[0], values[0], exclude_id):
                    raise UniqueConstraintError(self.name, group, values[0])
                continue

            holders = [
                r
                for r in self.find_by(group[0], values[0])
                if all(index_key(r.get(n)) == index_key(v) for n, v in zip(group, values))
            ]
            if any(
                exclude_id is None or index_key(r.get(self.primary_key)) != index_key(exclude_id)
                for r in holders
            ):
                raise UniqueConstraintError(self.name, group, tuple(values))

    # === Writes ===

    def create(self, data: Mapping[str, Any]) -> Record:
        """Validate and append a new record.

        Args:
            data: Field values

        Returns:
            The stored record including generated fields

        Raises:
            ValidationError: If a field is invalid
            UniqueConstraintError: If a unique value is taken
            ForeignKeyViolationError: If a referenced parent doesn't exist
        """
        if not isinstance(data, Mapping):
            raise ValidationError(self.name, [f"Record must be a mapping, got {type(data).__name__}"])

        record = self._validator.validate(self.name, dict(data), partial=False)
        now = utc_now_iso()

        if is_missing(record.get(self.primary_key)):
            pk_spec = self._schema.get_field(self.primary_key)
            record[self.primary_key] = (
                self._generated_value(pk_spec, now) if pk_spec.auto_generate else generate_id()
            )
        for spec in self._schema.fields:
            if spec.auto_generate and is_missing(record.get(spec.name)):
                record[spec.name] = self._generated_value(spec, now)
            if spec.auto_update:
                record[spec.name] = self._stamp(spec, now)

        full = {name: record.get(name) for name in self._schema.field_names}
        self._check_foreign_keys(full)
        self._check_unique(full)

        self._store.append_row(self.storage_name, self._record_to_row(full))
        self.invalidate_indexes()
        logger.debug(f"Created {self.name} record {full[self.primary_key]!r}")
        return full

    def batch_create(self, records: Iterable[Mapping[str, Any]]) -> BatchResult:
        """Create records one by one; a failure doesn't stop the rest.

        Returns:
            Per-record outcomes, in input order
        """
        result = BatchResult()
        for position, data in enumerate(records):
            try:
                created = self.create(data)
            except SheetbaseError as e:
                logger.warning(f"Batch create on {self.name}: record {position} failed: {e.message}")
                result.items.append(
                    BatchItem(
                        index=position,
                        ok=False,
                        error=e.message,
                        error_type=e.__class__.__name__,
                        data=dict(data) if isinstance(data, Mapping) else None,
                    )
                )
            else:
                result.items.append(BatchItem(index=position, ok=True, record=created))
        return result

    def update(self, record_id: Any, data: Mapping[str, Any]) -> Record | None:
        """Merge ``data`` over an existing record and rewrite its row in place.

        Returns:
            The updated record, or None if no record has this ID

        Raises:
            ValidationError: If the merged record is invalid or the primary key changes
            UniqueConstraintError: If a unique value is taken by another record
            ForeignKeyViolationError: If a referenced parent doesn't exist
        """
        position, current = self._locate(record_id)
        if current is None or position is None:
            return None

        changes = dict(data)
        pk = self.primary_key
        if pk in changes and index_key(changes[pk]) != index_key(current[pk]):
            raise ValidationError(
                self.name,
                [f"Primary key '{pk}' cannot be changed (from {current[pk]!r} to {changes[pk]!r})"],
            )

        merged = {**current, **changes}
        now = utc_now_iso()
        for spec in self._schema.fields:
            if spec.auto_update:
                merged[spec.name] = self._stamp(spec, now)

        # The merged record is the final state, so required fields must stay filled
        cleared = [
            f"Field '{spec.name}' is required"
            for spec in self._schema.fields
            if spec.required
            and not (spec.auto_generate or spec.computed)
            and is_missing(merged.get(spec.name))
        ]
        try:
            validated = self._validator.validate(self.name, merged, partial=True)
        except ValidationError as e:
            raise ValidationError(self.name, cleared + e.errors) from None
        if cleared:
            raise ValidationError(self.name, cleared)
        full = {name: validated.get(name) for name in self._schema.field_names}
        self._check_foreign_keys(full)
        self._check_unique(full, exclude_id=current[pk])

        self._store.overwrite_row(self.storage_name, position, self._record_to_row(full))
        self.invalidate_indexes()
        logger.debug(f"Updated {self.name} record {current[pk]!r}")
        return full

    def delete(self, record_id: Any) -> bool:
        """Delete a record, honoring on_delete rules of referencing tables.

        RESTRICT children anywhere in the cascade tree block the whole
        delete before anything is removed. CASCADE children are deleted
        first, depth-first, through their own repositories.

        Returns:
            True if deleted, False if no record has this ID

        Raises:
            RestrictDeleteError: If a RESTRICT relationship blocks the delete
        """
        return self._delete(record_id, set())

    def _delete(self, record_id: Any, in_progress: set[tuple[str, Any]]) -> bool:
        _, record = self._locate(record_id)
        if record is None:
            return False

        key = (self.name, index_key(record[self.primary_key]))
        if key in in_progress:
            return False
        in_progress.add(key)

        self._check_restrict(record, set())
        cascaded = self._cascade(record, in_progress)

        # Cascades may have shifted rows of this table (self references)
        position, _ = self._locate(record_id)
        if position is not None:
            self._store.delete_row(self.storage_name, position)
        self.invalidate_indexes()

        if cascaded:
            logger.info(f"Deleted {self.name} record {record_id!r} with {cascaded} cascaded record(s)")
        else:
            logger.debug(f"Deleted {self.name} record {record_id!r}")
        return True

    def _children(self, record: Record, child_table: str, spec: FieldSpec) -> list[Record]:
        fk = spec.foreign_key
        if fk is None:
            return []
        parent_value = record.get(fk.field)
        if is_missing(parent_value):
            return []
        child_repo = self._resolver(child_table)
        children = child_repo.find_by(spec.name, parent_value)
        if child_table == self.name:
            own = index_key(record[self.primary_key])
            children = [c for c in children if index_key(c.get(self.primary_key)) != own]
        return children

    def _check_restrict(self, record: Record, visited: set[tuple[str, Any]]) -> None:
        key = (self.name, index_key(record[self.primary_key]))
        if key in visited:
            return
        visited.add(key)

        for child_table, spec in self._registry.incoming_foreign_keys(self.name):
            children = self._children(record, child_table, spec)
            if not children:
                continue
            if spec.foreign_key is None:
                continue
            if spec.foreign_key.on_delete == OnDeleteAction.RESTRICT:
                raise RestrictDeleteError(
                    self.name, record[self.primary_key], child_table, spec.name, len(children)
                )
            child_repo = self._resolver(child_table)
            for child in children:
                child_repo._check_restrict(child, visited)

    def _cascade(self, record: Record, in_progress: set[tuple[str, Any]]) -> int:
        deleted = 0
        for child_table, spec in self._registry.cascade_children(self.name):
            child_repo = self._resolver(child_table)
            for child in self._children(record, child_table, spec):
                if child_repo._delete(child[child_repo.primary_key], in_progress):
                    deleted += 1
        return deleted

    def truncate(self) -> int:
        """Remove every data row, keeping the header. No cascade, no restrict checks.

        Returns:
            Number of rows removed
        """
        removed = self._store.clear_rows(self.storage_name)
        self.invalidate_indexes()
        logger.warning(f"Truncated {self.name}: {removed} row(s) removed")
        return removed

    def __repr__(self) -> str:
        return f"Repository({self.name!r})"
