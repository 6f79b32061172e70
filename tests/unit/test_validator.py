"""Tests for record validation."""

from datetime import UTC, date, datetime

import pytest

from sheetbase.exceptions import SchemaNotFoundError, ValidationError
from sheetbase.schema.registry import SchemaRegistry
from sheetbase.services.schema import CUSTOMER_STATUSES, ORDER_STATUSES
from sheetbase.validation.validator import Validator, materialize_default, today_iso

FIELDS = [
    {"name": "id", "auto_generate": True},
    {"name": "code", "type": "string", "required": True, "pattern": "[A-Z]{3}", "max_length": 3},
    {"name": "email", "type": "email"},
    {"name": "qty", "type": "number", "min": 1, "max": 100},
    {"name": "kind", "type": "enum", "values": ["a", "b"], "default": "a"},
    {"name": "seen_at", "type": "timestamp"},
    {"name": "due", "type": "date", "default": "TODAY"},
    {"name": "body", "type": "text", "min_length": 2},
    {"name": "flag", "type": "boolean"},
    {"name": "total", "type": "number", "required": True, "computed": True},
]


@pytest.fixture
def validator() -> Validator:
    return Validator(SchemaRegistry([{"name": "Things", "fields": FIELDS}]))


def _violations(validator: Validator, candidate: dict, partial: bool = False) -> list[str]:
    with pytest.raises(ValidationError) as exc_info:
        validator.validate("Things", candidate, partial=partial)
    return exc_info.value.errors


class TestValidate:
    def test_valid_record_normalized(self, validator: Validator):
        record = validator.validate(
            "Things",
            {
                "code": "ABC",
                "email": "  Bob@Example.COM ",
                "qty": "7",
                "kind": "b",
                "seen_at": "2024-05-01T10:00:00Z",
                "due": "2024-06-30",
                "body": "hello",
                "flag": "yes",
            },
        )
        assert record["email"] == "bob@example.com"
        assert record["qty"] == 7
        assert isinstance(record["qty"], int)
        assert record["seen_at"] == "2024-05-01T10:00:00+00:00"
        assert record["due"] == "2024-06-30"
        assert record["flag"] is True

    def test_keys_in_schema_order(self, validator: Validator):
        record = validator.validate("Things", {"flag": False, "code": "XYZ"})
        names = [f["name"] for f in FIELDS]
        assert list(record) == [n for n in names if n in record]

    def test_required_missing(self, validator: Validator):
        errors = _violations(validator, {"email": "a@b.co"})
        assert errors == ["Field 'code' is required"]

    def test_empty_string_counts_as_missing(self, validator: Validator):
        assert _violations(validator, {"code": ""}) == ["Field 'code' is required"]

    def test_auto_generate_and_computed_not_required(self, validator: Validator):
        record = validator.validate("Things", {"code": "ABC"})
        assert "id" not in record
        assert "total" not in record

    def test_defaults_materialized(self, validator: Validator):
        record = validator.validate("Things", {"code": "ABC"})
        assert record["kind"] == "a"
        assert record["due"] == today_iso()

    def test_default_not_applied_in_partial_mode(self, validator: Validator):
        record = validator.validate("Things", {"qty": 3}, partial=True)
        assert record == {"qty": 3}

    def test_partial_mode_skips_required(self, validator: Validator):
        assert validator.validate("Things", {}, partial=True) == {}

    def test_partial_mode_still_type_checks(self, validator: Validator):
        errors = _violations(validator, {"qty": 0}, partial=True)
        assert errors == ["Field 'qty' must be >= 1 (got 0)"]

    def test_all_violations_collected(self, validator: Validator):
        errors = _violations(
            validator,
            {
                "code": "abcd",
                "email": "not-an-email",
                "qty": "many",
                "kind": "z",
                "seen_at": "yesterday",
                "due": "30/06/2024",
                "body": "x",
                "flag": "maybe",
                "colour": "red",
            },
        )
        assert len(errors) == 9
        assert any("Field 'code' must be at most 3 characters" in e for e in errors)
        assert any("invalid email format" in e and "not-an-email" in e for e in errors)
        assert any("Field 'qty' must be a number, got 'many'" in e for e in errors)
        assert any("must be one of [a, b] (got 'z')" in e for e in errors)
        assert any("ISO-8601 timestamp" in e for e in errors)
        assert any("YYYY-MM-DD" in e for e in errors)
        assert any("Field 'body' must be at least 2 characters" in e for e in errors)
        assert any("Field 'flag' must be a boolean" in e for e in errors)
        assert errors[-1].startswith("Unknown field 'colour' for table 'Things'")

    def test_message_lists_one_violation_per_line(self, validator: Validator):
        with pytest.raises(ValidationError) as exc_info:
            validator.validate("Things", {"qty": 500, "kind": "c"})
        lines = str(exc_info.value).splitlines()
        assert lines[0] == "Validation failed for 'Things':"
        assert len(lines) == 4  # code required, qty max, kind enum

    @pytest.mark.parametrize("kind", ["a", "b"])
    def test_every_enum_value_accepted(self, validator: Validator, kind: str):
        assert validator.validate("Things", {"code": "ABC", "kind": kind})["kind"] == kind

    @pytest.mark.parametrize(
        ("table", "field", "values"),
        [
            ("Orders", "status", ORDER_STATUSES),
            ("Customers", "status", CUSTOMER_STATUSES),
        ],
    )
    def test_commerce_enums_closed_over_values(self, registry, table, field, values):
        validator = Validator(registry)
        for value in values:
            assert validator.validate(table, {field: value}, partial=True) == {field: value}
        with pytest.raises(ValidationError, match="must be one of"):
            validator.validate(table, {field: "archived"}, partial=True)

    def test_pattern_must_match_whole_value(self, validator: Validator):
        errors = _violations(validator, {"code": "AB1"})
        assert errors == ["Field 'code' value 'AB1' does not match pattern '[A-Z]{3}'"]

    def test_number_rejects_boolean_and_nan(self, validator: Validator):
        assert "boolean" in _violations(validator, {"code": "ABC", "qty": True})[0]
        assert "NaN" in _violations(validator, {"code": "ABC", "qty": float("nan")})[0]

    def test_number_keeps_float(self, validator: Validator):
        assert validator.validate("Things", {"code": "ABC", "qty": "2.5"})["qty"] == 2.5

    def test_string_coerces_numbers(self):
        validator = Validator(
            SchemaRegistry([{"name": "T", "fields": [{"name": "id"}, {"name": "zip"}]}])
        )
        assert validator.validate("T", {"zip": 75001})["zip"] == "75001"

    def test_timestamp_accepts_datetime_and_assumes_utc(self, validator: Validator):
        record = validator.validate(
            "Things", {"code": "ABC", "seen_at": datetime(2024, 1, 2, 3, 4, 5)}
        )
        assert record["seen_at"] == datetime(2024, 1, 2, 3, 4, 5, tzinfo=UTC).isoformat()

    def test_date_accepts_date_objects(self, validator: Validator):
        record = validator.validate("Things", {"code": "ABC", "due": date(2024, 2, 29)})
        assert record["due"] == "2024-02-29"

    def test_date_rejects_impossible_dates(self, validator: Validator):
        assert "YYYY-MM-DD" in _violations(validator, {"code": "ABC", "due": "2023-02-30"})[0]

    @pytest.mark.parametrize(
        ("raw", "expected"),
        [("true", True), ("No", False), ("1", True), ("off", False), (0, False), (1, True)],
    )
    def test_boolean_spellings(self, validator: Validator, raw, expected):
        assert validator.validate("Things", {"code": "ABC", "flag": raw})["flag"] is expected

    def test_revalidation_in_partial_mode_is_stable(self, validator: Validator):
        record = validator.validate(
            "Things", {"code": "ABC", "email": "A@B.CO", "seen_at": "2024-01-01T00:00:00"}
        )
        again = validator.validate("Things", record, partial=True)
        assert again == record

    def test_unknown_table(self, validator: Validator):
        with pytest.raises(SchemaNotFoundError):
            validator.validate("Nope", {})


class TestMaterializeDefault:
    def test_tokens(self):
        assert materialize_default("TODAY") == today_iso()
        assert datetime.fromisoformat(materialize_default("NOW")).tzinfo is not None

    def test_literal(self):
        assert materialize_default(5) == 5


class TestIsUnique:
    def test_uses_lookup(self, validator: Validator):
        holders = {"ABC": [{"id": "1", "code": "ABC"}]}
        validator.bind_lookup(lambda table, field, value: holders.get(value, []))
        assert validator.is_unique("Things", "code", "XYZ") is True
        assert validator.is_unique("Things", "code", "ABC") is False
        assert validator.is_unique("Things", "code", "ABC", exclude_id="1") is True
        assert validator.is_unique("Things", "code", "ABC", exclude_id="2") is False

    def test_without_lookup(self, validator: Validator):
        assert validator.has_lookup is False
        with pytest.raises(RuntimeError):
            validator.is_unique("Things", "code", "ABC")
