"""
Unit tests for safeaction.validation - Schema Validation.

Tests the pydantic adapter: parsed data on success, flattened per-field
messages on failure, and the _root fallback for location-less errors.
"""

from typing import Annotated

from pydantic import BaseModel, Field, TypeAdapter

from safeaction.validation import Schema, as_schema


class Address(BaseModel):
    city: str


class Profile(BaseModel):
    name: str = Field(min_length=1)
    age: int
    address: Address


class TestSchemaValidate:
    def test_success_returns_parsed_model(self):
        outcome = Schema(Profile).validate(
            {"name": "Ada", "age": "36", "address": {"city": "London"}}
        )
        assert outcome.success
        assert isinstance(outcome.data, Profile)
        assert outcome.data.age == 36
        assert outcome.errors is None

    def test_failure_maps_fields_to_messages(self):
        outcome = Schema(Profile).validate({"name": "", "age": "x", "address": {}})
        assert not outcome.success
        assert outcome.data is None
        assert set(outcome.errors) == {"name", "age", "address.city"}
        assert outcome.errors["address.city"] == ["Field required"]

    def test_non_dict_input_reported_under_root(self):
        outcome = Schema(Profile).validate(None)
        assert not outcome.success
        assert list(outcome.errors) == ["_root"]

    def test_scalar_schema(self):
        schema = Schema(Annotated[int, Field(le=100)])
        assert schema.validate(5).data == 5
        assert "_root" in schema.validate(500).errors

    def test_list_paths_use_indexes(self):
        outcome = Schema(list[int]).validate([1, "x"])
        assert outcome.errors == {"1": ["Input should be a valid integer, unable to parse string as an integer"]}


class TestAsSchema:
    def test_wraps_type(self):
        schema = as_schema(Profile)
        assert isinstance(schema, Schema)
        assert schema.type is Profile

    def test_passes_schema_through(self):
        schema = Schema(Profile)
        assert as_schema(schema) is schema

    def test_accepts_type_adapter(self):
        schema = as_schema(TypeAdapter(Address))
        assert schema.type is Address
        assert schema.validate({"city": "Paris"}).data == Address(city="Paris")
