"""
Tests for formatter guessing and relation formatters.
"""

import datetime
import random
from decimal import Decimal

import pytest

from populator.formatters import (
    BIGINT_MAX,
    INTEGER_MAX,
    SMALLINT_MAX,
    ColumnTypeGuesser,
    ManyToManyFormatter,
    NameGuesser,
    RelationFormatter,
    guess_column_formatters,
)
from populator.record import InsertedRegistry, Record
from populator.schema import EntitySchema, RelationField, ScalarField

from .conftest import ARTICLE, EMPLOYEE, POST, PRODUCT, TAG, USER


def call(formatter, inserted=None):
    return formatter(inserted or InsertedRegistry(), None)


def inserted_users(n: int) -> InsertedRegistry:
    inserted = InsertedRegistry()
    for i in range(1, n + 1):
        inserted.add("shop.User", Record(USER, identity=i))
    return inserted


class TestColumnTypeGuesser:
    """Type-based fallback formatters."""

    @pytest.fixture
    def guesser(self, fake):
        return ColumnTypeGuesser(fake)

    def test_boolean(self, guesser):
        assert isinstance(call(guesser.guess_format(ScalarField("flag", "boolean"))), bool)

    @pytest.mark.parametrize(
        "db_type,upper",
        [("smallint", SMALLINT_MAX), ("integer", INTEGER_MAX), ("bigint", BIGINT_MAX)],
    )
    def test_integer_ranges(self, guesser, db_type, upper):
        formatter = guesser.guess_format(ScalarField("n", db_type))
        for _ in range(50):
            value = call(formatter)
            assert isinstance(value, int)
            assert 0 <= value <= upper

    def test_float(self, guesser):
        value = call(guesser.guess_format(ScalarField("ratio", "float")))
        assert isinstance(value, float)
        assert value >= 0

    def test_decimal_places(self, guesser):
        formatter = guesser.guess_format(ScalarField("price", "decimal", decimal_places=3))
        value = call(formatter)
        assert isinstance(value, Decimal)
        assert -value.as_tuple().exponent <= 3

    def test_string_respects_max_length(self, guesser):
        formatter = guesser.guess_format(ScalarField("code", "string", max_length=8))
        for _ in range(20):
            value = call(formatter)
            assert isinstance(value, str)
            assert len(value) <= 8

    def test_very_short_string(self, guesser):
        value = call(guesser.guess_format(ScalarField("code", "string", max_length=3)))
        assert len(value) == 3

    def test_string_default_length(self, guesser):
        value = call(guesser.guess_format(ScalarField("code", "string")))
        assert len(value) <= 255

    def test_text(self, guesser):
        assert isinstance(call(guesser.guess_format(ScalarField("notes", "text"))), str)

    @pytest.mark.parametrize(
        "db_type,expected",
        [
            ("date", datetime.date),
            ("time", datetime.time),
            ("datetime", datetime.datetime),
        ],
    )
    def test_temporal(self, guesser, db_type, expected):
        assert isinstance(call(guesser.guess_format(ScalarField("when", db_type))), expected)

    def test_unknown_type_has_no_formatter(self, guesser):
        assert guesser.guess_format(ScalarField("shape", "geometry")) is None


class TestNameGuesser:
    """Semantic column names."""

    @pytest.fixture
    def guesser(self, fake):
        return NameGuesser(fake)

    def test_email(self, guesser):
        assert "@" in call(guesser.guess_format("email"))

    @pytest.mark.parametrize("name", ["first_name", "firstName", "FirstName"])
    def test_naming_styles(self, guesser, name):
        value = call(guesser.guess_format(name))
        assert isinstance(value, str) and value

    def test_boolean_prefix(self, guesser):
        assert isinstance(call(guesser.guess_format("is_active")), bool)

    def test_timestamp_suffix(self, guesser):
        assert isinstance(call(guesser.guess_format("created_at")), datetime.datetime)

    def test_free_text_honours_size(self, guesser):
        formatter = guesser.guess_format("description", 40)
        for _ in range(10):
            assert len(call(formatter)) <= 40

    def test_unknown_name(self, guesser):
        assert guesser.guess_format("sku") is None

    def test_guess_must_fit_column_type(self, guesser):
        assert guesser.guess_format("phone", db_type="integer") is None
        assert guesser.guess_format("is_active", db_type="smallint") is None
        assert guesser.guess_format("created_at", db_type="string") is None

    def test_guess_kept_for_matching_column_type(self, guesser):
        assert isinstance(call(guesser.guess_format("phone", 20, "string")), str)
        assert isinstance(call(guesser.guess_format("latitude", db_type="decimal")), float)
        assert isinstance(call(guesser.guess_format("published_on", db_type="date")), datetime.datetime)


class TestRelationFormatter:
    def test_no_inserted_records(self):
        formatter = RelationFormatter(RelationField("author", "shop.User"), random.Random(1))
        assert call(formatter) is None

    def test_unique_walks_then_exhausts(self):
        formatter = RelationFormatter(
            RelationField("author", "shop.User", unique=True), random.Random(1)
        )
        inserted = inserted_users(3)

        picked = [call(formatter, inserted) for _ in range(4)]

        assert [r.identity for r in picked[:3]] == [1, 2, 3]
        assert picked[3] is None

    def test_unique_reset(self):
        formatter = RelationFormatter(
            RelationField("author", "shop.User", unique=True), random.Random(1)
        )
        inserted = inserted_users(2)
        call(formatter, inserted)
        formatter.reset()
        assert call(formatter, inserted).identity == 1

    def test_non_unique_picks_from_pool(self):
        formatter = RelationFormatter(RelationField("author", "shop.User"), random.Random(1))
        inserted = inserted_users(3)
        pool = set(inserted["shop.User"])

        picks = {call(formatter, inserted) for _ in range(60)}

        assert picks <= pool
        assert len(picks) > 1

    def test_accepts_schema_as_target(self):
        formatter = RelationFormatter(RelationField("author", USER), random.Random(1))
        assert call(formatter, inserted_users(1)).identity == 1


class TestManyToManyFormatter:
    def test_empty_pool(self):
        formatter = ManyToManyFormatter(ARTICLE.many_to_many[0], random.Random(1))
        assert call(formatter) == []

    def test_sample_is_distinct_subset(self):
        formatter = ManyToManyFormatter(ARTICLE.many_to_many[0], random.Random(3))
        inserted = InsertedRegistry()
        tags = [Record(TAG, identity=i) for i in range(1, 6)]
        for tag in tags:
            inserted.add("shop.Tag", tag)

        for _ in range(20):
            picked = call(formatter, inserted)
            assert len(picked) == len(set(picked))
            assert set(picked) <= set(tags)

    def test_unique_hands_out_one_each(self):
        field = RelationField("tags", "shop.Tag", unique=True, through="article_tags")
        formatter = ManyToManyFormatter(field, random.Random(1))
        inserted = InsertedRegistry()
        inserted.add("shop.Tag", Record(TAG, identity=1))

        assert [r.identity for r in call(formatter, inserted)] == [1]
        assert call(formatter, inserted) == []


class TestGuessColumnFormatters:
    """Formatter map assembly for a whole entity."""

    def test_primary_key_left_to_storage(self, fake):
        formatters = guess_column_formatters(USER, fake)
        assert "id" not in formatters
        assert {"email", "first_name", "is_active"} <= set(formatters)

    def test_generate_id(self, fake):
        formatters = guess_column_formatters(USER, fake, generate_id=True)
        assert isinstance(call(formatters["id"]), int)

    def test_user_formatters_win(self, fake):
        formatters = guess_column_formatters(USER, fake, {"email": lambda inserted, record: "a@b.c"})
        assert call(formatters["email"]) == "a@b.c"

    def test_relations_get_relation_formatters(self, fake):
        assert isinstance(guess_column_formatters(POST, fake)["author"], RelationFormatter)
        assert isinstance(guess_column_formatters(PRODUCT, fake)["category"], RelationFormatter)
        assert isinstance(guess_column_formatters(ARTICLE, fake)["tags"], ManyToManyFormatter)

    def test_self_relation(self, fake):
        formatter = guess_column_formatters(EMPLOYEE, fake)["manager"]
        assert formatter.target == "shop.Employee"
        assert formatter.optional

    def test_unguessable_field_is_skipped(self, fake):
        schema = EntitySchema("geo.Area", "areas", fields=(ScalarField("shape", "geometry"),))
        assert guess_column_formatters(schema, fake) == {}

    def test_type_guesser_takes_over_on_mismatched_name(self, fake):
        schema = EntitySchema("crm.Contact", "contacts", fields=(ScalarField("phone", "integer"),))
        value = call(guess_column_formatters(schema, fake)["phone"])
        assert isinstance(value, int)
