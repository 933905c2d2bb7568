"""
Tests for RecordBuilder: column filling, coercion, modifiers, persistence
and many-to-many links.
"""

import pytest

from populator.builder import RecordBuilder
from populator.errors import FormatterError
from populator.record import InsertedRegistry, Record
from populator.schema import EntitySchema, RelationField, ScalarField

from .conftest import ARTICLE, CATEGORY, POST, PRODUCT, TAG, USER

NOTE = EntitySchema(
    name="shop.Note",
    table="notes",
    fields=(
        ScalarField("id", "integer", primary_key=True),
        ScalarField("name", "string", max_length=10),
        ScalarField("address", "string", max_length=10),
    ),
)


def make_builder(schema, fake, overrides=None):
    builder = RecordBuilder(schema, fake)
    builder.set_column_formatters(builder.guess_column_formatters())
    if overrides:
        builder.merge_column_formatters_with(overrides)
    return builder


@pytest.fixture
def tx(store):
    store.begin()
    yield store
    if store.in_transaction:
        store.rollback()


class TestBuild:
    """build() end to end against a MemoryStore."""

    def test_fills_and_persists(self, fake, tx):
        builder = make_builder(USER, fake)

        record = builder.build(InsertedRegistry(), tx)

        assert record.identity == 1
        assert "@" in record["email"]
        assert isinstance(record["is_active"], bool)
        assert tx.rows("shop.User")[0]["email"] == record["email"]

    def test_string_values_are_truncated(self, fake, tx):
        builder = make_builder(NOTE, fake, {"name": lambda inserted, record: "x" * 50})

        record = builder.build(InsertedRegistry(), tx)

        assert record["name"] == "x" * 10

    def test_guessed_values_are_truncated(self, fake, tx):
        builder = make_builder(NOTE, fake)

        for _ in range(5):
            record = builder.build(InsertedRegistry(), tx)
            assert len(record["address"]) <= 10

    def test_constants_are_assigned_as_is(self, fake, tx):
        builder = make_builder(USER, fake, {"first_name": "Ada", "is_active": False})

        record = builder.build(InsertedRegistry(), tx)

        assert record["first_name"] == "Ada"
        assert record["is_active"] is False

    def test_none_formatter_leaves_field_unset(self, fake, tx):
        builder = make_builder(USER, fake, {"first_name": None})

        record = builder.build(InsertedRegistry(), tx)

        assert "first_name" not in record

    def test_unknown_field_override_is_ignored(self, fake, tx):
        builder = make_builder(USER, fake, {"nickname": "ada"})

        record = builder.build(InsertedRegistry(), tx)

        assert "nickname" not in record

    def test_foreign_key_uses_related_identity(self, fake, tx):
        inserted = InsertedRegistry()
        category_builder = make_builder(CATEGORY, fake)
        for _ in range(2):
            inserted.add("shop.Category", category_builder.build(inserted, tx))

        product = make_builder(PRODUCT, fake).build(inserted, tx)

        assert product["category"] in inserted["shop.Category"]
        assert tx.rows("shop.Product")[0]["category_id"] == product["category"].identity

    def test_formatter_receives_inserted_and_record(self, fake, tx):
        seen = []

        def formatter(inserted, record):
            seen.append((inserted, record))
            return "Ada"

        inserted = InsertedRegistry()
        record = make_builder(USER, fake, {"first_name": formatter}).build(inserted, tx)

        assert seen == [(inserted, record)]


class TestFormatterErrors:
    def test_argument_errors_are_wrapped(self, fake, tx):
        def broken(inserted, record):
            raise ValueError("bad value")

        builder = make_builder(USER, fake, {"email": broken})

        with pytest.raises(FormatterError) as exc_info:
            builder.build(InsertedRegistry(), tx)

        err = exc_info.value
        assert err.entity == "shop.User"
        assert err.field == "email"
        assert isinstance(err.__cause__, ValueError)
        assert "shop.User::email" in str(err)

    def test_wrong_signature_is_wrapped(self, fake, tx):
        builder = make_builder(USER, fake, {"email": lambda: "a@b.c"})

        with pytest.raises(FormatterError) as exc_info:
            builder.build(InsertedRegistry(), tx)

        assert isinstance(exc_info.value.cause, TypeError)

    def test_other_errors_propagate(self, fake, tx):
        def broken(inserted, record):
            raise RuntimeError("boom")

        builder = make_builder(USER, fake, {"email": broken})

        with pytest.raises(RuntimeError, match="boom"):
            builder.build(InsertedRegistry(), tx)

    def test_nothing_is_inserted_on_formatter_error(self, fake, tx):
        builder = make_builder(USER, fake, {"email": lambda inserted: "x"})

        with pytest.raises(FormatterError):
            builder.build(InsertedRegistry(), tx)

        assert tx.count("shop.User") == 0


class TestModifiers:
    def test_run_in_order_after_formatters(self, fake, tx):
        calls = []

        def first(record, inserted):
            calls.append(("first", record["first_name"]))
            record["first_name"] = "Grace"

        def second(record, inserted):
            calls.append(("second", record["first_name"]))

        builder = make_builder(USER, fake, {"first_name": "Ada"})
        builder.merge_modifiers_with([first])
        builder.merge_modifiers_with([second])

        record = builder.build(InsertedRegistry(), tx)

        assert calls == [("first", "Ada"), ("second", "Grace")]
        assert tx.rows("shop.User")[0]["first_name"] == "Grace"
        assert record.identity is not None

    def test_set_modifiers_replaces(self, fake):
        builder = RecordBuilder(USER, fake)
        builder.merge_modifiers_with([lambda record, inserted: None])
        builder.set_modifiers([])
        assert builder.modifiers == []


class TestManyToMany:
    def _tags(self, fake, tx, n):
        inserted = InsertedRegistry()
        tag_builder = make_builder(TAG, fake)
        for _ in range(n):
            inserted.add("shop.Tag", tag_builder.build(inserted, tx))
        return inserted

    def test_links_written_after_insert(self, fake, tx):
        inserted = self._tags(fake, tx, 4)
        builder = make_builder(ARTICLE, fake, {"tags": lambda inserted, record: list(inserted["shop.Tag"][:2])})

        record = builder.build(inserted, tx)

        assert [t.identity for t in record.links["tags"]] == [1, 2]
        assert tx.links("shop.Article", "tags") == [(record.identity, 1), (record.identity, 2)]
        assert "tags" not in record

    def test_single_record_is_wrapped(self, fake, tx):
        inserted = self._tags(fake, tx, 1)
        builder = make_builder(ARTICLE, fake, {"tags": lambda inserted, record: inserted["shop.Tag"][0]})

        record = builder.build(inserted, tx)

        assert len(record.links["tags"]) == 1

    def test_custom_through_table_is_not_written(self, fake, tx):
        schema = EntitySchema(
            name="shop.Article",
            table="articles",
            fields=ARTICLE.fields,
            many_to_many=(
                RelationField("tags", "shop.Tag", through="article_tags", through_auto_created=False),
            ),
        )
        inserted = self._tags(fake, tx, 3)
        called = []

        def formatter(inserted, record):
            called.append(record)
            return list(inserted["shop.Tag"])

        record = make_builder(schema, fake, {"tags": formatter}).build(inserted, tx)

        assert called == [record]
        assert "tags" not in record.links
        assert tx.links("shop.Article", "tags") == []


class TestFreezing:
    def test_frozen_builder_rejects_changes(self, fake):
        builder = make_builder(USER, fake)
        builder.freeze()

        with pytest.raises(RuntimeError):
            builder.set_column_formatters({})
        with pytest.raises(RuntimeError):
            builder.merge_modifiers_with([])

        builder.unfreeze()
        builder.set_column_formatters({})
        assert builder.column_formatters == {}

    def test_freeze_rewinds_unique_relations(self, fake):
        builder = make_builder(POST, fake)
        author = builder.column_formatters["author"]
        author.position = 3

        builder.freeze()

        assert author.position == 0

    def test_column_formatters_is_a_copy(self, fake):
        builder = make_builder(USER, fake)
        builder.column_formatters.clear()
        assert builder.column_formatters

    def test_guess_requires_generator(self):
        with pytest.raises(RuntimeError):
            RecordBuilder(USER).guess_column_formatters()


def test_repr(fake):
    assert "shop.User" in repr(make_builder(USER, fake))
    assert repr(Record(USER, identity=7)) == "<Record shop.User identity=7>"
