"""
Pytest fixtures shared by the populator tests.

Provides:
- A seeded Faker generator
- A small shop schema (users, posts, categories, products, tags, articles,
  employees) covering unique, non-unique, self-referential and
  many-to-many relations
- A fresh MemoryStore per test
"""

import pytest
from faker import Faker

from populator.schema import EntitySchema, RelationField, ScalarField, SchemaRegistry
from populator.storage import MemoryStore

RANDOM_SEED = 42

PK = ScalarField("id", "integer", primary_key=True)

USER = EntitySchema(
    name="shop.User",
    table="users",
    fields=(
        PK,
        ScalarField("email", "string", max_length=120),
        ScalarField("first_name", "string", max_length=50),
        ScalarField("is_active", "boolean"),
    ),
)

POST = EntitySchema(
    name="shop.Post",
    table="posts",
    fields=(
        PK,
        ScalarField("title", "string", max_length=100),
        ScalarField("views", "integer"),
    ),
    relations=(RelationField("author", "shop.User", unique=True, nullable=False),),
)

CATEGORY = EntitySchema(
    name="shop.Category",
    table="categories",
    fields=(PK, ScalarField("name", "string", max_length=40)),
)

PRODUCT = EntitySchema(
    name="shop.Product",
    table="products",
    fields=(
        PK,
        ScalarField("sku", "string", max_length=12),
        ScalarField("price", "decimal", decimal_places=2),
        ScalarField("stock", "smallint"),
    ),
    relations=(RelationField("category", "shop.Category"),),
)

TAG = EntitySchema(
    name="shop.Tag",
    table="tags",
    fields=(PK, ScalarField("label", "string", max_length=20)),
)

ARTICLE = EntitySchema(
    name="shop.Article",
    table="articles",
    fields=(PK, ScalarField("headline", "string", max_length=60)),
    many_to_many=(RelationField("tags", "shop.Tag", through="article_tags"),),
)

EMPLOYEE = EntitySchema(
    name="shop.Employee",
    table="employees",
    fields=(PK, ScalarField("last_name", "string", max_length=50)),
    relations=(RelationField("manager", "shop.Employee", nullable=True),),
)

ALL_SCHEMAS = [USER, POST, CATEGORY, PRODUCT, TAG, ARTICLE, EMPLOYEE]


@pytest.fixture
def fake() -> Faker:
    """Seeded Faker for reproducible values."""
    generator = Faker("en_US")
    generator.seed_instance(RANDOM_SEED)
    return generator


@pytest.fixture
def registry() -> SchemaRegistry:
    return SchemaRegistry(ALL_SCHEMAS)


@pytest.fixture
def store() -> MemoryStore:
    return MemoryStore()
