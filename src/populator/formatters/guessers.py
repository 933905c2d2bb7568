"""
Name- and type-based formatter guessers backed by Faker.

Both guessers return either a formatter callable `(inserted, record) -> value`
or None when they have nothing sensible to offer for a field. None is not an
error: the field is simply left unset.
"""

import re
from collections.abc import Callable
from typing import Any

from faker import Faker

from ..schema import DB_TYPES, ScalarField

Formatter = Callable[[Any, Any], Any]

# Integer column bounds
SMALLINT_MAX = 65535
INTEGER_MAX = 2**31 - 1
BIGINT_MAX = 2**64 - 1
FLOAT_OPERAND_MAX = 2**32 - 1

DEFAULT_STRING_LENGTH = 255
DEFAULT_DECIMAL_PLACES = 2

# Faker's text provider refuses anything shorter than this
_MIN_TEXT_CHARS = 5


def _snake(name: str) -> str:
    """firstName / FirstName / first_name -> first_name"""
    s1 = re.sub("(.)([A-Z][a-z]+)", r"\1_\2", name)
    return re.sub("([a-z0-9])([A-Z])", r"\1_\2", s1).lower()


def _text(fake: Faker, size: int | None) -> str:
    if size is None:
        return fake.text()
    if size < _MIN_TEXT_CHARS:
        return fake.pystr(min_chars=size, max_chars=size)
    return fake.text(max_nb_chars=size)


# Column types able to hold each kind of value the name guesser produces
_COMPATIBLE_TYPES = {
    "boolean": frozenset({"boolean"}),
    "datetime": frozenset({"date", "datetime"}),
    "float": frozenset({"float", "decimal"}),
    "string": frozenset({"string", "text"}),
}


def _value_kind(name: str) -> str:
    if name.startswith(("is_", "has_")):
        return "boolean"
    if name.endswith(("_at", "_on")) or name in ("date", "datetime", "timestamp"):
        return "datetime"
    if name in ("latitude", "lat", "longitude", "lng"):
        return "float"
    return "string"


class NameGuesser:
    """
    Guess a formatter from the field name.

    Matches the common semantic column names (email, first_name, city, ...)
    and honours the declared max length for free-text columns. When the
    column type is known, guesses of the wrong kind are discarded.
    """

    def __init__(self, generator: Faker):
        self.generator = generator

    def guess_format(
        self, name: str, size: int | None = None, db_type: str | None = None
    ) -> Formatter | None:
        """
        Args:
            name: Field name, in any casing style
            size: Declared max length, bounds free-text guesses
            db_type: Declared column type. A name guess whose values are of
                     another kind (a string for an integer column named
                     `phone`) is dropped so the type guesser takes over.
        """
        name = _snake(name)
        formatter = self._guess_by_name(name, size)
        if formatter is None or db_type not in DB_TYPES:
            return formatter
        if db_type not in _COMPATIBLE_TYPES[_value_kind(name)]:
            return None
        return formatter

    def _guess_by_name(self, name: str, size: int | None) -> Formatter | None:
        fake = self.generator

        if name.startswith(("is_", "has_")):
            return lambda inserted, record: fake.boolean()
        if name.endswith(("_at", "_on")) or name in ("date", "datetime", "timestamp"):
            return lambda inserted, record: fake.date_time()

        simple: dict[str, Formatter] = {
            "first_name": lambda inserted, record: fake.first_name(),
            "firstname": lambda inserted, record: fake.first_name(),
            "last_name": lambda inserted, record: fake.last_name(),
            "lastname": lambda inserted, record: fake.last_name(),
            "name": lambda inserted, record: fake.name(),
            "full_name": lambda inserted, record: fake.name(),
            "username": lambda inserted, record: fake.user_name(),
            "login": lambda inserted, record: fake.user_name(),
            "email": lambda inserted, record: fake.email(),
            "email_address": lambda inserted, record: fake.email(),
            "phone": lambda inserted, record: fake.phone_number(),
            "phone_number": lambda inserted, record: fake.phone_number(),
            "telephone": lambda inserted, record: fake.phone_number(),
            "address": lambda inserted, record: fake.address(),
            "street": lambda inserted, record: fake.street_address(),
            "street_address": lambda inserted, record: fake.street_address(),
            "city": lambda inserted, record: fake.city(),
            "town": lambda inserted, record: fake.city(),
            "postcode": lambda inserted, record: fake.postcode(),
            "zipcode": lambda inserted, record: fake.postcode(),
            "zip_code": lambda inserted, record: fake.postcode(),
            "zip": lambda inserted, record: fake.postcode(),
            "country": lambda inserted, record: fake.country(),
            "country_code": lambda inserted, record: fake.country_code(),
            "latitude": lambda inserted, record: float(fake.latitude()),
            "lat": lambda inserted, record: float(fake.latitude()),
            "longitude": lambda inserted, record: float(fake.longitude()),
            "lng": lambda inserted, record: float(fake.longitude()),
            "url": lambda inserted, record: fake.url(),
            "website": lambda inserted, record: fake.url(),
            "company": lambda inserted, record: fake.company(),
            "company_name": lambda inserted, record: fake.company(),
            "password": lambda inserted, record: fake.password(),
            "slug": lambda inserted, record: fake.slug(),
            "uuid": lambda inserted, record: fake.uuid4(),
            "ip": lambda inserted, record: fake.ipv4(),
            "ip_address": lambda inserted, record: fake.ipv4(),
            "currency": lambda inserted, record: fake.currency_code(),
            "currency_code": lambda inserted, record: fake.currency_code(),
            "locale": lambda inserted, record: fake.locale(),
        }
        if name in simple:
            return simple[name]

        # not every locale has states
        if name in ("state", "province") and hasattr(fake, "state"):
            return lambda inserted, record: fake.state()
        if name == "title":
            return lambda inserted, record: fake.sentence(nb_words=4)
        if name in ("body", "summary", "description", "text", "content", "bio", "comment"):
            return lambda inserted, record: _text(fake, size)

        return None


class ColumnTypeGuesser:
    """Guess a formatter from the declared semantic column type."""

    def __init__(self, generator: Faker):
        self.generator = generator

    def guess_format(self, field: ScalarField) -> Formatter | None:
        fake = self.generator
        rng = fake.random
        db_type = field.db_type

        if db_type not in DB_TYPES:
            # no smart way to guess what the caller expects here
            return None

        if db_type == "boolean":
            return lambda inserted, record: fake.boolean()
        if db_type == "decimal":
            places = field.decimal_places if field.decimal_places is not None else DEFAULT_DECIMAL_PLACES
            return lambda inserted, record: fake.pydecimal(
                left_digits=6, right_digits=places, positive=True
            )
        if db_type == "smallint":
            return lambda inserted, record: rng.randint(0, SMALLINT_MAX)
        if db_type == "integer":
            return lambda inserted, record: rng.randint(0, INTEGER_MAX)
        if db_type == "bigint":
            return lambda inserted, record: rng.randint(0, BIGINT_MAX)
        if db_type == "float":
            return lambda inserted, record: rng.randint(0, FLOAT_OPERAND_MAX) / rng.randint(
                1, FLOAT_OPERAND_MAX
            )
        if db_type == "string":
            size = field.max_length or DEFAULT_STRING_LENGTH
            return lambda inserted, record: _text(fake, size)[:size]
        if db_type == "text":
            return lambda inserted, record: fake.text()
        if db_type == "date":
            return lambda inserted, record: fake.date_object()
        if db_type == "time":
            return lambda inserted, record: fake.time_object()
        return lambda inserted, record: fake.date_time()
