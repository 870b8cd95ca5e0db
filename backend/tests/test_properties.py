"""
Property-based tests for cursor encoding and cache key derivation.
"""

from datetime import datetime
from decimal import Decimal

import pytest
from hypothesis import given, settings as hypothesis_settings, strategies as st

from rest_api.services.catalog import CursorCodec, CursorDecodeError
from shared.infrastructure.cache import build_cache_key

codec = CursorCodec("property-test-secret")

row_ids = st.text(min_size=1, max_size=40)
timestamps = st.datetimes(min_value=datetime(1970, 1, 1), max_value=datetime(2100, 1, 1))
prices = st.decimals(min_value=0, max_value=Decimal("99999999.99"), places=2, allow_nan=False, allow_infinity=False)
names = st.text(min_size=1, max_size=255)


class TestCursorProperties:

    @given(value=timestamps, row_id=row_ids, field=st.sampled_from(["createdAt", "updatedAt"]))
    @hypothesis_settings(max_examples=100)
    def test_timestamp_round_trip(self, value, row_id, field):
        assert codec.decode(codec.encode(field, value, row_id), field) == (value, row_id)

    @given(value=prices, row_id=row_ids)
    @hypothesis_settings(max_examples=100)
    def test_price_round_trip(self, value, row_id):
        decoded, decoded_id = codec.decode(codec.encode("price", value, row_id), "price")
        assert decoded == value
        assert decoded_id == row_id

    @given(value=names, row_id=row_ids)
    @hypothesis_settings(max_examples=100)
    def test_name_round_trip(self, value, row_id):
        assert codec.decode(codec.encode("name", value, row_id), "name") == (value, row_id)

    @given(value=names, row_id=row_ids, position=st.integers(min_value=0))
    @hypothesis_settings(max_examples=100)
    def test_any_single_character_change_is_rejected(self, value, row_id, position):
        token = codec.encode("name", value, row_id)
        index = position % len(token)
        replacement = "A" if token[index] != "A" else "B"
        tampered = token[:index] + replacement + token[index + 1:]
        with pytest.raises(CursorDecodeError):
            codec.decode(tampered, "name")


class TestCacheKeyProperties:

    @given(
        params=st.dictionaries(
            st.text(alphabet="abcdefghijklmnopqrstuvwxyz", min_size=1, max_size=8),
            st.one_of(st.none(), st.integers(), st.text(max_size=30)),
            max_size=8,
        )
    )
    @hypothesis_settings(max_examples=100)
    def test_key_ignores_parameter_order(self, params):
        reversed_params = dict(reversed(list(params.items())))
        assert build_cache_key("products", params) == build_cache_key("products", reversed_params)

    @given(
        a=st.dictionaries(st.text(min_size=1, max_size=10), st.text(max_size=40), max_size=4),
        b=st.dictionaries(st.text(min_size=1, max_size=10), st.text(max_size=40), max_size=4),
    )
    @hypothesis_settings(max_examples=200)
    def test_distinct_params_give_distinct_keys(self, a, b):
        if a != b:
            assert build_cache_key("products", a) != build_cache_key("products", b)

    @given(params=st.dictionaries(st.text(min_size=1, max_size=20), st.text(max_size=400), max_size=5))
    @hypothesis_settings(max_examples=100)
    def test_key_length_is_bounded(self, params):
        assert len(build_cache_key("products", params)) <= 200
