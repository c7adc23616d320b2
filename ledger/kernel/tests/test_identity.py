"""Tests for customer keys and deterministic record ids."""

import pytest

from ledger.kernel.identity import KEY_SEPARATOR, customer_key, item_record_id, payment_record_id


class TestCustomerKey:
    @pytest.mark.parametrize(
        "raw, expected",
        [
            ("Ana", "ana"),
            ("  Ana Gómez  ", "ana gómez"),
            ("ANA", "ana"),
            ("ana  maría", "ana  maría"),
        ],
    )
    def test_trims_and_lowercases(self, raw, expected):
        assert customer_key(raw) == expected

    @pytest.mark.parametrize("raw", ["", "   ", "\t\n", None])
    def test_blank_yields_empty(self, raw):
        assert customer_key(raw) == ""

    def test_case_and_padding_variants_collapse(self):
        assert customer_key(" Ana") == customer_key("ANA ") == customer_key("ana")


class TestRecordIds:
    def test_item_record_id(self):
        assert item_record_id("uid1", "ana", "oreo manjar") == "uid1:ana:oreo manjar"

    def test_payment_record_id(self):
        assert payment_record_id("uid1", "ana") == "uid1:ana"

    def test_ids_are_deterministic(self):
        assert item_record_id("u", "ana", "cubo") == item_record_id("u", "ana", "cubo")
        assert payment_record_id("u", "ana") == payment_record_id("u", "ana")

    def test_distinct_triples_get_distinct_ids(self):
        ids = {
            item_record_id(owner, key, product)
            for owner in ("u1", "u2")
            for key in ("ana", "luis")
            for product in ("cubo", "oreo", "oreo manjar")
        }
        assert len(ids) == 12

    def test_separator_in_components_can_collide(self):
        # Documented constraint: components must not contain the separator
        assert KEY_SEPARATOR == ":"
        assert item_record_id("u", "a:b", "c") == item_record_id("u", "a", "b:c")
