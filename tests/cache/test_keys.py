"""Tests for deterministic cache key derivation."""

import hashlib

from tiercache.cache.keys import KEY_NAMESPACE, canonical_request, derive_key


class TestDeriveKey:
    def test_insertion_order_does_not_matter(self) -> None:
        k1 = derive_key("Q", {"b": 2, "a": 1}, "f", {"y": 2, "x": 1})
        k2 = derive_key("Q", {"a": 1, "b": 2}, "f", {"x": 1, "y": 2})
        assert k1 == k2

    def test_nested_maps_are_sorted(self) -> None:
        k1 = derive_key("Q", {"filter": {"z": 1, "a": {"d": 4, "c": 3}}}, "f", {})
        k2 = derive_key("Q", {"filter": {"a": {"c": 3, "d": 4}, "z": 1}}, "f", {})
        assert k1 == k2

    def test_list_order_matters(self) -> None:
        k1 = derive_key("Q", {"ids": [1, 2]}, "f", {})
        k2 = derive_key("Q", {"ids": [2, 1]}, "f", {})
        assert k1 != k2

    def test_namespace_prefix_and_digest_length(self) -> None:
        key = derive_key("Q", {}, "f", {})
        assert key.startswith(KEY_NAMESPACE)
        assert len(key) == len(KEY_NAMESPACE) + 64

    def test_digest_is_sha256_of_canonical_form(self) -> None:
        canonical = canonical_request("Q", {"a": 1}, "f", {"x": 1})
        expected = hashlib.sha256(canonical.encode("utf-8")).hexdigest()
        assert derive_key("Q", {"a": 1}, "f", {"x": 1}) == KEY_NAMESPACE + expected

    def test_missing_operation_is_anonymous(self) -> None:
        assert derive_key(None, {}, "f", {}) == derive_key("anonymous", {}, "f", {})
        assert derive_key("", {}, "f", {}) == derive_key("anonymous", {}, "f", {})

    def test_none_maps_equal_empty_maps(self) -> None:
        assert derive_key("Q", None, "f", None) == derive_key("Q", {}, "f", {})

    def test_different_fields_differ(self) -> None:
        assert derive_key("Q", {}, "user", {}) != derive_key("Q", {}, "users", {})

    def test_args_and_variables_are_not_interchangeable(self) -> None:
        assert derive_key("Q", {"a": 1}, "f", {}) != derive_key("Q", {}, "f", {"a": 1})

    def test_non_json_values_are_stringified(self) -> None:
        class Marker:
            def __str__(self) -> str:
                return "marker"

        k1 = derive_key("Q", {"m": Marker()}, "f", {})
        k2 = derive_key("Q", {"m": "marker"}, "f", {})
        assert k1 == k2

    def test_deterministic_across_calls(self) -> None:
        args = {"page": 2, "tags": ["a", "b"]}
        assert derive_key("Q", {}, "f", args) == derive_key("Q", {}, "f", dict(args))
