"""Tests for the product-dependency graph."""

import pytest

from xcfpack.exceptions import ConfigError, ManifestError
from xcfpack.manifest.products import (
    BinaryRef,
    ProductDefinition,
    TargetRef,
    parse_dependency,
    parse_products,
    unique_binaries,
    validate_products,
)


def test_parse_dependency_forms() -> None:
    assert parse_dependency("FirebaseAuth") == BinaryRef("FirebaseAuth")
    assert parse_dependency({"binary": "nanopb"}) == BinaryRef("nanopb")
    assert parse_dependency({"product": "FirebaseCore"}) == TargetRef("FirebaseCore")
    assert parse_dependency("@FirebaseCoreTarget") == TargetRef("FirebaseCore")


@pytest.mark.parametrize("value", ["", "@", {"target": "X"}, {"binary": 3}, 42])
def test_parse_dependency_rejects_invalid(value: object) -> None:
    with pytest.raises(ConfigError):
        parse_dependency(value)


def test_parse_products_preserves_order() -> None:
    products = parse_products(
        [
            {"name": "Second", "dependencies": ["Z", "Y"]},
            {"name": "First", "dependencies": [{"product": "Second"}, "X"]},
        ]
    )
    assert [p.name for p in products] == ["Second", "First"]
    assert products[0].dependencies == (BinaryRef("Z"), BinaryRef("Y"))
    assert products[1].dependencies == (TargetRef("Second"), BinaryRef("X"))
    assert products[1].target_name == "FirstTarget"
    assert products[1].source_path == "Sources/First"


def test_unique_binaries_deduplicates_and_sorts() -> None:
    products = [
        ProductDefinition("One", [BinaryRef("Y"), BinaryRef("X")]),
        ProductDefinition("Two", [TargetRef("One"), BinaryRef("Z"), BinaryRef("Y")]),
    ]
    assert unique_binaries(products) == ["X", "Y", "Z"]


def test_unique_binaries_sort_ignores_case() -> None:
    products = [
        ProductDefinition(
            "P", [BinaryRef("nanopb"), BinaryRef("GTMAppAuth"), BinaryRef("GoogleSignIn")]
        )
    ]
    assert unique_binaries(products) == ["GoogleSignIn", "GTMAppAuth", "nanopb"]


def test_validate_products_rejects_undeclared_reference() -> None:
    products = [ProductDefinition("Auth", [TargetRef("Core")])]
    with pytest.raises(ManifestError, match="undeclared product 'Core'"):
        validate_products(products)


def test_validate_products_rejects_duplicates_and_self_reference() -> None:
    with pytest.raises(ManifestError, match="declared more than once"):
        validate_products([ProductDefinition("A", []), ProductDefinition("A", [])])
    with pytest.raises(ManifestError, match="references itself"):
        validate_products([ProductDefinition("A", [TargetRef("A")])])
