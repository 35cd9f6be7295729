"""The product-dependency graph the manifest is generated from."""

from collections.abc import Iterable, Mapping, Sequence
from typing import Any

from attrs import define, field

from ..exceptions import ConfigError, ManifestError

WRAPPER_TARGET_SUFFIX = "Target"
LEGACY_TARGET_PREFIX = "@"


@define(frozen=True, slots=True)
class BinaryRef:
    """A dependency on a packaged binary artifact."""

    name: str


@define(frozen=True, slots=True)
class TargetRef:
    """A dependency on the wrapper target of another declared product."""

    product: str

    @property
    def target_name(self) -> str:
        return f"{self.product}{WRAPPER_TARGET_SUFFIX}"


Dependency = BinaryRef | TargetRef


@define(frozen=True, slots=True)
class ProductDefinition:
    name: str
    dependencies: tuple[Dependency, ...] = field(converter=tuple)

    @property
    def target_name(self) -> str:
        return f"{self.name}{WRAPPER_TARGET_SUFFIX}"

    @property
    def source_path(self) -> str:
        return f"Sources/{self.name}"

    @property
    def binaries(self) -> tuple[BinaryRef, ...]:
        return tuple(dep for dep in self.dependencies if isinstance(dep, BinaryRef))


def parse_dependency(value: Any) -> Dependency:
    """
    Accepts `"Name"` (binary), `{binary = "Name"}`, `{product = "Name"}`, or the
    legacy `"@NameTarget"` wrapper-target form.
    """
    if isinstance(value, str):
        if value.startswith(LEGACY_TARGET_PREFIX):
            target = value[len(LEGACY_TARGET_PREFIX) :]
            if not target:
                raise ConfigError("Empty wrapper-target reference '@'.")
            return TargetRef(product=target.removesuffix(WRAPPER_TARGET_SUFFIX) or target)
        if not value:
            raise ConfigError("Empty binary artifact name in product dependencies.")
        return BinaryRef(name=value)
    if isinstance(value, Mapping):
        if set(value) == {"binary"} and isinstance(value["binary"], str):
            return BinaryRef(name=value["binary"])
        if set(value) == {"product"} and isinstance(value["product"], str):
            return TargetRef(product=value["product"])
    raise ConfigError(
        f"Invalid product dependency {value!r}; expected a name, "
        "{binary = \"...\"} or {product = \"...\"}."
    )


def parse_products(raw_products: Sequence[Mapping[str, Any]]) -> tuple[ProductDefinition, ...]:
    products = []
    for raw in raw_products:
        name = raw.get("name")
        if not name or not isinstance(name, str):
            raise ConfigError(f"Product entry is missing a 'name': {dict(raw)!r}")
        dependencies = raw.get("dependencies", [])
        if not isinstance(dependencies, list):
            raise ConfigError(f"Product '{name}' dependencies must be a list.")
        products.append(
            ProductDefinition(
                name=name,
                dependencies=[parse_dependency(dep) for dep in dependencies],
            )
        )
    return tuple(products)


def validate_products(products: Sequence[ProductDefinition]) -> None:
    """Rejects duplicate products and references to undeclared products."""
    declared: set[str] = set()
    for product in products:
        if product.name in declared:
            raise ManifestError(f"Product '{product.name}' is declared more than once.")
        declared.add(product.name)

    for product in products:
        for dep in product.dependencies:
            if isinstance(dep, TargetRef):
                if dep.product not in declared:
                    raise ManifestError(
                        f"Product '{product.name}' references undeclared product "
                        f"'{dep.product}'."
                    )
                if dep.product == product.name:
                    raise ManifestError(f"Product '{product.name}' references itself.")


def unique_binaries(products: Iterable[ProductDefinition]) -> list[str]:
    """Every binary artifact referenced by any product, once each, sorted by name."""
    names = {ref.name for product in products for ref in product.binaries}
    return sorted(names, key=lambda name: (name.casefold(), name))
