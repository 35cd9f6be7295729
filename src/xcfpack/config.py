"""Loads `[tool.xcfpack]` from pyproject.toml into a PackConfig."""

from collections.abc import Mapping
import enum
from pathlib import Path
import tomllib
from typing import Any

from attrs import define, field

from . import defaults
from .exceptions import ConfigError
from .manifest.products import ProductDefinition, parse_products
from .models import PrebuiltArtifactSpec, SourceArtifactSpec

CONFIG_TABLE = ("tool", "xcfpack")


class Toolchain(enum.Enum):
    BUILTIN = "builtin"
    SYSTEM = "system"


class HeaderCollisionPolicy(enum.Enum):
    ERROR = "error"
    OVERWRITE = "overwrite"


def _to_path(value: str | Path) -> Path:
    return Path(value).expanduser()


def _parse_prebuilt(raw: list[Mapping[str, Any]]) -> tuple[PrebuiltArtifactSpec, ...]:
    specs = []
    for entry in raw:
        path = entry.get("path")
        if not path or not isinstance(path, str):
            raise ConfigError(f"Prebuilt entry is missing a 'path': {dict(entry)!r}")
        specs.append(PrebuiltArtifactSpec(path=path, optional=bool(entry.get("optional", False))))
    return tuple(specs)


def _parse_artifacts(raw: list[Mapping[str, Any]]) -> tuple[SourceArtifactSpec, ...]:
    specs = []
    seen: set[str] = set()
    for entry in raw:
        name = entry.get("name")
        if not name or not isinstance(name, str):
            raise ConfigError(f"Artifact entry is missing a 'name': {dict(entry)!r}")
        if name in seen:
            raise ConfigError(f"Artifact '{name}' is declared more than once.")
        seen.add(name)
        modules = entry.get("modules", [name])
        if isinstance(modules, str) or not isinstance(modules, list):
            raise ConfigError(f"Artifact '{name}' modules must be a list of module names.")
        try:
            specs.append(
                SourceArtifactSpec(
                    name=name,
                    modules=modules,
                    header_source=entry.get("headers"),
                    optional=bool(entry.get("optional", False)),
                )
            )
        except ValueError as e:
            raise ConfigError(str(e)) from e
    return tuple(specs)


@define(frozen=True, slots=True)
class PackConfig:
    firebase_version: str = defaults.DEFAULT_FIREBASE_VERSION
    googlesignin_version: str = defaults.DEFAULT_GOOGLESIGNIN_VERSION
    work_dir: Path = field(default=Path(defaults.DEFAULT_WORK_DIR), converter=_to_path)
    archive_url: str = defaults.DEFAULT_ARCHIVE_URL
    archive_root: str = defaults.DEFAULT_ARCHIVE_ROOT
    source_url: str = defaults.DEFAULT_SOURCE_URL
    source_product: str = defaults.DEFAULT_SOURCE_PRODUCT
    source_package: str = defaults.DEFAULT_SOURCE_PACKAGE
    platform_version: str = defaults.DEFAULT_PLATFORM_VERSION
    fetch_retries: int = field(default=defaults.DEFAULT_FETCH_RETRIES)
    parallel_builds: bool = False
    toolchain: Toolchain = field(default=Toolchain.BUILTIN, converter=Toolchain)
    header_collisions: HeaderCollisionPolicy = field(
        default=HeaderCollisionPolicy.ERROR, converter=HeaderCollisionPolicy
    )
    bundle_id_prefix: str = defaults.DEFAULT_BUNDLE_ID_PREFIX
    combined_zip_name: str = defaults.DEFAULT_COMBINED_ZIP_NAME
    checksums_filename: str = defaults.DEFAULT_CHECKSUMS_FILENAME
    package_name: str = defaults.DEFAULT_PACKAGE_NAME
    base_url: str = defaults.DEFAULT_BASE_URL
    local_probe: str = defaults.DEFAULT_LOCAL_PROBE
    lock_timeout: float = 0
    prebuilt: tuple[PrebuiltArtifactSpec, ...] = field(
        factory=lambda: _parse_prebuilt(defaults.DEFAULT_PREBUILT)
    )
    artifacts: tuple[SourceArtifactSpec, ...] = field(
        factory=lambda: _parse_artifacts(defaults.DEFAULT_ARTIFACTS)
    )
    products: tuple[ProductDefinition, ...] = field(
        factory=lambda: parse_products(defaults.DEFAULT_PRODUCTS)
    )

    @fetch_retries.validator
    def _check_retries(self, attribute: object, value: int) -> None:
        if not isinstance(value, int) or value < 0:
            raise ConfigError(f"fetch_retries must be a non-negative integer, got {value!r}.")

    @property
    def output_dir(self) -> Path:
        return self.work_dir / "output"

    @property
    def zips_dir(self) -> Path:
        return self.work_dir / "zips"

    @property
    def checksums_file(self) -> Path:
        return self.zips_dir / self.checksums_filename

    @property
    def lock_path(self) -> Path:
        return self.work_dir.with_name(f"{self.work_dir.name}.lock")

    @property
    def archive_download_url(self) -> str:
        return self.archive_url.format(version=self.firebase_version)


_SCALAR_KEYS = {
    "firebase_version",
    "googlesignin_version",
    "work_dir",
    "archive_url",
    "archive_root",
    "source_url",
    "source_product",
    "source_package",
    "platform_version",
    "fetch_retries",
    "parallel_builds",
    "toolchain",
    "header_collisions",
    "bundle_id_prefix",
    "combined_zip_name",
    "checksums_filename",
    "package_name",
    "base_url",
    "local_probe",
    "lock_timeout",
}
_TABLE_KEYS = {"prebuilt", "artifacts", "products"}


def config_from_mapping(data: Mapping[str, Any], base_dir: Path | None = None) -> PackConfig:
    unknown = set(data) - _SCALAR_KEYS - _TABLE_KEYS
    if unknown:
        raise ConfigError(f"Unknown [tool.xcfpack] keys: {', '.join(sorted(unknown))}")

    kwargs: dict[str, Any] = {key: data[key] for key in _SCALAR_KEYS if key in data}
    if "work_dir" in kwargs and base_dir is not None:
        kwargs["work_dir"] = base_dir / Path(kwargs["work_dir"]).expanduser()
    if "prebuilt" in data:
        kwargs["prebuilt"] = _parse_prebuilt(data["prebuilt"])
    if "artifacts" in data:
        kwargs["artifacts"] = _parse_artifacts(data["artifacts"])
    if "products" in data:
        kwargs["products"] = parse_products(data["products"])

    try:
        return PackConfig(**kwargs)
    except (TypeError, ValueError) as e:
        raise ConfigError(f"Invalid [tool.xcfpack] configuration: {e}") from e


def load_config(pyproject_path: Path | None) -> PackConfig:
    """Reads the config table; a missing file or table means all defaults."""
    if pyproject_path is None or not pyproject_path.exists():
        return PackConfig()
    try:
        with pyproject_path.open("rb") as f:
            pyproject_data = tomllib.load(f)
    except tomllib.TOMLDecodeError as e:
        raise ConfigError(f"Could not parse {pyproject_path}: {e}") from e

    table: Any = pyproject_data
    for key in CONFIG_TABLE:
        table = table.get(key, {}) if isinstance(table, Mapping) else {}
    if not isinstance(table, Mapping):
        raise ConfigError("[tool.xcfpack] must be a table.")
    return config_from_mapping(table, base_dir=pyproject_path.parent)
