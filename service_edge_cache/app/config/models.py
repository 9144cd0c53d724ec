"""
Cache policy configuration models.

Stored documents use camelCase keys (``regexPattern``, ``clientError``);
attributes use snake_case. Every model is frozen after validation.
"""

import re
from dataclasses import dataclass
from typing import Annotated, Any, Dict, List, Literal, Mapping, Optional, Pattern, Tuple

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    PrivateAttr,
    StrictInt,
    TypeAdapter,
    ValidationError,
    field_validator,
    model_validator,
)
from pydantic.alias_generators import to_camel

from shared.errors import ConfigValidationError


NonNegativeInt = Annotated[StrictInt, Field(ge=0)]
PositiveInt = Annotated[StrictInt, Field(gt=0)]

STATUS_KEY = re.compile(r"[1-5][0-9]{2}")
CATEGORY_NAME = re.compile(r"[A-Za-z0-9_.-]+")
RESERVED_CATEGORY = "default"


class ConfigModel(BaseModel):
    """Base for stored configuration documents."""

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="ignore",
    )

    def to_document(self) -> Dict[str, Any]:
        """Serialize to the stored (camelCase JSON) form."""
        return self.model_dump(mode="json", by_alias=True, exclude_none=True)


class TtlConfig(ConfigModel):
    """TTL seconds per status class, plus explicit per-status overrides.

    Overrides are extra keys named by a status code, e.g. ``{"404": 5}``.
    """

    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        frozen=True,
        extra="allow",
    )

    ok: NonNegativeInt
    redirects: NonNegativeInt
    client_error: NonNegativeInt
    server_error: NonNegativeInt
    info: Optional[NonNegativeInt] = None

    @model_validator(mode="after")
    def _check_status_overrides(self) -> "TtlConfig":
        for key, value in (self.model_extra or {}).items():
            if not STATUS_KEY.fullmatch(key):
                raise ValueError(f"unknown TTL key {key!r}; extra keys must be HTTP status codes")
            if value is None:
                continue
            if isinstance(value, bool) or not isinstance(value, int) or value < 0:
                raise ValueError(f"TTL override for {key} must be a non-negative integer")
        return self

    @property
    def status_overrides(self) -> Dict[int, int]:
        """Explicit per-status TTLs keyed by status code."""
        return {
            int(key): value
            for key, value in (self.model_extra or {}).items()
            if value is not None
        }


class QueryParamConfig(ConfigModel):
    """How query parameters take part in the cache key."""

    include: bool
    include_params: Tuple[str, ...] = ()
    exclude_params: Tuple[str, ...] = ()
    sort_params: bool = False
    normalize_values: bool = False


class VariantConfig(ConfigModel):
    """Request attributes that split one URL into several cache entries."""

    headers: Tuple[str, ...] = ()
    cookies: Tuple[str, ...] = ()
    client_hints: Tuple[str, ...] = ()
    use_accept_header: bool = False
    use_user_agent: bool = False
    use_client_ip: bool = Field(default=False, alias="useClientIP")


class CacheDirectivesConfig(ConfigModel):
    """Extra Cache-Control directives."""

    private: bool = False
    stale_while_revalidate: Optional[NonNegativeInt] = None
    stale_if_error: Optional[NonNegativeInt] = None
    must_revalidate: bool = False
    no_cache: bool = False
    no_store: bool = False
    immutable: bool = False


class CategoryConfig(ConfigModel):
    """Caching policy for one category of requests."""

    regex_pattern: str
    use_query_in_cache_key: bool
    query_params: Optional[QueryParamConfig] = None
    variants: Optional[VariantConfig] = None
    ttl: TtlConfig
    image_optimization: bool = False
    minify_css: bool = False
    cache_directives: Optional[CacheDirectivesConfig] = None
    prevent_cache_control_override: bool = False

    _matcher: Pattern[str] = PrivateAttr()

    @field_validator("regex_pattern")
    @classmethod
    def _check_pattern(cls, value: str) -> str:
        try:
            re.compile(value)
        except re.error as exc:
            raise ValueError(f"invalid regex pattern: {exc}") from exc
        return value

    def model_post_init(self, __context: Any) -> None:
        self._matcher = re.compile(self.regex_pattern)

    @property
    def is_legacy_key_mode(self) -> bool:
        """No query or variant policy: the key follows ``use_query_in_cache_key`` only."""
        return self.query_params is None and self.variants is None

    def matches(self, path: str) -> bool:
        """Case-sensitive search of the pattern over a request path."""
        return self._matcher.search(path) is not None


LogLevel = Literal["DEBUG", "INFO", "WARN", "ERROR"]


class EnvironmentConfig(ConfigModel):
    """Process-wide settings stored alongside the categories."""

    environment: str = "development"
    log_level: LogLevel = "INFO"
    debug_mode: bool = False
    max_cache_tags: PositiveInt = 10
    cache_tag_namespace: str = Field(default="cf", min_length=1, pattern=r"^[\x21-\x7e]+$")
    version: str = "dev"
    config_refresh_interval: PositiveInt = 300
    schema_version: str = "1"
    include_version_tag: bool = True
    include_query_tags: bool = False
    query_params_to_tag: Tuple[str, ...] = ()
    enable_tag_grouping: bool = False


@dataclass(frozen=True)
class CategoryMatch:
    """A classified request: category name and its policy."""

    name: str
    config: CategoryConfig

    @property
    def is_default(self) -> bool:
        return self.name == RESERVED_CATEGORY


@dataclass(frozen=True)
class ConfigSnapshot:
    """Immutable view of all configuration at one point in time.

    Categories keep their declared order, which is the matching priority.
    """

    environment: EnvironmentConfig
    categories: Tuple[Tuple[str, CategoryConfig], ...]
    version: str

    @property
    def category_names(self) -> List[str]:
        return [name for name, _ in self.categories]

    def category(self, name: str) -> Optional[CategoryConfig]:
        for category_name, config in self.categories:
            if category_name == name:
                return config
        return None


_category_map_adapter = TypeAdapter(Dict[str, CategoryConfig])


def _error_details(exc: ValidationError) -> Dict[str, Any]:
    """JSON-safe summary of pydantic validation errors."""
    return {
        "errors": [
            {
                "loc": [str(part) for part in error["loc"]],
                "msg": error["msg"],
                "type": error["type"],
            }
            for error in exc.errors()
        ]
    }


def validate_environment_config(document: Any) -> EnvironmentConfig:
    """Validate a stored or submitted environment document."""
    if isinstance(document, EnvironmentConfig):
        return document
    try:
        return EnvironmentConfig.model_validate(document)
    except ValidationError as exc:
        raise ConfigValidationError("Invalid environment config", _error_details(exc)) from exc


def validate_category_name(name: str) -> str:
    """Category names end up in purge tags; keep them tag-safe and unreserved."""
    if not isinstance(name, str) or not CATEGORY_NAME.fullmatch(name):
        raise ConfigValidationError(
            "Invalid category name",
            {"name": name, "allowed": CATEGORY_NAME.pattern},
        )
    if name == RESERVED_CATEGORY:
        raise ConfigValidationError(
            "Category name is reserved",
            {"name": name},
        )
    return name


def validate_category_config(document: Any) -> CategoryConfig:
    """Validate a single submitted category document."""
    if isinstance(document, CategoryConfig):
        return document
    try:
        return CategoryConfig.model_validate(document)
    except ValidationError as exc:
        raise ConfigValidationError("Invalid category config", _error_details(exc)) from exc


def validate_category_document(document: Any) -> Dict[str, CategoryConfig]:
    """Validate the stored categories document (name -> config, in order)."""
    if not isinstance(document, Mapping):
        raise ConfigValidationError(
            "Categories document must be an object",
            {"type": type(document).__name__},
        )
    for name in document:
        validate_category_name(name)
    try:
        return _category_map_adapter.validate_python(dict(document))
    except ValidationError as exc:
        raise ConfigValidationError("Invalid category configs", _error_details(exc)) from exc


def serialize_categories(categories: Mapping[str, CategoryConfig]) -> Dict[str, Any]:
    """Stored form of an ordered category mapping."""
    return {name: config.to_document() for name, config in categories.items()}
