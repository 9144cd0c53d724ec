"""
Purge tag generation.

Tags look like ``<namespace>:<kind>:<value>``. Candidates carry a priority;
the highest-priority ones are kept when the count limit is reached.
"""

from collections import OrderedDict
from dataclasses import dataclass
from typing import Iterable, List, Optional, Tuple

import httpx

from shared.errors import TagGenerationError
from shared.logging import get_logger
from ..config.defaults import FALLBACK_CATEGORY_NAME
from ..config.models import CategoryConfig, EnvironmentConfig
from .request_utils import ascii_host, encoded_path, file_extension, path_segments, query_items


MAX_TAG_LENGTH = 1024
MAX_HEADER_LENGTH = 16 * 1024
DEFAULT_MEMO_CAPACITY = 1024

PREFIX_SEGMENT_LIMIT = 8
PREFIX_EDGE_SEGMENTS = 3

HOST_PRIORITY = 100
TYPE_PRIORITY = 90
EXTENSION_PRIORITY = 85
PATH_PRIORITY = 80
PREFIX_PRIORITY = 70
PREFIX_PRIORITY_STEP = 10
PREFIX_PRIORITY_FLOOR = 30
QUERY_PRIORITY = 40
VERSION_PRIORITY = 20


@dataclass(frozen=True)
class TagSettings:
    """Tagging options resolved from the environment config."""

    namespace: str = "cf"
    max_tags: int = 10
    include_version: bool = True
    version: Optional[str] = None
    include_query_tags: bool = False
    query_params_to_tag: Tuple[str, ...] = ()
    enable_grouping: bool = False

    @classmethod
    def from_environment(cls, environment: EnvironmentConfig, version: Optional[str] = None) -> "TagSettings":
        return cls(
            namespace=environment.cache_tag_namespace,
            max_tags=environment.max_cache_tags,
            include_version=environment.include_version_tag,
            version=version,
            include_query_tags=environment.include_query_tags,
            query_params_to_tag=tuple(environment.query_params_to_tag),
            enable_grouping=environment.enable_tag_grouping,
        )


@dataclass(frozen=True)
class Tag:
    """A candidate tag before selection."""

    kind: str
    value: str
    priority: int
    groupable: bool = False

    def render(self, namespace: str) -> str:
        return f"{namespace}:{self.kind}:{self.value}"


class TagGenerator:
    """Prioritized, deduplicated, size-bounded purge tags with a bounded memo."""

    def __init__(self, memo_capacity: int = DEFAULT_MEMO_CAPACITY):
        self.memo_capacity = max(0, memo_capacity)
        self.logger = get_logger("edge_cache.tags")
        self._memo: "OrderedDict[tuple, Tuple[str, ...]]" = OrderedDict()

    @property
    def memo_size(self) -> int:
        return len(self._memo)

    def generate_tags(
        self,
        request: httpx.Request,
        category_name: str,
        settings: TagSettings,
        category: Optional[CategoryConfig] = None,
    ) -> List[str]:
        excluded = self._excluded_query_params(category)
        memo_key = (str(request.url), category_name, settings, excluded)

        cached = self._memo.get(memo_key)
        if cached is not None:
            self._memo.move_to_end(memo_key)
            return list(cached)

        try:
            candidates = self._candidates(request.url, category_name, settings, excluded)
            if settings.enable_grouping:
                candidates = self._group(candidates)
            tags = self._select(candidates, settings)
        except Exception as e:
            raise TagGenerationError(
                "Failed to generate cache tags",
                {"url": str(request.url), "category": category_name, "error": str(e)},
            ) from e

        self._remember(memo_key, tuple(tags))
        return tags

    def format_for_header(self, tags: Iterable[str]) -> str:
        """Comma-joined valid tags, dropping whole trailing tags past 16 KiB."""
        valid = [tag for tag in tags if self.validate(tag)]
        header = ",".join(valid)
        if len(header) <= MAX_HEADER_LENGTH:
            return header

        kept: List[str] = []
        length = 0
        for tag in valid:
            added = len(tag) + (1 if kept else 0)
            if length + added > MAX_HEADER_LENGTH:
                break
            kept.append(tag)
            length += added

        self.logger.warning(
            "Cache-Tag header exceeds maximum length",
            length=len(header),
            max_length=MAX_HEADER_LENGTH,
            kept=len(kept),
            dropped=len(valid) - len(kept),
        )
        return ",".join(kept)

    @staticmethod
    def validate(tag: str) -> bool:
        """Non-empty, at most 1024 chars, printable ASCII without spaces."""
        if not isinstance(tag, str) or not tag or len(tag) > MAX_TAG_LENGTH:
            return False
        return all(0x21 <= ord(char) <= 0x7E for char in tag)

    def _candidates(
        self,
        url: httpx.URL,
        category_name: str,
        settings: TagSettings,
        excluded: Tuple[str, ...],
    ) -> List[Tag]:
        candidates = [Tag("host", ascii_host(url), HOST_PRIORITY)]

        if category_name and category_name != FALLBACK_CATEGORY_NAME:
            candidates.append(Tag("type", category_name, TYPE_PRIORITY))

        path = encoded_path(url)
        extension = file_extension(path)
        if extension:
            candidates.append(Tag("ext", extension, EXTENSION_PRIORITY))

        segments = path_segments(path)
        if segments:
            candidates.append(Tag("path", path, PATH_PRIORITY))
            candidates.extend(self._prefix_tags(segments))
        else:
            candidates.append(Tag("page", "home", PATH_PRIORITY))

        if settings.include_query_tags:
            for name, value in query_items(url):
                if settings.query_params_to_tag and name not in settings.query_params_to_tag:
                    continue
                if name in excluded:
                    continue
                candidates.append(Tag("query", f"{name}:{value}", QUERY_PRIORITY, groupable=True))

        if settings.include_version and settings.version:
            candidates.append(Tag("version", settings.version, VERSION_PRIORITY))

        return candidates

    def _prefix_tags(self, segments: List[str]) -> List[Tag]:
        if len(segments) > PREFIX_SEGMENT_LIMIT:
            segments = segments[:PREFIX_EDGE_SEGMENTS] + segments[-PREFIX_EDGE_SEGMENTS:]

        tags = []
        prefix = ""
        priority = PREFIX_PRIORITY
        for segment in segments:
            prefix += f"/{segment}"
            tags.append(Tag("prefix", prefix, priority, groupable=True))
            priority = max(PREFIX_PRIORITY_FLOOR, priority - PREFIX_PRIORITY_STEP)
        return tags

    def _group(self, candidates: List[Tag]) -> List[Tag]:
        """Coalesce groupable tags of one kind into ``<kind>:group:<v1>+<v2>``."""
        result = [tag for tag in candidates if not tag.groupable]
        groups: "OrderedDict[str, List[Tag]]" = OrderedDict()
        for tag in candidates:
            if tag.groupable:
                groups.setdefault(tag.kind, []).append(tag)

        for kind, members in groups.items():
            if len(members) == 1:
                result.append(members[0])
                continue
            values = list(dict.fromkeys(tag.value for tag in members))
            priority = max(tag.priority for tag in members)
            result.append(Tag(kind, "group:" + "+".join(values), priority))
        return result

    def _select(self, candidates: List[Tag], settings: TagSettings) -> List[str]:
        ordered = sorted(candidates, key=lambda tag: tag.priority, reverse=True)
        rendered = [tag.render(settings.namespace) for tag in ordered[: settings.max_tags]]

        selected = []
        seen = set()
        for tag in rendered:
            if tag in seen:
                continue
            seen.add(tag)
            if self.validate(tag):
                selected.append(tag)
            else:
                self.logger.debug("Dropping invalid cache tag", tag=tag[:64])
        return selected

    def _remember(self, key: tuple, tags: Tuple[str, ...]) -> None:
        if self.memo_capacity == 0:
            return
        self._memo[key] = tags
        self._memo.move_to_end(key)
        while len(self._memo) > self.memo_capacity:
            self._memo.popitem(last=False)

    @staticmethod
    def _excluded_query_params(category: Optional[CategoryConfig]) -> Tuple[str, ...]:
        if category is None or category.query_params is None:
            return ()
        return tuple(category.query_params.exclude_params)
