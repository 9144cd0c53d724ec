"""
Request classification against a configuration snapshot.
"""

import httpx

from shared.logging import get_logger
from ..config.defaults import FALLBACK_CATEGORY, FALLBACK_CATEGORY_NAME
from ..config.models import CategoryMatch, ConfigSnapshot
from .request_utils import encoded_path


class Classifier:
    """First category whose pattern matches the request path wins."""

    def __init__(self):
        self.logger = get_logger("edge_cache.classifier")

    def classify(self, request: httpx.Request, snapshot: ConfigSnapshot) -> CategoryMatch:
        path = encoded_path(request.url)

        for name, config in snapshot.categories:
            if config.matches(path):
                self.logger.debug("Request classified", path=path, category=name)
                return CategoryMatch(name=name, config=config)

        self.logger.debug("No category matched, using default", path=path)
        return CategoryMatch(name=FALLBACK_CATEGORY_NAME, config=FALLBACK_CATEGORY)
