# Copyright 2024 Heinrich Krupp
#
# Licensed under the Apache License, Version 2.0 (the "License");
# you may not use this file except in compliance with the License.
# You may obtain a copy of the License at
#
#     http://www.apache.org/licenses/LICENSE-2.0
#
# Unless required by applicable law or agreed to in writing, software
# distributed under the License is distributed on an "AS IS" BASIS,
# WITHOUT WARRANTIES OR CONDITIONS OF ANY KIND, either express or implied.
# See the License for the specific language governing permissions and
# limitations under the License.

"""
FastAPI dependencies for the HTTP interface.
"""

import logging

from fastapi import Depends, HTTPException

from ..services.pattern_service import PatternAnalyticsService
from ..storage.base import PatternRepository

logger = logging.getLogger(__name__)

# Global repository instance
_repository: PatternRepository | None = None


def set_repository(repository: PatternRepository | None) -> None:
    """Set (or clear) the global repository instance."""
    global _repository
    _repository = repository
    if repository is not None:
        logger.info(f"HTTP interface using {type(repository).__name__}")


def get_repository() -> PatternRepository:
    """Get the global repository instance."""
    if _repository is None:
        raise HTTPException(status_code=503, detail="Pattern repository not initialized")
    return _repository


def get_pattern_service(repository: PatternRepository = Depends(get_repository)) -> PatternAnalyticsService:
    """Get a PatternAnalyticsService bound to the configured repository."""
    return PatternAnalyticsService(repository)
