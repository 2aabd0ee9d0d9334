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
Pattern repository factory.

FalkorDB when enabled, otherwise the in-process repository.
"""

import logging

from .base import PatternRepository
from .memory import InMemoryPatternRepository

logger = logging.getLogger(__name__)


async def create_repository() -> PatternRepository:
    """
    Create and initialize the configured pattern repository.

    Returns:
        Initialized PatternRepository instance
    """
    from ..graph.factory import create_graph_repository

    repository = await create_graph_repository()
    if repository is not None:
        return repository

    logger.info("Using in-memory pattern repository")
    repository = InMemoryPatternRepository()
    await repository.initialize()
    return repository
