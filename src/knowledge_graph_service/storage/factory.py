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
Storage backend factory for the Knowledge Graph Service.

Creates and initializes the configured key-value backend.
"""

import logging

from ..config import StoreSettings
from .base import KeyValueStore
from .memory_store import InMemoryKeyValueStore
from .redis_store import RedisKeyValueStore

logger = logging.getLogger(__name__)


async def create_store_instance(config: StoreSettings | None = None) -> KeyValueStore:
    """
    Create and initialize the key-value store backend.

    Args:
        config: Store settings; defaults to the global ``settings.store``

    Returns:
        Initialized KeyValueStore instance
    """
    if config is None:
        from ..config import settings

        config = settings.store

    logger.info(f"Creating '{config.backend}' key-value store backend...")

    if config.backend == "redis":
        password = config.redis_password.get_secret_value() if config.redis_password else None
        store: KeyValueStore = RedisKeyValueStore(
            url=config.redis_url,
            key_prefix=config.key_prefix,
            max_connections=config.max_connections,
            password=password,
            retry_attempts=config.retry_attempts,
        )
    else:
        store = InMemoryKeyValueStore()
        logger.info("Using in-process store; graph will not survive a restart")

    await store.initialize()
    return store
