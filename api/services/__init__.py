# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Services package - Storage, engines and external integrations.
"""

from .store import EntityStore, DuplicateRecordError
from .mongodb import MongoDBService
from .memory_store import InMemoryStore
from .event_bus import EventBus
from .amqp import AMQPService, AMQPConfig, PublishResult, create_amqp_service

__all__ = [
    "EntityStore",
    "DuplicateRecordError",
    "MongoDBService",
    "InMemoryStore",
    "EventBus",
    "AMQPService",
    "AMQPConfig",
    "PublishResult",
    "create_amqp_service"
]
