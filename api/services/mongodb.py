# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
MongoDB entity store with connection pooling and atomic conditional writes.
"""

import os
import logging
from typing import List, Dict, Optional, Any, Iterable, Iterator
from pymongo import MongoClient, ASCENDING, DESCENDING, ReturnDocument
from pymongo.collection import Collection
from pymongo.database import Database
from pymongo.errors import (
    ConnectionFailure,
    ServerSelectionTimeoutError,
    DuplicateKeyError
)
from bson import ObjectId
from bson.errors import InvalidId
from opentelemetry import trace

from models.enums import CollaborationStatus
from .store import DuplicateRecordError, EntityStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)


class MongoDBService(EntityStore):
    """MongoDB entity store with connection pooling."""

    def __init__(self, connection_string: str = None, database_name: str = None):
        """Initialize MongoDB service with connection pooling."""
        self.connection_string = connection_string or os.getenv(
            'MONGODB_URI',
            'mongodb://localhost:27017/civic_volunteering_dev'
        )
        self.database_name = database_name or os.getenv('MONGODB_DATABASE', 'civic_volunteering_dev')
        self._client: Optional[MongoClient] = None
        self._database: Optional[Database] = None

        # Connection pool settings
        self.max_pool_size = int(os.getenv('MONGODB_MAX_POOL_SIZE', '10'))
        self.min_pool_size = int(os.getenv('MONGODB_MIN_POOL_SIZE', '1'))
        self.max_idle_time_ms = int(os.getenv('MONGODB_MAX_IDLE_TIME_MS', '30000'))
        self.server_selection_timeout_ms = int(os.getenv('MONGODB_SERVER_SELECTION_TIMEOUT_MS', '5000'))

        logger.info(f"MongoDB service initialized for database: {self.database_name}")

    @property
    def client(self) -> MongoClient:
        """Get MongoDB client with connection pooling."""
        if self._client is None:
            try:
                self._client = MongoClient(
                    self.connection_string,
                    maxPoolSize=self.max_pool_size,
                    minPoolSize=self.min_pool_size,
                    maxIdleTimeMS=self.max_idle_time_ms,
                    serverSelectionTimeoutMS=self.server_selection_timeout_ms,
                    tz_aware=True,
                    retryWrites=True,
                    retryReads=True
                )
                # Test connection
                self._client.admin.command('ping')
                logger.info("MongoDB connection established successfully")
            except (ConnectionFailure, ServerSelectionTimeoutError) as e:
                logger.error(f"Failed to connect to MongoDB: {e}")
                self._client = None
                raise

        return self._client

    @property
    def database(self) -> Database:
        """Get MongoDB database."""
        if self._database is None:
            self._database = self.client[self.database_name]
        return self._database

    def get_collection(self, collection_name: str) -> Collection:
        """Get MongoDB collection."""
        return self.database[collection_name]

    def close_connection(self) -> None:
        """Close MongoDB connection."""
        if self._client:
            self._client.close()
            self._client = None
            self._database = None
            logger.info("MongoDB connection closed")

    def health_check(self) -> Dict[str, Any]:
        """Check MongoDB connection health."""
        try:
            result = self.client.admin.command('ping')
            server_info = self.client.server_info()

            return {
                'status': 'healthy',
                'backend': 'mongodb',
                'ping': result.get('ok') == 1,
                'version': server_info.get('version'),
                'database': self.database_name
            }
        except Exception as e:
            logger.error(f"MongoDB health check failed: {e}")
            return {
                'status': 'unhealthy',
                'backend': 'mongodb',
                'error': str(e),
                'database': self.database_name
            }

    # Document conversion

    def _object_id(self, doc_id: str) -> Optional[ObjectId]:
        """Convert string ID to ObjectId, or None if malformed."""
        try:
            return ObjectId(doc_id)
        except (InvalidId, TypeError):
            logger.debug(f"Invalid ObjectId format: {doc_id}")
            return None

    def _to_mongo(self, document: Dict[str, Any]) -> Dict[str, Any]:
        doc = dict(document)
        doc_id = doc.pop("id", None)
        doc["_id"] = self._object_id(doc_id) if doc_id else ObjectId()
        if doc["_id"] is None:
            raise ValueError(f"Invalid ObjectId format: {doc_id}")
        return doc

    def _from_mongo(self, document: Optional[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        if document is None:
            return None
        document["id"] = str(document.pop("_id"))
        return document

    def _build_query(self, filters: Optional[Dict[str, Any]]) -> Dict[str, Any]:
        query = dict(filters or {})
        if "id" in query:
            query["_id"] = self._object_id(query.pop("id"))
        return query

    # Generic operations

    def insert(self, collection: str, document: Dict[str, Any],
               unique_on: Optional[Dict[str, Any]] = None) -> str:
        """Insert a document; uniqueness is enforced by the collection's indexes."""
        try:
            result = self.get_collection(collection).insert_one(self._to_mongo(document))
            logger.info(f"Created document in {collection}: {result.inserted_id}")
            return str(result.inserted_id)
        except DuplicateKeyError as e:
            logger.warning(f"Duplicate key in {collection}: {e}", extra={"unique_on": unique_on})
            raise DuplicateRecordError(f"Document conflicts with an existing record in {collection}")

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        object_id = self._object_id(doc_id)
        if object_id is None:
            return None
        return self._from_mongo(self.get_collection(collection).find_one({"_id": object_id}))

    def find(self, collection: str, filters: Optional[Dict[str, Any]] = None,
             sort_by: Optional[str] = None, descending: bool = False,
             limit: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        cursor = self.get_collection(collection).find(self._build_query(filters))
        if sort_by:
            direction = DESCENDING if descending else ASCENDING
            cursor = cursor.sort([(sort_by, direction), ("_id", direction)])
        if limit:
            cursor = cursor.limit(limit)
        for document in cursor:
            yield self._from_mongo(document)

    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        count = self.get_collection(collection).count_documents(self._build_query(filters))
        logger.debug(f"Counted {count} documents in {collection}")
        return count

    def update_if(self, collection: str, doc_id: str, expected: Dict[str, Any],
                  changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        object_id = self._object_id(doc_id)
        if object_id is None:
            return None
        with tracer.start_as_current_span("db.update_if") as span:
            span.set_attributes({"db.collection": collection, "db.document_id": doc_id})
            query = {"_id": object_id, **expected}
            updated = self.get_collection(collection).find_one_and_update(
                query,
                {"$set": changes},
                return_document=ReturnDocument.AFTER
            )
            span.set_attribute("db.matched", updated is not None)
            if updated is None:
                logger.debug(f"Conditional update on {collection}/{doc_id} matched nothing")
            return self._from_mongo(updated)

    def delete_if(self, collection: str, doc_id: str,
                  expected: Optional[Dict[str, Any]] = None) -> bool:
        object_id = self._object_id(doc_id)
        if object_id is None:
            return False
        result = self.get_collection(collection).delete_one({"_id": object_id, **(expected or {})})
        if result.deleted_count > 0:
            logger.info(f"Deleted document {doc_id} in {collection}")
            return True
        return False

    def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        result = self.get_collection(collection).delete_many(self._build_query(filters))
        logger.info(f"Deleted {result.deleted_count} documents in {collection}")
        return result.deleted_count

    # Volunteer positions

    def admit_volunteer(self, event_id: str, position_name: str, volunteer_id: str,
                        open_statuses: Iterable[str]) -> Optional[Dict[str, Any]]:
        object_id = self._object_id(event_id)
        if object_id is None:
            return None
        with tracer.start_as_current_span("db.events.admit_volunteer") as span:
            span.set_attributes({"event.id": event_id, "position.name": position_name})
            updated = self.get_collection(EntityStore.EVENTS).find_one_and_update(
                {
                    "_id": object_id,
                    "status": {"$in": list(open_statuses)},
                    "positions": {
                        "$elemMatch": {
                            "name": position_name,
                            "available": {"$gt": 0},
                            "registered": {"$ne": volunteer_id}
                        }
                    }
                },
                {
                    "$push": {"positions.$.registered": volunteer_id},
                    "$inc": {"positions.$.available": -1}
                },
                return_document=ReturnDocument.AFTER
            )
            span.set_attribute("db.matched", updated is not None)
            return self._from_mongo(updated)

    def release_volunteer(self, event_id: str, position_name: str,
                          volunteer_id: str) -> Optional[Dict[str, Any]]:
        object_id = self._object_id(event_id)
        if object_id is None:
            return None
        updated = self.get_collection(EntityStore.EVENTS).find_one_and_update(
            {
                "_id": object_id,
                "positions": {"$elemMatch": {"name": position_name, "registered": volunteer_id}}
            },
            {
                "$pull": {"positions.$.registered": volunteer_id},
                "$inc": {"positions.$.available": 1}
            },
            return_document=ReturnDocument.AFTER
        )
        return self._from_mongo(updated)

    def append_positions(self, event_id: str, owner_id: str,
                         positions: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        object_id = self._object_id(event_id)
        if object_id is None:
            return None
        names = [position["name"] for position in positions]
        updated = self.get_collection(EntityStore.EVENTS).find_one_and_update(
            {"_id": object_id, "owner_id": owner_id, "positions.name": {"$nin": names}},
            {"$push": {"positions": {"$each": positions}}},
            return_document=ReturnDocument.AFTER
        )
        return self._from_mongo(updated)

    def update_event_details(self, event_id: str, expected: Dict[str, Any], changes: Dict[str, Any],
                             require_no_volunteers: bool = False) -> Optional[Dict[str, Any]]:
        object_id = self._object_id(event_id)
        if object_id is None:
            return None
        query = {"_id": object_id, **expected}
        if require_no_volunteers:
            # No position has a first registered volunteer
            query["positions.registered.0"] = {"$exists": False}
        updated = self.get_collection(EntityStore.EVENTS).find_one_and_update(
            query,
            {"$set": changes},
            return_document=ReturnDocument.AFTER
        )
        return self._from_mongo(updated)

    def add_feedback(self, event_id: str, feedback: Dict[str, Any],
                     completed_status: str) -> Optional[Dict[str, Any]]:
        object_id = self._object_id(event_id)
        if object_id is None:
            return None
        with tracer.start_as_current_span("db.events.add_feedback") as span:
            span.set_attribute("event.id", event_id)
            updated = self.get_collection(EntityStore.EVENTS).find_one_and_update(
                {
                    "_id": object_id,
                    "status": completed_status,
                    "positions.registered": feedback["user_id"],
                    "feedback.user_id": {"$ne": feedback["user_id"]}
                },
                {"$push": {"feedback": feedback}},
                return_document=ReturnDocument.AFTER
            )
            span.set_attribute("db.matched", updated is not None)
            return self._from_mongo(updated)

    # Issue votes

    def cast_vote(self, issue_id: str, user_id: str, add_to: str,
                  remove_from: str) -> Optional[Dict[str, Any]]:
        object_id = self._object_id(issue_id)
        if object_id is None:
            return None
        updated = self.get_collection(EntityStore.ISSUES).find_one_and_update(
            {"_id": object_id, add_to: {"$ne": user_id}},
            {"$addToSet": {add_to: user_id}, "$pull": {remove_from: user_id}},
            return_document=ReturnDocument.AFTER
        )
        return self._from_mongo(updated)

    # Aggregation

    def donation_summary(self, ngo_id: str, recent: int = 5) -> Dict[str, Any]:
        donations = self.get_collection(EntityStore.DONATIONS)
        pipeline = [
            {"$match": {"ngo_id": ngo_id}},
            {"$group": {
                "_id": None,
                "count": {"$sum": 1},
                "total": {"$sum": "$amount"},
                "donors": {"$addToSet": "$donor_id"}
            }},
            {"$project": {"_id": 0, "count": 1, "total": 1, "donors": {"$size": "$donors"}}}
        ]
        results = list(donations.aggregate(pipeline))
        summary = results[0] if results else {"count": 0, "total": 0, "donors": 0}
        summary["recent"] = list(self.find(
            EntityStore.DONATIONS, {"ngo_id": ngo_id}, sort_by="created_at", descending=True, limit=recent
        ))
        logger.debug(f"Donation summary for NGO {ngo_id}: {summary['count']} donations")
        return summary

    # Index Management

    def setup(self) -> None:
        """Create the indexes the conditional writes and read paths rely on."""
        try:
            logger.info("Creating MongoDB indexes...")

            users = self.get_collection(EntityStore.USERS)
            users.create_index("email", unique=True)

            issues = self.get_collection(EntityStore.ISSUES)
            issues.create_index([("created_by", ASCENDING), ("created_at", DESCENDING)])
            issues.create_index("status")

            events = self.get_collection(EntityStore.EVENTS)
            events.create_index([("owner_id", ASCENDING), ("start_time", DESCENDING)])
            events.create_index("positions.registered")

            # At most one Pending request per (issue, target NGO)
            requests = self.get_collection(EntityStore.COLLABORATIONS)
            requests.create_index(
                [("issue_id", ASCENDING), ("requested_to", ASCENDING)],
                unique=True,
                partialFilterExpression={"status": CollaborationStatus.PENDING.value},
                name="one_pending_request_per_target"
            )
            requests.create_index([("requested_by", ASCENDING), ("status", ASCENDING)])
            requests.create_index([("requested_to", ASCENDING), ("status", ASCENDING)])

            notifications = self.get_collection(EntityStore.NOTIFICATIONS)
            notifications.create_index([("recipient_id", ASCENDING), ("created_at", DESCENDING)])

            donations = self.get_collection(EntityStore.DONATIONS)
            donations.create_index([("ngo_id", ASCENDING), ("created_at", DESCENDING)])
            donations.create_index([("donor_id", ASCENDING), ("created_at", DESCENDING)])

            logger.info("MongoDB indexes created successfully")

        except Exception as e:
            logger.error(f"Failed to create MongoDB indexes: {e}")
            raise
