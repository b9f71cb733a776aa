# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
In-process entity store for local development and tests.

A single re-entrant lock serializes every write, so each conditional
operation observes and mutates a document in one step. Readers get deep
copies and never see a half-applied change.
"""

import copy
import itertools
import logging
import threading
from typing import Any, Dict, Iterable, Iterator, List, Optional

from bson import ObjectId

from .store import DuplicateRecordError, EntityStore

logger = logging.getLogger(__name__)

_MISSING = object()


def _values_at(document: Any, path: List[str]) -> List[Any]:
    """Collect the values a dotted path reaches, descending into lists."""
    if not path:
        return [document]
    if isinstance(document, list):
        values = []
        for item in document:
            values.extend(_values_at(item, path))
        return values
    if not isinstance(document, dict):
        return []
    value = document.get(path[0], _MISSING)
    if value is _MISSING:
        return []
    return _values_at(value, path[1:])


def _matches(document: Dict[str, Any], filters: Optional[Dict[str, Any]]) -> bool:
    for key, expected in (filters or {}).items():
        values = _values_at(document, key.split('.'))
        if not values and expected is None:
            continue
        if not any(value == expected or (isinstance(value, list) and expected in value) for value in values):
            return False
    return True


class InMemoryStore(EntityStore):
    """Dictionary-backed store guarded by a single lock."""

    def __init__(self):
        self._lock = threading.RLock()
        self._collections: Dict[str, Dict[str, Dict[str, Any]]] = {}
        self._sequence = itertools.count()
        self._order: Dict[str, int] = {}
        logger.info("In-memory entity store initialized")

    def _collection(self, name: str) -> Dict[str, Dict[str, Any]]:
        return self._collections.setdefault(name, {})

    def health_check(self) -> Dict[str, Any]:
        with self._lock:
            sizes = {name: len(docs) for name, docs in self._collections.items()}
        return {'status': 'healthy', 'backend': 'memory', 'collections': sizes}

    def insert(self, collection: str, document: Dict[str, Any],
               unique_on: Optional[Dict[str, Any]] = None) -> str:
        with self._lock:
            docs = self._collection(collection)
            if unique_on and any(_matches(doc, unique_on) for doc in docs.values()):
                logger.warning(f"Duplicate record rejected in {collection}", extra={"unique_on": unique_on})
                raise DuplicateRecordError(f"Document conflicts with an existing record in {collection}")

            stored = copy.deepcopy(document)
            doc_id = stored.get('id') or str(ObjectId())
            if doc_id in docs:
                raise DuplicateRecordError(f"Document {doc_id} already exists in {collection}")
            stored['id'] = doc_id
            docs[doc_id] = stored
            self._order[doc_id] = next(self._sequence)
            logger.debug(f"Created document in {collection}: {doc_id}")
            return doc_id

    def get(self, collection: str, doc_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._collection(collection).get(doc_id)
            return copy.deepcopy(document) if document is not None else None

    def find(self, collection: str, filters: Optional[Dict[str, Any]] = None,
             sort_by: Optional[str] = None, descending: bool = False,
             limit: Optional[int] = None) -> Iterator[Dict[str, Any]]:
        with self._lock:
            matched = [
                copy.deepcopy(doc) for doc in self._collection(collection).values()
                if _matches(doc, filters)
            ]
        if sort_by:
            matched.sort(
                key=lambda doc: (doc.get(sort_by), self._order.get(doc['id'], 0)),
                reverse=descending
            )
        if limit:
            matched = matched[:limit]
        return iter(matched)

    def count(self, collection: str, filters: Optional[Dict[str, Any]] = None) -> int:
        with self._lock:
            return sum(1 for doc in self._collection(collection).values() if _matches(doc, filters))

    def update_if(self, collection: str, doc_id: str, expected: Dict[str, Any],
                  changes: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        with self._lock:
            document = self._collection(collection).get(doc_id)
            if document is None or not _matches(document, expected):
                return None
            document.update(copy.deepcopy(changes))
            return copy.deepcopy(document)

    def delete_if(self, collection: str, doc_id: str,
                  expected: Optional[Dict[str, Any]] = None) -> bool:
        with self._lock:
            docs = self._collection(collection)
            document = docs.get(doc_id)
            if document is None or not _matches(document, expected):
                return False
            del docs[doc_id]
            self._order.pop(doc_id, None)
            return True

    def delete_many(self, collection: str, filters: Dict[str, Any]) -> int:
        with self._lock:
            docs = self._collection(collection)
            doomed = [doc_id for doc_id, doc in docs.items() if _matches(doc, filters)]
            for doc_id in doomed:
                del docs[doc_id]
                self._order.pop(doc_id, None)
            logger.debug(f"Deleted {len(doomed)} documents in {collection}")
            return len(doomed)

    def _position(self, event: Dict[str, Any], position_name: str) -> Optional[Dict[str, Any]]:
        for position in event.get('positions', []):
            if position.get('name') == position_name:
                return position
        return None

    def admit_volunteer(self, event_id: str, position_name: str, volunteer_id: str,
                        open_statuses: Iterable[str]) -> Optional[Dict[str, Any]]:
        with self._lock:
            event = self._collection(EntityStore.EVENTS).get(event_id)
            if event is None or event.get('status') not in set(open_statuses):
                return None
            position = self._position(event, position_name)
            if position is None or position['available'] <= 0 or volunteer_id in position['registered']:
                return None
            position['registered'].append(volunteer_id)
            position['available'] -= 1
            return copy.deepcopy(event)

    def release_volunteer(self, event_id: str, position_name: str,
                          volunteer_id: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            event = self._collection(EntityStore.EVENTS).get(event_id)
            if event is None:
                return None
            position = self._position(event, position_name)
            if position is None or volunteer_id not in position['registered']:
                return None
            position['registered'].remove(volunteer_id)
            position['available'] += 1
            return copy.deepcopy(event)

    def append_positions(self, event_id: str, owner_id: str,
                         positions: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
        with self._lock:
            event = self._collection(EntityStore.EVENTS).get(event_id)
            if event is None or event.get('owner_id') != owner_id:
                return None
            existing = {position['name'] for position in event.get('positions', [])}
            if any(position['name'] in existing for position in positions):
                return None
            event.setdefault('positions', []).extend(copy.deepcopy(positions))
            return copy.deepcopy(event)

    def update_event_details(self, event_id: str, expected: Dict[str, Any], changes: Dict[str, Any],
                             require_no_volunteers: bool = False) -> Optional[Dict[str, Any]]:
        with self._lock:
            event = self._collection(EntityStore.EVENTS).get(event_id)
            if event is None or not _matches(event, expected):
                return None
            if require_no_volunteers and any(position['registered'] for position in event.get('positions', [])):
                return None
            event.update(copy.deepcopy(changes))
            return copy.deepcopy(event)

    def add_feedback(self, event_id: str, feedback: Dict[str, Any],
                     completed_status: str) -> Optional[Dict[str, Any]]:
        user_id = feedback['user_id']
        with self._lock:
            event = self._collection(EntityStore.EVENTS).get(event_id)
            if event is None or event.get('status') != completed_status:
                return None
            if not any(user_id in position['registered'] for position in event.get('positions', [])):
                return None
            if any(entry['user_id'] == user_id for entry in event.get('feedback', [])):
                return None
            event.setdefault('feedback', []).append(copy.deepcopy(feedback))
            return copy.deepcopy(event)

    def cast_vote(self, issue_id: str, user_id: str, add_to: str,
                  remove_from: str) -> Optional[Dict[str, Any]]:
        with self._lock:
            issue = self._collection(EntityStore.ISSUES).get(issue_id)
            if issue is None or user_id in issue.get(add_to, []):
                return None
            issue.setdefault(add_to, []).append(user_id)
            issue[remove_from] = [voter for voter in issue.get(remove_from, []) if voter != user_id]
            return copy.deepcopy(issue)

    def donation_summary(self, ngo_id: str, recent: int = 5) -> Dict[str, Any]:
        with self._lock:
            donations = [
                doc for doc in self._collection(EntityStore.DONATIONS).values()
                if doc.get('ngo_id') == ngo_id
            ]
            summary = {
                'count': len(donations),
                'total': sum(doc.get('amount', 0) for doc in donations),
                'donors': len({doc.get('donor_id') for doc in donations}),
            }
        summary['recent'] = list(self.find(
            EntityStore.DONATIONS, {'ngo_id': ngo_id}, sort_by='created_at', descending=True, limit=recent
        ))
        return summary
