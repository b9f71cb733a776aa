# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Donation recording and per-NGO donation statistics.
"""

import logging
from typing import Any, Dict, Optional

from opentelemetry import trace

from domain.collaboration import require_ngo
from models.entities import Donation
from models.responses import DonationStats
from .redis import RedisService
from .store import EntityStore

logger = logging.getLogger(__name__)
tracer = trace.get_tracer(__name__)

DEFAULT_RECENT = 5


class DonationService:
    """Records donations and serves cached aggregates."""

    def __init__(self, store: EntityStore, cache: Optional[RedisService] = None, stats_ttl: int = 300):
        self.store = store
        self.cache = cache
        self.stats_ttl = stats_ttl

    def record_donation(
        self,
        ngo_id: str,
        donor_id: str,
        amount: float,
        message: Optional[str] = None,
        currency: str = "INR"
    ) -> Dict[str, Any]:
        """
        Record a donation to an NGO. No payment is processed.

        Raises:
            NotFoundError: If the NGO does not exist
        """
        with tracer.start_as_current_span("donations.record") as span:
            span.set_attributes({"ngo.id": ngo_id, "donation.amount": amount})
            require_ngo(self.store.get(EntityStore.USERS, ngo_id), ngo_id)

            fields = {'ngo_id': ngo_id, 'donor_id': donor_id, 'amount': amount, 'currency': currency}
            if message:
                fields['message'] = message
            document = Donation(**fields).to_document()
            self.store.insert(EntityStore.DONATIONS, document)

            if self.cache is not None:
                self.cache.invalidate_donation_stats(ngo_id)

            logger.info(f"Donation recorded: {document['id']}", extra={"extra_fields": {"ngo_id": ngo_id}})
            return document

    def donation_stats(self, ngo_id: str, recent: int = DEFAULT_RECENT) -> Dict[str, Any]:
        """
        Donation count, total, distinct donors and the most recent donations.

        The default view is cached; a cache miss or outage falls back to the
        store aggregate.
        """
        require_ngo(self.store.get(EntityStore.USERS, ngo_id), ngo_id)
        cacheable = self.cache is not None and recent == DEFAULT_RECENT

        if cacheable:
            cached = self.cache.get_cached_donation_stats(ngo_id)
            if cached is not None:
                logger.debug(f"Donation stats cache hit for NGO {ngo_id}")
                return cached

        with tracer.start_as_current_span("donations.stats") as span:
            span.set_attribute("ngo.id", ngo_id)
            summary = self.store.donation_summary(ngo_id, recent=recent)
            stats = DonationStats(ngo_id=ngo_id, **summary).model_dump(mode='json')

        if cacheable:
            self.cache.cache_donation_stats(ngo_id, stats, self.stats_ttl)
            # A donation recorded after the aggregate but before the write
            # would leave a stale entry; its own invalidation covers later ones.
            if self.store.count(EntityStore.DONATIONS, {'ngo_id': ngo_id}) != stats['count']:
                logger.debug(f"Donation stats for NGO {ngo_id} changed while caching, invalidating")
                self.cache.invalidate_donation_stats(ngo_id)
        return stats
