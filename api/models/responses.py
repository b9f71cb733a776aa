# -*- coding: utf-8 -*-
# SPDX-License-Identifier: Apache-2.0

"""
Response models for API endpoints with HAL support.
"""

from typing import List, Optional, Dict, Any
from pydantic import BaseModel, Field


class HalLink(BaseModel):
    """HAL link representation."""

    href: str = Field(..., description="Link URL")
    method: Optional[str] = Field(None, description="HTTP method")
    type: Optional[str] = Field(None, description="Content type")
    title: Optional[str] = Field(None, description="Link title")


class DonationStats(BaseModel):
    """Donation aggregate for a single NGO."""

    ngo_id: str = Field(..., description="NGO the statistics belong to")
    count: int = Field(..., ge=0, description="Number of donations")
    total: float = Field(..., ge=0, description="Sum of donated amounts")
    donors: int = Field(..., ge=0, description="Number of distinct donors")
    recent: List[Dict[str, Any]] = Field(default_factory=list, description="Most recent donations")
