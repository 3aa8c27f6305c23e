"""
Service layer helpers that orchestrate adapters and domain logic.
"""

from .bidding import BiddingService, BiddingStoreProtocol
from .scheduling import SchedulingService, SchedulingStoreProtocol

__all__ = ["BiddingService", "BiddingStoreProtocol", "SchedulingService", "SchedulingStoreProtocol"]
