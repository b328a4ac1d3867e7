"""Read-only reporting queries.

Revenue figures always exclude cancelled orders.
"""

from __future__ import annotations

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List, Optional, Set


class IAnalyticsRepository(ABC):
    @abstractmethod
    def sales_totals(self, start: Optional[datetime], end: Optional[datetime]) -> Dict[str, Any]:
        """``revenue``, ``orders`` and ``average_order_value`` in ``[start, end)``."""

    @abstractmethod
    def revenue_by_month(self, start: datetime) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def orders_by_status(self, start: datetime) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def customer_count(self, start: Optional[datetime] = None, end: Optional[datetime] = None) -> int: ...

    @abstractmethod
    def repeat_customer_count(self) -> int: ...

    @abstractmethod
    def average_lifetime_value(self): ...

    @abstractmethod
    def purchasing_customer_ids(self, start: datetime, end: datetime) -> Set[Any]: ...

    @abstractmethod
    def customer_growth(self, start: datetime) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def inventory_totals(self, low_stock_threshold: int) -> Dict[str, Any]: ...

    @abstractmethod
    def top_sellers(self, limit: int) -> List[Dict[str, Any]]: ...

    @abstractmethod
    def pending_order_count(self) -> int: ...

    @abstractmethod
    def active_reservation_count(self, now: datetime) -> int: ...

    @abstractmethod
    def product_exists(self, product_id: str) -> bool: ...

    @abstractmethod
    def product_performance(self, product_id: str, start: datetime) -> Dict[str, Any]: ...
