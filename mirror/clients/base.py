from abc import ABC, abstractmethod


class BaseClient(ABC):
    """Read-only access to the remote store.

    Every fetch raises one of RemoteUnavailable, RemoteRejected or
    RemoteServerFault when the call fails. Pages are numbered from 1 and
    returned in the remote's order.
    """

    @abstractmethod
    def fetch_orders_page(self, page, per_page, since=None) -> list[dict]:
        """Orders modified at or after ``since``, newest-modified first."""

    @abstractmethod
    def fetch_order(self, order_id) -> dict:
        """A single order payload."""

    @abstractmethod
    def fetch_products_page(self, page, per_page) -> list[dict]:
        """One page of the product catalog."""

    @abstractmethod
    def fetch_product(self, product_id) -> dict:
        """A single product payload."""

    @abstractmethod
    def test_connection(self) -> bool:
        """True when the remote answers an authenticated request."""
