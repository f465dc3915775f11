import logging
import math
import time
from datetime import datetime, timezone as dt_timezone
from email.utils import parsedate_to_datetime

import requests
from django.conf import settings

from mirror.exceptions import (
    ConfigurationError,
    RemoteError,
    RemoteRejected,
    RemoteServerFault,
    RemoteUnavailable,
)

from .base import BaseClient

logger = logging.getLogger(__name__)

API_PATH = '/wp-json/wc/v3'
USER_AGENT = 'store-mirror/1.0'

MAX_RETRIES = 5
RETRY_BASE_DELAY = 1.0


def parse_retry_after(value):
    """Seconds to wait from a Retry-After header, given as delta-seconds or an HTTP-date."""
    if not value:
        return RETRY_BASE_DELAY
    try:
        seconds = float(value)
    except ValueError:
        pass
    else:
        return max(seconds, 0.0) if math.isfinite(seconds) else RETRY_BASE_DELAY
    try:
        when = parsedate_to_datetime(value)
    except (TypeError, ValueError):
        return RETRY_BASE_DELAY
    if when.tzinfo is None:
        when = when.replace(tzinfo=dt_timezone.utc)
    return max((when - datetime.now(dt_timezone.utc)).total_seconds(), 0.0)


class WooCommerceClient(BaseClient):
    def __init__(self, base_url=None, consumer_key=None, consumer_secret=None, timeout=None):
        base_url = base_url if base_url is not None else settings.WOOCOMMERCE_URL
        consumer_key = consumer_key if consumer_key is not None else settings.WOOCOMMERCE_KEY
        consumer_secret = consumer_secret if consumer_secret is not None else settings.WOOCOMMERCE_SECRET

        missing = [
            name for name, value in (
                ('WOOCOMMERCE_URL', base_url),
                ('WOOCOMMERCE_KEY', consumer_key),
                ('WOOCOMMERCE_SECRET', consumer_secret),
            ) if not value
        ]
        if missing:
            raise ConfigurationError(
                f"WooCommerce credentials are not configured: missing {', '.join(missing)}"
            )

        self.api_url = base_url.rstrip('/') + API_PATH
        self.timeout = timeout or settings.WOOCOMMERCE_TIMEOUT
        self.session = self.make_session(consumer_key, consumer_secret)

    def make_session(self, consumer_key, consumer_secret) -> requests.Session:
        session = requests.Session()
        session.auth = (consumer_key, consumer_secret)
        session.headers.update({
            'Content-Type': 'application/json',
            'User-Agent': USER_AGENT,
        })
        return session

    def fetch_orders_page(self, page, per_page, since=None):
        params = {
            'page': page,
            'per_page': per_page,
            'orderby': 'modified',
            'order': 'desc',
            'dates_are_gmt': 'true',
        }
        if since is not None:
            params['modified_after'] = since.astimezone(dt_timezone.utc).strftime('%Y-%m-%dT%H:%M:%S')
        return self._get_list('/orders', params)

    def fetch_order(self, order_id):
        return self._get_object(f'/orders/{order_id}')

    def fetch_products_page(self, page, per_page):
        params = {
            'page': page,
            'per_page': per_page,
            'orderby': 'date',
            'order': 'desc',
        }
        return self._get_list('/products', params)

    def fetch_product(self, product_id):
        return self._get_object(f'/products/{product_id}')

    def test_connection(self):
        try:
            self._get('/products', {'per_page': 1})
        except RemoteError as exc:
            logger.warning("WooCommerce connection test failed: %s", exc)
            return False
        logger.info("WooCommerce connection test succeeded")
        return True

    def _get_list(self, path, params):
        data = self._get(path, params)
        if not isinstance(data, list):
            raise RemoteServerFault(f"Expected a list from {path}, got {type(data).__name__}")
        return data

    def _get_object(self, path):
        data = self._get(path)
        if not isinstance(data, dict):
            raise RemoteServerFault(f"Expected an object from {path}, got {type(data).__name__}")
        return data

    def _get(self, path, params=None):
        url = f"{self.api_url}{path}"

        for attempt in range(MAX_RETRIES):
            logger.debug("GET %s params=%s", url, params)
            try:
                response = self.session.get(url, params=params, timeout=self.timeout)
            except requests.exceptions.Timeout as exc:
                logger.error("GET %s timed out after %ss", url, self.timeout)
                raise RemoteUnavailable(f"Timed out calling {url}", url=url) from exc
            except requests.exceptions.RequestException as exc:
                logger.error("GET %s failed: %s", url, exc)
                raise RemoteUnavailable(f"Could not reach {url}: {exc}", url=url) from exc

            if response.status_code == 429:
                retry_after = parse_retry_after(response.headers.get('Retry-After'))
                delay = max(retry_after, RETRY_BASE_DELAY * (2 ** attempt))
                logger.warning(
                    "Rate limited (429) for %s, attempt %d/%d, waiting %.1fs",
                    url, attempt + 1, MAX_RETRIES, delay,
                )
                time.sleep(delay)
                continue

            if response.status_code >= 400:
                self._raise_for_status(response, url)

            logger.debug("GET %s -> %d", url, response.status_code)
            try:
                return response.json()
            except ValueError as exc:
                raise RemoteServerFault(
                    f"Invalid JSON from {url}", status_code=response.status_code, url=url,
                ) from exc

        raise RemoteServerFault(
            f"Rate limit exceeded after {MAX_RETRIES} retries for {url}", status_code=429, url=url,
        )

    @staticmethod
    def _raise_for_status(response, url):
        status = response.status_code
        logger.error(
            "WooCommerce API error: status=%d reason=%s url=%s body=%.500s",
            status, response.reason, url, response.text,
        )
        if status < 500:
            raise RemoteRejected(f"{status} {response.reason} for {url}", status_code=status, url=url)
        raise RemoteServerFault(f"{status} {response.reason} for {url}", status_code=status, url=url)
