# cartstore/services/product_client.py
import requests

from cartstore.domain.errors import ProductNotFoundError
from cartstore.domain.schemas import ProductInfo
from cartstore.utils.retry import http_retry
from cartstore.utils.settings import PRODUCT_SERVICE_URL
from cartstore.utils.logging import get_logger

logger = get_logger(__name__)


class ProductClient:
    """Thin HTTP client for the product catalog, used for stock and price checks."""

    def __init__(self, base_url: str | None = None, timeout: int = 2):
        self.base_url = (base_url or PRODUCT_SERVICE_URL).rstrip("/")
        self.timeout = timeout

    @http_retry()
    def fetch_product(self, product_id: str) -> ProductInfo:
        url = f"{self.base_url}/products/{product_id}"
        logger.info(f"ProductClient GET {url}")

        resp = requests.get(url, timeout=self.timeout)
        if resp.status_code == 404:
            raise ProductNotFoundError(f"product {product_id} not found")
        resp.raise_for_status()
        return ProductInfo.model_validate(resp.json())

    def has_stock(self, product_id: str, quantity: int) -> bool:
        product = self.fetch_product(product_id)
        return product.is_available and product.stock >= quantity


def build_product_client() -> ProductClient | None:
    # no catalog configured: carts work without stock checks
    if not PRODUCT_SERVICE_URL:
        return None
    return ProductClient()
