import logging
import requests
from typing import List, Dict, Any, Optional
from .exceptions import UpstreamFetchError

logger = logging.getLogger(__name__)

PRODUCTS_QUERY = """
query GetProducts($first: Int!) {
  products(first: $first) {
    edges {
      node {
        id
        title
        description
        tags
        productType
        handle
        availableForSale
        priceRange {
          minVariantPrice {
            amount
            currencyCode
          }
        }
        variants(first: 10) {
          edges {
            node {
              id
              title
              price {
                amount
                currencyCode
              }
              availableForSale
            }
          }
        }
      }
    }
  }
}
"""

class ShopifyClient:
    """Read-only Storefront API client used by the product catalog."""

    def __init__(self, domain: str, access_token: str, api_version: str = "2024-01", timeout: float = 15.0):
        self.domain = domain.replace("https://", "").replace("/", "")
        self.api_url = f"https://{self.domain}/api/{api_version}/graphql.json"
        self.timeout = timeout
        self.headers = {
            "X-Shopify-Storefront-Access-Token": access_token,
            "Content-Type": "application/json"
        }

    def query(self, query: str, variables: Optional[Dict[str, Any]] = None) -> Dict[str, Any]:
        try:
            response = requests.post(
                self.api_url,
                json={"query": query, "variables": variables or {}},
                headers=self.headers,
                timeout=self.timeout,
            )
        except requests.RequestException as e:
            raise UpstreamFetchError(f"Shopify request failed: {e}") from e

        if response.status_code != 200:
            raise UpstreamFetchError(f"Shopify API Error: {response.status_code} - {response.text[:200]}")

        try:
            result = response.json()
        except ValueError as e:
            raise UpstreamFetchError("Shopify returned a non-JSON body") from e

        if result.get("errors"):
            raise UpstreamFetchError(result["errors"][0].get("message", "Unknown GraphQL error"))
        return result.get("data") or {}

    def fetch_products(self, limit: int = 50) -> List[Dict[str, Any]]:
        """Returns the raw product nodes of the first `limit` products."""
        data = self.query(PRODUCTS_QUERY, {"first": limit})
        try:
            edges = data["products"]["edges"]
        except (KeyError, TypeError) as e:
            raise UpstreamFetchError("Unexpected products payload from Shopify") from e
        products = [edge["node"] for edge in edges if edge.get("node")]
        logger.info("Shopify Sync Complete: %d products fetched from %s", len(products), self.domain)
        return products
