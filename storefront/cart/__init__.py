"""
Cart — guest/remote cart aggregation.

    cart = CartAggregator(JsonFileCartStore("~/.storefront/cart.json"), backend.carts)
    await cart.add_item(product, 2)
    await cart.sign_in(identity)   # guest lines merged into the remote cart
"""

from storefront.cart._local import LocalCartStore, MemoryCartStore, JsonFileCartStore
from storefront.cart._aggregator import CartAggregator, MergeStrategy

__all__ = (
    "LocalCartStore",
    "MemoryCartStore",
    "JsonFileCartStore",
    "CartAggregator",
    "MergeStrategy",
)
