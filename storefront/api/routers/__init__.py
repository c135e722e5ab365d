from . import cart
from . import checkout
from . import coupons
from . import orders
from . import shipping
from . import wishlist

__all__ = [
    "cart",
    "checkout",
    "coupons",
    "orders",
    "shipping",
    "wishlist",
]
