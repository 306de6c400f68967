"""HuskThreads storefront: catalog cache, cart, search and checkout."""

__version__ = "0.1.0"
