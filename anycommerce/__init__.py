"""AnyCommerce storefront client: tiered request dispatch for the JSON API."""

__version__ = "0.1.0"


def version() -> str:
    return __version__
