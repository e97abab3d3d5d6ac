"""Caption resolution for product posts."""

from store import Product


def resolve_caption(product: Product) -> str:
    """First non-empty of the social, general, and classifieds descriptions, else the name."""
    for text in (product.opis_fb_insta, product.opis, product.opis_kp):
        if text:
            return text
    return product.name
