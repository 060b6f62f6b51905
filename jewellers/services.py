# jewellers/services.py
"""Per-resource CRUD on top of the store.

Services only parse payloads and delegate; every rule about the data lives
in the store and the models.
"""
from .models import Gem, Product, ProductImage, SeasonalOffer
from .resources import RESOURCES, PRODUCT_GEMS, PRODUCT_OFFERS, page_bounds
from .store import Store


class CrudService:

    def __init__(self, resource, store=None):
        self.resource = resource
        self.model = resource.model
        self.store = store or Store()

    def list(self, args=None):
        args = args or {}
        limit, offset = page_bounds(args)
        filters = self.resource.parse_filters(args)
        return self.store.list(self.model, filters, limit=limit, offset=offset)

    def get(self, ident):
        return self.store.get(self.model, ident)

    def create(self, payload):
        values = self.resource.parse(payload)
        return self.store.create(self.model, **values)

    def update(self, ident, payload):
        current = self.store.get(self.model, ident)
        values = self.resource.parse_update(payload, current)
        return self.store.update(self.model, ident, **values)

    def delete(self, ident):
        self.store.delete(self.model, ident)


class ProductLinkService:
    """Manages one side of a product many-to-many link (gems or offers)."""

    def __init__(self, resource, target, target_key, store=None):
        self.resource = resource
        self.target = target
        self.target_key = target_key
        self.store = store or Store()

    def list(self, product_id):
        product = self.store.get(Product, product_id)
        links, _ = self.store.list(self.resource.model, {'product_id': product.id})
        ids = [getattr(link, self.target_key) for link in links]
        return [self.store.get(self.target, ident) for ident in ids]

    def add(self, product_id, payload):
        values = self.resource.parse(payload)
        return self.store.create(self.resource.model, product_id=product_id, **values)

    def remove(self, product_id, target_id):
        self.store.delete(self.resource.model, (product_id, target_id))


def crud(name):
    return CrudService(RESOURCES[name])


def product_gems():
    return ProductLinkService(PRODUCT_GEMS, Gem, 'gem_id')


def product_offers():
    return ProductLinkService(PRODUCT_OFFERS, SeasonalOffer, 'offer_id')


def product_images(product_id):
    store = Store()
    product = store.get(Product, product_id)
    images, _ = store.list(ProductImage, {'product_id': product.id})
    return images
