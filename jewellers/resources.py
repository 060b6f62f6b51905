# jewellers/resources.py
"""REST resources: which model each URL serves and the pydantic schema its
request bodies are validated against."""
from datetime import date, datetime
from decimal import Decimal
from typing import Annotated, Optional

from pydantic import BaseModel, BeforeValidator, ConfigDict, EmailStr, Field, TypeAdapter, ValidationError, field_validator

from .errors import PayloadError, from_validation_error
from .models import (
    Role, Branch, User, Category, Metal, Product, ProductImage, Gem, ProductGem,
    MaterialRate, ServiceTicket, CustomDesign, Review, SeasonalOffer, ProductOffer, Book,
    MetalType, TicketType, TicketStatus, DesignStatus,
)

# signed 32-bit, the range of db.Integer on every backend
MAX_INT = 2 ** 31 - 1
MAX_PAGE_SIZE = 200


def upper(value):
    return value.strip().upper() if isinstance(value, str) else value


Id = Annotated[int, Field(ge=1, le=MAX_INT)]
Count = Annotated[int, Field(ge=0, le=MAX_INT)]
Int32 = Annotated[int, Field(ge=-MAX_INT - 1, le=MAX_INT)]
Name = Annotated[str, Field(min_length=1)]

MetalKind = Annotated[MetalType, BeforeValidator(upper)]
TicketKind = Annotated[TicketType, BeforeValidator(upper)]
TicketState = Annotated[TicketStatus, BeforeValidator(upper)]
DesignState = Annotated[DesignStatus, BeforeValidator(upper)]


class Schema(BaseModel):
    model_config = ConfigDict(extra='forbid', str_strip_whitespace=True)


class RoleIn(Schema):
    name: Name = Field(..., max_length=50)


class BranchIn(Schema):
    name: Name = Field(..., max_length=100)
    code: Name = Field(..., max_length=50)
    address: Name = Field(..., max_length=255)
    telephone: Name = Field(..., max_length=20)
    hours: Name = Field(..., max_length=100)


class UserIn(Schema):
    first_name: Name = Field(..., max_length=100)
    last_name: Name = Field(..., max_length=100)
    email: EmailStr
    password: str = Field(..., min_length=8, max_length=128)
    role_id: Id
    branch_id: Optional[Id] = None
    is_active: bool = True

    @field_validator('email')
    @classmethod
    def lower_email(cls, value):
        return value.lower()


class UserUpdate(UserIn):
    # the stored hash cannot be read back, so a new password is optional
    password: str = Field(None, min_length=8, max_length=128)


class CategoryIn(Schema):
    name: Name = Field(..., max_length=100)


class MetalIn(Schema):
    type: MetalKind
    purity: Name = Field(..., max_length=20)


class ProductIn(Schema):
    category_id: Id
    metal_id: Id
    name: Name = Field(..., max_length=150)
    size: Optional[Name] = Field(None, max_length=50)
    weight: Decimal = Field(..., max_digits=8, decimal_places=2, description='grams')
    has_gemstone: bool = False
    production_cost: Decimal = Field(..., max_digits=12, decimal_places=2)
    quantity: Count = 0
    description: Name


class ProductImageIn(Schema):
    product_id: Id
    gem_id: Optional[Id] = None
    url: Name = Field(..., max_length=255)
    alt_text: Optional[str] = Field(None, max_length=255)


class GemIn(Schema):
    name: Name = Field(..., max_length=100)
    karat_rate: Optional[Decimal] = Field(None, max_digits=12, decimal_places=2)


class MaterialRateIn(Schema):
    metal_id: Id
    rate_per_gram: Decimal = Field(..., max_digits=12, decimal_places=2)
    updated_date: date
    updated_by: Optional[Id] = None


class ServiceTicketIn(Schema):
    branch_id: Optional[Id] = None
    assigned_user_id: Optional[Id] = None
    type: TicketKind
    customer_first_name: Name = Field(..., max_length=100)
    customer_last_name: Name = Field(..., max_length=100)
    contact_number: Name = Field(..., max_length=20)
    email: EmailStr
    preferred_date: Optional[date] = None
    note: Optional[str] = None
    status: TicketState = TicketStatus.NEW


class CustomDesignIn(Schema):
    assigned_user_id: Optional[Id] = None
    customer_first_name: Name = Field(..., max_length=100)
    customer_last_name: Name = Field(..., max_length=100)
    email: EmailStr
    contact_number: Name = Field(..., max_length=20)
    budget: Optional[Decimal] = Field(None, max_digits=12, decimal_places=2)
    image: Name = Field(..., max_length=255, description='Public image URL')
    status: DesignState = DesignStatus.NEW
    preferred_metal_id: Optional[Id] = None


class ReviewIn(Schema):
    google_review_id: Optional[Name] = Field(None, max_length=255)
    reviewer_name: Name = Field(..., max_length=255)
    reviewer_photo_url: Optional[str] = Field(None, max_length=500)
    rating: int = Field(..., ge=1, le=5)
    text: Name
    review_date: datetime
    is_active: bool = True
    display_order: Int32 = 0
    selected_by_user_id: Optional[Id] = None
    business_location: Name = Field(..., max_length=255)
    source: Name = Field('Google', max_length=50)


class SeasonalOfferIn(Schema):
    slug: Name = Field(..., max_length=80)
    title: Name = Field(..., max_length=150)
    start_date: Optional[date] = None
    end_date: Optional[date] = None
    is_active: bool = True


class BookIn(Schema):
    title: Name = Field(..., max_length=255)
    author: Name = Field(..., max_length=255)
    price: Decimal = Field(..., max_digits=10, decimal_places=2)


class ProductGemIn(Schema):
    gem_id: Id


class ProductOfferIn(Schema):
    offer_id: Id


class Page(Schema):
    model_config = ConfigDict(extra='ignore')
    limit: int = Field(MAX_PAGE_SIZE, ge=0, le=MAX_INT)
    offset: int = Field(0, ge=0, le=MAX_INT)


class Resource:
    """Binds a URL name to a model and its request schema.

    Updates are partial unless ``replace`` is set: the supplied fields are
    laid over the stored row and the merged record is validated whole, so an
    update can never leave a row a create would have refused.
    """

    def __init__(self, name, model, schema, update_schema=None, replace=False):
        self.name = name
        self.model = model
        self.schema = schema
        self.update_schema = update_schema or schema
        self.replace = replace

    def parse(self, payload):
        payload = self.strip_id(payload)
        try:
            return self.schema.model_validate(payload).model_dump(exclude_unset=True)
        except ValidationError as exc:
            raise from_validation_error(exc)

    def parse_update(self, payload, current):
        payload = self.strip_id(payload)
        if self.replace:
            return self.parse(payload)
        fields = self.update_schema.model_fields
        merged = {name: getattr(current, name) for name in fields if hasattr(current, name) and name != 'password'}
        merged.update(payload)
        try:
            validated = self.update_schema.model_validate(merged).model_dump()
        except ValidationError as exc:
            raise from_validation_error(exc)
        return {name: validated[name] for name in payload}

    def parse_filters(self, args):
        filters = {}
        for name, raw in args.items():
            if name in Page.model_fields:
                continue
            field = self.schema.model_fields.get(name)
            if field is None or name not in self.model.__table__.columns:
                raise PayloadError(f'cannot filter {self.name} by {name}')
            try:
                filters[name] = TypeAdapter(annotation(field)).validate_python(raw)
            except ValidationError as exc:
                error = from_validation_error(exc, domain=False)
                raise PayloadError(f'filter {name}: {error.message}') from exc
        return filters

    @staticmethod
    def strip_id(payload):
        if not isinstance(payload, dict):
            raise PayloadError('request body must be a JSON object')
        # an id in the body never overrides the one in the URL
        return {key: value for key, value in payload.items() if key != 'id'}


def annotation(field):
    """The field's type with its constraints still attached."""
    if not field.metadata:
        return field.annotation
    return Annotated[(field.annotation, *field.metadata)]


def page_bounds(args):
    try:
        page = Page.model_validate(dict(args.items()))
    except ValidationError as exc:
        raise from_validation_error(exc, domain=False)
    return min(page.limit, MAX_PAGE_SIZE), page.offset


RESOURCES = {}


def register(resource):
    RESOURCES[resource.name] = resource
    return resource


register(Resource('roles', Role, RoleIn))
register(Resource('branches', Branch, BranchIn))
register(Resource('users', User, UserIn, update_schema=UserUpdate))
register(Resource('categories', Category, CategoryIn))
register(Resource('metals', Metal, MetalIn))
register(Resource('products', Product, ProductIn))
register(Resource('product-images', ProductImage, ProductImageIn))
register(Resource('gems', Gem, GemIn))
register(Resource('material-rates', MaterialRate, MaterialRateIn))
register(Resource('service-tickets', ServiceTicket, ServiceTicketIn))
register(Resource('custom-designs', CustomDesign, CustomDesignIn))
register(Resource('reviews', Review, ReviewIn))
register(Resource('seasonal-offers', SeasonalOffer, SeasonalOfferIn))
# books keep the first migration's contract: PUT replaces the whole record
register(Resource('books', Book, BookIn, replace=True))

# join tables, reached through /api/products/<id>/gems and /offers
PRODUCT_GEMS = Resource('product-gems', ProductGem, ProductGemIn)
PRODUCT_OFFERS = Resource('product-offers', ProductOffer, ProductOfferIn)
