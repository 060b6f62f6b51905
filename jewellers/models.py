# jewellers/models.py
import enum
from datetime import datetime, date
from decimal import Decimal

from flask_sqlalchemy import SQLAlchemy
from sqlalchemy.orm import validates
from werkzeug.security import generate_password_hash, check_password_hash

from .errors import DomainConstraintError

db = SQLAlchemy()


class MetalType(enum.Enum):
    GOLD = 'GOLD'
    SILVER = 'SILVER'
    ROSE_GOLD = 'ROSE_GOLD'


class TicketType(enum.Enum):
    CLEANING = 'CLEANING'
    REPAIR = 'REPAIR'


class TicketStatus(enum.Enum):
    NEW = 'NEW'
    IN_PROGRESS = 'IN_PROGRESS'
    DONE = 'DONE'
    CANCELLED = 'CANCELLED'


class DesignStatus(enum.Enum):
    NEW = 'NEW'
    REVIEWED = 'REVIEWED'
    IN_PROGRESS = 'IN_PROGRESS'
    QUOTED = 'QUOTED'
    CLOSED = 'CLOSED'


def enum_column(enum_cls, name):
    return db.Enum(enum_cls, name=name, native_enum=False, validate_strings=True, create_constraint=True)


def coerce_member(enum_cls, key, value):
    if value is None or isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError:
        allowed = ', '.join(member.value for member in enum_cls)
        raise DomainConstraintError(f'{key} must be one of {allowed}, got {value!r}')


def plain(value):
    if isinstance(value, Decimal):
        return str(value)
    if isinstance(value, (datetime, date)):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


class Serializer:
    __hidden__ = ()

    def to_dict(self):
        return {
            column.key: plain(getattr(self, column.key))
            for column in self.__table__.columns
            if column.key not in self.__hidden__
        }


class Role(Serializer, db.Model):
    __tablename__ = 'role'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(50), unique=True, nullable=False)


class Branch(Serializer, db.Model):
    __tablename__ = 'branch'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False)
    code = db.Column(db.String(50), unique=True, nullable=False)
    address = db.Column(db.String(255), nullable=False)
    telephone = db.Column(db.String(20), nullable=False)
    hours = db.Column(db.String(100), nullable=False)


class User(Serializer, db.Model):
    __tablename__ = 'users'
    __hidden__ = ('password_hash',)
    id = db.Column(db.Integer, primary_key=True)
    first_name = db.Column(db.String(100), nullable=False)
    last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(150), unique=True, nullable=False)
    password_hash = db.Column(db.String(255), nullable=False)
    role_id = db.Column(db.Integer, db.ForeignKey('role.id', ondelete='RESTRICT'), nullable=False, index=True)
    branch_id = db.Column(db.Integer, db.ForeignKey('branch.id', ondelete='SET NULL'), nullable=True, index=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    role = db.relationship('Role', backref=db.backref('users', lazy=True, passive_deletes='all'))
    branch = db.relationship('Branch', backref=db.backref('users', lazy=True, passive_deletes='all'))

    @property
    def password(self):
        raise AttributeError('password is write-only')

    @password.setter
    def password(self, password):
        self.set_password(password)

    def set_password(self, password):
        self.password_hash = generate_password_hash(password)

    def check_password(self, password):
        return check_password_hash(self.password_hash, password)


class Category(Serializer, db.Model):
    __tablename__ = 'category'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), unique=True, nullable=False, index=True)


class Metal(Serializer, db.Model):
    __tablename__ = 'metal'
    __table_args__ = (
        db.UniqueConstraint('type', 'purity', name='uq_metal_type_purity'),
    )
    id = db.Column(db.Integer, primary_key=True)
    type = db.Column(enum_column(MetalType, 'metal_type'), nullable=False, index=True)
    purity = db.Column(db.String(20), nullable=False, index=True)

    @validates('type')
    def validate_type(self, key, value):
        return coerce_member(MetalType, key, value)


class Product(Serializer, db.Model):
    __tablename__ = 'product'
    __table_args__ = (
        db.Index('idx_prod_filter', 'category_id', 'metal_id', 'has_gemstone'),
    )
    id = db.Column(db.Integer, primary_key=True)
    category_id = db.Column(db.Integer, db.ForeignKey('category.id', ondelete='RESTRICT'), nullable=False, index=True)
    metal_id = db.Column(db.Integer, db.ForeignKey('metal.id', ondelete='RESTRICT'), nullable=False, index=True)
    name = db.Column(db.String(150), nullable=False, index=True)
    size = db.Column(db.String(50), nullable=True)  # optional
    weight = db.Column(db.Numeric(8, 2), nullable=False)  # grams
    has_gemstone = db.Column(db.Boolean, nullable=False, default=False)
    production_cost = db.Column(db.Numeric(12, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False, default=0)
    description = db.Column(db.Text, nullable=False)

    category = db.relationship('Category', backref=db.backref('products', lazy=True, passive_deletes='all'))
    metal = db.relationship('Metal', backref=db.backref('products', lazy=True, passive_deletes='all'))
    images = db.relationship('ProductImage', backref='product', lazy=True, passive_deletes='all')
    gems = db.relationship('Gem', secondary='product_gem', lazy=True, viewonly=True)
    offers = db.relationship('SeasonalOffer', secondary='product_offer', lazy=True, viewonly=True)

    def to_dict(self):
        data = super().to_dict()
        data['category'] = self.category.to_dict() if self.category else None
        data['metal'] = self.metal.to_dict() if self.metal else None
        return data


class ProductImage(Serializer, db.Model):
    __tablename__ = 'product_image'
    id = db.Column(db.Integer, primary_key=True)
    product_id = db.Column(db.Integer, db.ForeignKey('product.id', ondelete='CASCADE'), nullable=False, index=True)
    gem_id = db.Column(db.Integer, db.ForeignKey('gem.id', ondelete='CASCADE'), nullable=True, index=True)
    url = db.Column(db.String(255), unique=True, nullable=False)
    alt_text = db.Column(db.String(255), nullable=True)


class Gem(Serializer, db.Model):
    __tablename__ = 'gem'
    id = db.Column(db.Integer, primary_key=True)
    name = db.Column(db.String(100), nullable=False, index=True)
    karat_rate = db.Column(db.Numeric(12, 2), nullable=True)

    products = db.relationship('Product', secondary='product_gem', lazy=True, viewonly=True)


class ProductGem(Serializer, db.Model):
    __tablename__ = 'product_gem'
    product_id = db.Column(db.Integer, db.ForeignKey('product.id', ondelete='CASCADE'), primary_key=True)
    gem_id = db.Column(db.Integer, db.ForeignKey('gem.id', ondelete='RESTRICT'), primary_key=True, index=True)


class MaterialRate(Serializer, db.Model):
    __tablename__ = 'material_rate'
    __table_args__ = (
        db.UniqueConstraint('metal_id', 'updated_date', name='uq_rate_metal_date'),
    )
    id = db.Column(db.Integer, primary_key=True)
    metal_id = db.Column(db.Integer, db.ForeignKey('metal.id', ondelete='RESTRICT'), nullable=False, index=True)
    rate_per_gram = db.Column(db.Numeric(12, 2), nullable=False)
    updated_date = db.Column(db.Date, nullable=False)
    updated_by = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)

    metal = db.relationship('Metal', backref=db.backref('rates', lazy=True, passive_deletes='all'))


class ServiceTicket(Serializer, db.Model):
    __tablename__ = 'service_ticket'
    id = db.Column(db.Integer, primary_key=True)
    branch_id = db.Column(db.Integer, db.ForeignKey('branch.id', ondelete='SET NULL'), nullable=True, index=True)
    assigned_user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    type = db.Column(enum_column(TicketType, 'ticket_type'), nullable=False)
    customer_first_name = db.Column(db.String(100), nullable=False)
    customer_last_name = db.Column(db.String(100), nullable=False)
    contact_number = db.Column(db.String(20), nullable=False)
    email = db.Column(db.String(150), nullable=False)
    preferred_date = db.Column(db.Date, nullable=True)
    ticket_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    note = db.Column(db.Text, nullable=True)
    status = db.Column(enum_column(TicketStatus, 'ticket_status'), nullable=False, default=TicketStatus.NEW, index=True)

    @validates('type')
    def validate_type(self, key, value):
        return coerce_member(TicketType, key, value)

    @validates('status')
    def validate_status(self, key, value):
        return coerce_member(TicketStatus, key, value)


class CustomDesign(Serializer, db.Model):
    __tablename__ = 'custom_design'
    id = db.Column(db.Integer, primary_key=True)
    assigned_user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True)
    customer_first_name = db.Column(db.String(100), nullable=False)
    customer_last_name = db.Column(db.String(100), nullable=False)
    email = db.Column(db.String(150), nullable=False)
    contact_number = db.Column(db.String(20), nullable=False)
    budget = db.Column(db.Numeric(12, 2), nullable=True)
    image = db.Column(db.String(255), nullable=False)  # URL
    ticket_date = db.Column(db.DateTime, nullable=False, default=datetime.utcnow)
    status = db.Column(enum_column(DesignStatus, 'design_status'), nullable=False, default=DesignStatus.NEW, index=True)
    preferred_metal_id = db.Column(db.Integer, db.ForeignKey('metal.id', ondelete='SET NULL'), nullable=True, index=True)

    @validates('status')
    def validate_status(self, key, value):
        return coerce_member(DesignStatus, key, value)


class Review(Serializer, db.Model):
    __tablename__ = 'review'
    __table_args__ = (
        db.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_review_rating'),
    )
    id = db.Column(db.Integer, primary_key=True)
    google_review_id = db.Column(db.String(255), unique=True, nullable=True)
    reviewer_name = db.Column(db.String(255), nullable=False)
    reviewer_photo_url = db.Column(db.String(500), nullable=True)
    rating = db.Column(db.SmallInteger, nullable=False)
    text = db.Column(db.Text, nullable=False)
    review_date = db.Column(db.DateTime, nullable=False)
    is_active = db.Column(db.Boolean, nullable=False, default=True)  # shown on the homepage
    display_order = db.Column(db.Integer, nullable=False, default=0)
    selected_by_user_id = db.Column(db.Integer, db.ForeignKey('users.id', ondelete='SET NULL'), nullable=True, index=True)
    selected_date = db.Column(db.DateTime, nullable=True, default=datetime.utcnow)
    business_location = db.Column(db.String(255), nullable=False)
    source = db.Column(db.String(50), nullable=False, default='Google')
    created_at = db.Column(db.DateTime, default=datetime.utcnow)
    updated_at = db.Column(db.DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    @validates('rating')
    def validate_rating(self, key, rating):
        if rating is not None and not 1 <= rating <= 5:
            raise DomainConstraintError(f'rating must be between 1 and 5, got {rating}')
        return rating


class SeasonalOffer(Serializer, db.Model):
    __tablename__ = 'seasonal_offer'
    id = db.Column(db.Integer, primary_key=True)
    slug = db.Column(db.String(80), unique=True, nullable=False)
    title = db.Column(db.String(150), nullable=False)
    start_date = db.Column(db.Date, nullable=True)
    end_date = db.Column(db.Date, nullable=True)
    is_active = db.Column(db.Boolean, nullable=False, default=True)

    products = db.relationship('Product', secondary='product_offer', lazy=True, viewonly=True)


class ProductOffer(Serializer, db.Model):
    __tablename__ = 'product_offer'
    product_id = db.Column(db.Integer, db.ForeignKey('product.id', ondelete='CASCADE'), primary_key=True)
    offer_id = db.Column(db.Integer, db.ForeignKey('seasonal_offer.id', ondelete='CASCADE'), primary_key=True)


# unrelated to the jewellery schema, kept from the first migration
class Book(Serializer, db.Model):
    __tablename__ = 'books'
    id = db.Column(db.Integer, primary_key=True)
    title = db.Column(db.String(255), nullable=False)
    author = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Numeric(10, 2), nullable=False)
