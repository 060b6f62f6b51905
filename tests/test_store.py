from datetime import date, datetime
from decimal import Decimal

import pytest

from jewellers.errors import (
    NotFound, UniquenessError, ReferentialIntegrityError, DomainConstraintError,
)
from jewellers.models import (
    Branch, Category, Gem, Metal, MetalType, MaterialRate, Product, ProductGem,
    ProductImage, ProductOffer, Review, Role, SeasonalOffer, ServiceTicket,
    CustomDesign, TicketType, TicketStatus, User,
)

from conftest import product_values


def make_branch(store, code='MUM01'):
    return store.create(
        Branch, name='Mumbai', code=code, address='1 Zaveri Bazaar',
        telephone='022-1234', hours='10-8',
    )


def make_user(store, role, branch=None, email='asha@example.com'):
    return store.create(
        User, first_name='Asha', last_name='Rao', email=email,
        password_hash='x', role_id=role.id, branch_id=branch.id if branch else None,
    )


def make_review(store, rating, **extra):
    return store.create(
        Review, reviewer_name='Meera', rating=rating, text='Lovely work',
        review_date=datetime(2024, 5, 1, 10, 0), business_location='Pune', **extra
    )


class TestUniqueness:

    def test_duplicate_category_name(self, store, rings):
        with pytest.raises(UniquenessError):
            store.create(Category, name='Rings')
        rows, total = store.list(Category)
        assert total == 1
        assert rows[0].id == rings.id

    @pytest.mark.parametrize('name', ['rings', 'RINGS', 'rInGs'])
    def test_category_name_ignores_case(self, store, rings, name):
        with pytest.raises(UniquenessError):
            store.create(Category, name=name)
        assert store.list(Category)[1] == 1

    def test_case_only_rename_of_own_row(self, store, rings):
        assert store.update(Category, rings.id, name='RINGS').name == 'RINGS'

    def test_branch_code_and_purity_ignore_case(self, store, gold):
        make_branch(store, code='MUM01')
        with pytest.raises(UniquenessError):
            make_branch(store, code='mum01')
        with pytest.raises(UniquenessError):
            store.create(Metal, type=MetalType.GOLD, purity='22k')

    def test_duplicate_user_email(self, store, staff):
        make_user(store, staff)
        with pytest.raises(UniquenessError):
            make_user(store, staff)
        assert store.list(User)[1] == 1

    def test_duplicate_branch_code(self, store):
        make_branch(store)
        with pytest.raises(UniquenessError):
            make_branch(store)

    def test_duplicate_offer_slug(self, store):
        store.create(SeasonalOffer, slug='diwali', title='Diwali')
        with pytest.raises(UniquenessError):
            store.create(SeasonalOffer, slug='diwali', title='Another')

    def test_metal_type_and_purity_are_unique_together(self, store, gold):
        store.create(Metal, type=MetalType.GOLD, purity='18K')
        store.create(Metal, type=MetalType.SILVER, purity='22K')
        with pytest.raises(UniquenessError):
            store.create(Metal, type=MetalType.GOLD, purity='22K')

    def test_one_rate_per_metal_and_day(self, store, gold):
        store.create(MaterialRate, metal_id=gold.id, rate_per_gram=Decimal('6100.00'), updated_date=date(2024, 5, 1))
        store.create(MaterialRate, metal_id=gold.id, rate_per_gram=Decimal('6150.00'), updated_date=date(2024, 5, 2))
        with pytest.raises(UniquenessError):
            store.create(MaterialRate, metal_id=gold.id, rate_per_gram=Decimal('6200.00'), updated_date=date(2024, 5, 1))
        assert store.list(MaterialRate)[1] == 2

    def test_update_keeps_own_unique_value(self, store, rings):
        updated = store.update(Category, rings.id, name='Rings')
        assert updated.name == 'Rings'

    def test_update_into_taken_value_is_rejected(self, store, rings):
        other = store.create(Category, name='Bangles')
        with pytest.raises(UniquenessError):
            store.update(Category, other.id, name='Rings')
        assert store.get(Category, other.id).name == 'Bangles'

    def test_google_review_id_allows_many_nulls(self, store):
        make_review(store, 4)
        make_review(store, 5)
        make_review(store, 5, google_review_id='g-1')
        with pytest.raises(UniquenessError):
            make_review(store, 3, google_review_id='g-1')

    def test_duplicate_product_gem_link(self, store, rings, gold):
        product = store.create(Product, **product_values(rings, gold))
        ruby = store.create(Gem, name='Ruby')
        store.create(ProductGem, product_id=product.id, gem_id=ruby.id)
        with pytest.raises(UniquenessError):
            store.create(ProductGem, product_id=product.id, gem_id=ruby.id)


class TestForeignKeys:

    def test_product_with_missing_category(self, store, gold):
        with pytest.raises(ReferentialIntegrityError):
            store.create(Product, category_id=999, metal_id=gold.id, name='Band',
                         weight=Decimal('2.00'), production_cost=Decimal('10.00'), description='-')
        assert store.list(Product)[1] == 0

    def test_user_with_missing_role(self, store):
        with pytest.raises(ReferentialIntegrityError):
            store.create(User, first_name='A', last_name='B', email='a@b.c', password_hash='x', role_id=42)

    def test_optional_parent_must_exist_when_given(self, store, staff):
        with pytest.raises(ReferentialIntegrityError):
            store.create(User, first_name='A', last_name='B', email='a@b.c',
                         password_hash='x', role_id=staff.id, branch_id=7)

    def test_image_with_missing_product(self, store):
        with pytest.raises(ReferentialIntegrityError):
            store.create(ProductImage, product_id=1, url='https://cdn/x.jpg')

    def test_rate_with_missing_metal(self, store):
        with pytest.raises(ReferentialIntegrityError):
            store.create(MaterialRate, metal_id=3, rate_per_gram=Decimal('1.00'), updated_date=date(2024, 1, 1))

    def test_update_to_missing_parent(self, store, rings, gold):
        product = store.create(Product, **product_values(rings, gold))
        with pytest.raises(ReferentialIntegrityError):
            store.update(Product, product.id, metal_id=555)
        assert store.get(Product, product.id).metal_id == gold.id


class TestDeletePolicy:

    def test_category_delete_restricted_by_product(self, store, rings, gold):
        store.create(Product, **product_values(rings, gold))
        with pytest.raises(ReferentialIntegrityError):
            store.delete(Category, rings.id)
        assert store.get(Category, rings.id).name == 'Rings'

    def test_metal_delete_restricted_by_product(self, store, rings, gold):
        store.create(Product, **product_values(rings, gold))
        with pytest.raises(ReferentialIntegrityError):
            store.delete(Metal, gold.id)

    def test_role_delete_restricted_by_user(self, store, staff):
        make_user(store, staff)
        with pytest.raises(ReferentialIntegrityError):
            store.delete(Role, staff.id)

    def test_branch_delete_nulls_user_branch(self, store, staff):
        branch = make_branch(store)
        branch_id = branch.id
        user = make_user(store, staff, branch)
        ticket = store.create(
            ServiceTicket, branch_id=branch.id, type=TicketType.REPAIR,
            customer_first_name='R', customer_last_name='K',
            contact_number='999', email='r@k.in',
        )
        store.delete(Branch, branch_id)
        assert store.get(User, user.id).branch_id is None
        assert store.get(ServiceTicket, ticket.id).branch_id is None
        with pytest.raises(NotFound):
            store.get(Branch, branch_id)

    def test_user_delete_nulls_assignments(self, store, staff, gold):
        user = make_user(store, staff)
        rate = store.create(MaterialRate, metal_id=gold.id, rate_per_gram=Decimal('6000.00'),
                            updated_date=date(2024, 5, 1), updated_by=user.id)
        design = store.create(
            CustomDesign, assigned_user_id=user.id, customer_first_name='N', customer_last_name='S',
            email='n@s.in', contact_number='1', image='https://cdn/d.png', preferred_metal_id=gold.id,
        )
        store.delete(User, user.id)
        assert store.get(MaterialRate, rate.id).updated_by is None
        assert store.get(CustomDesign, design.id).assigned_user_id is None

    def test_metal_delete_nulls_design_preference_but_rates_restrict(self, store, gold):
        silver = store.create(Metal, type=MetalType.SILVER, purity='925')
        design = store.create(
            CustomDesign, customer_first_name='N', customer_last_name='S', email='n@s.in',
            contact_number='1', image='https://cdn/d.png', preferred_metal_id=silver.id,
        )
        store.delete(Metal, silver.id)
        assert store.get(CustomDesign, design.id).preferred_metal_id is None

        store.create(MaterialRate, metal_id=gold.id, rate_per_gram=Decimal('6000.00'), updated_date=date(2024, 5, 1))
        with pytest.raises(ReferentialIntegrityError):
            store.delete(Metal, gold.id)

    def test_product_delete_cascades_to_images_gems_and_offers(self, store, rings, gold):
        product = store.create(Product, **product_values(rings, gold))
        ruby = store.create(Gem, name='Ruby')
        offer = store.create(SeasonalOffer, slug='diwali', title='Diwali')
        image = store.create(ProductImage, product_id=product.id, url='https://cdn/ring.jpg')
        image_id = image.id
        store.create(ProductGem, product_id=product.id, gem_id=ruby.id)
        store.create(ProductOffer, product_id=product.id, offer_id=offer.id)

        store.delete(Product, product.id)

        with pytest.raises(NotFound):
            store.get(ProductImage, image_id)
        assert store.list(ProductGem)[1] == 0
        assert store.list(ProductOffer)[1] == 0
        assert store.get(Gem, ruby.id).name == 'Ruby'
        assert store.get(SeasonalOffer, offer.id).slug == 'diwali'

    def test_gem_delete_restricted_by_product_link(self, store, rings, gold):
        product = store.create(Product, **product_values(rings, gold))
        ruby = store.create(Gem, name='Ruby')
        image = store.create(ProductImage, product_id=product.id, gem_id=ruby.id, url='https://cdn/ruby.jpg')
        store.create(ProductGem, product_id=product.id, gem_id=ruby.id)

        with pytest.raises(ReferentialIntegrityError):
            store.delete(Gem, ruby.id)
        # the cascade to images was rolled back with the rejected delete
        assert store.get(ProductImage, image.id).gem_id == ruby.id

    def test_gem_delete_cascades_to_images(self, store, rings, gold):
        product = store.create(Product, **product_values(rings, gold))
        ruby = store.create(Gem, name='Ruby')
        image_id = store.create(ProductImage, product_id=product.id, gem_id=ruby.id, url='https://cdn/ruby.jpg').id
        store.delete(Gem, ruby.id)
        with pytest.raises(NotFound):
            store.get(ProductImage, image_id)
        assert store.get(Product, product.id).name == 'Solitaire ring'

    def test_offer_delete_cascades_to_links(self, store, rings, gold):
        product = store.create(Product, **product_values(rings, gold))
        offer = store.create(SeasonalOffer, slug='akshaya', title='Akshaya Tritiya')
        store.create(ProductOffer, product_id=product.id, offer_id=offer.id)
        store.delete(SeasonalOffer, offer.id)
        assert store.list(ProductOffer)[1] == 0
        assert store.get(Product, product.id).id == product.id

    def test_deleted_instance_stays_readable(self, store, rings):
        store.delete(Category, rings.id)
        assert rings.name == 'Rings'
        with pytest.raises(NotFound):
            store.get(Category, rings.id)

    def test_delete_missing_row(self, store):
        with pytest.raises(NotFound):
            store.delete(Category, 12)


class TestDomainChecks:

    @pytest.mark.parametrize('rating', [0, 6])
    def test_rating_out_of_range(self, store, rating):
        with pytest.raises(DomainConstraintError):
            make_review(store, rating)
        assert store.list(Review)[1] == 0

    @pytest.mark.parametrize('rating', [1, 5])
    def test_rating_bounds_accepted(self, store, rating):
        assert make_review(store, rating).rating == rating

    def test_unknown_metal_type(self, store):
        with pytest.raises(DomainConstraintError):
            store.create(Metal, type='PLATINUM', purity='950')

    def test_metal_type_from_string(self, store):
        assert store.create(Metal, type='ROSE_GOLD', purity='18K').type is MetalType.ROSE_GOLD

    def test_unknown_ticket_status(self, store):
        with pytest.raises(DomainConstraintError):
            store.create(
                ServiceTicket, type=TicketType.CLEANING, status='LOST',
                customer_first_name='R', customer_last_name='K', contact_number='1', email='r@k.in',
            )

    def test_ticket_defaults_to_new(self, store):
        ticket = store.create(
            ServiceTicket, type='CLEANING', customer_first_name='R', customer_last_name='K',
            contact_number='1', email='r@k.in',
        )
        assert ticket.status is TicketStatus.NEW
        assert ticket.ticket_date is not None

    def test_string_length_bound(self, store):
        with pytest.raises(DomainConstraintError):
            store.create(Role, name='x' * 51)

    def test_invalid_update_leaves_row_unchanged(self, store):
        review = make_review(store, 4)
        with pytest.raises(DomainConstraintError):
            store.update(Review, review.id, rating=9)
        assert store.get(Review, review.id).rating == 4


def test_ring_scenario(store, rings, gold):
    rings_id = rings.id
    product = store.create(Product, **product_values(rings, gold))

    loaded = store.get(Product, product.id)
    assert loaded.weight == Decimal('5.25')
    assert loaded.category.name == 'Rings'
    assert loaded.metal.type is MetalType.GOLD
    assert loaded.metal.purity == '22K'

    with pytest.raises(ReferentialIntegrityError):
        store.delete(Category, rings_id)

    store.delete(Product, product.id)
    store.delete(Category, rings_id)
    with pytest.raises(NotFound):
        store.get(Category, rings_id)


def test_list_filters_and_pages(store):
    for name in ('Rings', 'Bangles', 'Chains', 'Anklets'):
        store.create(Category, name=name)
    rows, total = store.list(Category, limit=2, offset=1)
    assert total == 4
    assert [row.name for row in rows] == ['Bangles', 'Chains']

    rows, total = store.list(Category, {'name': 'Chains'})
    assert total == 1
    assert rows[0].name == 'Chains'
