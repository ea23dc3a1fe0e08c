import pytest

from app.errors import ValidationError
from app.services.search import list_nearby_shops, pick_best_offers, search_products
from conftest import HOME
from models import db, InventoryEntry


@pytest.fixture()
def area(factory):
    """Customer at HOME; shops ~1.1 km, ~2.2 km and ~22 km north of it."""
    class Area:
        pass
    a = Area()
    a.customer = factory.user()
    factory.address(a.customer)
    a.near = factory.shop(lat=HOME[0] + 0.01, name='Near Store', delivery_time=10)
    a.mid = factory.shop(lat=HOME[0] + 0.02, name='Mid Store')
    a.far = factory.shop(lat=HOME[0] + 0.2, name='Far Store')
    a.milk = factory.product('Toned Milk', brand='Amul', description='Pasteurised toned milk')
    a.rice = factory.product('Basmati Rice', brand='India Gate')
    return a


def _ids(result):
    return [(r['id'], r['shop_id']) for r in result.results]


def test_cheapest_shop_in_radius_wins(factory, area):
    factory.stock(area.near, area.milk, '30.00')
    factory.stock(area.mid, area.milk, '25.00')
    factory.stock(area.far, area.milk, '10.00')
    result = search_products(area.customer.id, 'milk')
    assert result.reason is None
    assert _ids(result) == [(area.milk.id, area.mid.id)]
    row = result.results[0]
    assert row['price'] == 25.0
    assert row['shop_name'] == 'Mid Store'
    assert row['distance_km'] == pytest.approx(2.224, abs=0.01)


def test_equal_price_goes_to_nearer_shop(factory, area):
    factory.stock(area.mid, area.milk, '25.00')
    factory.stock(area.near, area.milk, '25.00')
    assert _ids(search_products(area.customer.id, 'milk')) == [(area.milk.id, area.near.id)]


def test_equal_price_and_distance_goes_to_lower_shop_id(factory, area):
    twin = factory.shop(lat=HOME[0] + 0.01, name='Twin Store')
    factory.stock(twin, area.milk, '25.00')
    factory.stock(area.near, area.milk, '25.00')
    assert _ids(search_products(area.customer.id, 'milk')) == [(area.milk.id, area.near.id)]


def test_out_of_stock_and_unavailable_entries_skipped(factory, area):
    factory.stock(area.near, area.milk, '20.00', quantity=0)
    factory.stock(area.mid, area.milk, '22.00', available=False)
    factory.stock(area.far, area.milk, '24.00')
    result = search_products(area.customer.id, 'milk', radius_km=30)
    assert _ids(result) == [(area.milk.id, area.far.id)]


def test_results_sorted_by_distance(factory, area):
    factory.stock(area.mid, area.milk, '25.00')
    factory.stock(area.near, area.rice, '90.00')
    factory.stock(area.mid, area.rice, '95.00')
    result = search_products(area.customer.id, 'a')
    assert _ids(result) == [(area.rice.id, area.near.id), (area.milk.id, area.mid.id)]


def test_match_on_brand_and_description_case_insensitive(factory, area):
    factory.stock(area.near, area.milk)
    assert _ids(search_products(area.customer.id, 'AMUL')) == [(area.milk.id, area.near.id)]
    assert _ids(search_products(area.customer.id, 'pasteurised')) == [(area.milk.id, area.near.id)]


def test_like_wildcards_are_literal(factory, area):
    factory.stock(area.near, area.milk)
    result = search_products(area.customer.id, '%')
    assert result.results == []
    assert result.reason == 'no_matches'


@pytest.mark.parametrize('query', ['', '   ', None])
def test_empty_query(area, query):
    result = search_products(area.customer.id, query)
    assert result.results == []
    assert result.reason == 'empty_query'


def test_no_shops_in_radius_is_reported_separately(factory):
    lonely = factory.user()
    factory.address(lonely, lat=0.0, lng=0.0)
    factory.shop(lat=HOME[0], lng=HOME[1])
    result = search_products(lonely.id, 'milk')
    assert result.reason == 'no_shops_in_radius'
    assert result.results == []


def test_no_matches(factory, area):
    factory.stock(area.near, area.milk)
    result = search_products(area.customer.id, 'paneer')
    assert result.reason == 'no_matches'


def test_requires_default_address(factory):
    homeless = factory.user()
    factory.address(homeless, default=False)
    with pytest.raises(ValidationError) as exc:
        search_products(homeless.id, 'milk')
    assert exc.value.kind == 'NoDefaultAddress'


def test_default_address_without_coordinates(factory):
    user = factory.user()
    factory.address(user, lat=None, lng=None)
    with pytest.raises(ValidationError) as exc:
        list_nearby_shops(user.id)
    assert exc.value.kind == 'NoDefaultAddress'


@pytest.mark.parametrize('radius', ['abc', '0', '-3', '1000', 'nan'])
def test_invalid_radius(area, radius):
    with pytest.raises(ValidationError) as exc:
        search_products(area.customer.id, 'milk', radius_km=radius)
    assert exc.value.kind == 'InvalidRadius'


def test_custom_radius_widens_search(factory, area):
    factory.stock(area.near, area.milk, '30.00')
    factory.stock(area.far, area.milk, '10.00')
    assert _ids(search_products(area.customer.id, 'milk', radius_km='30')) == [(area.milk.id, area.far.id)]
    assert search_products(area.customer.id, 'milk', radius_km='30').radius_km == 30.0


def test_pick_best_offers_ranks_price_distance_shop():
    class E:
        def __init__(self, product_id, shop_id, price):
            self.product_id, self.shop_id, self.price = product_id, shop_id, price

    class N:
        def __init__(self, distance_km):
            self.distance_km = distance_km

    entries = [E(1, 3, '5.00'), E(1, 2, '5.00'), E(1, 1, '6.00'), E(2, 1, '9.00')]
    nearby = {1: N(0.5), 2: N(1.0), 3: N(1.0)}
    best = {e.product_id: e.shop_id for e, _ in pick_best_offers(entries, nearby)}
    assert best == {1: 2, 2: 1}


def test_nearby_shops_default_radius_and_counts(factory, area):
    factory.stock(area.near, area.milk)
    factory.stock(area.near, area.rice)
    factory.stock(area.mid, area.milk, available=False)
    shops, radius = list_nearby_shops(area.customer.id)
    assert radius == 7.0
    assert [s['id'] for s in shops] == [area.near.id, area.mid.id]
    assert [s['total_products'] for s in shops] == [2, 0]
    assert shops[0]['distance_km'] < shops[1]['distance_km']
    assert shops[0]['delivery_time'] >= 10


def test_nearby_shops_empty_when_none_in_radius(factory):
    user = factory.user()
    factory.address(user, lat=-33.86, lng=151.2)
    shops, radius = list_nearby_shops(user.id, radius_km='5')
    assert shops == []
    assert radius == 5.0


def test_radius_boundary_through_search(factory, area):
    from app.services.geo import Coordinate, distance_km
    factory.stock(area.mid, area.milk, '25.00')
    exact = distance_km(
        Coordinate(HOME[0], HOME[1]),
        Coordinate(area.mid.latitude, area.mid.longitude),
    )
    # the near shop stocks nothing, so only the mid shop can match
    hit = search_products(area.customer.id, 'milk', radius_km=exact)
    assert _ids(hit) == [(area.milk.id, area.mid.id)]

    near_exact = distance_km(
        Coordinate(HOME[0], HOME[1]),
        Coordinate(area.near.latitude, area.near.longitude),
    )
    miss = search_products(area.customer.id, 'milk', radius_km=near_exact - 0.001)
    assert miss.results == []
    assert miss.reason == 'no_shops_in_radius'
    assert search_products(area.customer.id, 'milk', radius_km=near_exact).reason == 'no_matches'
