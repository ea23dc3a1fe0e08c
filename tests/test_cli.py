from app.services.search import search_products
from models import InventoryEntry, Shop, User


def test_seed_demo_populates_an_empty_database(app):
    runner = app.test_cli_runner()
    result = runner.invoke(args=['seed-demo'])
    assert result.exit_code == 0, result.output
    assert 'Seeded 3 shops' in result.output
    assert Shop.query.count() == 3
    assert InventoryEntry.query.count() == 9

    again = runner.invoke(args=['seed-demo'])
    assert 'skipping' in again.output
    assert Shop.query.count() == 3


def test_seeded_data_is_searchable(app):
    app.test_cli_runner().invoke(args=['seed-demo'])
    customer = User.query.filter_by(email='customer@example.com').one()
    result = search_products(customer.id, 'milk')
    assert [r['shop_name'] for r in result.results] == ['Fresh Basket']
    assert result.results[0]['price'] == 27.0

    # bread is out of stock at Fresh Basket, so the nearby offer is Corner Kirana's
    bread = search_products(customer.id, 'bread')
    assert [r['shop_name'] for r in bread.results] == ['Corner Kirana']
