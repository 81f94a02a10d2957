from conftest import make_product
from core.extensions import db
from models.productModels import Product


def test_list_hides_inactive_products(client, products):
    make_product("Hidden Thekua", is_active=False)

    data = client.get("/api/products").get_json()["data"]

    assert data["pagination"]["total"] == 3
    assert "Hidden Thekua" not in [p["name"] for p in data["products"]]


def test_filters_and_sort(client, products):
    by_category = client.get("/api/products", query_string={"category": "Gift Boxes"}).get_json()["data"]["products"]
    by_price = client.get("/api/products?sort=price_asc&max_price=300").get_json()["data"]["products"]
    by_search = client.get("/api/products?search=coconut").get_json()["data"]["products"]

    assert [p["name"] for p in by_category] == ["Chhath Gift Box"]
    assert [p["price"] for p in by_price] == [100, 250]
    assert [p["name"] for p in by_search] == ["Coconut Thekua"]


def test_pagination(client, products):
    data = client.get("/api/products?limit=2&page=2").get_json()["data"]

    assert len(data["products"]) == 1
    assert data["pagination"] == {
        "current_page": 2, "total_pages": 2, "total": 3, "has_next_page": False, "has_prev_page": True,
    }


def test_categories(client, products):
    categories = client.get("/api/products/categories").get_json()["data"]["categories"]

    assert {"name": "Thekua", "count": 2} in categories


def test_featured(client, products):
    products[2].is_featured = True
    db.session.commit()

    featured = client.get("/api/products/featured").get_json()["data"]["products"]

    assert [p["id"] for p in featured] == [products[2].id]


def test_detail_counts_views(client, products):
    client.get(f"/api/products/{products[0].id}")
    response = client.get(f"/api/products/{products[0].id}")

    assert response.get_json()["data"]["product"]["views"] == 2
    assert db.session.get(Product, products[0].id).views == 2


def test_missing_product(client, app):
    response = client.get("/api/products/404")

    assert response.status_code == 404
    assert response.get_json() == {"status": "error", "message": "Product not found"}


def test_unknown_route_uses_envelope(client, app):
    response = client.get("/api/nothing-here")

    assert response.status_code == 404
    assert response.get_json()["status"] == "error"
