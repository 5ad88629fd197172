"""
Tests for product endpoints.
"""

from inventory_shared.security.auth import sign_jwt


class TestListProducts:
    def test_unauthenticated(self, client):
        response = client.get("/api/products")
        assert response.status_code == 401

    def test_scoped_to_resolved_branch(self, client, staff_headers, branches, make_product):
        make_product([branches["south"]], name="South Only")
        make_product([branches["main"]], name="Main Only")

        response = client.get("/api/products", headers=staff_headers)

        assert response.status_code == 200
        data = response.json()
        assert [item["name"] for item in data["items"]] == ["South Only"]
        assert data["branch_context"]["branch_id"] == branches["south"].id
        assert data["branch_context"]["source"] == "assignment"
        assert data["pagination"]["total"] == 1
        assert data["items"][0]["branch_stock"] == 10

    def test_all_branches_for_owner(self, client, owner_headers, branches, make_product):
        make_product([branches["south"]])
        make_product([branches["main"], branches["north"]])

        response = client.get("/api/products", params={"branch_id": "all"}, headers=owner_headers)

        assert response.status_code == 200
        data = response.json()
        assert data["branch_context"]["all_branches"] is True
        assert len(data["items"]) == 2
        assert all(item["branches"] is not None for item in data["items"])

    def test_all_branches_forbidden_for_staff(self, client, staff_headers):
        response = client.get("/api/products", params={"branch_id": "all"}, headers=staff_headers)
        assert response.status_code == 403

    def test_inaccessible_branch_parameter(self, client, staff_headers, branches):
        response = client.get(
            "/api/products", params={"branch_id": branches["main"].id}, headers=staff_headers
        )
        assert response.status_code == 403

    def test_malformed_branch_parameter(self, client, owner_headers):
        response = client.get("/api/products", params={"branch_id": "abc"}, headers=owner_headers)

        assert response.status_code == 422
        assert "branch_id" in response.json()["errors"]

    def test_per_page_limit(self, client, owner_headers):
        response = client.get("/api/products", params={"per_page": 500}, headers=owner_headers)

        assert response.status_code == 422
        assert "per_page" in response.json()["errors"]

    def test_inactive_user_is_rejected(self, db_session, client, staff, staff_headers):
        staff.is_active = False
        db_session.commit()

        response = client.get("/api/products", headers=staff_headers)
        assert response.status_code == 401


class TestCreateProduct:
    def test_create(self, client, owner_headers, branches):
        response = client.post(
            "/api/products",
            headers=owner_headers,
            json={
                "name": "Tape Measure",
                "sku": "TAPE-5M",
                "cost_price": "3.00",
                "selling_price": "6.50",
                "stock_quantity": 12,
                "min_stock_level": 2,
                "branch_ids": [branches["main"].id, branches["east"].id],
                "branch_stock": {str(branches["east"].id): 4},
            },
        )

        assert response.status_code == 201
        product = response.json()["product"]
        stocks = {row["branch_id"]: row["stock_quantity"] for row in product["branches"]}
        assert stocks == {branches["main"].id: 12, branches["east"].id: 4}

    def test_validation_errors_are_keyed_by_field(self, client, owner_headers, branches):
        response = client.post(
            "/api/products",
            headers=owner_headers,
            json={"name": "", "sku": "X", "cost_price": "-1", "selling_price": "1", "stock_quantity": 0, "min_stock_level": 0},
        )

        assert response.status_code == 422
        errors = response.json()["errors"]
        assert "name" in errors
        assert "cost_price" in errors

    def test_non_json_body_is_rejected(self, client, owner_headers):
        response = client.post(
            "/api/products",
            headers={**owner_headers, "Content-Type": "text/plain"},
            content="name=x",
        )
        assert response.status_code == 415


class TestProductDetail:
    def test_other_tenant_product_is_404(self, client, owner_headers, other_tenant, make_product):
        product = make_product(tenant=other_tenant)

        response = client.get(f"/api/products/{product.id}", headers=owner_headers)
        assert response.status_code == 404

    def test_update_with_sales_guard(self, client, owner_headers, branches, make_product, record_sale):
        product = make_product([branches["main"], branches["north"]], stock=0)
        record_sale(product, branches["north"])

        response = client.put(
            f"/api/products/{product.id}",
            headers=owner_headers,
            json={"branch_ids": [branches["main"].id]},
        )

        assert response.status_code == 422
        assert "branch_id" in response.json()["errors"]

        response = client.put(
            f"/api/products/{product.id}",
            headers=owner_headers,
            json={"branch_ids": [branches["main"].id], "force_remove": True},
        )
        assert response.status_code == 200
        assert response.json()["product"]["branch_ids"] == [branches["main"].id]

    def test_delete(self, client, owner_headers, branches, make_product, record_sale):
        sold = make_product([branches["main"]])
        record_sale(sold, branches["main"])
        unsold = make_product([branches["main"]])

        assert client.delete(f"/api/products/{sold.id}", headers=owner_headers).status_code == 422
        assert client.delete(f"/api/products/{unsold.id}", headers=owner_headers).status_code == 200
        assert client.get(f"/api/products/{unsold.id}", headers=owner_headers).status_code == 404

    def test_branch_details_for_staff(self, client, staff_headers, branches, make_product):
        product = make_product([branches["main"], branches["south"]])

        response = client.get(f"/api/products/{product.id}/branch-details", headers=staff_headers)

        assert response.status_code == 200
        assert [b["branch_id"] for b in response.json()["branches"]] == [branches["south"].id]


class TestBulkAssign:
    def test_bulk_assign(self, client, owner_headers, branches, make_product):
        first = make_product([branches["main"]])
        second = make_product([branches["north"]])

        response = client.post(
            "/api/products/bulk-assign-branch",
            headers=owner_headers,
            json={"product_ids": [first.id, second.id], "branch_id": branches["north"].id},
        )

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["data"]["assigned"] == 1
        assert body["data"]["skipped"] == 1
        assert body["data"]["details"]["skipped_products"][0]["id"] == second.id

    def test_bulk_assign_denied(self, client, staff_headers, branches, make_product):
        product = make_product([branches["south"]])

        response = client.post(
            "/api/products/bulk-assign-branch",
            headers=staff_headers,
            json={"product_ids": [product.id], "branch_id": branches["main"].id},
        )
        assert response.status_code == 403

    def test_bulk_assign_unknown_branch(self, client, owner_headers, make_product, branches):
        product = make_product([branches["main"]])

        response = client.post(
            "/api/products/bulk-assign-branch",
            headers=owner_headers,
            json={"product_ids": [product.id], "branch_id": 999_999},
        )
        assert response.status_code == 404

    def test_empty_product_list(self, client, owner_headers, branches):
        response = client.post(
            "/api/products/bulk-assign-branch",
            headers=owner_headers,
            json={"product_ids": [], "branch_id": branches["main"].id},
        )
        assert response.status_code == 422


class TestProductBranchRows:
    def test_add_update_remove(self, client, owner_headers, branches, make_product):
        product = make_product([branches["main"]])
        base = f"/api/products/{product.id}/branches"

        response = client.post(
            base,
            headers=owner_headers,
            json={"branch_ids": [branches["north"].id], "stock_quantity": 7, "selling_price": "11.00"},
        )
        assert response.status_code == 200

        response = client.put(
            f"{base}/{branches['north'].id}",
            headers=owner_headers,
            json={"selling_price": None},
        )
        assert response.status_code == 200
        assert response.json()["selling_price"] is None
        assert response.json()["stock_quantity"] == 7

        listed = client.get(base, headers=owner_headers).json()
        assert {row["branch_id"] for row in listed} == {branches["main"].id, branches["north"].id}

        response = client.delete(f"{base}/{branches['north'].id}", headers=owner_headers)
        assert response.status_code == 422
        assert response.json()["errors"]["current_stock"] == ["7"]

        response = client.delete(
            f"{base}/{branches['north'].id}",
            params={"force_remove": "true"},
            headers=owner_headers,
        )
        assert response.status_code == 200

    def test_remove_last_branch_refused(self, client, owner_headers, branches, make_product):
        product = make_product([branches["main"]])

        response = client.delete(
            f"/api/products/{product.id}/branches/{branches['main'].id}",
            params={"force_remove": "true"},
            headers=owner_headers,
        )
        assert response.status_code == 422

    def test_update_unassigned_row_is_404(self, client, owner_headers, branches, make_product):
        product = make_product([branches["main"]])

        response = client.put(
            f"/api/products/{product.id}/branches/{branches['east'].id}",
            headers=owner_headers,
            json={"stock_quantity": 1},
        )
        assert response.status_code == 404


class TestOtherEndpoints:
    def test_manager_sees_assigned(self, client, manager_headers, branches):
        response = client.get("/api/products/available-branches", headers=manager_headers)

        assert response.status_code == 200
        assert {b["id"] for b in response.json()} == {branches["north"].id, branches["south"].id}

    def test_low_stock_endpoint(self, client, owner_headers, branches, make_product):
        low = make_product([branches["main"]], stock=0, min_stock=1)

        response = client.get("/api/products/low-stock", headers=owner_headers)

        assert response.status_code == 200
        assert [p["id"] for p in response.json()] == [low.id]

    def test_token_tenant_mismatch_is_rejected(self, client, owner, other_tenant):
        token = sign_jwt({"sub": str(owner.id), "tenant_id": other_tenant.id})
        headers = {"Authorization": f"Bearer {token}"}

        response = client.get("/api/products", headers=headers)
        assert response.status_code == 401
