"""Tests for material and product endpoints."""


class TestMaterialsApi:
    def test_create_rejects_duplicate_names(self, client, wood):
        duplicate = client.post("/api/materials", json={"name": "WOOD", "unit": "kg"})
        blank = client.post("/api/materials", json={"name": "  ", "unit": "kg"})

        assert duplicate.status_code == 409
        assert blank.status_code == 400

    def test_list_with_costs(self, client, wood):
        response = client.get("/api/materials")

        assert response.status_code == 200
        row = response.json()[0]
        assert row["name"] == "Wood"
        assert row["current_stock"] == 10
        assert row["average_cost"] == 6
        assert row["latest_price"] == 6

    def test_import_history(self, client, wood):
        response = client.get("/api/materials/imports", params={"period": "today"})

        assert response.status_code == 200
        data = response.json()
        assert data["imports"][0]["material_name"] == "Wood"
        assert data["imports"][0]["total_amount"] == 60
        assert data["statistics"]["total_imports"] == 1
        assert data["statistics"]["today_imports"] == 1
        assert client.get("/api/materials/imports", params={"period": "year"}).status_code == 400

    def test_save_imports_unknown_material(self, client, wood):
        response = client.post(
            "/api/materials/imports",
            json={
                "items": [
                    {"material_id": wood["id"], "quantity": 5, "unit_price": 6},
                    {"material_id": 999, "quantity": 1, "unit_price": 1},
                ]
            },
        )

        assert response.status_code == 404
        assert client.get(f"/api/materials/{wood['id']}").json()["current_stock"] == 10

    def test_upload_imports(self, client, wood):
        content = "name,unit,quantity,unit_price\nWood,kg,5,8\nGlue,l,4,2.5\n".encode()

        response = client.post(
            "/api/materials/imports/upload", files={"file": ("receipts.csv", content, "text/csv")}
        )

        assert response.status_code == 201
        assert response.json() == {"imported_rows": 2, "created_materials": 1}
        stock = {m["name"]: m["current_stock"] for m in client.get("/api/materials").json()}
        assert stock == {"Glue": 4, "Wood": 15}

    def test_update_and_delete(self, client, wood):
        updated = client.put(f"/api/materials/{wood['id']}", json={"current_stock": 7})
        blocked = client.delete(f"/api/materials/{wood['id']}")
        spare = client.post("/api/materials", json={"name": "Spare", "unit": "pcs"}).json()
        deleted = client.delete(f"/api/materials/{spare['id']}")

        assert updated.json()["current_stock"] == 7
        assert blocked.status_code == 409
        assert deleted.status_code == 204
        assert client.get(f"/api/materials/{spare['id']}").status_code == 404


class TestProductsApi:
    def test_detail(self, client, wood, chair):
        response = client.get(f"/api/products/{chair['id']}")

        assert response.status_code == 200
        data = response.json()
        assert data["product"]["name"] == "Chair"
        assert data["materials"][0]["material_name"] == "Wood"
        assert data["materials"][0]["quantity_required"] == 2
        assert data["unit_cost"] == 12
        assert data["max_possible_quantity"] == 5

    def test_capacity_and_shortages(self, client, wood, chair):
        capacity = client.get("/api/products/capacity").json()
        shortages = client.get("/api/products/shortages").json()

        assert capacity == [
            {"product_id": chair["id"], "product_name": "Chair", "unit": "pcs", "max_possible_quantity": 5}
        ]
        assert shortages == []

    def test_cost(self, client, wood, chair):
        preview = client.post(
            "/api/products/cost-preview",
            json={"materials": [{"material_id": wood["id"], "quantity_required": 3}]},
        )

        assert preview.json() == {"cost": 18}
        assert client.get(f"/api/products/{chair['id']}/cost").json() == {"cost": 12}

    def test_create_checks_production_stock(self, client, wood):
        response = client.post(
            "/api/products",
            json={
                "name": "Table",
                "unit": "pcs",
                "materials": [{"material_id": wood["id"], "quantity_required": 4}],
                "production_quantity": 3,
            },
        )

        assert response.status_code == 409
        assert response.json()["detail"]["shortages"][0]["required"] == 12
        assert client.get("/api/products").json() == []

    def test_replace_materials_and_delete(self, client, wood, chair):
        glue = client.post("/api/materials", json={"name": "Glue", "unit": "l"}).json()

        replaced = client.put(
            f"/api/products/{chair['id']}/materials",
            json={"materials": [{"material_id": glue["id"], "quantity_required": 1}]},
        )
        duplicate = client.put(
            f"/api/products/{chair['id']}/materials",
            json={
                "materials": [
                    {"material_id": glue["id"], "quantity_required": 1},
                    {"material_id": glue["id"], "quantity_required": 2},
                ]
            },
        )

        assert replaced.status_code == 204
        assert duplicate.status_code == 400
        detail = client.get(f"/api/products/{chair['id']}").json()
        assert [m["material_name"] for m in detail["materials"]] == ["Glue"]
        assert detail["max_possible_quantity"] == 0

        assert client.delete(f"/api/products/{chair['id']}").status_code == 204
        assert client.get(f"/api/products/{chair['id']}").status_code == 404
