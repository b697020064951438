"""Tests for material management and stock receipts."""

import io
from datetime import datetime, timedelta

import openpyxl
import pytest
from sqlalchemy import func, select

from backoffice.core.exceptions import ConflictError, NotFoundError, ValidationError
from backoffice.models import Material, MaterialImport
from backoffice.services.material_service import (
    ImportLine,
    MaterialService,
    import_statistics,
    period_start,
)
from tests.factories import add_material, add_product


def xlsx_bytes(rows):
    workbook = openpyxl.Workbook()
    sheet = workbook.active
    for row in rows:
        sheet.append(row)
    buffer = io.BytesIO()
    workbook.save(buffer)
    return buffer.getvalue()


def test_period_start():
    now = datetime(2024, 5, 20, 15, 30)

    assert period_start("all", now) is None
    assert period_start("today", now) == datetime(2024, 5, 20)
    assert period_start("week", now) == now - timedelta(days=7)
    assert period_start("month", now) == now - timedelta(days=30)
    with pytest.raises(ValidationError):
        period_start("year", now)


def test_import_statistics():
    now = datetime(2024, 5, 20, 12, 0)
    rows = [
        MaterialImport(material_id=1, quantity=1, unit_price=10, total_amount=10, import_date=now),
        MaterialImport(material_id=1, quantity=2, unit_price=10, total_amount=20, import_date=now - timedelta(days=2)),
        MaterialImport(material_id=2, quantity=1, unit_price=5, total_amount=5, import_date=now),
    ]

    assert import_statistics(rows, now) == {
        "total_imports": 3,
        "total_value": 35,
        "unique_materials": 2,
        "today_imports": 2,
    }


class TestMaterialService:
    @pytest.mark.asyncio
    async def test_create_trims_and_rejects_duplicates(self, test_session):
        service = MaterialService(test_session)

        material = await service.create_material("  Oak plank ", "m")

        assert material.name == "Oak plank"
        assert material.current_stock == 0
        with pytest.raises(ConflictError):
            await service.create_material("OAK PLANK", "m")
        with pytest.raises(ValidationError):
            await service.create_material("   ", "m")
        with pytest.raises(ValidationError):
            await service.create_material("Pine", "")

    @pytest.mark.asyncio
    async def test_update(self, test_session):
        wood = await add_material(test_session, "Wood", 10)
        await add_material(test_session, "Glue", 1)
        service = MaterialService(test_session)

        updated = await service.update_material(wood.id, name=" Beech ", current_stock=4)

        assert updated.name == "Beech"
        assert updated.current_stock == 4
        with pytest.raises(ConflictError):
            await service.update_material(wood.id, name="glue")
        with pytest.raises(ValidationError):
            await service.update_material(wood.id)
        with pytest.raises(NotFoundError):
            await service.update_material(999, name="x")

    @pytest.mark.asyncio
    async def test_delete_is_guarded(self, test_session):
        imported = await add_material(test_session, "Imported", 5, imports=[(5, 2)])
        in_bom = await add_material(test_session, "InBom", 5)
        await add_product(test_session, "Widget", [(in_bom, 1)])
        spare = await add_material(test_session, "Spare", 0)
        service = MaterialService(test_session)

        with pytest.raises(ConflictError):
            await service.delete_material(imported.id)
        with pytest.raises(ConflictError):
            await service.delete_material(in_bom.id)

        await service.delete_material(spare.id)
        count = (await test_session.execute(select(func.count(Material.id)))).scalar_one()
        assert count == 2

    @pytest.mark.asyncio
    async def test_save_imports_adds_stock(self, test_session):
        wood = await add_material(test_session, "Wood", 10)
        glue = await add_material(test_session, "Glue", 0)
        service = MaterialService(test_session)

        rows = await service.save_imports(
            [ImportLine(wood.id, 5, 2.5), ImportLine(glue.id, 3, 8)], notes="supplier A"
        )

        assert [r.total_amount for r in rows] == [12.5, 24]
        assert all(r.notes == "supplier A" for r in rows)
        assert (await service.get_material(wood.id)).current_stock == 15
        assert (await service.get_material(glue.id)).current_stock == 3

    @pytest.mark.asyncio
    async def test_save_imports_validation(self, test_session):
        wood = await add_material(test_session, "Wood", 10)
        service = MaterialService(test_session)
        wood_id = wood.id

        with pytest.raises(ValidationError):
            await service.save_imports([])
        with pytest.raises(ValidationError):
            await service.save_imports([ImportLine(wood.id, 0, 1)])
        with pytest.raises(ValidationError):
            await service.save_imports([ImportLine(wood.id, 1, 0)])
        with pytest.raises(NotFoundError):
            await service.save_imports([ImportLine(wood_id, 1, 1), ImportLine(999, 1, 1)])

        assert (await service.get_material(wood_id)).current_stock == 10

    @pytest.mark.asyncio
    async def test_import_history(self, test_session):
        wood = await add_material(test_session, "Wood", 0)
        service = MaterialService(test_session)
        await service.save_imports([ImportLine(wood.id, 2, 10)])
        await service.save_imports([ImportLine(wood.id, 1, 30)])

        history = await service.import_history("today")

        assert [row.quantity for row in history["imports"]] == [1, 2]
        assert history["imports"][0].material.name == "Wood"
        assert history["statistics"]["total_imports"] == 2
        assert history["statistics"]["total_value"] == 50
        assert history["statistics"]["unique_materials"] == 1

        limited = await service.import_history("all", limit=1)
        assert len(limited["imports"]) == 1

    @pytest.mark.asyncio
    async def test_import_spreadsheet(self, test_session):
        await add_material(test_session, "Wood", 10)
        content = xlsx_bytes(
            [
                ["name", "unit", "quantity", "unit_price", "notes"],
                ["Wood", "kg", 5, 3, None],
                ["Screws", "pcs", 100, 0.2, "box"],
                ["Screws", "box", 50, 0.25, None],
            ]
        )
        service = MaterialService(test_session)

        result = await service.import_spreadsheet("receipts.xlsx", content)

        assert result == {"imported_rows": 3, "created_materials": 1}
        materials = {m.name: m for m in await service.list_materials()}
        assert materials["Wood"].current_stock == 15
        assert materials["Screws"].current_stock == 150
        assert materials["Screws"].unit == "pcs"

    @pytest.mark.asyncio
    async def test_import_spreadsheet_matches_names_ignoring_case(self, test_session):
        await add_material(test_session, "Wood", 10)
        content = "name,unit,quantity,unit_price\nwood,kg,5,3\nGLUE,l,2,4\nglue,l,4,4\n".encode()
        service = MaterialService(test_session)

        result = await service.import_spreadsheet("receipts.csv", content)

        assert result == {"imported_rows": 3, "created_materials": 1}
        stock = {m.name: m.current_stock for m in await service.list_materials()}
        assert stock == {"GLUE": 6, "Wood": 15}

    @pytest.mark.asyncio
    async def test_import_spreadsheet_rejects_incomplete_rows(self, test_session):
        content = "name,unit,quantity,unit_price\nWood,kg,5,3\nGlue,,2,4\n".encode()
        service = MaterialService(test_session)

        with pytest.raises(ValidationError, match="Row 3"):
            await service.import_spreadsheet("receipts.csv", content)
        with pytest.raises(ValidationError, match="Row 2"):
            await service.import_spreadsheet("receipts.csv", b"name,unit,quantity,unit_price\nWood,kg,nan,3\n")

        assert await service.list_materials() == []

    @pytest.mark.asyncio
    async def test_list_with_costs(self, test_session):
        await add_material(test_session, "Wood", 30, imports=[(10, 100), (20, 200)])
        rows = await MaterialService(test_session).list_with_costs()

        assert rows[0]["average_cost"] == pytest.approx(166.6667, rel=1e-4)
        assert rows[0]["latest_price"] in (100, 200)
