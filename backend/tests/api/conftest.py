"""Fixtures for API tests."""

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from backoffice.core.database import Base, _create_engine, get_db
from backoffice.main import app


@pytest.fixture
def client(tmp_path):
    """Test client bound to a throw-away SQLite file.

    The client runs the app on its own event loop, so each request opens a
    fresh aiosqlite connection (NullPool) instead of sharing one.
    """
    db_url = f"sqlite:///{tmp_path / 'api.db'}"
    schema_engine = create_engine(db_url)
    Base.metadata.create_all(schema_engine)
    schema_engine.dispose()

    session_factory = async_sessionmaker(
        _create_engine(db_url), class_=AsyncSession, expire_on_commit=False
    )

    async def override_get_db():
        async with session_factory() as session:
            yield session

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture
def customer(client):
    response = client.post("/api/customers", json={"name": "Alice", "phone": "0901000000"})
    assert response.status_code == 201
    return response.json()


@pytest.fixture
def wood(client):
    response = client.post("/api/materials", json={"name": "Wood", "unit": "kg"})
    assert response.status_code == 201
    material = response.json()
    response = client.post(
        "/api/materials/imports",
        json={"items": [{"material_id": material["id"], "quantity": 10, "unit_price": 6}]},
    )
    assert response.status_code == 201
    return material


@pytest.fixture
def chair(client, wood):
    response = client.post(
        "/api/products",
        json={"name": "Chair", "unit": "pcs", "materials": [{"material_id": wood["id"], "quantity_required": 2}]},
    )
    assert response.status_code == 201
    return response.json()
