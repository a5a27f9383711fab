import sys
import uuid
from pathlib import Path

import pytest
import pytest_asyncio
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

ROOT = Path(__file__).resolve().parents[1]

if str(ROOT) not in sys.path:
    sys.path.insert(0, str(ROOT))

from sellerops.database import create_engine_for_url, init_db  # noqa: E402
from sellerops.models.product import Product, ProductMapping  # noqa: E402


@pytest_asyncio.fixture
async def engine(tmp_path):
    engine = create_engine_for_url(f"sqlite+aiosqlite:///{tmp_path / 'sellerops.db'}")
    await init_db(engine)
    yield engine
    await engine.dispose()


@pytest.fixture
def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory):
    async with session_factory() as session:
        yield session


@pytest.fixture
def make_product(db):
    async def _make(sku: str, name: str, **kwargs) -> Product:
        product = Product(id=uuid.uuid4(), sku=sku, name=name, **kwargs)
        db.add(product)
        await db.flush()
        return product
    return _make


@pytest.fixture
def make_mapping(db):
    async def _make(product: Product, marketplace: str = "coupang", **kwargs) -> ProductMapping:
        mapping = ProductMapping(marketplace=marketplace, product_id=product.id, **kwargs)
        db.add(mapping)
        await db.flush()
        return mapping
    return _make
