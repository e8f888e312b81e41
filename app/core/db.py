from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from .config import settings
from .base import Base

engine = create_async_engine(settings.POSTGRES_DSN, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def get_session():
    async with SessionLocal() as session:
        yield session

def _import_models():
    # every mapped table must be registered on Base.metadata before create_all
    from app.modules.directory import models as _directory  # noqa: F401
    from app.modules.availability import models as _availability  # noqa: F401
    from app.modules.bookings import models as _bookings  # noqa: F401
    from app.modules.events import outbox as _outbox  # noqa: F401

async def init_models():
    ## In dev-only "create_all" mode the app owns the schema; otherwise, migrations own it.
    if settings.DB_MANAGE == "create_all":
        _import_models()
        async with engine.begin() as conn:
            await conn.run_sync(Base.metadata.create_all)
