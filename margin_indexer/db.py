from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker, AsyncSession
from .config import DATABASE_URL
from .models import Base

engine = create_async_engine(DATABASE_URL, pool_pre_ping=True)
SessionLocal = async_sessionmaker(engine, expire_on_commit=False, class_=AsyncSession)

async def create_schema(bind=engine):
    # tables are owned by the store; this only fills in what is missing
    async with bind.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
