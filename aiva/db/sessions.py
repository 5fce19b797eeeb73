from sqlalchemy.ext.asyncio import create_async_engine, async_sessionmaker
from aiva.core.config import settings

# SQLite (tests, local runs) does not take pool sizing arguments
engine_options = {} if settings.DATABASE_URL.startswith("sqlite") else {"pool_size": 5, "max_overflow": 10}

engine = create_async_engine(
    settings.DATABASE_URL,
    echo=False,  # Disable SQL query logging for better performance
    **engine_options
)

AsyncSessionLocal = async_sessionmaker(
    engine, expire_on_commit=False
)

async def get_db():
    async with AsyncSessionLocal() as session:
        yield session
