import asyncio
from contentai.database import engine, Base

# Import all models to ensure they are registered in Base.metadata
from contentai.documents.models import Document, DocumentSnapshot  # noqa: F401

async def init_models(drop: bool = False):
    async with engine.begin() as conn:
        if drop:
            await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)
    print("Database tables created.")

if __name__ == "__main__":
    import sys
    asyncio.run(init_models(drop="--drop" in sys.argv))
