# evotree/db.py
import os
from dotenv import load_dotenv
load_dotenv()

from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker

DATABASE_URL = os.getenv("DATABASE_URL")
if not DATABASE_URL:
    raise RuntimeError("DATABASE_URL no configurada. Revise el archivo .env")

# Ajustes para MySQL detrás de proxy:
# - SSL vacío: le dice a PyMySQL "usa TLS"
# - connect_timeout para no colgar el arranque
# - pool_recycle menor que el wait_timeout del server/proxy
if DATABASE_URL.startswith("mysql"):
    connect_args = {
        "ssl": {},
        "connect_timeout": 10,
        "charset": "utf8mb4",
    }
    engine = create_engine(
        DATABASE_URL,
        future=True,
        pool_pre_ping=True,
        pool_recycle=280,
        pool_size=5,
        max_overflow=10,
        connect_args=connect_args,
    )
else:
    # sqlite (local/tests): un hilo no es requisito con sesiones cortas
    engine = create_engine(
        DATABASE_URL,
        future=True,
        connect_args={"check_same_thread": False} if DATABASE_URL.startswith("sqlite") else {},
    )

SessionLocal = sessionmaker(bind=engine, autoflush=False, autocommit=False, future=True)
