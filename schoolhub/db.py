from sqlalchemy.orm import DeclarativeBase, Mapped, mapped_column, sessionmaker
from sqlalchemy import JSON, String, DateTime, MetaData, PrimaryKeyConstraint, create_engine, func
from sqlalchemy.pool import StaticPool
from sqlalchemy.exc import OperationalError, ProgrammingError
from datetime import datetime
import logging
import os
import uuid
import bcrypt
from dotenv import load_dotenv

load_dotenv()
logger = logging.getLogger(__name__)

NAMING_CONVENTION = {
    "ix": "ix_%(table_name)s_%(column_0_N_name)s",
    "uq": "uq_%(table_name)s_%(column_0_N_name)s",
    "pk": "pk_%(table_name)s",
}


class Base(DeclarativeBase):
    metadata = MetaData(naming_convention=NAMING_CONVENTION)


class DocumentBase(Base):
    """One JSON document of a named collection."""
    __tablename__ = "documents"

    collection: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    doc_id: Mapped[str] = mapped_column(String(255), nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, server_default=func.now())
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False, server_default=func.now(), onupdate=func.now()
    )

    __table_args__ = (PrimaryKeyConstraint("collection", "doc_id"),)


POSTGRES_HOST = os.getenv("DB_HOST", 'db.com')
POSTGRES_PORT = os.getenv("DB_PORT", '5432')
POSTGRES_USERNAME = os.getenv("DB_USER", 'db_user')
POSTGRES_PASSWORD = os.getenv("DB_PASSWORD", 'password')
POSTGRES_DATABASE = os.getenv("DB_NAME", 'db_name')
DB_URL = os.getenv(
    "DATABASE_URL",
    f'postgresql://{POSTGRES_USERNAME}:{POSTGRES_PASSWORD}@{POSTGRES_HOST}:{POSTGRES_PORT}/{POSTGRES_DATABASE}?sslmode=require',
)
DB_ECHO = os.getenv("DB_ECHO", "false").lower() in {"1", "true", "yes"}


def _make_engine(url: str):
    if url.startswith("sqlite"):
        # In-memory SQLite must share one connection across threads.
        return create_engine(
            url,
            echo=DB_ECHO,
            connect_args={"check_same_thread": False},
            poolclass=StaticPool,
        )
    return create_engine(url, echo=DB_ECHO, pool_pre_ping=True)


engine = _make_engine(DB_URL)
SessionLocal = sessionmaker(engine)


def create_db_and_tables() -> None:
    Base.metadata.create_all(engine)


def hash_password(password: str) -> str:
    return bcrypt.hashpw(password.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def seed_default_admin() -> None:
    admin_email = os.getenv("ADMIN_EMAIL", "admin@school.local")
    admin_password = os.getenv("ADMIN_PASSWORD", "admin123")
    try:
        with SessionLocal() as s:
            users = s.query(DocumentBase).filter(DocumentBase.collection == "users").all()
            if any(row.data.get("role") == "ADMIN" for row in users):
                return
            admin_id = f"admin_{uuid.uuid4().hex[:8]}"
            s.add(
                DocumentBase(
                    collection="users",
                    doc_id=admin_id,
                    data={
                        "id": admin_id,
                        "name": "Administrator",
                        "email": admin_email,
                        "role": "ADMIN",
                        "assignedClassIds": [],
                        "passwordHash": hash_password(admin_password),
                    },
                )
            )
            s.commit()
            logger.info("Seeded default admin %s", admin_email)
    except (OperationalError, ProgrammingError):
        # Tables may not exist yet before Alembic migration.
        return
