"""Database connection and session management."""

import ssl
from collections.abc import AsyncGenerator
from urllib.parse import parse_qs, urlencode, urlparse, urlunparse

from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.orm import DeclarativeBase

from dealtax.config import settings


def make_permissive_ssl_context() -> ssl.SSLContext:
    """SSL context without certificate verification, for hosted pooler endpoints."""
    ctx = ssl.create_default_context()
    ctx.check_hostname = False
    ctx.verify_mode = ssl.CERT_NONE
    return ctx


def strip_ssl_params(url: str) -> str:
    """asyncpg rejects sslmode/ssl query parameters; SSL goes through connect_args."""
    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    query.pop("sslmode", None)
    query.pop("ssl", None)
    return urlunparse(parsed._replace(query=urlencode(query, doseq=True)))


def get_engine_url_and_connect_args(url: str) -> tuple[str, dict]:
    """Move SSL settings from the query string into asyncpg connect_args.

    Certificates are verified except for Supabase pooler hosts, and
    ``sslmode=disable`` turns SSL off.
    """
    connect_args = {}
    if "sslmode=" not in url and "ssl=" not in url:
        return url, connect_args
    parsed = urlparse(url)
    query = parse_qs(parsed.query)
    mode = (query.get("sslmode") or query.get("ssl") or [""])[0].lower()
    if mode not in ("disable", "false"):
        if "supabase" in (parsed.hostname or ""):
            connect_args["ssl"] = make_permissive_ssl_context()
        else:
            connect_args["ssl"] = ssl.create_default_context()
    return strip_ssl_params(url), connect_args


_db_url, _connect_args = get_engine_url_and_connect_args(settings.database_url)


class Base(DeclarativeBase):
    """SQLAlchemy declarative base."""

    pass


engine = create_async_engine(
    _db_url,
    echo=settings.log_level == "DEBUG",
    connect_args=_connect_args,
)

async_session_maker = async_sessionmaker(
    engine,
    class_=AsyncSession,
    expire_on_commit=False,
    autocommit=False,
    autoflush=False,
)


async def get_db() -> AsyncGenerator[AsyncSession, None]:
    """Dependency for database sessions."""
    async with async_session_maker() as session:
        try:
            yield session
            await session.commit()
        except Exception:
            await session.rollback()
            raise
        finally:
            await session.close()
