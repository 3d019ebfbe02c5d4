"""Database connection backends for the writer thread."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

import pymysql
from tenacity import retry, retry_if_exception_type, stop_after_attempt, wait_exponential_jitter

from prg_import.common.models import DatabaseTarget

PLACEHOLDERS = {
    "qmark": "?",
    "format": "%s",
    "pyformat": "%s",
}


@dataclass(frozen=True)
class DatabaseBackend:
    """How to open a DB-API connection and which placeholder its driver expects."""

    connect: Callable[[], Any]
    placeholder: str
    description: str = ""


def placeholder_for(paramstyle: str) -> str:
    try:
        return PLACEHOLDERS[paramstyle]
    except KeyError:
        raise ValueError(f"Unsupported DB-API paramstyle: {paramstyle}") from None


def connect_mysql(target: DatabaseTarget):
    @retry(
        stop=stop_after_attempt(target.connect_attempts),
        wait=wait_exponential_jitter(initial=1.0, max=10.0, jitter=1.0),
        retry=retry_if_exception_type(pymysql.err.OperationalError),
        reraise=True,
    )
    def _wrapped():
        return pymysql.connect(
            host=target.host,
            port=target.port,
            user=target.username,
            password=target.password,
            database=target.schema,
            charset=target.charset,
            autocommit=False,
        )

    conn = _wrapped()
    with conn.cursor() as cursor:
        cursor.execute("SET collation_connection = %s", (target.collation,))
    return conn


def mysql_backend(target: DatabaseTarget) -> DatabaseBackend:
    return DatabaseBackend(
        connect=lambda: connect_mysql(target),
        placeholder=placeholder_for(pymysql.paramstyle),
        description=f"mysql://{target.username}@{target.host}:{target.port}/{target.schema}",
    )
