# tests/core/test_database.py
import pytest

from fiscalai.core.database import DEFAULT_DB_NAME, get_database, parse_db_name
from fiscalai.core.errors import UpstreamServerError


@pytest.mark.parametrize(
    "uri, expected",
    [
        ("mongodb://localhost:27017/fiscal_prod", "fiscal_prod"),
        ("mongodb+srv://user:pw@cluster.example.net/notas?retryWrites=true", "notas"),
        ("mongodb://localhost:27017/", DEFAULT_DB_NAME),
        ("mongodb://user:pw@localhost:27017", DEFAULT_DB_NAME),
    ],
)
def test_parse_db_name(uri, expected):
    assert parse_db_name(uri) == expected


@pytest.mark.asyncio
async def test_get_database_without_connection_is_503():
    with pytest.raises(UpstreamServerError) as exc_info:
        await get_database()
    assert exc_info.value.http_status == 503
    assert exc_info.value.code == "DATABASE_UNAVAILABLE"
