"""
Tests for database URL handling.
"""

import ssl

from sqlalchemy.engine import make_url

from adsync.database import connect_args, engine_url, ssl_requested


def test_ssl_flags_are_moved_out_of_the_url():
    url = engine_url("postgresql+asyncpg://u:p@db.example.com:5432/ads?sslmode=require&application_name=sync")
    assert url.query == {"application_name": "sync"}
    assert url.drivername == "postgresql+asyncpg"
    assert url.database == "ads"


def test_ssl_context_only_when_required():
    assert ssl_requested(make_url("postgresql+asyncpg://db/ads?ssl=require"))
    assert not ssl_requested(make_url("postgresql+asyncpg://db/ads?sslmode=disable"))

    args = connect_args("postgresql+asyncpg://db/ads?sslmode=require")
    assert isinstance(args["ssl"], ssl.SSLContext)
    assert args["ssl"].verify_mode == ssl.CERT_NONE
    assert "ssl" not in connect_args("postgresql+asyncpg://localhost/ads")
