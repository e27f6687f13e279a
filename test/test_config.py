from pathlib import Path

import pytest

from storepos.config import load_backend_settings
from storepos.domain.errors import ValidationError


def test_defaults_to_local_sqlite():
    s = load_backend_settings({})
    assert s.kind == "sqlite"
    assert s.db_path is None
    assert s.http_timeout == 10.0


def test_reads_rest_settings():
    s = load_backend_settings(
        {
            "STOREPOS_BACKEND": "REST",
            "STOREPOS_REST_URL": "https://pos.example.test/",
            "STOREPOS_REST_KEY": "k",
            "STOREPOS_SALE_RPC": "record_sale",
            "STOREPOS_HTTP_TIMEOUT": "2.5",
        }
    )
    assert s.kind == "rest"
    assert s.rest_url == "https://pos.example.test"
    assert s.sale_rpc == "record_sale"
    assert s.http_timeout == 2.5


def test_sqlite_path_override():
    s = load_backend_settings({"STOREPOS_DB_PATH": "/tmp/pos.db"})
    assert s.db_path == Path("/tmp/pos.db")


@pytest.mark.parametrize(
    "env",
    [
        {"STOREPOS_BACKEND": "mysql"},
        {"STOREPOS_BACKEND": "rest", "STOREPOS_REST_URL": "https://x.test"},
        {"STOREPOS_HTTP_TIMEOUT": "soon"},
        {"STOREPOS_HTTP_TIMEOUT": "0"},
    ],
)
def test_invalid_settings_are_rejected(env):
    with pytest.raises(ValidationError):
        load_backend_settings(env)
