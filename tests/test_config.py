from pathlib import Path

import pytest
from pydantic import ValidationError

from qrfolio.config import DEFAULT_SETTINGS, Settings


def test_defaults():
    s = Settings()
    assert s.ecc == "H"
    assert s.folio_param == "folio"
    assert s.debounce_ms == 100
    assert s.export_name == "qrfolio-export.zip"
    assert s.download_dir == Path("downloads")
    assert DEFAULT_SETTINGS == s


def test_ecc_is_normalized():
    assert Settings(ecc="q").ecc == "Q"


@pytest.mark.parametrize("kwargs", [
    {"ecc": "X"},
    {"debounce_ms": -1},
    {"raster_size": 0},
    {"export_size": -5},
])
def test_invalid_values_rejected(kwargs):
    with pytest.raises(ValidationError):
        Settings(**kwargs)


def test_settings_are_frozen():
    with pytest.raises(ValidationError):
        DEFAULT_SETTINGS.ecc = "L"


def test_from_env(monkeypatch, tmp_path):
    monkeypatch.setenv("QRFOLIO_BASE_URL", "https://qr.example/")
    monkeypatch.setenv("QRFOLIO_ECC", "m")
    monkeypatch.setenv("QRFOLIO_RASTER_SIZE", "200")
    monkeypatch.setenv("QRFOLIO_DOWNLOAD_DIR", str(tmp_path))
    monkeypatch.setenv("QRFOLIO_LOG_FILE", "")

    s = Settings.from_env()
    assert s.base_url == "https://qr.example/"
    assert s.ecc == "M"
    assert s.raster_size == 200
    assert s.download_dir == tmp_path
    assert s.log_file is None


def test_from_env_validates(monkeypatch):
    monkeypatch.setenv("QRFOLIO_DEBOUNCE_MS", "-10")
    with pytest.raises(ValidationError):
        Settings.from_env()
