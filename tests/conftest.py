import pytest

from luckymap.providers import clear_geocode_cache


@pytest.fixture(autouse=True)
def _fresh_geocode_cache():
    clear_geocode_cache()
    yield
    clear_geocode_cache()
