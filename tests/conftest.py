"""Shared pytest fixtures for Access Bridge tests."""
import sys
sys.dont_write_bytecode = True

import pytest  # noqa: E402

from access_bridge.infra.settings import AccessSettings, build_texts, get_settings  # noqa: E402

TEST_CONTACT = "0800-000-0000"


@pytest.fixture
def settings() -> AccessSettings:
    """Settings with test values, independent of the environment."""
    return AccessSettings(support_contact=TEST_CONTACT, texts=build_texts(TEST_CONTACT))


@pytest.fixture(autouse=True)
def _reset_cached_singletons():
    """Drop cached settings and lazily-built services between tests."""
    import access_bridge.api.routes.access_whatsapp as access_route
    import access_bridge.api.routes.openings as openings_route

    get_settings.cache_clear()
    access_route._access_service = None
    openings_route._gate_opener = None
    yield
    get_settings.cache_clear()
    access_route._access_service = None
    openings_route._gate_opener = None
