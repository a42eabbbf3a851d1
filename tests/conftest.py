import pytest


@pytest.fixture(autouse=True)
def _no_ambient_stripe_keys(monkeypatch):
    for name in ("STRIPE_API_KEY", "STRIPE_TEST_API_KEY", "STRIPE_LIVE_API_KEY"):
        monkeypatch.delenv(name, raising=False)
