import random

import random_data
from currencies import SUPPORTED_CURRENCIES, is_supported_currency


class TestRandomData:
    """Test the random data helpers."""

    def test_random_int_bounds(self):
        for _ in range(100):
            assert 5 <= random_data.random_int(5, 10) <= 10

    def test_random_owner(self):
        owner = random_data.random_owner()
        assert len(owner) == 6
        assert owner.isalpha() and owner.islower()

    def test_random_currency_is_supported(self):
        assert random_data.random_currency() in SUPPORTED_CURRENCIES

    def test_random_email(self):
        local, domain = random_data.random_email().split("@")
        assert len(local) == 6 and local.isalpha()
        assert domain == "email.com"

    def test_init_random_is_reproducible(self, monkeypatch):
        monkeypatch.setattr(random_data, "_rng", random.Random())
        random_data.init_random(42)
        first = [random_data.random_money() for _ in range(5)]
        random_data.init_random(42)
        second = [random_data.random_money() for _ in range(5)]
        assert first == second


class TestCurrencyValidation:
    """Test the supported currency predicate."""

    def test_supported_currencies(self):
        for currency in ("USD", "EUR", "CAD"):
            assert is_supported_currency(currency)

    def test_unsupported_currencies(self):
        for currency in ("", "usd", "GBP", "XYZ"):
            assert not is_supported_currency(currency)
