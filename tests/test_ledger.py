"""Tests for the Horizon client, Friendbot faucet and ledger config."""

import httpx
import pytest

from stellarvault.config import (
    PUBLIC_HORIZON_URL,
    TESTNET_FRIENDBOT_URL,
    LedgerConfig,
    Network,
)
from stellarvault.errors import FundingError, LedgerError
from stellarvault.ledger import FriendbotFaucet, HorizonClient

HORIZON = "https://horizon.test"


def _client(handler):
    config = LedgerConfig(horizon_url=HORIZON)
    return HorizonClient(config, http=httpx.Client(transport=httpx.MockTransport(handler)))


class TestHorizonClient:
    def test_load_sequence(self):
        seen = []

        def handler(request):
            seen.append(str(request.url))
            return httpx.Response(200, json={"id": "GA", "sequence": "123456789012"})

        assert _client(handler).load_sequence("GA") == 123456789012
        assert seen == [f"{HORIZON}/accounts/GA"]

    def test_unknown_account(self):
        client = _client(lambda request: httpx.Response(404, json={"title": "Resource Missing"}))
        with pytest.raises(LedgerError) as exc_info:
            client.load_sequence("GA")
        assert exc_info.value.status_code == 404

    def test_malformed_account_response(self):
        client = _client(lambda request: httpx.Response(200, json={"id": "GA"}))
        with pytest.raises(LedgerError, match="Malformed"):
            client.load_sequence("GA")

    def test_transport_error(self):
        def handler(request):
            raise httpx.ConnectError("refused", request=request)

        with pytest.raises(LedgerError, match="ConnectError"):
            _client(handler).load_sequence("GA")

    def test_submit_posts_form_encoded_envelope(self):
        captured = {}

        def handler(request):
            captured["method"] = request.method
            captured["url"] = str(request.url)
            captured["body"] = request.content.decode()
            return httpx.Response(200, json={"hash": "cafe", "ledger": 99})

        result = _client(handler).submit_transaction("AAAA+/=")
        assert captured["method"] == "POST"
        assert captured["url"] == f"{HORIZON}/transactions"
        assert captured["body"] == "tx=AAAA%2B%2F%3D"
        assert result.to_dict() == {"transaction_hash": "cafe", "ledger": 99}

    def test_submit_failure_carries_result_codes(self):
        body = {
            "title": "Transaction Failed",
            "extras": {"result_codes": {"transaction": "tx_bad_seq"}},
        }
        client = _client(lambda request: httpx.Response(400, json=body))
        with pytest.raises(LedgerError) as exc_info:
            client.submit_transaction("AAAA")
        assert exc_info.value.result_codes == {"transaction": "tx_bad_seq"}
        assert exc_info.value.retryable is True
        assert "Transaction Failed" in str(exc_info.value)

    def test_context_manager_closes_owned_client(self):
        with HorizonClient(LedgerConfig()) as client:
            assert client.base_url == "https://horizon-testnet.stellar.org"
        assert client._http.is_closed


class TestFriendbotFaucet:
    def test_fund_sends_address(self):
        seen = []

        def handler(request):
            seen.append(request.url.params["addr"])
            return httpx.Response(200, json={"hash": "x"})

        faucet = FriendbotFaucet("https://friendbot.test", http=httpx.Client(transport=httpx.MockTransport(handler)))
        faucet.fund("GA")
        assert seen == ["GA"]

    def test_fund_rejected(self):
        transport = httpx.MockTransport(lambda request: httpx.Response(400, json={"title": "Bad Request"}))
        faucet = FriendbotFaucet("https://friendbot.test", http=httpx.Client(transport=transport))
        with pytest.raises(FundingError, match="Bad Request"):
            faucet.fund("GA")

    def test_disabled_or_unavailable(self):
        assert FriendbotFaucet.from_config(LedgerConfig(fund_new_accounts=False)) is None
        assert FriendbotFaucet.from_config(LedgerConfig(network=Network.PUBLIC)) is None
        faucet = FriendbotFaucet.from_config(LedgerConfig())
        assert faucet.url == TESTNET_FRIENDBOT_URL
        faucet.close()


class TestLedgerConfig:
    def test_public_defaults(self):
        config = LedgerConfig(network="public")
        assert config.horizon_url == PUBLIC_HORIZON_URL
        assert config.friendbot_url is None
        assert config.network_passphrase == "Public Global Stellar Network ; September 2015"

    def test_testnet_passphrase(self):
        assert LedgerConfig().network_passphrase == "Test SDF Network ; September 2015"

    def test_rejects_low_fee(self):
        with pytest.raises(ValueError):
            LedgerConfig(base_fee=10)

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("STELLARVAULT_NETWORK", "PUBLIC")
        monkeypatch.setenv("STELLARVAULT_HORIZON_URL", HORIZON)
        monkeypatch.setenv("STELLARVAULT_BASE_FEE", "200")
        monkeypatch.setenv("STELLARVAULT_TX_TIMEOUT", "30")
        monkeypatch.setenv("STELLARVAULT_FUND_ACCOUNTS", "no")
        config = LedgerConfig.from_env()
        assert config.network is Network.PUBLIC
        assert config.horizon_url == HORIZON
        assert config.base_fee == 200
        assert config.tx_timeout_seconds == 30
        assert config.fund_new_accounts is False
