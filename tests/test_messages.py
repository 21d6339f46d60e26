"""
Unit tests for outbound request models.
"""

import json

from cfws.models.messages import ChallengeRequest, SubscriptionRequest


class TestSubscriptionRequest:
    """Wire format of subscribe / unsubscribe requests."""

    def test_without_products_omits_field(self):
        """No product list means no product_ids key at all, not null."""
        request = SubscriptionRequest("subscribe", "heartbeat")
        data = json.loads(request.to_json())

        assert data == {"event": "subscribe", "feed": "heartbeat"}
        assert "product_ids" not in data

    def test_with_products(self):
        request = SubscriptionRequest("subscribe", "ticker", ["PI_XBTUSD", "FI_ETHUSD_190329"])
        data = json.loads(request.to_json())

        assert data["product_ids"] == ["PI_XBTUSD", "FI_ETHUSD_190329"]

    def test_empty_product_list_is_kept(self):
        data = SubscriptionRequest("unsubscribe", "book", []).to_dict()
        assert data["product_ids"] == []

    def test_public_request_has_no_credentials(self):
        data = SubscriptionRequest("subscribe", "trade", ["PI_XBTUSD"]).to_dict()

        for key in ("api_key", "original_challenge", "signed_challenge"):
            assert key not in data

    def test_private_request(self):
        request = SubscriptionRequest(
            "unsubscribe", "fills",
            api_key="key", original_challenge="challenge", signed_challenge="signed",
        )

        assert request.is_private
        assert request.to_dict() == {
            "event": "unsubscribe",
            "feed": "fills",
            "api_key": "key",
            "original_challenge": "challenge",
            "signed_challenge": "signed",
        }

    def test_to_dict_copies_products(self):
        products = ["PI_XBTUSD"]
        data = SubscriptionRequest("subscribe", "ticker", products).to_dict()
        data["product_ids"].append("PI_ETHUSD")
        assert products == ["PI_XBTUSD"]


class TestChallengeRequest:

    def test_wire_format(self):
        data = json.loads(ChallengeRequest(api_key="my-key").to_json())
        assert data == {"event": "challenge", "api_key": "my-key"}
