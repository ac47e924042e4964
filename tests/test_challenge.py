"""
Unit tests for x402 challenge parsing
"""

import json

import pytest

from pinspire_agent.payments.challenge import parse_challenge, select_option
from pinspire_agent.payments.errors import ErrorKind, MalformedChallengeError
from pinspire_agent.payments.models import PaymentChallenge
from tests.factories import PaymentExtraFactory, PaymentOptionFactory, challenge_body


class TestParseChallenge:
    """Test parsing of 402 response bodies"""

    def test_parses_camel_case_body(self):
        """Test wire names map onto the model"""
        body = challenge_body()
        challenge = parse_challenge(body)

        option = challenge.accepts[0]
        assert challenge.x402_version == 1
        assert option.scheme == "exact"
        assert option.max_amount_required == "500000"
        assert option.amount == 500000
        assert option.pay_to == body["accepts"][0]["payTo"]
        assert option.mime_type == "image/png"
        assert option.max_timeout_seconds == 60
        assert option.fee_payer is None

    def test_parses_json_text_and_bytes(self):
        """Test raw JSON bodies are accepted"""
        text = json.dumps(challenge_body())

        assert parse_challenge(text).accepts[0].amount == 500000
        assert parse_challenge(text.encode("utf-8")).accepts[0].amount == 500000

    def test_parsed_challenge_passes_through(self):
        """Test an already parsed challenge is returned as is"""
        challenge = PaymentChallenge.model_validate(challenge_body())
        assert parse_challenge(challenge) is challenge

    def test_reads_fee_payer_from_extra(self):
        """Test extra.feePayer is exposed on the option"""
        extra = PaymentExtraFactory()
        challenge = parse_challenge(challenge_body(accepts=[PaymentOptionFactory(extra=extra)]))

        assert challenge.accepts[0].fee_payer == extra.fee_payer

    def test_optional_fields_default(self):
        """Test only payee, amount, asset and scheme are required"""
        body = {
            "x402Version": 1,
            "accepts": [{
                "scheme": "exact",
                "payTo": "9xQeWvG816bUx9EPjHmaT23yvVM2ZWbrrpZb9PusVFin",
                "maxAmountRequired": "10",
                "asset": "4zMMC9srt5Ri5X14GAgXhaHii3GnPAEERYPJgZJDncDU",
            }],
        }
        option = parse_challenge(body).accepts[0]

        assert option.network == ""
        assert option.max_timeout_seconds == 0
        assert option.extra is None

    def test_integer_amount_is_accepted(self):
        """Test a JSON number amount is normalized to a string"""
        body = challenge_body()
        body["accepts"][0]["maxAmountRequired"] = 250000

        option = parse_challenge(body).accepts[0]
        assert option.max_amount_required == "250000"
        assert option.amount == 250000

    def test_challenge_is_immutable(self):
        """Test challenges cannot be modified after parsing"""
        challenge = parse_challenge(challenge_body())
        with pytest.raises(Exception):
            challenge.accepts[0].pay_to = "someone-else"


class TestMalformedChallenges:
    """Test rejection of incomplete challenges"""

    def test_empty_accepts(self):
        """Test an empty option list is rejected"""
        with pytest.raises(MalformedChallengeError) as exc_info:
            parse_challenge(challenge_body(accepts=[]))

        assert exc_info.value.kind == ErrorKind.MALFORMED_CHALLENGE

    def test_missing_accepts(self):
        """Test a body without accepts is rejected"""
        body = challenge_body()
        del body["accepts"]

        with pytest.raises(MalformedChallengeError):
            parse_challenge(body)

    def test_missing_version(self):
        """Test a body without x402Version is rejected"""
        body = challenge_body()
        del body["x402Version"]

        with pytest.raises(MalformedChallengeError):
            parse_challenge(body)

    @pytest.mark.parametrize("field", ["payTo", "maxAmountRequired", "asset", "scheme"])
    def test_missing_required_option_field(self, field):
        """Test each required option field is enforced"""
        body = challenge_body()
        del body["accepts"][0][field]

        with pytest.raises(MalformedChallengeError) as exc_info:
            parse_challenge(body)

        assert "accepts" in exc_info.value.message

    @pytest.mark.parametrize("field", ["payTo", "asset", "scheme"])
    def test_empty_required_option_field(self, field):
        """Test required fields cannot be empty strings"""
        body = challenge_body()
        body["accepts"][0][field] = ""

        with pytest.raises(MalformedChallengeError):
            parse_challenge(body)

    @pytest.mark.parametrize("amount", ["-5", "1.5", "abc", "", True, -1])
    def test_invalid_amount(self, amount):
        """Test the amount must be a non-negative integer"""
        body = challenge_body()
        body["accepts"][0]["maxAmountRequired"] = amount

        with pytest.raises(MalformedChallengeError):
            parse_challenge(body)

    def test_second_option_is_validated_too(self):
        """Test a broken option anywhere in the list rejects the challenge"""
        body = challenge_body(accepts=[PaymentOptionFactory(), PaymentOptionFactory()])
        del body["accepts"][1]["payTo"]

        with pytest.raises(MalformedChallengeError):
            parse_challenge(body)

    @pytest.mark.parametrize("raw", ["not json", b"\xff\xfe", "[1, 2]", None, 42])
    def test_non_object_body(self, raw):
        """Test bodies that are not JSON objects are rejected"""
        with pytest.raises(MalformedChallengeError):
            parse_challenge(raw)


class TestSelectOption:
    """Test payment option selection"""

    def test_selects_first_option(self):
        """Test the first listed option always wins"""
        first = PaymentOptionFactory(scheme="exact", max_amount_required="900000")
        second = PaymentOptionFactory(scheme="upto", max_amount_required="100")
        challenge = parse_challenge(challenge_body(accepts=[first, second]))

        selected = select_option(challenge)

        assert selected.scheme == "exact"
        assert selected.pay_to == first.pay_to
        assert selected.amount == 900000
