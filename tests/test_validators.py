# tests/test_validators.py
"""
Unit tests for the address classifier and token-list validation
"""
import pytest
from pydantic import ValidationError as PydanticValidationError

from wallet_reputation.exceptions import ErrorMessages, ValidationError
from wallet_reputation.validators import (
    AnalysisRequest,
    BlockchainType,
    detect_blockchain,
    is_valid_ethereum_address,
    is_valid_solana_address,
    normalize_address,
    parse_token_input,
    process_address_input,
    validate_address,
    validate_addresses,
    validate_token_list,
)
from tests.conftest import ETH_TOKEN_A, ETH_TOKEN_B, ETH_WALLET, ETH_WALLET_MIXED, SOL_MINT, SOL_WALLET


class TestDetectBlockchain:
    """Test cases for detect_blockchain"""

    def test_ethereum_is_lowercased(self):
        """Mixed-case hex addresses normalize to lowercase"""
        result = detect_blockchain(ETH_WALLET_MIXED)
        assert result.valid
        assert result.blockchain == BlockchainType.ETHEREUM
        assert result.normalized_address == ETH_WALLET

    def test_ethereum_whitespace_trimmed(self):
        """Surrounding whitespace is ignored"""
        result = detect_blockchain(f"  {ETH_WALLET}\n")
        assert result.valid
        assert result.normalized_address == ETH_WALLET

    def test_solana_case_preserved(self):
        """Base58 addresses keep their case"""
        result = detect_blockchain(SOL_WALLET)
        assert result.valid
        assert result.blockchain == BlockchainType.SOLANA
        assert result.normalized_address == SOL_WALLET

    def test_system_program_is_valid_solana(self):
        """32 ones decode to a 32-byte key"""
        assert detect_blockchain("1" * 32).blockchain == BlockchainType.SOLANA

    def test_empty_input(self):
        """Empty input is invalid with the empty-address message"""
        for value in ("", "   ", None):
            result = detect_blockchain(value)
            assert not result.valid
            assert result.blockchain == BlockchainType.ETHEREUM
            assert result.error == ErrorMessages.EMPTY_ADDRESS

    def test_bad_hex_reports_ethereum_error(self):
        """0x prefix with wrong length or characters"""
        for value in ("0x1234", "0x" + "g" * 40, "0x" + "a" * 41):
            result = detect_blockchain(value)
            assert not result.valid
            assert result.error == ErrorMessages.INVALID_ETHEREUM_ADDRESS

    def test_unrecognized_input(self):
        """Non-base58 characters make the input unrecognized"""
        result = detect_blockchain("0OIl" * 10)
        assert not result.valid
        assert result.blockchain == BlockchainType.ETHEREUM
        assert result.error == ErrorMessages.INVALID_ADDRESS

    def test_garbage_is_invalid(self):
        """Arbitrary text is rejected with a reason"""
        result = detect_blockchain("not-an-address!!")
        assert result.valid is False
        assert result.error

    def test_idempotent(self):
        """Classifying a normalized address returns the same result"""
        first = detect_blockchain(ETH_WALLET_MIXED)
        second = detect_blockchain(first.normalized_address)
        assert first == second

    def test_to_dict(self):
        """Invalid results omit the normalized address"""
        data = detect_blockchain("nope").to_dict()
        assert data["valid"] is False
        assert "normalized_address" not in data
        assert data["error"]


class TestAddressHelpers:
    """Test cases for address helper functions"""

    def test_is_valid_ethereum_address(self):
        """Only 0x plus 40 hex characters"""
        assert is_valid_ethereum_address(ETH_WALLET)
        assert not is_valid_ethereum_address(ETH_WALLET + "\n")
        assert not is_valid_ethereum_address(None)

    def test_is_valid_solana_address(self):
        """Length and base58 checks"""
        assert is_valid_solana_address(SOL_MINT)
        assert not is_valid_solana_address("1" * 31)
        assert not is_valid_solana_address("1" * 45)
        assert not is_valid_solana_address(SOL_MINT[:-1] + "0")

    def test_process_address_input(self):
        """Returns the error instead of raising"""
        assert process_address_input(ETH_WALLET_MIXED) == (ETH_WALLET, BlockchainType.ETHEREUM, None)
        address, chain, error = process_address_input("bad")
        assert address is None and chain is None
        assert error == ErrorMessages.INVALID_ADDRESS

    def test_validate_address_raises_with_field(self):
        """ValidationError names the offending field"""
        with pytest.raises(ValidationError) as exc_info:
            validate_address("0x123")
        assert exc_info.value.field == "address"
        assert exc_info.value.status_code == 400

    def test_normalize_address_chain_mismatch(self):
        """Requesting the wrong chain is a validation error"""
        with pytest.raises(ValidationError):
            normalize_address(SOL_WALLET, BlockchainType.ETHEREUM)
        assert normalize_address(SOL_WALLET, BlockchainType.SOLANA) == SOL_WALLET

    def test_validate_addresses_splits(self):
        """Valid results and numbered errors are separated"""
        valid, errors = validate_addresses([ETH_WALLET, "bad", SOL_WALLET])
        assert [r.blockchain for r in valid] == [BlockchainType.ETHEREUM, BlockchainType.SOLANA]
        assert errors == [f"Address 2: {ErrorMessages.INVALID_ADDRESS}"]


class TestTokenList:
    """Test cases for validate_token_list"""

    def test_empty_means_discovery(self):
        """Empty or missing list is valid"""
        assert validate_token_list([], BlockchainType.ETHEREUM).value == []
        assert validate_token_list(None, BlockchainType.ETHEREUM).is_valid

    def test_dedupe_case_insensitive(self):
        """Duplicates are dropped and Ethereum tokens lowercased"""
        result = validate_token_list(
            [ETH_WALLET_MIXED, ETH_WALLET, ETH_TOKEN_B],
            BlockchainType.ETHEREUM,
        )
        assert result.is_valid
        assert result.value == [ETH_WALLET, ETH_TOKEN_B]

    def test_too_many_tokens(self):
        """More than the maximum is rejected"""
        tokens = ["0x" + f"{i:040x}" for i in range(11)]
        result = validate_token_list(tokens, BlockchainType.ETHEREUM)
        assert not result.is_valid
        assert result.error == "Maximum 10 tokens allowed, you provided 11"

    def test_errors_are_numbered(self):
        """Each bad entry is reported with its position"""
        result = validate_token_list([ETH_TOKEN_A, "0xbad", SOL_MINT], BlockchainType.ETHEREUM)
        assert not result.is_valid
        assert result.errors[0].startswith("Token 2: ")
        assert result.errors[1].startswith("Token 3: ")

    def test_raise_if_invalid(self):
        """Multiple errors are carried in the context"""
        result = validate_token_list(["0xbad", "0xworse"], BlockchainType.ETHEREUM)
        with pytest.raises(ValidationError) as exc_info:
            result.raise_if_invalid()
        assert exc_info.value.field == "token_addresses"
        assert len(exc_info.value.context["errors"]) == 2

    def test_solana_tokens_keep_case(self):
        """Solana mints are not lowercased"""
        result = validate_token_list([SOL_MINT], BlockchainType.SOLANA)
        assert result.value == [SOL_MINT]

    def test_parse_token_input(self):
        """Comma and newline separated input"""
        raw = f"{ETH_TOKEN_A}, {ETH_TOKEN_B}\n\n ,"
        assert parse_token_input(raw) == [ETH_TOKEN_A, ETH_TOKEN_B]
        assert parse_token_input(None) == []


class TestAnalysisRequest:
    """Test cases for the AnalysisRequest model"""

    def test_normalizes_address(self):
        """Address is classified and normalized"""
        request = AnalysisRequest(address=ETH_WALLET_MIXED)
        assert request.address == ETH_WALLET
        assert request.blockchain == BlockchainType.ETHEREUM
        assert request.token_addresses == []
        assert request.force_refresh is False

    def test_invalid_address(self):
        """Invalid addresses fail model validation"""
        with pytest.raises(PydanticValidationError):
            AnalysisRequest(address="not-an-address")

    def test_token_string_is_split(self):
        """A comma separated string becomes a list"""
        request = AnalysisRequest(address=ETH_WALLET, token_addresses=f"{ETH_TOKEN_A},{ETH_TOKEN_B}")
        assert request.validated_tokens() == [ETH_TOKEN_A, ETH_TOKEN_B]

    def test_validated_tokens_raises(self):
        """Token list validation raises the engine's ValidationError"""
        request = AnalysisRequest(address=ETH_WALLET, token_addresses=["0xbad"])
        with pytest.raises(ValidationError):
            request.validated_tokens()
