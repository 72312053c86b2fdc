import re
import base58
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Optional, List, Dict, Tuple

from pydantic import BaseModel, Field, field_validator

from .exceptions import ValidationError, ErrorMessages

ETHEREUM_ADDRESS_RE = re.compile(r"0x[0-9a-fA-F]{40}")
BASE58_ALPHABET = "123456789ABCDEFGHJKLMNPQRSTUVWXYZabcdefghijkmnopqrstuvwxyz"

SOLANA_ADDRESS_LENGTH = 32
SOLANA_MIN_CHARS = 32
SOLANA_MAX_CHARS = 44

MAX_MANUAL_TOKENS = 10


class BlockchainType(str, Enum):
    ETHEREUM = "ethereum"
    SOLANA = "solana"


@dataclass(frozen=True)
class ChainDetectionResult:

    blockchain: BlockchainType
    valid: bool
    normalized_address: Optional[str] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"blockchain": self.blockchain.value, "valid": self.valid}
        if self.normalized_address is not None:
            data["normalized_address"] = self.normalized_address
        if self.error is not None:
            data["error"] = self.error
        return data


@dataclass
class ValidationResult:

    is_valid: bool
    value: Any = None
    errors: List[str] = field(default_factory=list)
    field_name: Optional[str] = None

    @classmethod
    def success(cls, value: Any, field_name: Optional[str] = None) -> 'ValidationResult':
        return cls(is_valid=True, value=value, field_name=field_name)

    @classmethod
    def failure(cls, errors: List[str], field_name: Optional[str] = None) -> 'ValidationResult':
        return cls(is_valid=False, errors=list(errors), field_name=field_name)

    @property
    def error(self) -> Optional[str]:
        return "; ".join(self.errors) if self.errors else None

    def raise_if_invalid(self) -> Any:
        if not self.is_valid:
            raise ValidationError(
                message=self.error or "Validation failed",
                field=self.field_name,
                context={"errors": self.errors} if len(self.errors) > 1 else {},
            )
        return self.value


def sanitize_input(value: Any) -> str:
    if value is None:
        return ""
    return str(value).strip()


def is_valid_ethereum_address(address: Any) -> bool:
    if not isinstance(address, str):
        return False
    return ETHEREUM_ADDRESS_RE.fullmatch(address) is not None


def is_valid_solana_address(address: Any) -> bool:
    """Base58 alphabet, 32-44 characters, decoding to a 32-byte public key."""
    if not isinstance(address, str):
        return False
    if len(address) < SOLANA_MIN_CHARS or len(address) > SOLANA_MAX_CHARS:
        return False
    if any(ch not in BASE58_ALPHABET for ch in address):
        return False
    try:
        decoded = base58.b58decode(address)
    except ValueError:
        return False
    return len(decoded) == SOLANA_ADDRESS_LENGTH


def detect_blockchain(address: Any) -> ChainDetectionResult:
    """
    Classify an address string into its blockchain family.

    Input is trimmed first. A ``0x`` prefix routes to the Ethereum check
    (normalized to lowercase); anything else is checked as a Solana
    base58 key (case preserved). Unrecognized input reports Ethereum with
    ``valid=False`` and an error message.
    """
    sanitized = sanitize_input(address)

    if not sanitized:
        return ChainDetectionResult(
            blockchain=BlockchainType.ETHEREUM,
            valid=False,
            error=ErrorMessages.EMPTY_ADDRESS,
        )

    if sanitized.startswith("0x"):
        if is_valid_ethereum_address(sanitized):
            return ChainDetectionResult(
                blockchain=BlockchainType.ETHEREUM,
                valid=True,
                normalized_address=sanitized.lower(),
            )
        return ChainDetectionResult(
            blockchain=BlockchainType.ETHEREUM,
            valid=False,
            error=ErrorMessages.INVALID_ETHEREUM_ADDRESS,
        )

    if is_valid_solana_address(sanitized):
        return ChainDetectionResult(
            blockchain=BlockchainType.SOLANA,
            valid=True,
            normalized_address=sanitized,
        )

    return ChainDetectionResult(
        blockchain=BlockchainType.ETHEREUM,
        valid=False,
        error=ErrorMessages.INVALID_ADDRESS,
    )


def normalize_address(address: Any, blockchain: Optional[BlockchainType] = None) -> str:
    result = detect_blockchain(address)
    if not result.valid or (blockchain is not None and result.blockchain != blockchain):
        raise ValidationError(
            message=result.error or f"Address is not a valid {blockchain.value} address",
            field="address",
        )
    return result.normalized_address


def process_address_input(address: Any) -> Tuple[Optional[str], Optional[BlockchainType], Optional[str]]:
    """Return ``(normalized_address, blockchain, error)`` for raw user input."""
    result = detect_blockchain(address)
    if not result.valid:
        return None, None, result.error
    return result.normalized_address, result.blockchain, None


def validate_address(address: Any, field_name: str = "address") -> ChainDetectionResult:
    result = detect_blockchain(address)
    if not result.valid:
        raise ValidationError(message=result.error, field=field_name)
    return result


def validate_addresses(addresses: List[Any]) -> Tuple[List[ChainDetectionResult], List[str]]:
    valid: List[ChainDetectionResult] = []
    errors: List[str] = []
    for index, address in enumerate(addresses):
        result = detect_blockchain(address)
        if result.valid:
            valid.append(result)
        else:
            errors.append(f"Address {index + 1}: {result.error}")
    return valid, errors


# =============================================================================
# TOKEN LIST VALIDATION
# =============================================================================

def validate_token_address(token: Any, blockchain: BlockchainType) -> Optional[str]:
    """Return an error string, or None when the token address is valid for the chain."""
    sanitized = sanitize_input(token)
    if not sanitized:
        return "Token address is empty"
    if blockchain == BlockchainType.ETHEREUM:
        if not is_valid_ethereum_address(sanitized):
            return ErrorMessages.INVALID_ETHEREUM_ADDRESS
    elif not is_valid_solana_address(sanitized):
        return ErrorMessages.INVALID_SOLANA_ADDRESS
    return None


def validate_token_list(
    tokens: Optional[List[Any]],
    blockchain: BlockchainType,
    max_tokens: int = MAX_MANUAL_TOKENS,
) -> ValidationResult:
    """
    Validate an explicit token list.

    An empty or missing list is valid and means "auto-discover". Entries
    are validated individually and deduplicated case-insensitively,
    keeping the first occurrence. Ethereum tokens are lowercased.
    """
    if not tokens:
        return ValidationResult.success([], field_name="token_addresses")

    if len(tokens) > max_tokens:
        return ValidationResult.failure(
            [ErrorMessages.TOO_MANY_TOKENS.format(max_tokens=max_tokens, count=len(tokens))],
            field_name="token_addresses",
        )

    errors: List[str] = []
    accepted: List[str] = []
    seen = set()

    for index, token in enumerate(tokens):
        error = validate_token_address(token, blockchain)
        if error is not None:
            errors.append(f"Token {index + 1}: {error}")
            continue

        sanitized = sanitize_input(token)
        key = sanitized.lower()
        if key in seen:
            continue
        seen.add(key)
        accepted.append(key if blockchain == BlockchainType.ETHEREUM else sanitized)

    if errors:
        return ValidationResult.failure(errors, field_name="token_addresses")
    return ValidationResult.success(accepted, field_name="token_addresses")


def parse_token_input(raw: Optional[str]) -> List[str]:
    if not raw:
        return []
    parts = re.split(r"[,\n]", raw)
    return [part.strip() for part in parts if part.strip()]


# =============================================================================
# REQUEST MODEL
# =============================================================================

class AnalysisRequest(BaseModel):
    """Validated input for one wallet analysis."""

    address: str = Field(..., description="Wallet address (Ethereum or Solana)")
    token_addresses: List[str] = Field(default_factory=list, description="Optional explicit token list")
    force_refresh: bool = Field(default=False, description="Bypass cached results")

    @field_validator("address", mode="before")
    @classmethod
    def _check_address(cls, v: Any) -> str:
        result = detect_blockchain(v)
        if not result.valid:
            raise ValueError(result.error)
        return result.normalized_address

    @field_validator("token_addresses", mode="before")
    @classmethod
    def _split_tokens(cls, v: Any) -> List[str]:
        if v is None:
            return []
        if isinstance(v, str):
            return parse_token_input(v)
        return v

    @property
    def blockchain(self) -> BlockchainType:
        return detect_blockchain(self.address).blockchain

    def validated_tokens(self, max_tokens: int = MAX_MANUAL_TOKENS) -> List[str]:
        """Validate the token list against the wallet's chain; raises ValidationError."""
        result = validate_token_list(self.token_addresses, self.blockchain, max_tokens)
        return result.raise_if_invalid()


__all__ = [
    "BlockchainType",
    "ChainDetectionResult",
    "ValidationResult",
    "AnalysisRequest",
    "sanitize_input",
    "is_valid_ethereum_address",
    "is_valid_solana_address",
    "detect_blockchain",
    "normalize_address",
    "process_address_input",
    "validate_address",
    "validate_addresses",
    "validate_token_address",
    "validate_token_list",
    "parse_token_input",
    "MAX_MANUAL_TOKENS",
]
