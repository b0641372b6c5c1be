"""
Data models for the Canopy SDK.
"""
from enum import Enum
from typing import Any, Dict, List, Mapping

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic import ValidationError as PydanticValidationError

from .exceptions import ValidationError
from .utils import hex_to_bytes, int_to_hex, normalize_address, parse_uint, to_hex


def _check(fn, *args):
    # pydantic only collects ValueError from validators
    try:
        return fn(*args)
    except ValidationError as e:
        raise ValueError(e.errors[0]["message"] if e.errors else str(e)) from e


class CallIntent(BaseModel):
    """
    Canonical description of an on-chain call a subject wishes to authorize.

    Constructed from the camelCase wire form (``chainId``, ``policyId``) or
    from Python field names. Instances are immutable.
    """
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    chain_id: int = Field(..., alias="chainId")
    subject: str
    target: str
    value: int
    selector: bytes
    args: bytes
    policy_id: bytes = Field(..., alias="policyId")

    @field_validator("chain_id", mode="before")
    @classmethod
    def _chain_id(cls, v: Any) -> int:
        if isinstance(v, bool) or not isinstance(v, int) or v <= 0:
            raise ValueError("must be a positive integer")
        return _check(parse_uint, v, "chainId", 256)

    @field_validator("subject", "target", mode="before")
    @classmethod
    def _address(cls, v: Any, info) -> str:
        return _check(normalize_address, v, info.field_name)

    @field_validator("value", mode="before")
    @classmethod
    def _value(cls, v: Any) -> int:
        if isinstance(v, str) and not v.startswith("0x"):
            raise ValueError("must be a 0x-prefixed hex quantity")
        return _check(parse_uint, v, "value", 256)

    @field_validator("selector", mode="before")
    @classmethod
    def _selector(cls, v: Any) -> bytes:
        return _check(hex_to_bytes, v, "selector", 4)

    @field_validator("args", mode="before")
    @classmethod
    def _args(cls, v: Any) -> bytes:
        return _check(hex_to_bytes, v, "args")

    @field_validator("policy_id", mode="before")
    @classmethod
    def _policy_id(cls, v: Any) -> bytes:
        return _check(hex_to_bytes, v, "policyId", 32)

    @classmethod
    def parse(cls, raw: Any) -> "CallIntent":
        """
        Validate raw input into a CallIntent.

        Args:
            raw: Mapping in wire form (or an existing CallIntent)

        Returns:
            Validated CallIntent

        Raises:
            ValidationError: Listing every violated field
        """
        if isinstance(raw, CallIntent):
            return raw
        if not isinstance(raw, Mapping):
            raise ValidationError(
                f"txIntent must be an object, got {type(raw).__name__}",
                [{"field": "txIntent", "message": "expected an object"}]
            )
        try:
            return cls.model_validate(dict(raw))
        except PydanticValidationError as e:
            errors = []
            for err in e.errors():
                field = ".".join(str(part) for part in err["loc"]) or "txIntent"
                message = err["msg"]
                if message.startswith("Value error, "):
                    message = message[len("Value error, "):]
                errors.append({"field": field, "message": message})
            summary = ", ".join(f"{item['field']}: {item['message']}" for item in errors)
            raise ValidationError(f"Invalid txIntent ({summary})", errors) from e

    def to_wire(self) -> Dict[str, Any]:
        """Render the intent in its canonical JSON form."""
        return {
            "chainId": self.chain_id,
            "subject": self.subject,
            "target": self.target,
            "value": int_to_hex(self.value),
            "selector": to_hex(self.selector),
            "args": to_hex(self.args),
            "policyId": to_hex(self.policy_id),
        }


class DecisionOutcome(str, Enum):
    """Outcome of a policy evaluation."""
    ALLOW = "allow"
    DENY = "deny"


class Decision(BaseModel):
    """Policy decision with human-readable reasons"""
    outcome: DecisionOutcome
    reasons: List[str] = Field(default_factory=list)

    @classmethod
    def allow(cls, *reasons: str) -> "Decision":
        return cls(outcome=DecisionOutcome.ALLOW, reasons=list(reasons))

    @classmethod
    def deny(cls, *reasons: str) -> "Decision":
        return cls(outcome=DecisionOutcome.DENY, reasons=list(reasons))

    @property
    def allowed(self) -> bool:
        return self.outcome is DecisionOutcome.ALLOW

    def to_dict(self) -> Dict[str, Any]:
        return {"outcome": self.outcome.value, "reasons": list(self.reasons)}
