"""PayoutMethod ORM model: how a payee wants to receive money."""

from enum import Enum

from sqlalchemy import JSON, Boolean, ForeignKey, String, event
from sqlalchemy.orm import Mapped, mapped_column, validates

from fundhost.errors import ValidationError
from fundhost.lib.validators import is_email, to_enum
from fundhost.models import Base, BaseModel, ParanoidMixin


class PayoutMethodType(str, Enum):
    OTHER = "OTHER"
    PAYPAL = "PAYPAL"
    BANK_ACCOUNT = "BANK_ACCOUNT"
    ACCOUNT_BALANCE = "ACCOUNT_BALANCE"
    CREDIT_CARD = "CREDIT_CARD"


BANK_ACCOUNT_REQUIRED_KEYS = ("account_holder_name", "currency", "type", "details")

# Bank details that identify the same account across payout methods
BANK_ACCOUNT_IDENTIFIERS = ("accountNumber", "iban", "IBAN", "abartn", "bankCode", "sortCode", "swiftCode", "email")


def validate_payout_method_data(type_: PayoutMethodType, data: dict | None) -> dict:
    """Check ``data`` against the shape required by ``type_`` and return it."""
    data = data if data is not None else {}
    if not isinstance(data, dict):
        raise ValidationError("data", "Payout method data must be an object")

    if type_ == PayoutMethodType.PAYPAL:
        if set(data) != {"email"}:
            raise ValidationError("data", "PayPal payout method data can only contain an email")
        if not is_email(data["email"]):
            raise ValidationError("data", f"Invalid PayPal email address: {data['email']}")
    elif type_ == PayoutMethodType.OTHER:
        if set(data) != {"content"} or not isinstance(data["content"], str):
            raise ValidationError("data", "Other payout method data must only contain a content string")
    elif type_ == PayoutMethodType.BANK_ACCOUNT:
        missing = [key for key in BANK_ACCOUNT_REQUIRED_KEYS if key not in data]
        if missing:
            raise ValidationError("data", f"Bank account data is missing: {', '.join(missing)}")
    elif type_ == PayoutMethodType.CREDIT_CARD:
        if not data.get("token"):
            raise ValidationError("data", "Credit card payout method requires a token")
    elif type_ == PayoutMethodType.ACCOUNT_BALANCE:
        if data:
            raise ValidationError("data", "Account balance payout method cannot have data")
    return data


class PayoutMethod(Base, BaseModel, ParanoidMixin):
    """Saved payout details of a collective. Data shape depends on type."""

    __tablename__ = "payout_methods"

    type: Mapped[PayoutMethodType] = mapped_column(nullable=False)
    data: Mapped[dict] = mapped_column(JSON, nullable=False, default=dict)
    name: Mapped[str | None] = mapped_column(String(255), nullable=True)
    is_saved: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    collective_id: Mapped[int] = mapped_column(
        ForeignKey("collectives.id"), nullable=False, index=True
    )
    created_by_user_id: Mapped[int | None] = mapped_column(ForeignKey("users.id"), nullable=True)

    @validates("type")
    def _validate_type(self, key, value):
        type_ = to_enum(PayoutMethodType, value, key)
        # data assigned before type, or a type change on a stored row
        if self.data is not None:
            validate_payout_method_data(type_, self.data)
        return type_

    @validates("data")
    def _validate_data(self, key, value):
        if self.type is not None:
            return validate_payout_method_data(self.type, value)
        return value

    def validate(self) -> None:
        validate_payout_method_data(self.type, self.data)

    @property
    def filtered_data(self) -> dict:
        """Data safe to show to people other than the payee."""
        data = self.data or {}
        if self.type == PayoutMethodType.PAYPAL:
            return {"email": data.get("email")}
        if self.type == PayoutMethodType.BANK_ACCOUNT:
            return {
                "type": data.get("type"),
                "account_holder_name": data.get("account_holder_name"),
                "currency": data.get("currency"),
            }
        if self.type == PayoutMethodType.OTHER:
            return {"content": data.get("content")}
        return {}

    @property
    def unfiltered_data(self) -> dict:
        return dict(self.data or {})

    @property
    def minimal(self) -> dict:
        return {"id": self.id, "type": self.type.value, "data": self.filtered_data}

    @property
    def info(self) -> dict:
        return {
            "id": self.id,
            "type": self.type.value,
            "name": self.name,
            "is_saved": self.is_saved,
            "collective_id": self.collective_id,
            "data": self.filtered_data,
            "created_at": self.created_at,
        }


@event.listens_for(PayoutMethod, "before_insert")
@event.listens_for(PayoutMethod, "before_update")
def _check_payout_method_data(mapper, connection, target: PayoutMethod) -> None:
    target.validate()
