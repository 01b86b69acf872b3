"""Payout method service."""

import logging

from sqlalchemy.orm import Session

from fundhost.errors import ValidationError
from fundhost.lib.validators import is_email
from fundhost.models.payout_method import (
    BANK_ACCOUNT_IDENTIFIERS,
    PayoutMethod,
    PayoutMethodType,
    validate_payout_method_data,
)

logger = logging.getLogger(__name__)

# Fields users are allowed to set from submitted data
EDITABLE_FIELDS = ("data", "name", "is_saved")


class PayoutMethodService:
    """Service for PayoutMethod operations."""

    def __init__(self, db_session: Session):
        """Initialize with database session."""
        self.db = db_session

    @staticmethod
    def get_label(payout_method: PayoutMethod | None) -> str:
        if payout_method is None:
            return "Other"
        if payout_method.type == PayoutMethodType.PAYPAL:
            email = (payout_method.data or {}).get("email")
            return f"PayPal ({email})" if email else "PayPal"
        if payout_method.type == PayoutMethodType.BANK_ACCOUNT:
            return "Bank Transfer"
        return "Other"

    @staticmethod
    def type_supports_fees_payer(payout_method_type: PayoutMethodType | str) -> bool:
        return PayoutMethodType(payout_method_type) in (
            PayoutMethodType.BANK_ACCOUNT,
            PayoutMethodType.OTHER,
        )

    def get_by_id(self, payout_method_id: int) -> PayoutMethod | None:
        return (
            self.db.query(PayoutMethod)
            .filter(PayoutMethod.id == payout_method_id, PayoutMethod.not_deleted())
            .first()
        )

    def create_from_data(
        self,
        payout_method_data: dict,
        collective_id: int,
        created_by_user_id: int | None = None,
        commit: bool = True,
    ) -> PayoutMethod:
        """Create a payout method from user-submitted data.

        Only ``data``, ``name`` and ``is_saved`` are taken from the submission.

        Raises:
            ValidationError: unknown type or data not matching the type
        """
        raw_type = payout_method_data.get("type")
        try:
            payout_method_type = PayoutMethodType(raw_type)
        except ValueError:
            raise ValidationError("type", f"Invalid payout method type: {raw_type}") from None

        clean = {key: payout_method_data[key] for key in EDITABLE_FIELDS if key in payout_method_data}
        data = clean.pop("data", None)
        if data is None:
            data = {}
        payout_method = PayoutMethod(
            type=payout_method_type,
            data=validate_payout_method_data(payout_method_type, data),
            collective_id=collective_id,
            created_by_user_id=created_by_user_id,
            **clean,
        )
        self.db.add(payout_method)
        if commit:
            self.db.commit()
        else:
            self.db.flush()
        logger.info("Created %s payout method for collective %s", payout_method_type.value, collective_id)
        return payout_method

    def get_or_create_from_data(
        self,
        payout_method_data: dict,
        collective_id: int,
        created_by_user_id: int | None = None,
        commit: bool = True,
    ) -> PayoutMethod:
        """Reuse an existing PayPal (same email) or account balance payout method."""
        existing = None
        payout_method_type = payout_method_data.get("type")
        if payout_method_type == PayoutMethodType.PAYPAL:
            email = (payout_method_data.get("data") or {}).get("email")
            if is_email(email):
                candidates = (
                    self.db.query(PayoutMethod)
                    .filter(
                        PayoutMethod.collective_id == collective_id,
                        PayoutMethod.type == PayoutMethodType.PAYPAL,
                        PayoutMethod.not_deleted(),
                    )
                    .order_by(PayoutMethod.id)
                    .all()
                )
                existing = next(
                    (pm for pm in candidates if (pm.data or {}).get("email") == email), None
                )
        elif payout_method_type == PayoutMethodType.ACCOUNT_BALANCE:
            payout_method_data = {**payout_method_data, "data": payout_method_data.get("data") or {}}
            existing = (
                self.db.query(PayoutMethod)
                .filter(
                    PayoutMethod.collective_id == collective_id,
                    PayoutMethod.type == PayoutMethodType.ACCOUNT_BALANCE,
                    PayoutMethod.not_deleted(),
                )
                .order_by(PayoutMethod.is_saved.desc(), PayoutMethod.id)
                .first()
            )
        return existing or self.create_from_data(
            payout_method_data, collective_id, created_by_user_id, commit=commit
        )

    def find_similar(self, payout_method: PayoutMethod) -> list[PayoutMethod]:
        """Other payout methods pointing to the same bank account or PayPal email."""
        data = payout_method.unfiltered_data
        if payout_method.type == PayoutMethodType.BANK_ACCOUNT:
            details = data.get("details") or {}
            identity = {key: details[key] for key in BANK_ACCOUNT_IDENTIFIERS if details.get(key)}

            def matches(other: PayoutMethod) -> bool:
                other_data = other.unfiltered_data
                other_details = other_data.get("details") or {}
                return other_data.get("type") == data.get("type") and all(
                    other_details.get(key) == value for key, value in identity.items()
                )

        elif payout_method.type == PayoutMethodType.PAYPAL:
            identity = {"email": data.get("email")} if data.get("email") else {}

            def matches(other: PayoutMethod) -> bool:
                return other.unfiltered_data.get("email") == identity["email"]

        else:
            identity = {}

        if not identity:
            logger.warning(
                "Could not pick identifiable data fields from payout method %s", payout_method.id
            )
            return []

        candidates = (
            self.db.query(PayoutMethod)
            .filter(
                PayoutMethod.type == payout_method.type,
                PayoutMethod.id != payout_method.id,
                PayoutMethod.not_deleted(),
            )
            .order_by(PayoutMethod.id)
            .all()
        )
        return [candidate for candidate in candidates if matches(candidate)]

    def list_for_collective(self, collective_id: int, saved_only: bool = False) -> list[PayoutMethod]:
        query = self.db.query(PayoutMethod).filter(
            PayoutMethod.collective_id == collective_id, PayoutMethod.not_deleted()
        )
        if saved_only:
            query = query.filter(PayoutMethod.is_saved.is_(True))
        return query.order_by(PayoutMethod.id).all()


__all__ = ["PayoutMethodService", "EDITABLE_FIELDS"]
