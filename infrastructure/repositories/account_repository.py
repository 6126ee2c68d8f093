"""
Account repository for the OTP flow. Users take precedence over organizations
when both share an email.
"""
from typing import Optional, Union

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from core.logging_config import get_logger
from domain.account.entity import Account, AccountKind
from domain.account.repository import AccountRepository
from infrastructure.models.account import OrganizationModel, UserModel


logger = get_logger(__name__)

_MODELS = {
    AccountKind.USER: UserModel,
    AccountKind.ORGANIZATION: OrganizationModel,
}


class SQLAlchemyAccountRepository(AccountRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    @staticmethod
    def _to_entity(kind: AccountKind, model: Union[UserModel, OrganizationModel]) -> Account:
        return Account(
            kind=kind,
            sap_id=model.sap_id,
            email=model.email,
            otp_code=model.otp_code,
            otp_expires_at=model.otp_expires_at,
            otp_verified=bool(model.is_otp_verified),
        )

    async def get_by_email(self, email: str) -> Optional[Account]:
        email = email.strip().lower()
        for kind, model in _MODELS.items():
            result = await self.session.execute(
                select(model).where(func.lower(model.email) == email).limit(1)
            )
            row = result.scalar_one_or_none()
            if row is not None:
                return self._to_entity(kind, row)
        return None

    async def save_otp_state(self, account: Account) -> Account:
        model = _MODELS[account.kind]
        result = await self.session.execute(select(model).where(model.sap_id == account.sap_id))
        row = result.scalar_one_or_none()
        if row is None:
            raise ValueError(f"{account.kind.value} {account.sap_id} does not exist")

        row.otp_code = account.otp_code
        row.otp_expires_at = account.otp_expires_at
        row.is_otp_verified = account.otp_verified

        await self.session.flush()
        logger.info("otp_state_saved", account_kind=account.kind.value, sap_id=account.sap_id)
        return self._to_entity(account.kind, row)
