"""
Subject lookups over users and special_users.
"""
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from domain.subject.entity import Subject, SubjectKind, SubjectRef
from domain.subject.repository import SubjectRepository
from infrastructure.models.account import SpecialUserModel, UserModel


class SQLAlchemySubjectRepository(SubjectRepository):

    def __init__(self, session: AsyncSession):
        self.session = session

    async def resolve(self, sap_id: str) -> Optional[Subject]:
        subject = await self.get(SubjectRef.user(sap_id))
        if subject is None:
            subject = await self.get(SubjectRef.special_user(sap_id))
        return subject

    async def get(self, ref: SubjectRef) -> Optional[Subject]:
        if ref.kind is SubjectKind.USER:
            result = await self.session.execute(select(UserModel).where(UserModel.sap_id == ref.sap_id))
            user = result.scalar_one_or_none()
            if user is None:
                return None
            return Subject(ref=ref, name=user.username, email=user.email, phone=user.phone)

        result = await self.session.execute(
            select(SpecialUserModel).where(SpecialUserModel.sap_id == ref.sap_id)
        )
        special = result.scalar_one_or_none()
        if special is None:
            return None
        return Subject(
            ref=ref,
            name=special.username,
            email=special.email,
            phone=special.phone,
            organization_sap_id=special.organization_sap_id,
        )
