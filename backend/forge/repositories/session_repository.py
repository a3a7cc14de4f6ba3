"""Session, user and session state persistence helpers."""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from uuid import uuid4

from sqlalchemy import select
from sqlalchemy.orm import Session

from forge.models import SessionKeyValue, SessionRecord, User


class SessionRepository:
    def __init__(self, session: Session) -> None:
        self._session = session

    # ------------------------------------------------------------------
    # Sessions

    def get_session(self, session_id: int) -> SessionRecord | None:
        return self._session.get(SessionRecord, session_id)

    def get_session_by_key(self, session_key: str) -> SessionRecord | None:
        query = select(SessionRecord).where(SessionRecord.session_key == session_key)
        return self._session.execute(query).scalar_one_or_none()

    def create_session(
        self, *, session_key: str | None = None, user_id: int | None = None
    ) -> SessionRecord:
        record = SessionRecord(
            session_key=session_key or uuid4().hex,
            user_ref=user_id,
        )
        self._session.add(record)
        self._session.flush()
        return record

    def list_sessions(self) -> Sequence[SessionRecord]:
        return self._session.execute(select(SessionRecord).order_by(SessionRecord.id)).scalars().all()

    # ------------------------------------------------------------------
    # Users

    def ensure_user(self, user_key: str) -> User:
        user = self._session.execute(
            select(User).where(User.user_key == user_key)
        ).scalar_one_or_none()
        if user is None:
            user = User(user_key=user_key)
            self._session.add(user)
            self._session.flush()
        return user

    # ------------------------------------------------------------------
    # Key/value state

    def upsert_key_values(self, session_id: int, values: Mapping[str, str | None]) -> int:
        existing = {
            row.key: row
            for row in self._session.execute(
                select(SessionKeyValue).where(SessionKeyValue.session_ref == session_id)
            ).scalars()
        }
        for key, value in values.items():
            row = existing.get(key)
            if row is None:
                self._session.add(SessionKeyValue(session_ref=session_id, key=key, value=value))
            else:
                row.value = value
        self._session.flush()
        return len(values)

    def get_key_values(self, session_id: int) -> dict[str, str | None]:
        query = (
            select(SessionKeyValue)
            .where(SessionKeyValue.session_ref == session_id)
            .order_by(SessionKeyValue.key)
        )
        return {row.key: row.value for row in self._session.execute(query).scalars()}


__all__ = ["SessionRepository"]
