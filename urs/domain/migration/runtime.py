from __future__ import annotations

import datetime as dt
from contextlib import AbstractContextManager
from dataclasses import dataclass, field

from sqlalchemy.engine import Engine
from sqlalchemy.orm import Session, sessionmaker

from urs.core.db.session import session_factory, session_scope


@dataclass
class MigrationRuntime:
    """Connection handles and batch tuning shared by every migration step."""

    urs_engine: Engine
    siar_engine: Engine
    page_size: int = 1000
    parallel_limit: int = 10
    today: dt.date | None = None

    _urs_sessions: sessionmaker[Session] = field(init=False, repr=False)
    _siar_sessions: sessionmaker[Session] = field(init=False, repr=False)

    def __post_init__(self) -> None:
        self._urs_sessions = session_factory(self.urs_engine)
        self._siar_sessions = session_factory(self.siar_engine)

    def urs(self) -> AbstractContextManager[Session]:
        return session_scope(self._urs_sessions)

    def siar(self) -> AbstractContextManager[Session]:
        return session_scope(self._siar_sessions)

    def as_of(self) -> dt.date:
        return self.today or dt.date.today()
