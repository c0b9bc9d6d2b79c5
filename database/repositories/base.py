from sqlalchemy.orm import Session
from sqlalchemy.dialects import postgresql, sqlite


class BaseRepository:
    def __init__(self, db: Session):
        self.db = db

    def commit(self) -> None:
        self.db.commit()

    def rollback(self) -> None:
        self.db.rollback()

    @property
    def dialect_name(self) -> str:
        return self.db.get_bind().dialect.name

    def upsert_insert(self, model):
        """Return the dialect's INSERT construct that supports ON CONFLICT."""
        if self.dialect_name == 'postgresql':
            return postgresql.insert(model)
        if self.dialect_name == 'sqlite':
            return sqlite.insert(model)
        raise NotImplementedError(f"Upsert not supported for dialect {self.dialect_name}")
