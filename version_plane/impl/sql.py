from typing import Any, Callable

from sqlalchemy import LargeBinary, String, delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column

from version_plane.base import ObjectStore, RefStore, RefUpdateResult
from version_plane.errors import NotFound
from version_plane.objects import DEFAULT_HASH_ALGORITHM, ObjectId, ObjectKind
from version_plane.repo import Repository


class Base(DeclarativeBase):
    pass


class ObjectModel(Base):
    __tablename__ = "objects"
    oid: Mapped[str] = mapped_column(String(64), primary_key=True)
    kind: Mapped[str] = mapped_column(String(16), nullable=False)
    content: Mapped[bytes] = mapped_column(LargeBinary, nullable=False)


class RefModel(Base):
    __tablename__ = "refs"
    name: Mapped[str] = mapped_column(String(255), primary_key=True)
    target: Mapped[str] = mapped_column(String(64), nullable=False)


class SqlObjectStore(ObjectStore):
    def __init__(
        self,
        session_maker: Callable[[], Session],
        hash_algorithm: str = DEFAULT_HASH_ALGORITHM,
    ) -> None:
        super().__init__(hash_algorithm)
        self.session_maker = session_maker

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("SqlObjectStore(...)")
        else:
            with p.group(4, "SqlObjectStore(", ")"):
                p.breakable()
                p.text(f"hash={self.hash_algorithm},")
                p.breakable()

    def _load(self, oid: ObjectId) -> tuple[ObjectKind, bytes] | None:
        with self.session_maker() as session:
            obj = session.execute(
                select(ObjectModel).where(ObjectModel.oid == oid.hex)
            ).scalar_one_or_none()
            if obj is None:
                return None
            return ObjectKind(obj.kind), obj.content

    def _store(self, oid: ObjectId, kind: ObjectKind, data: bytes) -> None:
        with self.session_maker() as session:
            session.add(ObjectModel(oid=oid.hex, kind=kind.value, content=data))
            try:
                session.commit()
            except IntegrityError:
                # Another writer stored the same content first
                session.rollback()
                if not self.exists(oid):
                    raise

    def exists(self, oid: ObjectId) -> bool:
        with self.session_maker() as session:
            stmt = select(ObjectModel.oid).where(ObjectModel.oid == oid.hex)
            return session.execute(stmt).first() is not None


class SqlRefStore(RefStore):
    def __init__(self, session_maker: Callable[[], Session]) -> None:
        self.session_maker = session_maker

    def _repr_pretty_(self, p: Any, cycle: bool) -> None:
        if cycle:
            p.text("SqlRefStore(...)")
        else:
            with p.group(4, "SqlRefStore(", ")"):
                p.breakable()
                p.text("refs=")
                p.pretty(self.list_refs())
                p.breakable()

    def _read(self, session: Session, name: str) -> ObjectId | None:
        target = session.execute(
            select(RefModel.target).where(RefModel.name == name)
        ).scalar_one_or_none()
        return ObjectId.from_hex(target) if target is not None else None

    def read(self, name: str) -> ObjectId | None:
        with self.session_maker() as session:
            return self._read(session, name)

    def compare_and_swap(
        self, name: str, expected: ObjectId | None, new: ObjectId
    ) -> RefUpdateResult:
        with self.session_maker() as session:
            if expected is None:
                # Creation relies on the primary key to reject a concurrent create
                session.add(RefModel(name=name, target=new.hex))
                try:
                    session.commit()
                except IntegrityError:
                    session.rollback()
                    return self._rejected(name, expected, self._read(session, name), new)
                return self._accepted(name, expected, new)

            stmt = (
                update(RefModel)
                .where(RefModel.name == name, RefModel.target == expected.hex)
                .values(target=new.hex)
                .execution_options(synchronize_session=False)
            )
            if session.execute(stmt).rowcount != 1:
                session.rollback()
                return self._rejected(name, expected, self._read(session, name), new)

            session.commit()
            return self._accepted(name, expected, new)

    def delete(self, name: str) -> None:
        with self.session_maker() as session:
            stmt = (
                delete(RefModel)
                .where(RefModel.name == name)
                .execution_options(synchronize_session=False)
            )
            if session.execute(stmt).rowcount == 0:
                session.rollback()
                raise NotFound("Ref", name)
            session.commit()

    def list_refs(self, prefix: str = "") -> list[str]:
        stmt = (
            select(RefModel.name)
            .where(RefModel.name.startswith(prefix, autoescape=True))
            .order_by(RefModel.name)
        )
        with self.session_maker() as session:
            return list(session.execute(stmt).scalars().all())


def create_sql_repository(
    session_maker: Callable[[], Session],
    hash_algorithm: str = DEFAULT_HASH_ALGORITHM,
    default_branch: str = "master",
    clock: Callable[[], int] | None = None,
) -> Repository:
    return Repository(
        SqlObjectStore(session_maker, hash_algorithm=hash_algorithm),
        SqlRefStore(session_maker),
        default_branch=default_branch,
        clock=clock,
    )
