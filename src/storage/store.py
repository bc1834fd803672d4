"""Recipe persistence on SQLAlchemy.

SQLite by default (DATABASE_URL), any SQLAlchemy URL otherwise. The ORM session
API is synchronous, so every public method runs its session work in a worker
thread and is awaitable from the pipeline.

create_many() commits record by record: if a write fails, the records written
before it stay persisted and the error propagates to the caller.
"""

import asyncio
import json
import uuid
from datetime import datetime, timezone
from typing import Optional, Sequence

from sqlalchemy import JSON, Boolean, DateTime, Float, Integer, String, Text, cast, create_engine, func, or_, select
from sqlalchemy.engine import Engine
from sqlalchemy.orm import DeclarativeBase, Mapped, Session, mapped_column, sessionmaker
from sqlalchemy.pool import StaticPool

from src.models.models import GeneratedRecipe, Recipe, RecipeSearchQuery, RecipeSearchResult
from src.utils.config import config
from src.utils.logger import logger


class Base(DeclarativeBase):
    pass


def generate_uuid() -> str:
    return str(uuid.uuid4())


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class RecipeRecord(Base):
    """Recipe row. List fields are stored as JSON arrays."""

    __tablename__ = "recipes"

    id: Mapped[str] = mapped_column(String(36), primary_key=True, default=generate_uuid)
    title: Mapped[str] = mapped_column(String(200), nullable=False)
    description: Mapped[str] = mapped_column(Text, default="")
    ingredients: Mapped[list] = mapped_column(JSON, default=list)
    steps: Mapped[list] = mapped_column(JSON, default=list)
    estimated_time: Mapped[int] = mapped_column(Integer, nullable=False)
    difficulty: Mapped[str] = mapped_column(String(10), default="medium")
    safety_notes: Mapped[list] = mapped_column(JSON, default=list)
    tags: Mapped[list] = mapped_column(JSON, default=list)
    cuisine: Mapped[Optional[str]] = mapped_column(String(100), nullable=True)
    # none_as_null keeps "no embedding" as SQL NULL so IS NOT NULL filters work
    embedding: Mapped[Optional[list]] = mapped_column(JSON(none_as_null=True), nullable=True)
    rating: Mapped[float] = mapped_column(Float, default=0.0)
    rating_count: Mapped[int] = mapped_column(Integer, default=0)
    input_fingerprint: Mapped[Optional[str]] = mapped_column(String(16), nullable=True, index=True)
    is_generated: Mapped[bool] = mapped_column(Boolean, default=False)
    is_saved: Mapped[bool] = mapped_column(Boolean, default=False, index=True)
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=_utcnow, index=True)


def _json_serializer(value) -> str:
    # Keep non-ASCII text verbatim so tag search can match the stored JSON
    return json.dumps(value, ensure_ascii=False)


def create_db_engine(database_url: str) -> Engine:
    """Create an engine; in-memory SQLite is shared across worker threads."""
    if database_url.startswith("sqlite"):
        if database_url in ("sqlite://", "sqlite:///:memory:"):
            return create_engine(
                database_url,
                connect_args={"check_same_thread": False},
                poolclass=StaticPool,
                json_serializer=_json_serializer,
            )
        return create_engine(
            database_url,
            connect_args={"check_same_thread": False},
            json_serializer=_json_serializer,
        )
    return create_engine(database_url, pool_pre_ping=True, json_serializer=_json_serializer)


def _like_escape(text: str) -> str:
    return text.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")


def _to_recipe(record: RecipeRecord) -> Recipe:
    return Recipe.model_validate(record)


class RecipeStore:
    """Record-oriented recipe store used by the pipeline and recommendation engine."""

    SORT_COLUMNS = {
        "created_at": RecipeRecord.created_at,
        "rating": RecipeRecord.rating,
        "estimated_time": RecipeRecord.estimated_time,
    }

    def __init__(self, database_url: str = config.DATABASE_URL, engine: Optional[Engine] = None) -> None:
        self.engine = engine or create_db_engine(database_url)
        self._session_factory = sessionmaker(self.engine, expire_on_commit=False)

    async def create_tables(self) -> None:
        await asyncio.to_thread(Base.metadata.create_all, self.engine)

    def _session(self) -> Session:
        return self._session_factory()

    # ------------------------------------------------------------------ reads

    def _find_all(self) -> list[Recipe]:
        with self._session() as session:
            stmt = select(RecipeRecord).order_by(RecipeRecord.created_at.desc())
            return [_to_recipe(r) for r in session.scalars(stmt)]

    async def find_all(self) -> list[Recipe]:
        """All recipes, newest first."""
        return await asyncio.to_thread(self._find_all)

    def _find_by_id(self, recipe_id: str) -> Optional[Recipe]:
        with self._session() as session:
            record = session.get(RecipeRecord, recipe_id)
            return _to_recipe(record) if record else None

    async def find_by_id(self, recipe_id: str) -> Optional[Recipe]:
        return await asyncio.to_thread(self._find_by_id, recipe_id)

    def _find_by_fingerprint(self, fingerprint: str) -> list[Recipe]:
        with self._session() as session:
            stmt = (
                select(RecipeRecord)
                .where(RecipeRecord.input_fingerprint == fingerprint)
                .order_by(RecipeRecord.created_at.asc(), RecipeRecord.id.asc())
            )
            return [_to_recipe(r) for r in session.scalars(stmt)]

    async def find_by_fingerprint(self, fingerprint: str) -> list[Recipe]:
        """Recipes generated under a fingerprint, in the order they were persisted."""
        return await asyncio.to_thread(self._find_by_fingerprint, fingerprint)

    def _find_all_with_embedding(self) -> list[Recipe]:
        with self._session() as session:
            stmt = (
                select(RecipeRecord)
                .where(RecipeRecord.embedding.is_not(None))
                .order_by(RecipeRecord.created_at.asc(), RecipeRecord.id.asc())
            )
            return [_to_recipe(r) for r in session.scalars(stmt)]

    async def find_all_with_embedding(self) -> list[Recipe]:
        """Every recipe that has an embedding, in insertion order."""
        return await asyncio.to_thread(self._find_all_with_embedding)

    # ----------------------------------------------------------------- writes

    def _create_many(
        self,
        recipes: Sequence[GeneratedRecipe],
        input_fingerprint: Optional[str],
        is_generated: bool,
    ) -> list[Recipe]:
        saved: list[Recipe] = []
        with self._session() as session:
            for recipe in recipes:
                record = RecipeRecord(
                    id=generate_uuid(),
                    title=recipe.title,
                    description=recipe.description,
                    ingredients=list(recipe.ingredients),
                    steps=list(recipe.steps),
                    estimated_time=recipe.estimated_time,
                    difficulty=recipe.difficulty.value,
                    safety_notes=list(recipe.safety_notes),
                    tags=list(recipe.tags),
                    cuisine=recipe.cuisine,
                    embedding=list(recipe.embedding) if recipe.embedding is not None else None,
                    rating=0.0,
                    rating_count=0,
                    input_fingerprint=input_fingerprint,
                    is_generated=is_generated,
                    is_saved=False,
                    created_at=_utcnow(),
                )
                session.add(record)
                try:
                    session.commit()
                except Exception:
                    session.rollback()
                    logger.error(
                        f"Failed to persist recipe '{recipe.title}' after {len(saved)} successful writes",
                        extra={"fingerprint": input_fingerprint},
                    )
                    raise
                saved.append(_to_recipe(record))
        return saved

    async def create_many(
        self,
        recipes: Sequence[GeneratedRecipe],
        input_fingerprint: Optional[str] = None,
        is_generated: bool = False,
    ) -> list[Recipe]:
        """Persist recipes, one commit per record, and return them with ids."""
        return await asyncio.to_thread(self._create_many, recipes, input_fingerprint, is_generated)

    def _update_rating(self, recipe_id: str, new_rating: float) -> Optional[Recipe]:
        with self._session() as session:
            record = session.get(RecipeRecord, recipe_id)
            if record is None:
                return None

            total = record.rating * record.rating_count + new_rating
            count = record.rating_count + 1
            record.rating = round(total / count, 1)
            record.rating_count = count
            session.commit()
            return _to_recipe(record)

    async def update_rating(self, recipe_id: str, new_rating: float) -> Optional[Recipe]:
        """Fold a rating into the running mean (rounded to one decimal). None if absent."""
        return await asyncio.to_thread(self._update_rating, recipe_id, new_rating)

    def _set_saved(self, recipe_id: str, saved: bool) -> Optional[Recipe]:
        with self._session() as session:
            record = session.get(RecipeRecord, recipe_id)
            if record is None:
                return None

            record.is_saved = saved
            session.commit()
            return _to_recipe(record)

    async def set_saved(self, recipe_id: str, saved: bool = True) -> Optional[Recipe]:
        """Bookmark or un-bookmark a recipe. None if absent."""
        return await asyncio.to_thread(self._set_saved, recipe_id, saved)

    def _find_saved(self) -> list[Recipe]:
        with self._session() as session:
            stmt = (
                select(RecipeRecord)
                .where(RecipeRecord.is_saved.is_(True))
                .order_by(RecipeRecord.created_at.desc())
            )
            return [_to_recipe(r) for r in session.scalars(stmt)]

    async def find_saved(self) -> list[Recipe]:
        """Bookmarked recipes, newest first."""
        return await asyncio.to_thread(self._find_saved)

    # ----------------------------------------------------------------- search

    def _search(self, query: RecipeSearchQuery) -> RecipeSearchResult:
        stmt = select(RecipeRecord)

        if query.q:
            pattern = f"%{_like_escape(query.q.lower())}%"
            stmt = stmt.where(
                or_(
                    func.lower(RecipeRecord.title).like(pattern, escape="\\"),
                    func.lower(RecipeRecord.description).like(pattern, escape="\\"),
                )
            )
        if query.difficulty:
            stmt = stmt.where(RecipeRecord.difficulty == query.difficulty.value)
        if query.max_time:
            stmt = stmt.where(RecipeRecord.estimated_time <= query.max_time)
        if query.tags:
            # JSON arrays are matched on their serialized form, any tag suffices
            tag_text = cast(RecipeRecord.tags, String)
            stmt = stmt.where(
                or_(
                    *(
                        tag_text.like(f"%{_like_escape(_json_serializer(tag))}%", escape="\\")
                        for tag in query.tags
                    )
                )
            )

        with self._session() as session:
            total = session.scalar(select(func.count()).select_from(stmt.subquery())) or 0

            column = self.SORT_COLUMNS[query.sort_by]
            stmt = stmt.order_by(column.asc() if query.order == "asc" else column.desc())
            stmt = stmt.limit(query.limit).offset(query.offset)

            data = [_to_recipe(r) for r in session.scalars(stmt)]

        return RecipeSearchResult(data=data, total=total, limit=query.limit, offset=query.offset)

    async def search(self, query: RecipeSearchQuery) -> RecipeSearchResult:
        """Filter, sort and paginate stored recipes."""
        return await asyncio.to_thread(self._search, query)
