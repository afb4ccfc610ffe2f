# catalog_service/db.py

"""
Storage gateway for the Catalog Service.
Holds the single process-wide SQLAlchemy engine and exposes
collection-scoped CRUD primitives over the products table.
"""
import logging
import threading
from contextlib import contextmanager
from typing import Iterator, List, Optional

from fastapi import Request
from sqlalchemy import create_engine, text
from sqlalchemy.engine import Engine
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import Session, sessionmaker

from .exceptions import StorageFailure
from .models import Base, Product

logger = logging.getLogger(__name__)

SORTABLE_FIELDS = ("created_at", "name", "price")


class StorageGateway:
    """
    Wraps one long-lived engine. The engine's connection pool multiplexes
    concurrent requests; no other shared state lives here.
    """

    def __init__(self, database_url: str, **engine_options):
        self._database_url = database_url
        self._engine_options = engine_options
        self._engine: Optional[Engine] = None
        self._session_factory: Optional[sessionmaker] = None
        self._lock = threading.Lock()

    def connect(self) -> None:
        """
        Create the engine and ensure the products table exists.
        Calling it again once connected is a no-op.
        """
        with self._lock:
            if self._session_factory is not None:
                return
            options = dict(self._engine_options)
            if self._database_url.startswith("sqlite"):
                # The engine is shared across the threadpool.
                options.setdefault("connect_args", {"check_same_thread": False})
            # pool_pre_ping=True helps maintain healthy connections in a pool
            options.setdefault("pool_pre_ping", True)
            try:
                engine = create_engine(self._database_url, **options)
                Base.metadata.create_all(bind=engine)
            except SQLAlchemyError as e:
                raise StorageFailure(f"Could not connect to the database: {e}") from e
            self._engine = engine
            self._session_factory = sessionmaker(
                autocommit=False, autoflush=False, expire_on_commit=False, bind=engine
            )
            logger.info("Storage gateway connected; 'products' table is ready.")

    def dispose(self) -> None:
        with self._lock:
            if self._engine is not None:
                self._engine.dispose()
            self._engine = None
            self._session_factory = None

    @contextmanager
    def _session(self) -> Iterator[Session]:
        if self._session_factory is None:
            # A failed startup connection is retried on demand.
            self.connect()
        db = self._session_factory()
        try:
            yield db
        except SQLAlchemyError as e:
            db.rollback()
            logger.error(f"Database operation failed: {e}", exc_info=True)
            raise StorageFailure("Database operation failed.") from e
        finally:
            db.close()

    def ping(self) -> bool:
        try:
            with self._session() as db:
                db.execute(text("SELECT 1"))
            return True
        except StorageFailure:
            return False

    def list_all(self, sort_key: str = "created_at", direction: str = "desc") -> List[Product]:
        if sort_key not in SORTABLE_FIELDS:
            raise ValueError(f"Unsupported sort key: {sort_key}")
        if direction not in ("asc", "desc"):
            raise ValueError(f"Unsupported sort direction: {direction}")
        column = getattr(Product, sort_key)
        order = column.desc() if direction == "desc" else column.asc()
        with self._session() as db:
            return db.query(Product).order_by(order, Product.id).all()

    def find_by_id(self, product_id: str) -> Optional[Product]:
        with self._session() as db:
            return db.get(Product, product_id)

    def insert(self, product: Product) -> Product:
        with self._session() as db:
            db.add(product)
            db.commit()
            db.refresh(product)
            return product

    def delete_by_id(self, product_id: str) -> int:
        with self._session() as db:
            removed = db.query(Product).filter(Product.id == product_id).delete(
                synchronize_session=False
            )
            db.commit()
            return removed


def get_gateway(request: Request) -> StorageGateway:
    """
    Dependency to provide the application's storage gateway to endpoints.
    Tests swap it out through `app.dependency_overrides`.
    """
    return request.app.state.gateway
