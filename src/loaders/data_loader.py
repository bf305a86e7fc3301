# src/loaders/data_loader.py
"""Dependency-ordered loader persisting the parsed source files to the database."""

import logging
import os
from typing import Dict, Mapping, Optional, Set, Tuple, Union

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.orm import Session

from config.config import cfg
from src.errors import ErrorKind, SourceFileError, TablesNotEmptyError
from src.extractors.csv_extractor import RecordError, count_data_lines, parse_file
from src.loaders.load_report import EntityLoadResult, EntityStatus, LoadReport
from src.models.database import Database, LoadStatus
from src.models.entities import (
    FOREIGN_KEYS,
    KEY_FIELDS,
    LOAD_ORDER,
    EntityKind,
    ancestors_of,
)
from src.models.models import MODEL_FOR_KIND

logger = logging.getLogger(__name__)

Key = Tuple
KeyCache = Dict[EntityKind, Set[Key]]


def default_sources(data_dir: Optional[str] = None) -> Dict[EntityKind, str]:
    """Map every entity kind to its configured file name under `data_dir`."""
    data_dir = data_dir or cfg.data_dir
    return {
        EntityKind.CUSTOMER: os.path.join(data_dir, cfg.customers_file),
        EntityKind.PRODUCT: os.path.join(data_dir, cfg.products_file),
        EntityKind.ORDER: os.path.join(data_dir, cfg.orders_file),
        EntityKind.ORDER_PAYMENT: os.path.join(data_dir, cfg.order_payments_file),
        EntityKind.ORDER_ITEM: os.path.join(data_dir, cfg.order_items_file),
    }


class DataLoader:
    """
    Loads the five source files into their relations, parents before children.

    Bad rows are rejected and reported without stopping the run. A file that
    cannot be opened (or whose header does not match) fails its entity kind,
    and every kind depending on it is skipped.
    """

    def __init__(self, database: Database, batch_size: Optional[int] = None):
        self.database = database
        self.batch_size = batch_size or cfg.load_batch_size

    @property
    def status(self) -> LoadStatus:
        return self.database.load_status

    def load_all(
        self,
        sources: Mapping[Union[EntityKind, str], Union[str, os.PathLike]],
        delimiter: Optional[str] = None,
        encoding: Optional[str] = None,
    ) -> LoadReport:
        """
        Load every file in `sources` and return the LoadReport.

        Raises:
            TablesNotEmptyError: a target relation already holds rows.
        """
        sources = {EntityKind(k): str(v) for k, v in sources.items()}
        delimiter = delimiter or cfg.csv_delimiter

        session = self.database.session()
        try:
            self._ensure_targets_empty(session, sources)
        finally:
            session.close()

        report = LoadReport()
        report.start()
        self.database.load_status = LoadStatus.IN_PROGRESS
        logger.info(f"Starting load of {len(sources)} source files")

        unavailable: Set[EntityKind] = set()
        keys: KeyCache = {}
        session = self.database.session()
        try:
            for kind in LOAD_ORDER:
                if kind not in sources:
                    continue
                path = sources[kind]
                result = report.result_for(kind, path)

                blocked = [p for p in ancestors_of(kind) if p in unavailable]
                if blocked:
                    result.status = EntityStatus.SKIPPED
                    result.skipped = count_data_lines(path, encoding)
                    result.error = (
                        f"Skipped because {', '.join(p.value for p in blocked)} "
                        "could not be loaded"
                    )
                    unavailable.add(kind)
                    logger.warning(f"{kind.value}: {result.error}")
                    continue

                try:
                    records = parse_file(path, kind, delimiter, encoding)
                except SourceFileError as e:
                    result.status = EntityStatus.FAILED
                    result.error = str(e)
                    unavailable.add(kind)
                    logger.error(f"{kind.value}: {e}")
                    continue

                self._load_entity(session, kind, records, result, keys)
                result.status = EntityStatus.LOADED
                logger.info(
                    f"{kind.value}: inserted {result.inserted}, "
                    f"rejected {result.rejected_count}"
                )

        except SQLAlchemyError as e:
            session.rollback()
            self.database.load_status = LoadStatus.FAILED
            logger.error(f"Database error during load: {e}")
            raise
        except Exception as e:
            session.rollback()
            self.database.load_status = LoadStatus.FAILED
            logger.error(f"Unexpected error during load: {e}")
            raise
        finally:
            session.close()

        report.finalize()
        self.database.load_status = (
            LoadStatus.FAILED if report.has_failures else LoadStatus.COMPLETE
        )
        logger.info(
            f"Load finished ({self.database.load_status.value}): "
            f"{report.total_inserted} inserted, {report.total_rejected} rejected, "
            f"{report.total_skipped} skipped"
        )
        return report

    def _ensure_targets_empty(self, session: Session, sources):
        populated = []
        for kind in LOAD_ORDER:
            if kind not in sources:
                continue
            table = MODEL_FOR_KIND[kind].__table__
            if session.execute(select(table).limit(1)).first() is not None:
                populated.append(table.name)
        if populated:
            raise TablesNotEmptyError(populated)

    def _key_set(self, session: Session, kind: EntityKind, keys: KeyCache) -> Set[Key]:
        """Keys of `kind` known so far; read from the database on first use."""
        if kind not in keys:
            table = MODEL_FOR_KIND[kind].__table__
            columns = [table.c[name] for name in KEY_FIELDS[kind]]
            keys[kind] = {tuple(row) for row in session.execute(select(*columns))}
        return keys[kind]

    def _load_entity(
        self,
        session: Session,
        kind: EntityKind,
        records,
        result: EntityLoadResult,
        keys: KeyCache,
    ):
        own_keys = self._key_set(session, kind, keys)
        parent_keys = {
            column: self._key_set(session, parent, keys)
            for column, parent in FOREIGN_KEYS[kind].items()
        }
        key_fields = KEY_FIELDS[kind]
        model = MODEL_FOR_KIND[kind]
        batch = []

        for record in records:
            if isinstance(record, RecordError):
                result.reject(record.line_number, record.kind, record.field, record.message)
                continue

            values = record.values
            key = tuple(values[name] for name in key_fields)
            if key in own_keys:
                result.reject(
                    record.line_number,
                    ErrorKind.UNIQUENESS_VIOLATION,
                    ", ".join(key_fields),
                    f"Duplicate key {key} in {kind.value}",
                )
                continue

            missing = next(
                (col for col, known in parent_keys.items() if (values[col],) not in known),
                None,
            )
            if missing:
                result.reject(
                    record.line_number,
                    ErrorKind.REFERENTIAL_VIOLATION,
                    missing,
                    f"{missing}={values[missing]!r} references a missing "
                    f"{FOREIGN_KEYS[kind][missing].value} row",
                )
                continue

            own_keys.add(key)
            batch.append((record.line_number, key, values))
            if len(batch) >= self.batch_size:
                self._flush(session, model, batch, result, own_keys)
                batch = []

        if batch:
            self._flush(session, model, batch, result, own_keys)

    def _flush(self, session: Session, model, batch, result: EntityLoadResult, own_keys):
        """Commit a batch; on an integrity error replay it row by row."""
        try:
            session.add_all([model(**values) for _, _, values in batch])
            session.commit()
            result.inserted += len(batch)
            return
        except IntegrityError as e:
            session.rollback()
            logger.warning(
                f"Batch of {len(batch)} {model.__tablename__} rows rejected by the "
                f"database, retrying row by row: {e.orig}"
            )

        for line_number, key, values in batch:
            try:
                session.add(model(**values))
                session.commit()
                result.inserted += 1
            except IntegrityError as e:
                session.rollback()
                own_keys.discard(key)
                reason = str(e.orig)
                error_kind = (
                    ErrorKind.REFERENTIAL_VIOLATION
                    if "foreign key" in reason.lower()
                    else ErrorKind.UNIQUENESS_VIOLATION
                )
                result.reject(line_number, error_kind, None, reason)


def load_all(
    database: Database,
    sources: Mapping[Union[EntityKind, str], Union[str, os.PathLike]],
    delimiter: Optional[str] = None,
) -> LoadReport:
    """Shortcut for DataLoader(database).load_all(sources, delimiter)."""
    return DataLoader(database).load_all(sources, delimiter=delimiter)
