"""Typed Collection.

``Collection[T]`` binds one document type to one named collection and runs
every operation through a ``Driver`` as a database command document.
Expressions (filters, updates, pipelines, options) are checked against the
bound document type before anything is sent; replies are parsed into typed
results and typed documents.

    >>> users = Collection(User, driver)
    >>> F = fields(User)
    >>> users.insert_one(User(name="Ann", age=21))
    >>> adults = users.find(F.age >= 18).to_list()
    >>> users.update_many(F.age < 18, Update(User).set(F.minor, True))
"""

import dataclasses
import functools
import logging
from collections.abc import Callable, Iterable, Mapping
from typing import Any

from pydantic import BaseModel

from docbind.core.collection.cursor import DocumentCursor
from docbind.core.collection.driver import Driver, DriverCursor
from docbind.core.dto.collection_dto import (
    CreateCollectionResult,
    DeleteResult,
    InsertManyResult,
    InsertOneResult,
    UpdateResult,
)
from docbind.core.dto.result_dto import StatusCode, StatusDetail
from docbind.core.exceptions import (
    DocbindError,
    DocumentTypeMismatchError,
    DriverError,
    ExpressionError,
    IdentifierFormatError,
    ModelDefinitionError,
    SchemaConflictError,
)
from docbind.core.model.annotations import element_type, unwrap_optional
from docbind.core.model.codec import (
    decode_as,
    decode_document,
    decode_value,
    encode_document,
    take_typed,
)
from docbind.core.model.document import ID_FIELD, Doc, Document, describe
from docbind.core.model.paths import FieldRef, require_path
from docbind.core.model.schema import validator_for
from docbind.core.query.filters import Filter, check_filter_model
from docbind.core.query.options import (
    FindOptions,
    check_ref_model,
    projection_document,
    sort_document,
    validate_find_options,
)
from docbind.core.query.pipeline import Pipeline, check_pipeline_model
from docbind.core.query.updates import Update, check_update_model
from docbind.core.settings.settings import CollectionOptions

logger = logging.getLogger(__name__)

#: Server error code for a missing collection.
NAMESPACE_NOT_FOUND = 26

type Output = type[dict] | type[BaseModel] | None


def _command_name(command: Document) -> str:
    return next(iter(command))


def _check_reply(command: Document, reply: Any) -> dict[str, Any]:
    """Raise ``DriverError`` for failed commands and reported write errors."""
    if not isinstance(reply, Mapping):
        raise DriverError(
            f"command '{_command_name(command)}' returned {type(reply).__name__}, not a document"
        )
    reply = dict(reply)
    if not reply.get("ok", 1):
        raise DriverError(
            reply.get("errmsg", f"command '{_command_name(command)}' failed"),
            code=reply.get("code"),
            response=reply,
        )
    write_errors = reply.get("writeErrors")
    if write_errors:
        first = write_errors[0]
        raise DriverError(
            first.get("errmsg", "write error"),
            code=first.get("code"),
            response=reply,
        )
    concern_error = reply.get("writeConcernError")
    if concern_error:
        raise DriverError(
            concern_error.get("errmsg", "write concern error"),
            code=concern_error.get("code"),
            response=reply,
        )
    return reply


def _no_match(what: str) -> StatusDetail:
    return StatusDetail(code=StatusCode.NO_MATCH, message=f"No document matched the {what} filter")


class Collection[T: Doc]:
    """A collection bound to the document type ``T``.

    Args:
        model: The document type (a ``Doc`` subclass).
        driver: Driver adapter that executes command documents.
        name: Collection name; defaults to the model's collection name.
        options: Validator, timeout, batch size and write concern settings.

    Raises:
        ModelDefinitionError: If ``model`` is not a valid document type.
        TypeError: If ``driver`` does not implement the driver contract.
    """

    def __init__(
        self,
        model: type[T],
        driver: Driver,
        *,
        name: str | None = None,
        options: CollectionOptions | None = None,
    ):
        info = describe(model)
        if info.id_field is None:
            raise ModelDefinitionError(model, "only Doc subclasses can be bound to a collection")
        if not isinstance(driver, Driver):
            raise TypeError(
                f"driver must implement execute_command() and open_cursor(), "
                f"got {type(driver).__name__}"
            )
        if name is not None and (not name or "$" in name or "\x00" in name):
            raise ModelDefinitionError(model, f"invalid collection name {name!r}")

        self._model = model
        self._info = info
        self._driver = driver
        self._name = name or info.collection
        self._options = options or CollectionOptions()
        logger.debug("Collection '%s' bound to %s", self._name, model.__name__)

    @property
    def model(self) -> type[T]:
        return self._model

    @property
    def name(self) -> str:
        return self._name

    @property
    def options(self) -> CollectionOptions:
        return self._options

    @property
    def driver(self) -> Driver:
        return self._driver

    def __repr__(self) -> str:
        return f"Collection({self._model.__name__}, name={self._name!r})"

    # =========================================================================
    # DRIVER ACCESS
    # =========================================================================

    def _run(self, command: Document) -> dict[str, Any]:
        name = _command_name(command)
        logger.debug("Running %s on '%s'", name, self._name)
        try:
            reply = self._driver.execute_command(command)
        except DocbindError:
            raise
        except Exception as e:
            raise DriverError(f"command '{name}' on '{self._name}' failed", e) from e
        return _check_reply(command, reply)

    def _open(self, command: Document) -> DriverCursor:
        name = _command_name(command)
        logger.debug("Opening %s cursor on '%s'", name, self._name)
        try:
            return self._driver.open_cursor(command)
        except DocbindError:
            raise
        except Exception as e:
            raise DriverError(f"command '{name}' on '{self._name}' failed", e) from e

    def _with_write_concern(self, command: Document) -> Document:
        if self._options.write_concern is not None:
            command["writeConcern"] = dict(self._options.write_concern)
        return command

    def _with_max_time(self, command: Document, max_time_ms: int | None = None) -> Document:
        value = max_time_ms if max_time_ms is not None else self._options.max_time_ms
        if value is not None:
            command["maxTimeMS"] = value
        return command

    # =========================================================================
    # CONVERSION
    # =========================================================================

    def _filter_document(self, filter: Filter | None) -> Document:
        if filter is None:
            return {}
        check_filter_model(filter, self._model)
        return filter.to_document()

    def _encode(self, doc: T) -> Document:
        if not isinstance(doc, self._model):
            raise DocumentTypeMismatchError(self._model, type(doc), "document")
        return encode_document(doc)

    def _decode(self, raw: Document) -> T:
        return decode_document(self._model, raw)

    def _decoder(self, output: Output, default_raw: bool = False) -> Callable[[Document], Any]:
        if output is dict or (output is None and default_raw):
            return decode_value
        if output is None:
            return self._decode
        if isinstance(output, type) and issubclass(output, BaseModel):
            return functools.partial(decode_document, output)
        raise ExpressionError(
            "output must be None, dict or a pydantic model class", value=output
        )

    def _decode_id(self, native: Any) -> Any:
        return self._info.id_adapter.decode(native)

    def _prepare_insert(self, doc: T) -> tuple[Document, Any]:
        """Encode ``doc``, generating a missing identifier when possible."""
        document = self._encode(doc)
        if ID_FIELD in document:
            return document, doc.id_value()
        adapter = self._info.id_adapter
        if not adapter.can_generate():
            raise IdentifierFormatError(None, adapter.id_type.__name__)
        new_id = adapter.generate()
        return {ID_FIELD: adapter.encode(new_id), **document}, new_id

    def _id_filter(self, doc: T) -> Document:
        if not isinstance(doc, self._model):
            raise DocumentTypeMismatchError(self._model, type(doc), "document")
        value = doc.id_value()
        if value is None:
            raise ExpressionError("document has no identifier", field=ID_FIELD)
        return {ID_FIELD: self._info.id_adapter.encode(value)}

    # =========================================================================
    # INSERT
    # =========================================================================

    def insert_one(self, doc: T) -> InsertOneResult:
        """Insert one document.

        A missing ``ObjectId`` or ``UUID`` identifier is generated client-side
        and returned in the result; ``doc`` itself is not modified.
        """
        document, doc_id = self._prepare_insert(doc)
        command = self._with_write_concern({"insert": self._name, "documents": [document]})
        reply = self._run(command)
        take_typed(reply, "n", int)
        return InsertOneResult.success(inserted_id=doc_id)

    def insert_many(self, docs: Iterable[T], *, ordered: bool = True) -> InsertManyResult:
        """Insert several documents in one command.

        An empty input returns an empty result without contacting the server.
        """
        prepared = [self._prepare_insert(doc) for doc in docs]
        if not prepared:
            return InsertManyResult.success(
                detail=StatusDetail(code=StatusCode.EMPTY, message="Nothing to insert")
            )
        command = self._with_write_concern(
            {
                "insert": self._name,
                "documents": [document for document, _ in prepared],
                "ordered": ordered,
            }
        )
        reply = self._run(command)
        take_typed(reply, "n", int)
        return InsertManyResult.success(inserted_ids=[doc_id for _, doc_id in prepared])

    # =========================================================================
    # READ
    # =========================================================================

    def find(
        self,
        filter: Filter | None = None,
        options: FindOptions | None = None,
        *,
        output: Output = None,
    ) -> DocumentCursor[Any]:
        """Open a cursor over the documents matching ``filter``.

        Args:
            filter: Filter over ``T`` (None matches everything).
            options: Projection, sort and pagination.
            output: ``None`` decodes into ``T``, ``dict`` returns raw
                documents, a model class decodes into that model.
        """
        options = options or FindOptions()
        validate_find_options(options, self._model)

        command: Document = {"find": self._name, "filter": self._filter_document(filter)}
        projection = projection_document(options)
        if projection is not None:
            command["projection"] = projection
        if options.sort:
            command["sort"] = sort_document(options.sort_keys())
        if options.skip:
            command["skip"] = options.skip
        if options.limit:
            command["limit"] = options.limit
        batch_size = (
            options.batch_size if options.batch_size is not None else self._options.batch_size
        )
        if batch_size is not None:
            command["batchSize"] = batch_size
        self._with_max_time(command, options.max_time_ms)

        decode = self._decoder(output)
        return DocumentCursor(self._open(command), decode, source=self._name)

    def find_one(
        self,
        filter: Filter | None = None,
        options: FindOptions | None = None,
        *,
        output: Output = None,
    ) -> Any:
        """Return the first matching document, or None."""
        options = dataclasses.replace(options or FindOptions(), limit=1)
        return self.find(filter, options, output=output).first()

    def count(self, filter: Filter | None = None) -> int:
        """Count the documents matching ``filter``."""
        command = self._with_max_time({"count": self._name, "query": self._filter_document(filter)})
        reply = self._run(command)
        return take_typed(reply, "n", int)

    def distinct(self, ref: FieldRef, filter: Filter | None = None) -> list[Any]:
        """Distinct values of ``ref`` among the documents matching ``filter``.

        Values of array fields are unwound, as the server does.
        """
        path = require_path(ref)
        check_ref_model(ref, self._model, "distinct")
        command = self._with_max_time(
            {"distinct": self._name, "key": path.query, "query": self._filter_document(filter)}
        )
        reply = self._run(command)
        values = take_typed(reply, "values", list)
        if ref.is_raw:
            return [decode_value(value) for value in values]

        annotation = ref.annotation
        inner, _ = unwrap_optional(annotation)
        element = element_type(inner)
        if element is not None:
            annotation = element
        return [decode_as(annotation, value, path.query) for value in values]

    # =========================================================================
    # UPDATE / REPLACE
    # =========================================================================

    def _update_result(self, reply: dict[str, Any]) -> UpdateResult:
        n = take_typed(reply, "n", int)
        modified = take_typed(reply, "nModified", int)
        upserted = reply.get("upserted") or []
        upserted_id = self._decode_id(upserted[0][ID_FIELD]) if upserted else None
        matched = n - len(upserted)
        if matched == 0 and upserted_id is None:
            return UpdateResult.success(detail=_no_match("update"))
        return UpdateResult.success(
            matched_count=matched, modified_count=modified, upserted_id=upserted_id
        )

    def _update(self, filter: Filter, update: Update, *, multi: bool, upsert: bool) -> UpdateResult:
        check_update_model(update, self._model)
        statement = {
            "q": self._filter_document(filter),
            "u": update.to_document(),
            "multi": multi,
            "upsert": upsert,
        }
        command = self._with_write_concern({"update": self._name, "updates": [statement]})
        return self._update_result(self._run(command))

    def update_one(self, filter: Filter, update: Update) -> UpdateResult:
        """Apply ``update`` to the first document matching ``filter``."""
        return self._update(filter, update, multi=False, upsert=False)

    def update_many(self, filter: Filter, update: Update) -> UpdateResult:
        """Apply ``update`` to every document matching ``filter``."""
        return self._update(filter, update, multi=True, upsert=False)

    def upsert_one(self, filter: Filter, update: Update) -> UpdateResult:
        """Like ``update_one``, inserting a document when nothing matches."""
        return self._update(filter, update, multi=False, upsert=True)

    def upsert_many(self, filter: Filter, update: Update) -> UpdateResult:
        """Like ``update_many``, inserting a document when nothing matches."""
        return self._update(filter, update, multi=True, upsert=True)

    def _replace(self, query: Document, replacement: Document, upsert: bool) -> UpdateResult:
        statement = {"q": query, "u": replacement, "multi": False, "upsert": upsert}
        command = self._with_write_concern({"update": self._name, "updates": [statement]})
        return self._update_result(self._run(command))

    def replace_one(self, filter: Filter, doc: T, *, upsert: bool = False) -> UpdateResult:
        """Replace the first document matching ``filter`` with ``doc``."""
        return self._replace(self._filter_document(filter), self._encode(doc), upsert)

    def replace_entity(self, doc: T) -> UpdateResult:
        """Replace the stored document with the identifier of ``doc``."""
        return self._replace(self._id_filter(doc), self._encode(doc), False)

    def upsert_entity(self, doc: T) -> UpdateResult:
        """Replace the stored document with the identifier of ``doc``, or insert it."""
        if doc.id_value() is None:
            document, _ = self._prepare_insert(doc)
            return self._replace({ID_FIELD: document[ID_FIELD]}, document, True)
        return self._replace(self._id_filter(doc), self._encode(doc), True)

    # =========================================================================
    # DELETE
    # =========================================================================

    def _delete(self, query: Document, limit: int) -> DeleteResult:
        statement = {"q": query, "limit": limit}
        command = self._with_write_concern({"delete": self._name, "deletes": [statement]})
        deleted = take_typed(self._run(command), "n", int)
        if deleted == 0:
            return DeleteResult.success(detail=_no_match("delete"))
        return DeleteResult.success(deleted_count=deleted)

    def delete_one(self, filter: Filter) -> DeleteResult:
        return self._delete(self._filter_document(filter), 1)

    def delete_many(self, filter: Filter) -> DeleteResult:
        return self._delete(self._filter_document(filter), 0)

    def delete_entity(self, doc: T) -> DeleteResult:
        """Delete the stored document with the identifier of ``doc``."""
        return self._delete(self._id_filter(doc), 1)

    def delete_entities(self, docs: Iterable[T]) -> DeleteResult:
        """Delete the stored documents with the identifiers of ``docs``."""
        ids = [self._id_filter(doc)[ID_FIELD] for doc in docs]
        if not ids:
            return DeleteResult.success(
                detail=StatusDetail(code=StatusCode.EMPTY, message="Nothing to delete")
            )
        return self._delete({ID_FIELD: {"$in": ids}}, 0)

    # =========================================================================
    # FIND AND MODIFY
    # =========================================================================

    def _find_and_modify(self, filter: Filter | None, **fields: Any) -> T | None:
        command: Document = {"findAndModify": self._name, "query": self._filter_document(filter)}
        command.update(fields)
        self._with_max_time(command)
        self._with_write_concern(command)
        reply = self._run(command)
        value = reply.get("value")
        return None if value is None else self._decode(value)

    def find_one_and_update(
        self,
        filter: Filter,
        update: Update,
        *,
        return_new: bool = False,
        upsert: bool = False,
    ) -> T | None:
        """Update the first match and return it (before the update, by default)."""
        check_update_model(update, self._model)
        return self._find_and_modify(
            filter, update=update.to_document(), new=return_new, upsert=upsert
        )

    def find_one_and_replace(
        self,
        filter: Filter,
        doc: T,
        *,
        return_new: bool = False,
        upsert: bool = False,
    ) -> T | None:
        """Replace the first match and return it (before the replacement, by default)."""
        return self._find_and_modify(
            filter, update=self._encode(doc), new=return_new, upsert=upsert
        )

    def find_one_and_delete(self, filter: Filter) -> T | None:
        """Delete the first match and return it."""
        return self._find_and_modify(filter, remove=True)

    # =========================================================================
    # AGGREGATION
    # =========================================================================

    def aggregate(self, pipeline: Pipeline, *, output: Output = None) -> DocumentCursor[Any]:
        """Run ``pipeline`` and iterate its output.

        Output documents decode into ``T`` while the pipeline keeps the
        document shape, and are returned raw after ``project``, ``group``,
        ``count`` or ``unwind`` unless ``output`` says otherwise.
        """
        check_pipeline_model(pipeline, self._model)
        cursor_options: Document = {}
        if self._options.batch_size is not None:
            cursor_options["batchSize"] = self._options.batch_size
        command = self._with_max_time(
            {
                "aggregate": self._name,
                "pipeline": pipeline.to_documents(),
                "cursor": cursor_options,
            }
        )
        decode = self._decoder(output, default_raw=pipeline.output_roots is not None)
        return DocumentCursor(self._open(command), decode, source=self._name)

    # =========================================================================
    # COLLECTION MANAGEMENT
    # =========================================================================

    def _existing_options(self) -> Document | None:
        """Options of the collection as reported by ``listCollections``, or None."""
        command = {"listCollections": 1, "filter": {"name": self._name}}
        with DocumentCursor(self._open(command), decode_value, source=self._name) as cursor:
            for info in cursor:
                if info.get("name") == self._name:
                    return dict(info.get("options") or {})
        return None

    def create_with_validation(self, *, update_existing: bool = False) -> CreateCollectionResult:
        """Create the collection with a validator derived from ``T``.

        If the collection exists with the same validator nothing is written.
        If it exists with another validator (or none), the validator is
        replaced with ``collMod`` when ``update_existing`` is set.

        Raises:
            SchemaConflictError: If the existing validator differs and
                ``update_existing`` is not set.
        """
        validator = validator_for(self._model)
        level = self._options.validation_level
        action = self._options.validation_action
        existing = self._existing_options()

        if existing is None:
            command = self._with_write_concern(
                {
                    "create": self._name,
                    "validator": validator,
                    "validationLevel": level,
                    "validationAction": action,
                }
            )
            self._run(command)
            logger.info("Created collection '%s' with validator", self._name)
            return CreateCollectionResult.success(
                collection=self._name,
                created=True,
                validator_changed=True,
                detail=StatusDetail(code=StatusCode.CREATED, message="Collection created"),
            )

        current = existing.get("validator")
        unchanged = (
            current == validator
            and existing.get("validationLevel", "strict") == level
            and existing.get("validationAction", "error") == action
        )
        if unchanged:
            logger.debug("Validator of '%s' is up to date", self._name)
            return CreateCollectionResult.success(
                collection=self._name,
                detail=StatusDetail(code=StatusCode.UNCHANGED, message="Validator unchanged"),
            )

        if not update_existing:
            raise SchemaConflictError(self._name, current, validator)

        command = self._with_write_concern(
            {
                "collMod": self._name,
                "validator": validator,
                "validationLevel": level,
                "validationAction": action,
            }
        )
        self._run(command)
        logger.info("Updated validator of collection '%s'", self._name)
        return CreateCollectionResult.success(
            collection=self._name,
            validator_changed=True,
            detail=StatusDetail(code=StatusCode.UPDATED, message="Validator updated"),
        )

    def create_indexes(self) -> list[str]:
        """Create the indexes declared by ``T.indexes()``; returns their names."""
        indexes = self._model.indexes()
        if not indexes:
            return []
        for index in indexes:
            index.check_model(self._model)
        documents = [index.to_document() for index in indexes]
        command = self._with_write_concern({"createIndexes": self._name, "indexes": documents})
        self._run(command)
        names = [document["name"] for document in documents]
        logger.info("Created indexes %s on '%s'", names, self._name)
        return names

    def drop(self) -> bool:
        """Drop the collection. Returns False if it did not exist."""
        try:
            self._run(self._with_write_concern({"drop": self._name}))
        except DriverError as e:
            if e.code == NAMESPACE_NOT_FOUND:
                logger.debug("Collection '%s' did not exist", self._name)
                return False
            raise
        logger.info("Dropped collection '%s'", self._name)
        return True


__all__ = ["Collection", "NAMESPACE_NOT_FOUND"]
