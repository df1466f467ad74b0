"""Encoding of documents and mixed update batches."""

import json
from typing import Any, Dict, Iterable, Sequence, Tuple

from .errors import MalformedDataError

Field = Tuple[str, Any]
UpdateOp = Tuple[str, Any]


def _decode(value: Any) -> Any:
    return value.decode("utf-8") if isinstance(value, bytes) else value


def encode_field(name: str, value: Any) -> Tuple[str, Any]:
    if isinstance(value, list):
        return name, [_decode(item) for item in value]
    return name, _decode(value)


def encode_doc(fields: Sequence[Field]) -> Dict[str, Dict[str, Any]]:
    """Wrap a document's fields as the value of an ``add`` command.

    Fields are ``(name, value)`` pairs. A multi-valued field is given either
    as a list or as the same name repeated; both end up as one list value in
    field order.
    """
    doc: Dict[str, Any] = {}
    for name, value in fields:
        name, value = encode_field(name, value)
        if name not in doc:
            doc[name] = value
            continue
        values = doc[name] if isinstance(doc[name], list) else [doc[name]]
        doc[name] = values + (value if isinstance(value, list) else [value])
    return {"doc": doc}


def encode_batch(ops: Iterable[UpdateOp]) -> str:
    """Encode ``(command, payload)`` pairs as one JSON update body.

    Commands repeat as keys of one object, which is how Solr's JSON update
    format carries several of them. Raises ``MalformedDataError`` if a
    payload cannot be serialized.
    """
    try:
        parts = [f"{json.dumps(command)}:{json.dumps(payload)}" for command, payload in ops]
    except (TypeError, ValueError) as e:
        raise MalformedDataError(f"Cannot encode update batch: {e}", operation="index_batch") from e
    return "{" + ",".join(parts) + "}"


def prepare_json(docs: Iterable[Sequence[Field]]) -> str:
    """Update body adding every document in ``docs``."""
    return encode_batch(("add", encode_doc(fields)) for fields in docs)
