"""Delete intents and their encoding for Solr's JSON update handler.

Three kinds of delete are supported:

- ``ById``: delete the document with the given unique key.
- ``ByReplicaKey``: delete every document indexed for a bucket/key pair,
  optionally limited to one logical partition.
- ``ByQuery``: delete everything matching a raw query.

Without a partition, ``ByReplicaKey`` removes the key's documents from all
partitions on the node, including fallback copies and data still being
handed off. Callers outside tests should pass the partition.
"""

import json
from dataclasses import dataclass
from typing import Dict, Iterable, Optional, Tuple, Union

from .errors import MalformedDataError
from .fields import DEFAULT_TYPE, PN_FIELD, RB_FIELD, RK_FIELD, RT_FIELD

Text = Union[str, bytes]
# Either ``(bucket_type, bucket_name)`` or a legacy bare bucket name.
Bucket = Union[Tuple[Text, Text], Text]


@dataclass(frozen=True)
class ById:
    id: Text


@dataclass(frozen=True)
class ByReplicaKey:
    bucket: Bucket
    key: Text
    partition: Optional[int] = None

    @property
    def bucket_type(self) -> Text:
        return self.bucket[0] if isinstance(self.bucket, tuple) else DEFAULT_TYPE

    @property
    def bucket_name(self) -> Text:
        return self.bucket[1] if isinstance(self.bucket, tuple) else self.bucket


@dataclass(frozen=True)
class ByQuery:
    query: Text


DeleteIntent = Union[ById, ByReplicaKey, ByQuery]


def _text(value: Text) -> str:
    return value.decode("utf-8") if isinstance(value, bytes) else value


def escape_special_chars(value: Text) -> str:
    """Escape backslashes and double quotes for a quoted Solr term.

    Backslashes are doubled first so the ones added for quotes survive.
    """
    escaped = _text(value).replace("\\", "\\\\")
    return escaped.replace('"', '\\"')


def encode_field_query(field_name: str, value: str) -> str:
    return f'{field_name}:"{value}"'


def replica_key_query(intent: ByReplicaKey) -> str:
    """Boolean query matching every document of a replica key."""
    clauses = [
        encode_field_query(RT_FIELD, escape_special_chars(intent.bucket_type)),
        encode_field_query(RB_FIELD, escape_special_chars(intent.bucket_name)),
        encode_field_query(RK_FIELD, escape_special_chars(intent.key)),
    ]
    if intent.partition is not None:
        clauses.append(encode_field_query(PN_FIELD, escape_special_chars(str(intent.partition))))
    return " AND ".join(clauses)


def encode_delete(intent: DeleteIntent) -> Dict[str, str]:
    """Encode one intent as the value of a ``delete`` command."""
    if isinstance(intent, ById):
        # Solr names the schema's uniqueKey ``id`` in delete commands.
        return {"id": _text(intent.id)}
    if isinstance(intent, ByReplicaKey):
        return {"query": replica_key_query(intent)}
    if isinstance(intent, ByQuery):
        return {"query": _text(intent.query)}
    raise TypeError(f"Unsupported delete intent: {intent!r}")


def encode_delete_body(intents: Iterable[DeleteIntent]) -> str:
    """JSON update body with one ``delete`` command per intent, in order.

    Solr's JSON update format repeats the command name as an object key to
    send several commands at once, so the object is assembled by hand.
    Raises ``MalformedDataError`` when a value cannot be encoded, for
    example bytes that are not UTF-8.
    """
    try:
        commands = [f'"delete":{json.dumps(encode_delete(intent))}' for intent in intents]
    except ValueError as e:
        raise MalformedDataError(f"Cannot encode delete: {e}", operation="delete") from e
    return "{" + ",".join(commands) + "}"
