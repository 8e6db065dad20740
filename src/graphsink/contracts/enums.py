"""Strategy kinds, policies and operation codes used across subsystem boundaries."""

from enum import StrEnum


class SinkStrategy(StrEnum):
    """Transformation algorithm bound to a topic.

    Values are the names used in configuration and in the CLI output.
    """

    CDC_SCHEMA = "cdc-schema"
    CDC_SOURCE_ID = "cdc-source-id"
    CYPHER = "cypher"
    CUD = "cud"
    NODE_PATTERN = "node-pattern"
    RELATIONSHIP_PATTERN = "relationship-pattern"


class ErrorPolicy(StrEnum):
    """What a handler does with a message it cannot convert.

    FAIL: Raise out of handle(); the caller decides retry/redelivery
    SKIP: Exclude the message and report it to the error reporter
    """

    FAIL = "fail"
    SKIP = "skip"


class CdcOperation(StrEnum):
    """Mutation recorded by a change event."""

    CREATE = "c"
    UPDATE = "u"
    DELETE = "d"


class CudOperation(StrEnum):
    """Operation requested by a CUD descriptor."""

    CREATE = "create"
    MERGE = "merge"
    UPDATE = "update"
    DELETE = "delete"


class CudLookup(StrEnum):
    """How a relationship endpoint is located by a CUD descriptor."""

    MATCH = "match"
    MERGE = "merge"
