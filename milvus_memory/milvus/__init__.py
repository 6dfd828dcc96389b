"""Milvus connector for the memory store interface.

Transports implement :class:`MilvusClientBase`; :class:`MilvusMemoryStore`
maps memory operations onto whichever transport it is given.
"""

from .client import FieldData, MilvusClientBase, SearchResult
from .grpc_client import MilvusGrpcClient
from .rest_client import MilvusRestClient
from .schema import IndexType
from .store import MilvusMemoryStore

__all__ = [
    "FieldData",
    "IndexType",
    "MilvusClientBase",
    "MilvusGrpcClient",
    "MilvusMemoryStore",
    "MilvusRestClient",
    "SearchResult",
]
