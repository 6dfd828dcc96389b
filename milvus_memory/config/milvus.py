import os


def _optional_float(raw) -> float | None:
    if raw is None or str(raw).strip() == "":
        return None
    return float(raw)


class Milvus:
    def __init__(self, config: dict | None = None) -> None:
        milvus_cfg = (config or {}).get("milvus_memory", {}).get("milvus", {})
        self.MILVUS_HOST: str = str(milvus_cfg.get("host", os.getenv("MILVUS_HOST", "127.0.0.1")))
        self.MILVUS_PORT: int = int(milvus_cfg.get("port", os.getenv("MILVUS_PORT", "19530")))
        self.MILVUS_USER: str = str(milvus_cfg.get("user", os.getenv("MILVUS_USER", "root")))
        self.MILVUS_PASSWORD: str = str(milvus_cfg.get("password", os.getenv("MILVUS_PASSWORD", "milvus")))

        # "grpc" talks through pymilvus, "http" through the RESTful v2 API
        self.MILVUS_TRANSPORT: str = str(milvus_cfg.get("transport", os.getenv("MILVUS_TRANSPORT", "grpc"))).lower()

        # Fixed per store; every inserted vector must match it
        self.MILVUS_VECTOR_SIZE: int = int(milvus_cfg.get("vector_size", os.getenv("MILVUS_VECTOR_SIZE", "1536")))

        # AUTOINDEX for Zilliz Cloud and Milvus >= 2.2.9; IVF_* types also use nlist
        self.MILVUS_INDEX_TYPE: str = str(milvus_cfg.get("index_type", os.getenv("MILVUS_INDEX_TYPE", "AUTOINDEX"))).upper()
        self.MILVUS_NLIST: int = int(milvus_cfg.get("nlist", os.getenv("MILVUS_NLIST", "1024")))

        # Search-time parameter: how many clusters to probe when querying.
        self.MILVUS_NPROBE: int = int(milvus_cfg.get("nprobe", os.getenv("MILVUS_NPROBE", "10")))
        self.MILVUS_CONSISTENCY: str = str(
            milvus_cfg.get("consistency_level", os.getenv("MILVUS_CONSISTENCY", "Strong"))
        )

        # Maximum number of ids in a single "id in [...]" expression.
        self.MILVUS_DELETE_CHUNK: int = int(milvus_cfg.get("delete_chunk", os.getenv("MILVUS_DELETE_CHUNK", "800")))

        # Per-request timeout in seconds, unset means the transport default
        self.MILVUS_TIMEOUT: float | None = _optional_float(milvus_cfg.get("timeout", os.getenv("MILVUS_TIMEOUT")))
