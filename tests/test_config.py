from milvus_memory.config import Milvus, load_raw_config


def test_defaults(monkeypatch):
    for name in ("MILVUS_HOST", "MILVUS_PORT", "MILVUS_TRANSPORT", "MILVUS_VECTOR_SIZE",
                 "MILVUS_INDEX_TYPE", "MILVUS_NPROBE", "MILVUS_TIMEOUT"):
        monkeypatch.delenv(name, raising=False)

    cfg = Milvus()

    assert cfg.MILVUS_HOST == "127.0.0.1"
    assert cfg.MILVUS_PORT == 19530
    assert cfg.MILVUS_TRANSPORT == "grpc"
    assert cfg.MILVUS_VECTOR_SIZE == 1536
    assert cfg.MILVUS_INDEX_TYPE == "AUTOINDEX"
    assert cfg.MILVUS_NPROBE == 10
    assert cfg.MILVUS_TIMEOUT is None


def test_env_overrides_defaults(monkeypatch):
    monkeypatch.setenv("MILVUS_HOST", "milvus.internal")
    monkeypatch.setenv("MILVUS_TRANSPORT", "HTTP")
    monkeypatch.setenv("MILVUS_TIMEOUT", "2.5")

    cfg = Milvus()

    assert cfg.MILVUS_HOST == "milvus.internal"
    assert cfg.MILVUS_TRANSPORT == "http"
    assert cfg.MILVUS_TIMEOUT == 2.5


def test_toml_overrides_env(monkeypatch):
    monkeypatch.setenv("MILVUS_HOST", "from-env")
    raw = {"milvus_memory": {"milvus": {"host": "from-toml", "vector_size": 3, "index_type": "ivf_flat"}}}

    cfg = Milvus(raw)

    assert cfg.MILVUS_HOST == "from-toml"
    assert cfg.MILVUS_VECTOR_SIZE == 3
    assert cfg.MILVUS_INDEX_TYPE == "IVF_FLAT"


def test_load_raw_config_missing_file(tmp_path):
    assert load_raw_config(tmp_path / "nope.toml") == {}


def test_load_raw_config_reads_toml(tmp_path):
    path = tmp_path / "config.toml"
    path.write_text('[milvus_memory.milvus]\nport = 29530\ntransport = "http"\n', encoding="utf-8")

    cfg = Milvus(load_raw_config(path))

    assert cfg.MILVUS_PORT == 29530
    assert cfg.MILVUS_TRANSPORT == "http"


def test_load_raw_config_honours_env_path(tmp_path, monkeypatch):
    path = tmp_path / "custom.toml"
    path.write_text('[milvus_memory.milvus]\nnprobe = 32\n', encoding="utf-8")
    monkeypatch.setenv("MILVUS_MEMORY_CONFIG", str(path))

    assert Milvus(load_raw_config()).MILVUS_NPROBE == 32
