"""Connector configuration"""

import logging
from dotenv import load_dotenv

from .loader import load_raw_config
from .milvus import Milvus

load_dotenv()

LOG_FORMAT = "[%(asctime)s] [%(levelname)s] [%(name)s]: %(message)s"
DATE_FORMAT = "%Y-%m-%d %H:%M:%S"

logging.basicConfig(format=LOG_FORMAT, datefmt=DATE_FORMAT, level=logging.INFO)
logging.getLogger("aiohttp").setLevel(logging.WARNING)

_RAW_CONFIG = load_raw_config()

milvus = Milvus(_RAW_CONFIG)


__all__ = ["milvus", "Milvus", "load_raw_config"]
