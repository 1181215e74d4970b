import os
from dataclasses import dataclass
from functools import lru_cache
from dotenv import load_dotenv

load_dotenv()

@dataclass
class Settings:
    # signing / chain
    RPC_URL_DEFAULT: str
    PRIVATE_KEY: str  # hex 0x...

    # swapper contract used when a request does not name one
    SWAPPER_ADDRESS: str

    # alias pair: APLO is backed 1:1 by WAPLO
    ALIAS_SOURCE_TOKEN: str
    ALIAS_WRAPPED_TOKEN: str

    TOKEN_DECIMALS: int = 18

    # data roots (history document lives here)
    DATA_ROOT: str = "data"
    HISTORY_KEY: str = "swapHistory"

    # max contracts / preview clients the API keeps in memory
    REGISTRY_SIZE: int = 32

    # generic
    ENV: str = "dev"
    LOG_LEVEL: str = "INFO"


@lru_cache()
def get_settings() -> Settings:
    return Settings(
        RPC_URL_DEFAULT=os.environ.get("RPC_URL", "http://127.0.0.1:8545"),
        PRIVATE_KEY=os.environ.get("PRIVATE_KEY", ""),  # keep empty when missing
        SWAPPER_ADDRESS=os.environ.get("SWAPPER_ADDRESS", ""),
        ALIAS_SOURCE_TOKEN=os.environ.get("ALIAS_SOURCE_TOKEN", "0x0000000000000000000000000000000000001235"),
        ALIAS_WRAPPED_TOKEN=os.environ.get("ALIAS_WRAPPED_TOKEN", "0xd3F708a6aAfEDD0845928215E74a0f59cAC2D1f0"),
        TOKEN_DECIMALS=int(os.environ.get("TOKEN_DECIMALS", "18")),
        DATA_ROOT=os.environ.get("DATA_ROOT", "data"),
        HISTORY_KEY=os.environ.get("HISTORY_KEY", "swapHistory"),
        REGISTRY_SIZE=int(os.environ.get("REGISTRY_SIZE", "32")),
        ENV=os.environ.get("ENV", "dev"),
        LOG_LEVEL=os.environ.get("LOG_LEVEL", "INFO"),
    )
