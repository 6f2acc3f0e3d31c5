import os
from pathlib import Path
from typing import Mapping, Optional

from pydantic import BaseModel

MAP_WIDTH = 32
MAP_HEIGHT = 20
TILE_BATCH_SIZE = 64
PLAYER_COUNT = 2


def _flag(value: Optional[str]) -> bool:
    return (value or "").strip().lower() in ("1", "true", "yes", "on")


class BridgeSettings(BaseModel):
    node_url: str = "http://localhost:5050"
    host: str = "0.0.0.0"
    port: int = 3000
    artifacts_dir: str = "target/dev"
    contract_name: str = "cairo_civ_CairoCiv"
    map_width: int = MAP_WIDTH
    map_height: int = MAP_HEIGHT
    tile_batch_size: int = TILE_BATCH_SIZE
    tx_poll_interval: float = 1.0
    # Public Katana seed-0 accounts; never enable against a shared network.
    allow_dev_accounts: bool = False
    audit_dir: Optional[str] = None
    log_level: str = "INFO"

    @property
    def sierra_path(self) -> Path:
        return Path(self.artifacts_dir) / f"{self.contract_name}.contract_class.json"

    @property
    def casm_path(self) -> Path:
        return Path(self.artifacts_dir) / f"{self.contract_name}.compiled_contract_class.json"

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None) -> "BridgeSettings":
        env = os.environ if environ is None else environ
        defaults = cls()
        return cls(
            node_url=env.get("KATANA_URL", defaults.node_url),
            host=env.get("HOST", defaults.host),
            port=int(env.get("PORT", defaults.port)),
            artifacts_dir=env.get("CIVBRIDGE_ARTIFACTS", defaults.artifacts_dir),
            contract_name=env.get("CIVBRIDGE_CONTRACT", defaults.contract_name),
            map_width=int(env.get("CIVBRIDGE_MAP_WIDTH", defaults.map_width)),
            map_height=int(env.get("CIVBRIDGE_MAP_HEIGHT", defaults.map_height)),
            tile_batch_size=int(env.get("CIVBRIDGE_TILE_BATCH", defaults.tile_batch_size)),
            tx_poll_interval=float(env.get("CIVBRIDGE_TX_POLL", defaults.tx_poll_interval)),
            allow_dev_accounts=_flag(env.get("CIVBRIDGE_ALLOW_DEV_ACCOUNTS")),
            audit_dir=env.get("CIVBRIDGE_AUDIT_DIR") or None,
            log_level=env.get("CIVBRIDGE_LOG_LEVEL", defaults.log_level),
        )
