"""Default settings for node-flow-engine.

Maps to keys in config.local.yaml, which overrides them.
"""

from pathlib import Path

from platformdirs import user_cache_dir, user_data_dir

APP_NAME = "node-flow-engine"

# Platform-appropriate directories (resolved by platformdirs)
data_dir = Path(user_data_dir(APP_NAME))
cache_dir = Path(user_cache_dir(APP_NAME))

# Flow definitions (<id>.json) loaded by the service
flows_dir = data_dir / "flows"

# Server defaults
server_host = "127.0.0.1"
server_port = 9847

# Engine defaults
engine_max_depth = 10
engine_history_limit = 50
