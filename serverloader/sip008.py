"""
SIP008 document model: parsing and integrity checking.

https://shadowsocks.org/doc/sip008.html

The same loader handles the static server list (ConfigType.LOCAL) and the
remotely published one (ConfigType.ONLINE); the variant decides the schema
and the ServerSource every entry gets tagged with.
"""

import json
from enum import Enum
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, ConfigDict, ValidationError, model_validator

from .balancer import ServerSource
from .errors import IntegrityError, ParseError

SIP008_VERSION = 1

SUPPORTED_METHODS = frozenset([
    'none', 'plain', 'table',
    # AEAD
    'aes-128-gcm', 'aes-256-gcm', 'chacha20-ietf-poly1305',
    'xchacha20-ietf-poly1305', 'aes-128-ccm', 'aes-256-ccm',
    'aes-128-gcm-siv', 'aes-256-gcm-siv',
    # AEAD 2022
    '2022-blake3-aes-128-gcm', '2022-blake3-aes-256-gcm',
    '2022-blake3-chacha20-poly1305', '2022-blake3-chacha8-poly1305',
    # stream
    'rc4-md5', 'aes-128-cfb', 'aes-192-cfb', 'aes-256-cfb',
    'aes-128-ctr', 'aes-192-ctr', 'aes-256-ctr',
    'camellia-128-cfb', 'camellia-192-cfb', 'camellia-256-cfb',
    'chacha20-ietf',
])


class ConfigType(str, Enum):
    LOCAL = "local"
    ONLINE = "online"

    @property
    def source(self) -> ServerSource:
        if self is ConfigType.ONLINE:
            return ServerSource.ONLINE_CONFIG
        return ServerSource.CONFIG_FILE


class ServerEntry(BaseModel):
    model_config = ConfigDict(extra='ignore', frozen=True)

    id: Optional[str] = None
    remarks: Optional[str] = None
    server: Optional[str] = None
    server_port: Optional[int] = None
    password: Optional[str] = None
    method: Optional[str] = None
    plugin: Optional[str] = None
    plugin_opts: Optional[str] = None
    source: ServerSource = ServerSource.DEFAULT

    @model_validator(mode='after')
    def _require_identity(self):
        if not self.id and not self.server:
            raise ValueError("server entry needs an 'id' or a 'server' address")
        return self

    @property
    def ident(self) -> str:
        """Stable identifier: the SIP008 id, else host:port."""
        if self.id:
            return self.id
        if self.server_port is None:
            return self.server
        return f"{self.server}:{self.server_port}"


class OnlineConfig(BaseModel):
    model_config = ConfigDict(extra='ignore')

    version: Optional[int] = None
    servers: List[ServerEntry] = []
    bytes_used: Optional[int] = None
    bytes_remaining: Optional[int] = None
    config_type: ConfigType = ConfigType.LOCAL

    def check_integrity(self) -> None:
        """Validate the document is self-consistent.

        Raises:
            IntegrityError: with every problem found, joined by "; ".
        """
        problems = []

        if self.config_type is ConfigType.ONLINE and self.version != SIP008_VERSION:
            problems.append(f"unsupported SIP008 version {self.version!r}")

        seen = set()
        for index, entry in enumerate(self.servers):
            label = entry.ident
            if label in seen:
                problems.append(f"duplicate server {label!r}")
            seen.add(label)

            if entry.server_port is not None and not 0 < entry.server_port < 65536:
                problems.append(f"server {label!r} has invalid port {entry.server_port}")
            if entry.method is not None and entry.method.lower() not in SUPPORTED_METHODS:
                problems.append(f"server {label!r} uses unsupported method {entry.method!r}")
            if entry.plugin_opts and not entry.plugin:
                problems.append(f"server {label!r} has plugin_opts without plugin")
            if entry.source is not self.config_type.source:
                problems.append(f"server #{index} is tagged {entry.source.value}")

        if problems:
            raise IntegrityError("; ".join(problems))


def load_from_mapping(data: Any, config_type: ConfigType) -> OnlineConfig:
    """Build an OnlineConfig from already decoded JSON/YAML data."""
    if not isinstance(data, dict):
        raise ParseError(f"{config_type.value} config must be an object, got {type(data).__name__}")

    if config_type is ConfigType.ONLINE:
        missing = [key for key in ('version', 'servers') if key not in data]
        if missing:
            raise ParseError(f"online config is missing {', '.join(missing)}")
        servers = data['servers']
    elif 'servers' in data:
        servers = data['servers']
    elif 'server' in data:
        # Single server written at the top level of a local config
        servers = [data]
    else:
        servers = []

    if not isinstance(servers, list):
        raise ParseError("'servers' must be a list")

    source = config_type.source
    document: Dict[str, Any] = {
        key: data[key] for key in ('version', 'bytes_used', 'bytes_remaining') if key in data
    }
    document['servers'] = [
        {**entry, 'source': source} if isinstance(entry, dict) else entry
        for entry in servers
    ]
    document['config_type'] = config_type

    try:
        return OnlineConfig.model_validate(document)
    except ValidationError as e:
        raise ParseError(f"invalid {config_type.value} config: {e}") from e


def load_from_str(text: str, config_type: ConfigType) -> OnlineConfig:
    """Parse JSON text into an OnlineConfig of the given variant."""
    try:
        data = json.loads(text)
    except json.JSONDecodeError as e:
        raise ParseError(f"invalid JSON: {e}") from e
    except RecursionError as e:
        raise ParseError("invalid JSON: nested too deeply") from e
    return load_from_mapping(data, config_type)
