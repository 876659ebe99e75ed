import os
from dataclasses import dataclass, field


class StartupError(Exception):
    pass


@dataclass(frozen=True)
class ServerConfig:
    host: str = ""
    port: int = 8000
    root: str = field(default_factory=os.getcwd)
    workers: int = 4
    queue_size: int = 1000
    backlog: int = 128
    recv_timeout: float = 2.0
    accept_timeout: float = 1.0
    max_header_bytes: int = 65536
    chunk_size: int = 64 * 1024
    debug: bool = False


def resolve_root(path: str) -> str:
    try:
        root = os.path.abspath(path)
    except (OSError, ValueError) as e:
        raise StartupError(f"cannot resolve {path!r}: {e}") from e
    if not os.path.exists(root):
        raise StartupError(f"{root}: no such directory")
    if not os.path.isdir(root):
        raise StartupError(f"{root}: not a directory")
    return root
