from __future__ import annotations

import os
from dataclasses import dataclass, field
from typing import Optional

from fastapi import Request
from sqlalchemy.engine import Engine

from .db import make_engine
from .events import EventBus
from .printing import DEFAULT_COMMAND, DEFAULT_TIMEOUT_SECONDS, PrintSink, make_print_sink


def _env_or(key: str, default: str) -> str:
    v = os.getenv(key)
    return v if v is not None else default


@dataclass(frozen=True)
class PosConfig:
    db_url: str = "sqlite+pysqlite:////tmp/cafepos.db"
    print_driver: str = "lp"
    print_command: str = DEFAULT_COMMAND
    print_timeout: float = DEFAULT_TIMEOUT_SECONDS
    default_pin: Optional[str] = None
    allowed_origins: str = ""

    @classmethod
    def from_env(cls) -> "PosConfig":
        return cls(
            db_url=_env_or("POS_DB_URL", cls.db_url),
            print_driver=_env_or("POS_PRINT_DRIVER", cls.print_driver),
            print_command=_env_or("POS_PRINT_COMMAND", cls.print_command),
            print_timeout=float(_env_or("POS_PRINT_TIMEOUT_SECONDS", str(cls.print_timeout))),
            default_pin=os.getenv("POS_DEFAULT_PIN") or None,
            allowed_origins=_env_or("ALLOWED_ORIGINS", ""),
        )


@dataclass
class PosContext:
    """Everything an operation needs: the shared engine, the printer and the event bus."""

    config: PosConfig
    engine: Engine
    printer: PrintSink
    events: EventBus = field(default_factory=EventBus)

    @classmethod
    def build(cls, config: PosConfig, printer: Optional[PrintSink] = None) -> "PosContext":
        return cls(
            config=config,
            engine=make_engine(config.db_url),
            printer=printer or make_print_sink(config.print_driver, config.print_command, config.print_timeout),
        )


def get_ctx(request: Request) -> PosContext:
    return request.app.state.pos
