# Author      : Tyson Limato
# Date        : 2025-7-4
# File Name   : pool_config.py
"""
Pool defaults read from environment variables.

    POOL_WORKERS      number of workers (default: available CPUs - 1)
    POOL_SCHEDULING   static | dynamic              (default: static)
    POOL_LAYOUT       contiguous | round_robin      (default: contiguous)
    POOL_ON_ERROR     fail_fast | collect           (default: fail_fast)
    POOL_BACKEND      thread | process | mpi        (default: process)
    POOL_LOG_LEVEL    logging level name            (default: WARNING)

Call ``load_env_file()`` first to pick these up from a .env file.
"""
import logging
import os
from dataclasses import dataclass, field
from typing import Mapping, Optional

from dotenv import load_dotenv

from pool_errors import InvalidConfiguration
from pool_schedule import Layout, OnError, Scheduling, check_worker_count, coerce
from workerpool import BACKENDS, WorkerPool, default_worker_count


def load_env_file(path: Optional[str] = None) -> bool:
    """Load a .env file into os.environ without overriding variables already set."""

    return load_dotenv(path, override=False)


@dataclass
class PoolConfig:
    worker_count: int = field(default_factory=default_worker_count)
    scheduling: str = "static"
    layout: str = "contiguous"
    on_error: str = "fail_fast"
    backend: str = "process"
    log_level: str = "WARNING"

    def __post_init__(self):
        self.worker_count = check_worker_count(self.worker_count)
        self.scheduling = coerce(Scheduling, self.scheduling, "scheduling policy").value
        self.layout = coerce(Layout, self.layout, "layout").value
        self.on_error = coerce(OnError, self.on_error, "error policy").value
        if self.backend not in BACKENDS:
            raise InvalidConfiguration(f"unrecognized backend {self.backend!r}")
        self.log_level = self.log_level.upper()
        if not isinstance(logging.getLevelName(self.log_level), int):
            raise InvalidConfiguration(f"unknown log level {self.log_level!r}")

    @classmethod
    def from_env(cls, environ: Optional[Mapping[str, str]] = None, **overrides):
        """
        Build a config from ``environ`` (default: os.environ).

        Keyword ``overrides`` that are not None win over the environment, which
        is how the CLI layers its flags on top.
        """
        env = os.environ if environ is None else environ
        values = {}
        raw_workers = env.get("POOL_WORKERS")
        if raw_workers:
            try:
                values["worker_count"] = int(raw_workers)
            except ValueError:
                raise InvalidConfiguration(
                    f"POOL_WORKERS must be an integer, got {raw_workers!r}"
                ) from None
        for name in ("scheduling", "layout", "on_error", "backend", "log_level"):
            raw = env.get(f"POOL_{name.upper()}")
            if raw:
                values[name] = raw.strip().lower() if name != "log_level" else raw.strip()
        values.update({k: v for k, v in overrides.items() if v is not None})
        return cls(**values)

    def make_pool(self) -> WorkerPool:
        return WorkerPool(self.worker_count, self.scheduling, layout=self.layout,
                          on_error=self.on_error, backend=self.backend)
