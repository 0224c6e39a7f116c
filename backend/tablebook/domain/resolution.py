from __future__ import annotations

from dataclasses import dataclass
from enum import StrEnum
from typing import Generic, Optional, TypeVar

T = TypeVar("T")


class SettingSource(StrEnum):
    DATABASE = "database"
    ENVIRONMENT = "environment"
    DEFAULT = "default"


@dataclass(frozen=True)
class Resolved(Generic[T]):
    value: T
    source: SettingSource


def resolve_setting(stored: Optional[T], environment: Optional[T], default: T) -> Resolved[T]:
    """
    Pick the first configured tier: admin settings store, then environment, then the
    hardcoded default. The returned source tells callers which tier supplied the value.
    """
    if stored is not None:
        return Resolved(value=stored, source=SettingSource.DATABASE)
    if environment is not None:
        return Resolved(value=environment, source=SettingSource.ENVIRONMENT)
    return Resolved(value=default, source=SettingSource.DEFAULT)
