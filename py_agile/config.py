from typing import NamedTuple, Tuple

__all__ = ('AgileConfig', 'basic_config', 'get_config')


class AgileConfig(NamedTuple):
    search_path: Tuple[str, ...] = ()
    precision: int = 12
    filter_level: int = 0
    isolate: bool = False


_AGILE_CONFIG = AgileConfig()


def basic_config(config: AgileConfig):
    global _AGILE_CONFIG
    _AGILE_CONFIG = config


def get_config() -> AgileConfig:
    return _AGILE_CONFIG
