from .rps import RpsInterface, RpsXml
from .tools import LoteRps, NFSeTools, MAX_RPS_POR_LOTE

__all__ = [
    "RpsInterface",
    "RpsXml",
    "LoteRps",
    "NFSeTools",
    "MAX_RPS_POR_LOTE",
]
