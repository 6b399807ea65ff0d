# nfse_service/nfse/rps.py
from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol, runtime_checkable


@runtime_checkable
class RpsInterface(Protocol):
    """
    Qualquer objeto capaz de renderizar o XML (não assinado) de um RPS.
    O XML precisa conter a tag <Servico>, logo após a qual o <Prestador>
    é inserido.
    """

    def render(self) -> str:
        ...


@dataclass
class RpsXml:
    """
    RPS já renderizado por fora (arquivo, outro sistema, API).
    """
    xml: str

    def render(self) -> str:
        return self.xml
