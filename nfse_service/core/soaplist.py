# nfse_service/core/soaplist.py
from __future__ import annotations

from dataclasses import dataclass
from types import MappingProxyType
from typing import Dict, Iterator, Mapping, Union

from .enums import Ambiente
from .exceptions import UnknownMunicipality

ABRASF_NS = "http://www.abrasf.org.br/nfse.xsd"


@dataclass(frozen=True)
class EndpointDescriptor:
    """
    Dados do webservice NFSe de um município (padrão nacional ABRASF).

    - homologacao / producao: URLs do serviço
    - version: versão do leiaute (vai no cabecalho e no atributo versao do lote)
    - msgns: namespace das mensagens (EnviarLoteRpsEnvio, ConsultarNfseEnvio...)
    - soapns: namespace do WSDL, usado no prefixo ws: e no SOAPAction
    """
    cmun: str
    municipio: str
    uf: str
    homologacao: str
    producao: str
    version: str
    msgns: str
    soapns: str


# ---------------------------------------------------------------------------
# Tabela de municípios atendidos (código IBGE -> webservice)
# ---------------------------------------------------------------------------
MUNICIPIOS: Dict[str, EndpointDescriptor] = {
    "4314902": EndpointDescriptor(
        cmun="4314902",
        municipio="Porto Alegre",
        uf="RS",
        homologacao="https://nfse-hom.procempa.com.br/bhiss-ws/nfse",
        producao="https://nfe.portoalegre.rs.gov.br/bhiss-ws/nfse",
        version="1.00",
        msgns=ABRASF_NS,
        soapns="http://ws.bhiss.pbh.gov.br",
    ),
    "3106200": EndpointDescriptor(
        cmun="3106200",
        municipio="Belo Horizonte",
        uf="MG",
        homologacao="https://bhisshomologa.pbh.gov.br/bhiss-ws/nfse",
        producao="https://bhissdigital.pbh.gov.br/bhiss-ws/nfse",
        version="1.00",
        msgns=ABRASF_NS,
        soapns="http://ws.bhiss.pbh.gov.br",
    ),
    "3304557": EndpointDescriptor(
        cmun="3304557",
        municipio="Rio de Janeiro",
        uf="RJ",
        homologacao="https://homologacao.notacarioca.rio.gov.br/WSNacional/nfse.asmx",
        producao="https://notacarioca.rio.gov.br/WSNacional/nfse.asmx",
        version="1.00",
        msgns=ABRASF_NS,
        soapns="http://notacarioca.rio.gov.br/",
    ),
}


class EndpointRegistry:
    """
    Registro imutável de municípios. Montado uma vez e repassado por
    referência para quem precisa (NFSeTools, build_identity).
    """

    def __init__(self, municipios: Mapping[str, EndpointDescriptor]):
        self._municipios = MappingProxyType(dict(municipios))

    def lookup(self, cmun: Union[str, int]) -> EndpointDescriptor:
        key = str(cmun).strip()
        try:
            return self._municipios[key]
        except KeyError:
            raise UnknownMunicipality(key) from None

    def __contains__(self, cmun: object) -> bool:
        return str(cmun).strip() in self._municipios

    def __iter__(self) -> Iterator[str]:
        return iter(self._municipios)

    def __len__(self) -> int:
        return len(self._municipios)


DEFAULT_REGISTRY = EndpointRegistry(MUNICIPIOS)


def resolve_url(descriptor: EndpointDescriptor, ambiente: Ambiente) -> str:
    """
    URL do webservice para o ambiente: homologação, a menos que seja produção.
    """
    if ambiente == Ambiente.PRODUCAO:
        return descriptor.producao
    return descriptor.homologacao
