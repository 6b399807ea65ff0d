# nfse_service/nfse/tools.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import List, Optional, Sequence, Union

from ..core.assinatura import Certificate, Signer, assinar
from ..core.config import ConfigDocument, build_identity
from ..core.enums import CodigoCancelamento
from ..core.envio import despachar, extrair_conteudo, montar_envelope
from ..core.exceptions import BatchTooLarge, InvalidBatch
from ..core.prestador import inserir_prestador
from ..core.soap_client import SoapClient, Transport
from ..core.soaplist import DEFAULT_REGISTRY, EndpointRegistry
from ..core.xml_utils import tag, texto, xml_tag
from .rps import RpsInterface

logger = logging.getLogger(__name__)

MAX_RPS_POR_LOTE = 50


@dataclass
class LoteRps:
    """
    Lote de envio: de 1 a 50 RPS, na ordem em que serão enviados.
    """
    numero: str
    rps: Sequence[RpsInterface]

    def __post_init__(self) -> None:
        self.rps = list(self.rps)
        if len(self.rps) > MAX_RPS_POR_LOTE:
            raise BatchTooLarge(len(self.rps), MAX_RPS_POR_LOTE)
        if not self.rps:
            raise InvalidBatch("O lote deve conter ao menos um RPS.")

    def __len__(self) -> int:
        return len(self.rps)


class NFSeTools:
    """
    Comunicação com os webservices NFSe do padrão nacional (ABRASF).

    - config: JSON/dict com cmun, cnpj, im, tpamb
    - certificate: certificado A1 usado na assinatura e no TLS
    - signer / soap: assinador e transporte (padrão: xmlsec e SoapClient)

    Cada chamada é independente; só `last_request` guarda o último envelope
    enviado. Não compartilhe a mesma instância entre threads.
    """

    def __init__(
        self,
        config: ConfigDocument,
        certificate: Certificate,
        *,
        signer: Optional[Signer] = None,
        soap: Optional[Transport] = None,
        registry: Optional[EndpointRegistry] = None,
    ):
        registry = registry if registry is not None else DEFAULT_REGISTRY
        self.identity = build_identity(config, registry)
        self.wsobj = registry.lookup(self.identity.cmun)
        self.certificate = certificate
        self.environment = self.identity.ambiente
        self.prestador = self.identity.prestador
        self.last_request: Optional[str] = None

        if signer is None:
            from ..core.xmlsec_signer import XmlsecSigner
            signer = XmlsecSigner()
        self.signer = signer
        self.soap = soap

    def load_soap(self, soap: Transport) -> None:
        """Injeta o transporte SOAP."""
        self.soap = soap

    # ------------------------------------------------------------------
    # Blocos comuns
    # ------------------------------------------------------------------

    def sign(self, content: str, tagname: str, mark: str) -> str:
        return assinar(self.signer, self.certificate, content, tagname, mark)

    def send(self, message: str, operation: str) -> str:
        """
        Envelopa, envia e extrai o XML de retorno de <outputXML>.
        """
        request = montar_envelope(message, operation, self.wsobj)
        self.last_request = request

        if self.soap is None:
            self.soap = SoapClient(self.certificate)

        response = despachar(request, operation, self.wsobj, self.environment, self.soap)
        return extrair_conteudo(response)

    def _montar_lote(self, envio: str, lote: str, rps_assinados: List[str]) -> str:
        """
        <{envio} xmlns=msgns><LoteRps Id versao>...<ListaRps/></LoteRps></{envio}>
        """
        numero = texto(lote)
        return (
            f'<{envio} xmlns="{self.wsobj.msgns}">'
            f'<LoteRps Id="{numero}" versao="{self.wsobj.version}">'
            f"<NumeroLote>{numero}</NumeroLote>"
            + tag("Cnpj", self.identity.cnpj)
            + tag("InscricaoMunicipal", self.identity.im)
            + f"<QuantidadeRps>{len(rps_assinados)}</QuantidadeRps>"
            "<ListaRps>"
            + "".join(rps_assinados)
            + "</ListaRps>"
            "</LoteRps>"
            f"</{envio}>"
        )

    def _assinar_rps(self, rps: RpsInterface) -> str:
        xml = inserir_prestador(rps, self.identity)
        return self.sign(xml, "InfRps", "Id")

    # ------------------------------------------------------------------
    # Operações
    # ------------------------------------------------------------------

    def cancelar_nfse(
        self,
        id_pedido: str,
        numero: Union[int, str],
        codigo: Union[CodigoCancelamento, int, str] = CodigoCancelamento.ERRO_EMISSAO,
    ) -> str:
        """
        Solicita o cancelamento de NFSe (SÍNCRONO).
        """
        operation = "CancelarNfse"
        msgns = self.wsobj.msgns
        message = (
            f'<CancelarNfseEnvio xmlns="{msgns}">'
            f'<Pedido xmlns="{msgns}">'
            f'<InfPedidoCancelamento Id="{texto(id_pedido)}">'
            "<IdentificacaoNfse>"
            + tag("Numero", numero)
            + tag("Cnpj", self.identity.cnpj)
            + tag("InscricaoMunicipal", self.identity.im)
            + tag("CodigoMunicipio", self.identity.cmun)
            + "</IdentificacaoNfse>"
            + tag("CodigoCancelamento", codigo)
            + "</InfPedidoCancelamento>"
            "</Pedido>"
            "</CancelarNfseEnvio>"
        )
        content = self.sign(message, "InfPedidoCancelamento", "Id")
        return self.send(content, operation)

    def consultar_lote_rps(self, protocolo: str) -> str:
        """
        Consulta o lote enviado com recepcionar_lote_rps() (SÍNCRONO).
        Complemento do envio assíncrono: o envio devolve o protocolo, e o
        resultado do processamento é obtido aqui.
        """
        operation = "ConsultarLoteRps"
        content = (
            f'<ConsultarLoteRpsEnvio xmlns="{self.wsobj.msgns}">'
            + self.prestador
            + tag("Protocolo", protocolo)
            + "</ConsultarLoteRpsEnvio>"
        )
        return self.send(content, operation)

    def consultar_nfse(
        self,
        dini: str,
        dfim: str,
        tomador_cnpj: Optional[str] = None,
        tomador_cpf: Optional[str] = None,
        tomador_im: Optional[str] = None,
    ) -> str:
        """
        Consulta NFSe emitidas em um período e, opcionalmente, por tomador
        (SÍNCRONO). Se CNPJ e CPF vierem juntos, vale o CNPJ.
        """
        operation = "ConsultarNfse"
        content = (
            f'<ConsultarNfseEnvio xmlns="{self.wsobj.msgns}">'
            + self.prestador
            + "<PeriodoEmissao>"
            + tag("DataInicial", dini)
            + tag("DataFinal", dfim)
            + "</PeriodoEmissao>"
        )

        if tomador_cnpj or tomador_cpf:
            content += "<Tomador><CpfCnpj>"
            if tomador_cnpj:
                content += tag("Cnpj", tomador_cnpj)
            else:
                content += tag("Cpf", tomador_cpf)
            content += "</CpfCnpj>"
            content += xml_tag("InscricaoMunicipal", tomador_im)
            content += "</Tomador>"

        content += "</ConsultarNfseEnvio>"
        return self.send(content, operation)

    def consultar_nfse_por_faixa(
        self,
        nini: Union[int, str],
        nfim: Union[int, str],
        pagina: Union[int, str] = 1,
    ) -> str:
        """
        Consulta NFSe emitidas por faixa de números (SÍNCRONO).
        """
        operation = "ConsultarNfseFaixa"
        content = (
            f'<ConsultarNfseFaixaEnvio xmlns="{self.wsobj.msgns}">'
            + self.prestador
            + "<Faixa>"
            + tag("NumeroNfseInicial", nini)
            + tag("NumeroNfseFinal", nfim)
            + "</Faixa>"
            + tag("Pagina", pagina)
            + "</ConsultarNfseFaixaEnvio>"
        )
        return self.send(content, operation)

    def consultar_nfse_por_rps(
        self,
        numero: Union[int, str],
        serie: str,
        tipo: Union[int, str],
    ) -> str:
        """
        Consulta NFSe pela identificação do RPS (SÍNCRONO).
        """
        operation = "ConsultarNfseRps"
        content = (
            f'<ConsultarNfseRpsEnvio xmlns="{self.wsobj.msgns}">'
            "<IdentificacaoRps>"
            + tag("Numero", numero)
            + tag("Serie", serie)
            + tag("Tipo", tipo)
            + "</IdentificacaoRps>"
            + self.prestador
            + "</ConsultarNfseRpsEnvio>"
        )
        return self.send(content, operation)

    def recepcionar_lote_rps(self, arps: Sequence[RpsInterface], lote: str) -> str:
        """
        Envia LOTE de 1 a 50 RPS para emissão de NFSe (ASSÍNCRONO).
        A resposta traz o protocolo para consultar_lote_rps().
        """
        operation = "EnviarLoteRps"
        lote_rps = LoteRps(numero=lote, rps=arps)

        assinados = [self._assinar_rps(rps) for rps in lote_rps.rps]
        logger.debug("Lote %s: %d RPS assinados", lote, len(assinados))

        contentmsg = self._montar_lote("EnviarLoteRpsEnvio", lote, assinados)
        content = self.sign(contentmsg, "LoteRps", "Id")
        return self.send(content, operation)

    def gerar_nfse(self, rps: RpsInterface, lote: str) -> str:
        """
        Solicita a emissão de uma NFSe de forma SÍNCRONA.
        """
        operation = "GerarNfse"
        xmlsigned = self._assinar_rps(rps)

        contentmsg = self._montar_lote("GerarNfseEnvio", lote, [xmlsigned])
        content = self.sign(contentmsg, "LoteRps", "Id")
        return self.send(content, operation)
