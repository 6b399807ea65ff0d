# nfse_service/core/envio.py
from __future__ import annotations

import logging
from typing import Dict

from lxml import etree

from .enums import Ambiente
from .exceptions import MalformedXML, TransportFailed
from .soaplist import ABRASF_NS, EndpointDescriptor, resolve_url
from .soap_client import Transport
from .xml_utils import find_local, parse_xml, to_string

logger = logging.getLogger(__name__)

SOAPENV_NS = "http://schemas.xmlsoap.org/soap/envelope/"


def montar_cabecalho(versao: str) -> str:
    return (
        f'<cabecalho xmlns="{ABRASF_NS}" versao="{versao}">'
        f"<versaoDados>{versao}</versaoDados>"
        f"</cabecalho>"
    )


def montar_envelope(message: str, operation: str, descriptor: EndpointDescriptor) -> str:
    """
    Monta o envelope SOAP 1.1:

    <soapenv:Envelope xmlns:soapenv="..." xmlns:ws="{soapns}">
      <soapenv:Header/>
      <soapenv:Body>
        <ws:{operation}Request>
          <nfseCabecMsg><![CDATA[<cabecalho .../>]]></nfseCabecMsg>
          <nfseDadosMsg><![CDATA[{message}]]></nfseDadosMsg>
        </ws:{operation}Request>
      </soapenv:Body>
    </soapenv:Envelope>

    A mensagem vai como CDATA, intacta: já está assinada e não pode ser
    reescapada nem reformatada.
    """
    env = (
        f'<soapenv:Envelope xmlns:soapenv="{SOAPENV_NS}" xmlns:ws="{descriptor.soapns}">'
        "<soapenv:Header/>"
        "<soapenv:Body>"
        f"<ws:{operation}Request>"
        "<nfseCabecMsg></nfseCabecMsg>"
        "<nfseDadosMsg></nfseDadosMsg>"
        f"</ws:{operation}Request>"
        "</soapenv:Body>"
        "</soapenv:Envelope>"
    )
    root = parse_xml(env, origem="Envelope SOAP")

    try:
        find_local(root, "nfseCabecMsg").text = etree.CDATA(montar_cabecalho(descriptor.version))
        find_local(root, "nfseDadosMsg").text = etree.CDATA(message)
    except ValueError as exc:
        # lxml recusa CDATA contendo "]]>"
        raise MalformedXML(f"Mensagem não pode ser embutida em CDATA: {exc}") from exc

    return to_string(root)


def montar_headers(action: str, request: str) -> Dict[str, str]:
    return {
        "Content-Type": "text/xml;charset=UTF-8",
        "SOAPAction": f'"{action}"',
        "Content-length": str(len(request.encode("utf-8"))),
    }


def despachar(
    envelope: str,
    operation: str,
    descriptor: EndpointDescriptor,
    ambiente: Ambiente,
    transport: Transport,
) -> str:
    """
    Envia o envelope ao webservice e devolve o corpo cru da resposta.
    Qualquer falha do transporte vira TransportFailed (sem novas tentativas).
    """
    url = resolve_url(descriptor, ambiente)
    action = f"{descriptor.soapns}/{operation}"
    headers = montar_headers(action, envelope)

    logger.debug("Enviando %s para %s (SOAPAction %s, %s bytes)",
                 operation, url, action, headers["Content-length"])
    try:
        response = transport.send(operation, url, action, envelope, headers)
    except Exception as exc:
        raise TransportFailed(f"Falha no envio de {operation} para {url}: {exc}") from exc

    response = "" if response is None else str(response)
    logger.debug("Resposta de %s: %d bytes", operation, len(response))
    return response


def extrair_conteudo(response: str) -> str:
    """
    Extrai o XML de retorno de dentro de <outputXML>.
    Se não encontrar (Fault, corpo fora do padrão, XML inválido), devolve a
    resposta inteira para o chamador interpretar.
    """
    try:
        root = parse_xml(response, origem="Resposta SOAP", remove_blank_text=False)
    except MalformedXML:
        return response

    output = find_local(root, "outputXML")
    if output is None:
        return response
    return "".join(output.itertext())
