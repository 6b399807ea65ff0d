from __future__ import annotations

from typing import Dict, List, Optional

import lxml.etree as etree
import pytest

from nfse_service.core.assinatura import Certificate
from nfse_service.nfse import NFSeTools, RpsXml

ABRASF_NS = "http://www.abrasf.org.br/nfse.xsd"
DSIG_NS = "http://www.w3.org/2000/09/xmldsig#"

CONFIG = {
    "cmun": "3106200",
    "cnpj": "99999999000191",
    "im": "8888888",
    "tpamb": 2,
}

RPS_XML = (
    f'<Rps xmlns="{ABRASF_NS}">'
    '<InfRps Id="rps{numero}">'
    "<IdentificacaoRps><Numero>{numero}</Numero><Serie>A</Serie><Tipo>1</Tipo></IdentificacaoRps>"
    "<DataEmissao>2024-01-15T10:00:00</DataEmissao>"
    "<NaturezaOperacao>1</NaturezaOperacao>"
    "<Status>1</Status>"
    "<Servico>"
    "<Valores><ValorServicos>100.00</ValorServicos></Valores>"
    "<ItemListaServico>11.01</ItemListaServico>"
    "<Discriminacao>Servico de teste</Discriminacao>"
    "<CodigoMunicipio>3106200</CodigoMunicipio>"
    "</Servico>"
    "<Tomador><RazaoSocial>Cliente</RazaoSocial></Tomador>"
    "</InfRps>"
    "</Rps>"
)


def make_rps(numero: int = 1) -> RpsXml:
    return RpsXml(RPS_XML.format(numero=numero))


def localname(el: etree._Element) -> str:
    return etree.QName(el).localname


def dados_msg(envelope: str) -> str:
    """Texto (CDATA) de <nfseDadosMsg> de um envelope enviado."""
    root = etree.fromstring(envelope.encode("utf-8"))
    return root.xpath('string(//*[local-name()="nfseDadosMsg"])')


def cabec_msg(envelope: str) -> str:
    root = etree.fromstring(envelope.encode("utf-8"))
    return root.xpath('string(//*[local-name()="nfseCabecMsg"])')


class FakeSigner:
    """Anexa uma <Signature> falsa ao pai da tag, como o assinador real."""

    def __init__(self, fail: Optional[Exception] = None, output: Optional[str] = None):
        self.calls: List[tuple] = []
        self.fail = fail
        self.output = output

    def sign(self, certificate, xml, tag, mark):
        self.calls.append((tag, mark, xml))
        if self.fail is not None:
            raise self.fail
        if self.output is not None:
            return self.output

        root = etree.fromstring(xml.encode("utf-8"))
        node = root.xpath("descendant-or-self::*[local-name()=$t]", t=tag)[0]
        parent = node.getparent()
        sig = etree.SubElement(
            parent if parent is not None else node,
            f"{{{DSIG_NS}}}Signature",
            nsmap={None: DSIG_NS},
        )
        etree.SubElement(sig, f"{{{DSIG_NS}}}Reference").set("URI", "#" + node.get(mark))
        return '<?xml version="1.0" encoding="UTF-8"?>\n' + etree.tostring(
            root, encoding="unicode"
        )


class FakeTransport:
    def __init__(self, response: str = "<ok/>", fail: Optional[Exception] = None):
        self.response = response
        self.fail = fail
        self.calls: List[Dict] = []

    def send(self, operation, url, action, request, headers):
        self.calls.append(
            {
                "operation": operation,
                "url": url,
                "action": action,
                "request": request,
                "headers": dict(headers),
            }
        )
        if self.fail is not None:
            raise self.fail
        return self.response


@pytest.fixture
def certificate() -> Certificate:
    return Certificate(pem_key=b"", pem_cert=b"")


@pytest.fixture
def signer() -> FakeSigner:
    return FakeSigner()


@pytest.fixture
def transport() -> FakeTransport:
    return FakeTransport()


@pytest.fixture
def tools(certificate, signer, transport) -> NFSeTools:
    return NFSeTools(dict(CONFIG), certificate, signer=signer, soap=transport)
