import lxml.etree as etree
import pytest

from nfse_service.core.enums import Ambiente
from nfse_service.core.envio import (
    despachar,
    extrair_conteudo,
    montar_cabecalho,
    montar_envelope,
    montar_headers,
)
from nfse_service.core.exceptions import MalformedXML, TransportFailed
from nfse_service.core.soaplist import DEFAULT_REGISTRY

from conftest import FakeTransport, cabec_msg, dados_msg

BH = DEFAULT_REGISTRY.lookup("3106200")
RIO = DEFAULT_REGISTRY.lookup("3304557")

SIGNED = (
    '<GerarNfseEnvio xmlns="http://www.abrasf.org.br/nfse.xsd">'
    '<LoteRps Id="1" versao="1.00"><Discriminacao>A &amp; B "aspas"</Discriminacao></LoteRps>'
    "</GerarNfseEnvio>"
)


def test_envelope_structure():
    envelope = montar_envelope(SIGNED, "GerarNfse", BH)
    root = etree.fromstring(envelope.encode("utf-8"))

    assert root.tag == "{http://schemas.xmlsoap.org/soap/envelope/}Envelope"
    assert root.nsmap["ws"] == BH.soapns
    header, body = list(root)
    assert etree.QName(header).localname == "Header"
    assert len(header) == 0
    request = body[0]
    assert request.tag == f"{{{BH.soapns}}}GerarNfseRequest"
    assert [c.tag for c in request] == ["nfseCabecMsg", "nfseDadosMsg"]
    assert "<ws:GerarNfseRequest>" in envelope


def test_payloads_travel_as_cdata_byte_for_byte():
    envelope = montar_envelope(SIGNED, "GerarNfse", BH)

    assert f"<nfseDadosMsg><![CDATA[{SIGNED}]]></nfseDadosMsg>" in envelope
    assert dados_msg(envelope) == SIGNED
    assert cabec_msg(envelope) == montar_cabecalho(BH.version)


def test_cabecalho_carries_version():
    assert montar_cabecalho("1.00") == (
        '<cabecalho xmlns="http://www.abrasf.org.br/nfse.xsd" versao="1.00">'
        "<versaoDados>1.00</versaoDados></cabecalho>"
    )


def test_envelope_is_single_line():
    envelope = montar_envelope("<a/>", "ConsultarNfse", RIO)
    assert "\n" not in envelope
    assert not envelope.startswith("<?xml")
    assert 'xmlns:ws="http://notacarioca.rio.gov.br/"' in envelope


def test_message_with_cdata_terminator_is_rejected():
    with pytest.raises(MalformedXML):
        montar_envelope("<a><![CDATA[x]]></a>", "GerarNfse", BH)


def test_headers():
    request = "<x>ç</x>"
    headers = montar_headers("http://ws.bhiss.pbh.gov.br/GerarNfse", request)
    assert headers == {
        "Content-Type": "text/xml;charset=UTF-8",
        "SOAPAction": '"http://ws.bhiss.pbh.gov.br/GerarNfse"',
        "Content-length": "9",
    }


@pytest.mark.parametrize(
    "ambiente, url",
    [(Ambiente.HOMOLOGACAO, BH.homologacao), (Ambiente.PRODUCAO, BH.producao)],
)
def test_despachar_calls_transport(ambiente, url):
    transport = FakeTransport(response="<resp/>")
    envelope = montar_envelope("<a/>", "ConsultarNfse", BH)

    assert despachar(envelope, "ConsultarNfse", BH, ambiente, transport) == "<resp/>"

    call = transport.calls[0]
    assert call["operation"] == "ConsultarNfse"
    assert call["url"] == url
    assert call["action"] == "http://ws.bhiss.pbh.gov.br/ConsultarNfse"
    assert call["request"] == envelope
    assert call["headers"]["Content-length"] == str(len(envelope.encode("utf-8")))


def test_despachar_wraps_transport_errors():
    transport = FakeTransport(fail=ConnectionError("TLS handshake"))
    with pytest.raises(TransportFailed, match="TLS handshake") as exc:
        despachar("<e/>", "GerarNfse", BH, Ambiente.HOMOLOGACAO, transport)
    assert isinstance(exc.value.__cause__, ConnectionError)
    assert len(transport.calls) == 1


def test_extrair_conteudo_from_cdata_output():
    inner = '<ConsultarNfseResposta xmlns="http://www.abrasf.org.br/nfse.xsd"><ListaNfse/></ConsultarNfseResposta>'
    response = (
        '<?xml version="1.0" encoding="UTF-8"?>'
        '<S:Envelope xmlns:S="http://schemas.xmlsoap.org/soap/envelope/"><S:Body>'
        '<ns2:ConsultarNfseResponse xmlns:ns2="http://ws.bhiss.pbh.gov.br">'
        f"<outputXML><![CDATA[{inner}]]></outputXML>"
        "</ns2:ConsultarNfseResponse></S:Body></S:Envelope>"
    )
    assert extrair_conteudo(response) == inner


def test_extrair_conteudo_from_escaped_output():
    response = (
        "<Envelope><Body><Resp><outputXML>&lt;Resposta&gt;ok&lt;/Resposta&gt;"
        "</outputXML></Resp></Body></Envelope>"
    )
    assert extrair_conteudo(response) == "<Resposta>ok</Resposta>"


@pytest.mark.parametrize("text", ["T", "  espaço  ", ""])
def test_extrair_conteudo_returns_exact_text(text):
    response = f"<Envelope><Body><ns:outputXML xmlns:ns='urn:x'>{text}</ns:outputXML></Body></Envelope>"
    assert extrair_conteudo(response) == text


@pytest.mark.parametrize(
    "response",
    [
        '<soap:Envelope xmlns:soap="http://schemas.xmlsoap.org/soap/envelope/"><soap:Body>'
        "<soap:Fault><faultcode>soap:Server</faultcode><faultstring>erro</faultstring>"
        "</soap:Fault></soap:Body></soap:Envelope>",
        "<html><body>502 Bad Gateway</body></html>",
        "não é xml",
        "",
    ],
)
def test_extrair_conteudo_passthrough(response):
    assert extrair_conteudo(response) == response


def test_extrair_conteudo_ignores_declared_encoding_of_text():
    response = (
        '<?xml version="1.0" encoding="ISO-8859-1"?>'
        "<Envelope><Body><outputXML>Não</outputXML></Body></Envelope>"
    )
    assert extrair_conteudo(response) == "Não"
