# nfse_service/core/xmlsec_signer.py
from __future__ import annotations

from lxml import etree
import xmlsec

from .assinatura import Certificate
from .exceptions import SigningFailed
from .xml_utils import find_local, parse_xml

DSIG_NS = "http://www.w3.org/2000/09/xmldsig#"


def _limpar_whitespace_subarvore(elem: etree._Element) -> None:
    """
    Remove nós de texto/tail que sejam APENAS whitespace em toda a subárvore.
    Usado no template de <Signature>, que o xmlsec gera com quebras de linha.
    """
    for node in elem.iter():
        if node.text is not None and node.text.strip() == "":
            node.text = ""
        if node.tail is not None and node.tail.strip() == "":
            node.tail = ""


def _uma_linha(elem: etree._Element | None) -> None:
    if elem is None:
        return
    elem.text = "".join("".join(elem.itertext()).split())
    if elem.tail is not None and elem.tail.strip() == "":
        elem.tail = ""


class XmlsecSigner:
    """
    Assinador padrão (xmlsec): RSA-SHA1 + C14N, digest SHA1, transforms
    enveloped + C14N e KeyInfo/X509Data, como pede o padrão ABRASF.

    A <Signature> é anexada ao pai da tag assinada (ex.: <Rps> para
    <InfRps>, <EnviarLoteRpsEnvio> para <LoteRps>).
    """

    def sign(self, certificate: Certificate, xml: str, tag: str, mark: str) -> str:
        root = parse_xml(xml, origem=f"XML a assinar (<{tag}>)")

        node = find_local(root, tag)
        if node is None:
            raise SigningFailed(f"Não encontrado <{tag}> para assinar.")

        node_id = node.get(mark)
        if not node_id:
            raise SigningFailed(f"<{tag}> sem atributo {mark}")

        xmlsec.tree.add_ids(root, [mark])

        signature_node = xmlsec.template.create(
            root,
            xmlsec.Transform.C14N,
            xmlsec.Transform.RSA_SHA1,
        )
        parent = node.getparent()
        (parent if parent is not None else node).append(signature_node)

        ref = xmlsec.template.add_reference(
            signature_node,
            xmlsec.Transform.SHA1,
            uri=f"#{node_id}",
        )
        xmlsec.template.add_transform(ref, xmlsec.Transform.ENVELOPED)
        xmlsec.template.add_transform(ref, xmlsec.Transform.C14N)

        key_info = xmlsec.template.ensure_key_info(signature_node)
        xmlsec.template.add_x509_data(key_info)

        _limpar_whitespace_subarvore(signature_node)

        ctx = xmlsec.SignatureContext()
        key = xmlsec.Key.from_memory(certificate.pem_key, xmlsec.KeyFormat.PEM, None)
        key.load_cert_from_memory(certificate.pem_cert, xmlsec.KeyFormat.PEM)
        ctx.key = key

        ctx.sign(signature_node)

        # SignatureValue e X509Certificate em uma linha só, sem espaços
        _uma_linha(signature_node.find(f"{{{DSIG_NS}}}SignatureValue"))
        x509data = signature_node.find(f".//{{{DSIG_NS}}}X509Data")
        if x509data is not None:
            if x509data.text is not None and x509data.text.strip() == "":
                x509data.text = ""
            for cert_el in x509data.findall(f"{{{DSIG_NS}}}X509Certificate"):
                _uma_linha(cert_el)

        return etree.tostring(root, encoding="unicode", pretty_print=False)
