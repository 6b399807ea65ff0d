# nfse_service/core/prestador.py
from __future__ import annotations

from lxml import etree

from .config import TenantIdentity
from .exceptions import MissingAnchor
from .xml_utils import find_local, parse_xml, to_string


def _q(ns, tag: str) -> str:
    """Nome qualificado no namespace do RPS (se houver)."""
    return f"{{{ns}}}{tag}" if ns else tag


def inserir_prestador(rps, identity: TenantIdentity) -> str:
    """
    Cria a tag <Prestador> e insere no XML do RPS, logo depois de <Servico>.

    Precisa acontecer ANTES da assinatura de <InfRps>, pois o Prestador faz
    parte do conteúdo assinado.

    Retorna o XML do RPS (não assinado), sem declaração.
    """
    root = parse_xml(rps.render(), origem="XML do RPS")

    servico = find_local(root, "Servico")
    if servico is None:
        raise MissingAnchor("Tag <Servico> não encontrada no XML do RPS.")

    parent = servico.getparent()
    if parent is None:
        raise MissingAnchor("Tag <Servico> não pode ser a raiz do XML do RPS.")

    # mesmo namespace do <Servico> (normalmente o default da ABRASF),
    # criado já dentro da árvore para reaproveitar a declaração existente
    ns = etree.QName(servico).namespace

    prestador = etree.SubElement(parent, _q(ns, "Prestador"))
    etree.SubElement(prestador, _q(ns, "Cnpj")).text = identity.cnpj
    etree.SubElement(prestador, _q(ns, "InscricaoMunicipal")).text = identity.im

    servico.addnext(prestador)

    return to_string(root)
