from __future__ import annotations

from typing import Optional, Union
from xml.sax.saxutils import escape

from lxml import etree

from .exceptions import MalformedXML


def texto(value: object) -> str:
    """
    Valor pronto para ir em tag ou atributo (Enum vira .value, &<>" escapados).
    """
    value = getattr(value, "value", value)
    return escape(str(value), {'"': "&quot;"})


def xml_tag(tag: str, value: Optional[object]) -> str:
    """
    Gera <tag>valor</tag> se tiver valor, senão retorna string vazia.
    """
    if value is None:
        return ""
    value = texto(value)
    if value == "":
        return ""
    return f"<{tag}>{value}</{tag}>"


def tag(name: str, value: Optional[object]) -> str:
    """
    Gera <name>valor</name> sempre, mesmo vazio (tags obrigatórias do leiaute).
    """
    return f"<{name}>{texto('' if value is None else value)}</{name}>"


def parse_xml(
    xml: Union[str, bytes],
    origem: str = "XML",
    remove_blank_text: bool = True,
) -> etree._Element:
    """
    Parse do XML; por padrão sem espaços "decorativos"
    (equivalente a preserveWhiteSpace=false).
    """
    if isinstance(xml, str):
        # texto já decodificado: ignora o encoding da declaração <?xml ...?>
        xml = xml.lstrip("\ufeff").encode("utf-8")
        parser = etree.XMLParser(remove_blank_text=remove_blank_text, encoding="utf-8")
    else:
        parser = etree.XMLParser(remove_blank_text=remove_blank_text)
    try:
        return etree.fromstring(xml, parser=parser)
    except (etree.XMLSyntaxError, ValueError) as exc:
        raise MalformedXML(f"{origem} inválido: {exc}") from exc


def to_string(root: etree._Element) -> str:
    """
    Serializa só o elemento (sem <?xml ...?>) e sem pretty_print.
    """
    return etree.tostring(root, encoding="unicode", pretty_print=False)


def find_local(root: etree._Element, name: str) -> Optional[etree._Element]:
    """
    Primeiro elemento (incluindo o próprio root) com o local-name informado.
    """
    found = root.xpath("descendant-or-self::*[local-name()=$name]", name=name)
    return found[0] if found else None
