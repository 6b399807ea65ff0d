# nfse_service/core/assinatura.py
from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Optional, Protocol, Tuple

from cryptography.hazmat.primitives.serialization import (
    Encoding,
    NoEncryption,
    PrivateFormat,
)
from cryptography.hazmat.primitives.serialization.pkcs12 import (
    load_key_and_certificates,
)

from .exceptions import NFSeError, SigningFailed
from .xml_utils import parse_xml, to_string

logger = logging.getLogger(__name__)


def _load_pfx(data: bytes, password: str) -> Tuple[bytes, bytes]:
    """
    Carrega chave privada e certificado a partir do conteúdo de um .pfx.
    Retorna (pem_key_bytes, pem_cert_bytes).
    """
    key, cert, _extra_certs = load_key_and_certificates(
        data,
        password.encode("utf-8") if password else None,
    )
    if key is None or cert is None:
        raise ValueError("Não foi possível carregar chave/certificado do PFX")

    pem_key = key.private_bytes(
        encoding=Encoding.PEM,
        format=PrivateFormat.PKCS8,
        encryption_algorithm=NoEncryption(),
    )
    pem_cert = cert.public_bytes(Encoding.PEM)
    return pem_key, pem_cert


@dataclass(frozen=True)
class Certificate:
    """
    Certificado A1 do prestador, carregado uma vez e usado (somente leitura)
    tanto na assinatura quanto no TLS.

    pfx_data/password ficam guardados para o transporte HTTPS (Pkcs12Adapter).
    """
    pem_key: bytes
    pem_cert: bytes
    pfx_data: Optional[bytes] = None
    password: str = ""

    @classmethod
    def from_pfx(cls, data: bytes, password: str) -> "Certificate":
        pem_key, pem_cert = _load_pfx(data, password)
        return cls(pem_key=pem_key, pem_cert=pem_cert, pfx_data=data, password=password)

    @classmethod
    def from_pfx_file(cls, pfx_path: str, password: str) -> "Certificate":
        return cls.from_pfx(Path(pfx_path).read_bytes(), password)


class Signer(Protocol):
    """
    Assinador XML-DSig: insere <Signature> referenciando a tag `tag`
    pelo atributo `mark` (normalmente "Id").
    """

    def sign(self, certificate: Certificate, xml: str, tag: str, mark: str) -> str:
        ...


def assinar(signer: Signer, certificate: Certificate, xml: str, tag: str, mark: str) -> str:
    """
    Assina o XML e devolve o resultado numa linha só (sem declaração e sem
    espaços de formatação), pronto para ir dentro de um CDATA.

    A releitura usa o mesmo tratamento de espaços aplicado antes da
    assinatura, então os bytes cobertos pelo digest não mudam.
    """
    try:
        signed = signer.sign(certificate, xml, tag, mark)
    except NFSeError:
        raise
    except Exception as exc:
        raise SigningFailed(f"Falha ao assinar <{tag}>: {exc}") from exc

    if not signed or not signed.strip():
        raise SigningFailed(f"Assinador não retornou XML para <{tag}>.")

    root = parse_xml(signed, origem=f"XML assinado (<{tag}>)")
    result = to_string(root)
    logger.debug("Assinado <%s> (%d bytes)", tag, len(result))
    return result
