# nfse_service/core/soap_client.py

from __future__ import annotations

import logging
from typing import Mapping, Optional, Protocol

import requests
from requests_pkcs12 import Pkcs12Adapter

from .assinatura import Certificate

logger = logging.getLogger(__name__)


class Transport(Protocol):
    """
    Transporte SOAP: recebe o envelope pronto e devolve o corpo da resposta.
    Timeout, TLS e eventuais novas tentativas são responsabilidade dele.
    """

    def send(
        self,
        operation: str,
        url: str,
        action: str,
        request: str,
        headers: Mapping[str, str],
    ) -> str:
        ...


class SoapClient:
    """
    Cliente SOAP com certificado digital A1 (PFX) no TLS.
    - Envia o envelope para o webservice NFSe do município
    """

    def __init__(
        self,
        certificate: Certificate,
        timeout: int = 30,
        verify: bool = True,
    ):
        self.certificate = certificate
        self.timeout = timeout
        self.verify = verify
        self._session: Optional[requests.Session] = None

    def _get_session(self) -> requests.Session:
        """
        Cria (uma vez) a sessão HTTPS configurada com o PFX.
        """
        if self._session is None:
            if not self.certificate.pfx_data:
                raise ValueError("Certificado sem conteúdo PFX para o TLS.")
            session = requests.Session()
            session.mount("https://", Pkcs12Adapter(
                pkcs12_data=self.certificate.pfx_data,
                pkcs12_password=self.certificate.password,
            ))
            self._session = session
        return self._session

    def send(
        self,
        operation: str,
        url: str,
        action: str,
        request: str,
        headers: Mapping[str, str],
    ) -> str:
        session = self._get_session()

        logger.debug("POST %s (%s)", url, operation)
        response = session.post(
            url=url,
            data=request.encode("utf-8"),
            headers=dict(headers),
            timeout=self.timeout,
            verify=self.verify,
        )

        # erro HTTP?
        response.raise_for_status()

        return response.text
