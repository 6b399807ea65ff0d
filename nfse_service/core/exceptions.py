"""
Exceções do cliente NFSe.

Todas são terminais para a chamada que as levantou: nada é reenviado
automaticamente por esta camada.
"""
from typing import Optional


class NFSeError(Exception):
    """Exceção base para erros do cliente NFSe"""
    def __init__(self, message: str, code: Optional[str] = None):
        self.message = message
        self.code = code
        super().__init__(self.message)


class UnknownMunicipality(NFSeError, KeyError):
    """Código de município sem endpoint cadastrado"""
    def __init__(self, cmun: str):
        self.cmun = cmun
        super().__init__(f"Município sem webservice cadastrado: {cmun!r}")

    def __str__(self) -> str:
        return self.message


class InvalidConfiguration(NFSeError, ValueError):
    """Documento de configuração incompleto ou inválido"""
    pass


class MissingAnchor(NFSeError, ValueError):
    """RPS sem a tag <Servico> usada como ponto de inserção"""
    pass


class InvalidBatch(NFSeError, ValueError):
    """Lote de RPS com quantidade inválida"""
    pass


class BatchTooLarge(InvalidBatch):
    """Lote com mais RPS do que o limite permitido"""
    def __init__(self, size: int, limit: int):
        self.size = size
        self.limit = limit
        super().__init__(f"O limite é de {limit} RPS por lote enviado (recebido: {size}).")


class SigningFailed(NFSeError):
    """Falha na assinatura digital (certificado, chave ou tag de referência)"""
    pass


class MalformedXML(NFSeError, ValueError):
    """XML que não pôde ser interpretado em alguma etapa do fluxo"""
    pass


class TransportFailed(NFSeError):
    """Falha de comunicação com o webservice (conexão, TLS ou HTTP)"""
    pass
