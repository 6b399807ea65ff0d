# nfse_service/core/enums.py
from enum import Enum


class Ambiente(str, Enum):
    HOMOLOGACAO = "2"
    PRODUCAO = "1"


class CodigoCancelamento(str, Enum):
    """
    Códigos de cancelamento aceitos em <CodigoCancelamento>.
    """
    ERRO_EMISSAO = "1"
    SERVICO_NAO_CONCLUIDO = "2"
