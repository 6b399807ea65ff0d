# nfse_service/core/config.py
from __future__ import annotations

import json
from dataclasses import dataclass, field
from typing import Any, Mapping, Union

from pydantic import BaseModel, ValidationError, field_validator

from .enums import Ambiente
from .exceptions import InvalidConfiguration
from .soaplist import DEFAULT_REGISTRY, EndpointRegistry
from .xml_utils import xml_tag


class NFSeConfig(BaseModel):
    """
    Documento de configuração do prestador.

    - cmun: código IBGE do município
    - cnpj: CNPJ do prestador
    - im: inscrição municipal
    - tpamb: 1 = produção, qualquer outro valor = homologação
    """
    cmun: str
    cnpj: str
    im: str
    tpamb: Union[int, str] = 2

    @field_validator("cmun", "cnpj", "im", mode="before")
    @classmethod
    def _como_texto(cls, value: Any) -> Any:
        if isinstance(value, int) and not isinstance(value, bool):
            return str(value)
        return value

    @field_validator("cmun", "cnpj", "im")
    @classmethod
    def _obrigatorio(cls, value: str) -> str:
        value = value.strip()
        if not value:
            raise ValueError("campo obrigatório vazio")
        return value

    @property
    def ambiente(self) -> Ambiente:
        if str(self.tpamb).strip() == "1":
            return Ambiente.PRODUCAO
        return Ambiente.HOMOLOGACAO


@dataclass(frozen=True)
class TenantIdentity:
    cnpj: str
    im: str
    cmun: str
    ambiente: Ambiente
    prestador: str = field(init=False, repr=False)

    def __post_init__(self) -> None:
        # <Prestador> usado como texto em várias mensagens; montado uma vez só
        object.__setattr__(
            self,
            "prestador",
            "<Prestador>"
            + xml_tag("Cnpj", self.cnpj)
            + xml_tag("InscricaoMunicipal", self.im)
            + "</Prestador>",
        )


ConfigDocument = Union[str, bytes, Mapping[str, Any], NFSeConfig]


def load_config(config: ConfigDocument) -> NFSeConfig:
    if isinstance(config, NFSeConfig):
        return config

    if isinstance(config, (str, bytes)):
        try:
            config = json.loads(config)
        except ValueError as exc:
            raise InvalidConfiguration(f"Configuração não é um JSON válido: {exc}") from exc

    if not isinstance(config, Mapping):
        raise InvalidConfiguration("Configuração deve ser um objeto JSON/dict.")

    try:
        return NFSeConfig.model_validate(dict(config))
    except ValidationError as exc:
        campos = ", ".join(".".join(str(p) for p in e["loc"]) for e in exc.errors())
        raise InvalidConfiguration(f"Configuração inválida ({campos}): {exc}") from exc


def build_identity(
    config: ConfigDocument,
    registry: EndpointRegistry = DEFAULT_REGISTRY,
) -> TenantIdentity:
    """
    Valida o documento de configuração e devolve a identidade do prestador.
    """
    cfg = load_config(config)

    if cfg.cmun not in registry:
        raise InvalidConfiguration(f"Município sem webservice cadastrado: {cfg.cmun!r}")

    return TenantIdentity(
        cnpj=cfg.cnpj,
        im=cfg.im,
        cmun=cfg.cmun,
        ambiente=cfg.ambiente,
    )
