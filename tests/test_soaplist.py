import dataclasses

import pytest

from nfse_service.core.enums import Ambiente
from nfse_service.core.exceptions import UnknownMunicipality
from nfse_service.core.soaplist import (
    DEFAULT_REGISTRY,
    MUNICIPIOS,
    EndpointDescriptor,
    EndpointRegistry,
    resolve_url,
)


@pytest.mark.parametrize("cmun", sorted(MUNICIPIOS))
def test_lookup_returns_descriptor_with_urls(cmun):
    desc = DEFAULT_REGISTRY.lookup(cmun)
    assert desc.cmun == cmun
    assert desc.homologacao
    assert desc.producao
    assert resolve_url(desc, Ambiente.HOMOLOGACAO) == desc.homologacao
    assert resolve_url(desc, Ambiente.PRODUCAO) == desc.producao


def test_lookup_accepts_int_code():
    assert DEFAULT_REGISTRY.lookup(3304557).municipio == "Rio de Janeiro"


def test_lookup_unknown_municipality():
    with pytest.raises(UnknownMunicipality) as exc:
        DEFAULT_REGISTRY.lookup("0000000")
    assert exc.value.cmun == "0000000"


def test_descriptor_is_immutable():
    desc = DEFAULT_REGISTRY.lookup("4314902")
    with pytest.raises(dataclasses.FrozenInstanceError):
        desc.producao = "https://outro"


def test_registry_is_a_snapshot_of_the_mapping():
    fake = EndpointDescriptor(
        cmun="1",
        municipio="Teste",
        uf="XX",
        homologacao="https://hom.example/nfse",
        producao="https://prod.example/nfse",
        version="2.00",
        msgns="http://example/nfse.xsd",
        soapns="http://example/ws",
    )
    source = {"1": fake}
    registry = EndpointRegistry(source)
    source["2"] = fake

    assert "1" in registry
    assert "2" not in registry
    assert len(registry) == 1
    assert list(registry) == ["1"]
