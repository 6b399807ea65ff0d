# nfse_api/main.py
from __future__ import annotations

import os
from functools import lru_cache
from typing import List, Optional

from fastapi import Depends, FastAPI, HTTPException
from pydantic import BaseModel, Field

from nfse_service.core.assinatura import Certificate
from nfse_service.core.config import build_identity
from nfse_service.core.enums import CodigoCancelamento
from nfse_service.core.exceptions import NFSeError, TransportFailed
from nfse_service.nfse import NFSeTools, RpsXml

# -------------------------------------------------------------------
# CONFIGURAÇÃO DO PRESTADOR E CERTIFICADO (VARIÁVEIS DE AMBIENTE)
# -------------------------------------------------------------------

NFSE_CONFIG = os.getenv("NFSE_CONFIG", "")
PFX_PATH = os.getenv("NFSE_PFX_PATH", "")
PFX_PASSWORD = os.getenv("NFSE_PFX_PASSWORD", "")

app = FastAPI(
    title="NFSe Service API",
    version="1.0.0",
    description="NFSe padrão nacional (ABRASF): envio, cancelamento e consultas.",
)


@lru_cache
def get_tools() -> NFSeTools:
    """Cliente montado uma vez a partir das variáveis de ambiente."""
    try:
        build_identity(NFSE_CONFIG)
        certificate = Certificate.from_pfx_file(PFX_PATH, PFX_PASSWORD)
        return NFSeTools(NFSE_CONFIG, certificate)
    except (NFSeError, OSError, ValueError) as e:
        raise HTTPException(status_code=400, detail=f"Configuração do serviço inválida: {e}")


# -------------------------------------------------------------------
# MODELOS
# -------------------------------------------------------------------

class NFSeResponse(BaseModel):
    xml_envio: Optional[str] = None
    xml_retorno: str


class CancelarRequest(BaseModel):
    id: str = Field(..., description="Id do InfPedidoCancelamento")
    numero: str = Field(..., description="Número da NFSe")
    codigo: CodigoCancelamento = CodigoCancelamento.ERRO_EMISSAO


class ConsultarLoteRequest(BaseModel):
    protocolo: str


class ConsultarNfseRequest(BaseModel):
    dini: str = Field(..., description="Data inicial (AAAA-MM-DD)")
    dfim: str = Field(..., description="Data final (AAAA-MM-DD)")
    tomador_cnpj: Optional[str] = None
    tomador_cpf: Optional[str] = None
    tomador_im: Optional[str] = None


class ConsultarFaixaRequest(BaseModel):
    nini: str
    nfim: str
    pagina: int = 1


class ConsultarRpsRequest(BaseModel):
    numero: str
    serie: str
    tipo: str


class GerarNfseRequest(BaseModel):
    rps_xml: str = Field(..., description="XML do RPS (sem assinatura)")
    lote: str


class EnviarLoteRequest(BaseModel):
    rps_xml: List[str] = Field(..., description="XMLs dos RPS (1 a 50)")
    lote: str


def _executar(tools: NFSeTools, operacao, *args) -> NFSeResponse:
    try:
        retorno = operacao(*args)
    except TransportFailed as e:
        raise HTTPException(status_code=502, detail=str(e))
    except NFSeError as e:
        raise HTTPException(status_code=400, detail=str(e))
    return NFSeResponse(xml_envio=tools.last_request, xml_retorno=retorno)


# -------------------------------------------------------------------
# ROTAS
# -------------------------------------------------------------------

@app.post("/nfse/cancelar", response_model=NFSeResponse, summary="Cancelar NFSe")
def cancelar_nfse(payload: CancelarRequest, tools: NFSeTools = Depends(get_tools)):
    return _executar(tools, tools.cancelar_nfse, payload.id, payload.numero, payload.codigo)


@app.post("/nfse/consultar-lote", response_model=NFSeResponse, summary="Consultar lote de RPS")
def consultar_lote_rps(payload: ConsultarLoteRequest, tools: NFSeTools = Depends(get_tools)):
    return _executar(tools, tools.consultar_lote_rps, payload.protocolo)


@app.post("/nfse/consultar", response_model=NFSeResponse, summary="Consultar NFSe por período/tomador")
def consultar_nfse(payload: ConsultarNfseRequest, tools: NFSeTools = Depends(get_tools)):
    return _executar(
        tools,
        tools.consultar_nfse,
        payload.dini,
        payload.dfim,
        payload.tomador_cnpj,
        payload.tomador_cpf,
        payload.tomador_im,
    )


@app.post("/nfse/consultar-faixa", response_model=NFSeResponse, summary="Consultar NFSe por faixa")
def consultar_nfse_por_faixa(payload: ConsultarFaixaRequest, tools: NFSeTools = Depends(get_tools)):
    return _executar(tools, tools.consultar_nfse_por_faixa, payload.nini, payload.nfim, payload.pagina)


@app.post("/nfse/consultar-rps", response_model=NFSeResponse, summary="Consultar NFSe por RPS")
def consultar_nfse_por_rps(payload: ConsultarRpsRequest, tools: NFSeTools = Depends(get_tools)):
    return _executar(tools, tools.consultar_nfse_por_rps, payload.numero, payload.serie, payload.tipo)


@app.post("/nfse/gerar", response_model=NFSeResponse, summary="Gerar NFSe (síncrono)")
def gerar_nfse(payload: GerarNfseRequest, tools: NFSeTools = Depends(get_tools)):
    return _executar(tools, tools.gerar_nfse, RpsXml(payload.rps_xml), payload.lote)


@app.post("/nfse/lote", response_model=NFSeResponse, summary="Enviar lote de RPS (assíncrono)")
def recepcionar_lote_rps(payload: EnviarLoteRequest, tools: NFSeTools = Depends(get_tools)):
    rps = [RpsXml(xml) for xml in payload.rps_xml]
    return _executar(tools, tools.recepcionar_lote_rps, rps, payload.lote)
