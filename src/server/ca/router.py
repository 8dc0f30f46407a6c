"""
证书签发服务的 FastAPI 路由定义。
密码学运算是 CPU 密集型的，放到线程池中执行，避免阻塞事件循环。
"""

from fastapi import APIRouter, HTTPException
from fastapi.concurrency import run_in_threadpool
from loguru import logger

from . import services
from .errors import CAError, ValidationError
from .schemas import (
    BrokerCSRRequest,
    ClientCSRRequest,
    CSRResponse,
    DescribeRequest,
    DescribeResponse,
    RootCARequest,
    RootCAResponse,
    SignBrokerCertRequest,
    SignClientCertRequest,
    SignedCertResponse,
)

router = APIRouter(prefix="/ca", tags=["Certificate Authority"])


def _to_http_exception(e: Exception, action: str) -> HTTPException:
    if isinstance(e, ValidationError):
        # 请求参数问题，返回 400
        logger.warning(f"{action}参数校验失败: {e.message}")
        return HTTPException(status_code=400, detail={"error": e.kind, "message": e.message})
    if isinstance(e, CAError):
        logger.error(f"{action}失败: {e.message}")
        return HTTPException(status_code=500, detail={"error": e.kind, "message": f"{action}失败: {e.message}"})
    # 捕获所有未预期的错误并返回 500
    logger.exception(f"{action}时发生未预期错误: {e}")
    return HTTPException(status_code=500, detail={"error": "InternalError", "message": f"内部服务器错误: {e}"})


@router.post("/generate-csr", response_model=CSRResponse)
async def generate_csr(req: ClientCSRRequest) -> CSRResponse:
    """
    生成 client 私钥、公钥与 CSR。
    """
    try:
        return await run_in_threadpool(services.generate_client_csr_service, req)
    except Exception as e:
        raise _to_http_exception(e, "生成 CSR ")


@router.post("/generate-broker-csr", response_model=CSRResponse)
async def generate_broker_csr(req: BrokerCSRRequest) -> CSRResponse:
    """
    生成 broker 私钥、公钥与 CSR，可携带 SAN。
    """
    try:
        return await run_in_threadpool(services.generate_broker_csr_service, req)
    except Exception as e:
        raise _to_http_exception(e, "生成 broker CSR ")


@router.post("/generate-root-ca", response_model=RootCAResponse)
async def generate_root_ca(req: RootCARequest) -> RootCAResponse:
    """
    生成自签根 CA 私钥与证书。
    """
    try:
        return await run_in_threadpool(services.generate_root_ca_service, req)
    except Exception as e:
        raise _to_http_exception(e, "生成根 CA ")


@router.post("/sign-client-cert", response_model=SignedCertResponse)
async def sign_client_cert(req: SignClientCertRequest) -> SignedCertResponse:
    """
    使用请求中提供的 CA 私钥与证书签发 client 证书。
    """
    try:
        return await run_in_threadpool(services.sign_client_cert_service, req)
    except Exception as e:
        raise _to_http_exception(e, "签发 client 证书")


@router.post("/sign-broker-cert", response_model=SignedCertResponse)
async def sign_broker_cert(req: SignBrokerCertRequest) -> SignedCertResponse:
    """
    使用请求中提供的 CA 私钥与证书签发 broker 证书。
    """
    try:
        return await run_in_threadpool(services.sign_broker_cert_service, req)
    except Exception as e:
        raise _to_http_exception(e, "签发 broker 证书")


@router.post("/describe", response_model=DescribeResponse)
async def describe(req: DescribeRequest) -> DescribeResponse:
    """
    解析 PEM 格式的 CSR 或证书并返回文本描述。
    """
    try:
        return await run_in_threadpool(services.describe_artifact_service, req)
    except Exception as e:
        raise _to_http_exception(e, "解析证书")
