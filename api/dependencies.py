"""
API依赖项 - 从应用状态获取网关并组装应用服务
"""
from fastapi import Depends, Request

from application.ports.invoice_gateway import InvoiceGateway
from application.ports.payment_gateway import PaymentGateway
from application.services.invoice_service import InvoiceService
from application.services.payment_service import PaymentService


def get_ecpay_gateway(request: Request) -> PaymentGateway:
    """获取组合根中创建的 ECPay 网关（订单缓存随网关实例存在，必须复用同一实例）"""
    return request.app.state.ecpay


def get_invoice_gateway(request: Request) -> InvoiceGateway:
    return request.app.state.ezpay


def get_payment_service(gateway: PaymentGateway = Depends(get_ecpay_gateway)) -> PaymentService:
    return PaymentService(gateway=gateway)


def get_invoice_service(gateway: InvoiceGateway = Depends(get_invoice_gateway)) -> InvoiceService:
    return InvoiceService(gateway=gateway)
