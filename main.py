"""
FastAPI应用主入口
"""
from contextlib import asynccontextmanager

from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware

from api.middleware import LoggingMiddleware, RequestIDMiddleware
from api.routes import invoices as invoices_routes
from api.routes import payments as payments_routes
from core.config import settings
from core.exceptions import register_exception_handlers
from core.logging_config import configure_logging, get_logger
from core.response import success_response
from infrastructure.external.invoices import get_invoice_gateway
from infrastructure.external.payments import get_payment_gateway


# 初始化日志：在入口处显式配置，避免模块导入时的副作用
configure_logging()
logger = get_logger(__name__)


def on_order_committed(order) -> None:
    """订单完成回调（对接方在此挂接出货、开票等后续流程）"""
    logger.info(
        "order_committed",
        order_id=order.id,
        payment_type=order.payment_type,
        total=order.total_price,
    )


@asynccontextmanager
async def lifespan(app: FastAPI):
    """应用生命周期管理"""
    logger.info("application_startup", environment=settings.ENVIRONMENT)
    yield
    # 关闭时释放网关的 HTTP 连接
    await app.state.ecpay.aclose()
    await app.state.ezpay.aclose()
    logger.info("application_shutdown", message="Application shutdown")


app = FastAPI(
    title=settings.PROJECT_NAME,
    version=settings.VERSION,
    debug=settings.DEBUG,
    lifespan=lifespan,
    description="ECPay 金流与 EZPay 电子发票适配服务",
)

# 添加中间件（注意顺序：从下往上执行）
app.add_middleware(LoggingMiddleware)
app.add_middleware(RequestIDMiddleware)
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# 注册全局异常处理器
register_exception_handlers(app)

# 网关：ECPay 回调/结账路由直接挂载在根路径，与商户 API 分开
app.state.ecpay = get_payment_gateway("ecpay", app=app, on_commit=on_order_committed)
app.state.ezpay = get_invoice_gateway("ezpay")

# 注册路由
app.include_router(payments_routes.router, prefix="/api/v1")
app.include_router(invoices_routes.router, prefix="/api/v1")


@app.get("/", tags=["Root"])
async def root():
    """API根路径"""
    return success_response(
        data={
            "name": settings.PROJECT_NAME,
            "version": settings.VERSION,
            "docs": "/docs",
            "redoc": "/redoc",
        },
    )


@app.get("/health", tags=["Health"])
async def health_check():
    """健康检查端点"""
    return success_response(data={"status": "healthy"})


if __name__ == "__main__":
    import uvicorn
    uvicorn.run(
        "main:app",
        host=settings.HOST,
        port=settings.PORT,
        reload=settings.DEBUG,
        log_level="debug" if settings.DEBUG else "info",
    )
