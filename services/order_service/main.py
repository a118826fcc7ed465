from fastapi import FastAPI
from shared.errors import register_error_handlers
from shared.observability import setup_observability
from .router import router, admin_router, public_router
from .models import Order, OrderItem, OrderStatusEvent # noqa: F401 - registers models with Base

order_app = FastAPI(title="Order Service", version="2.0.0")

# --- OBSERVABILITY BOOTSTRAP ---
setup_observability(order_app, "order_service")
register_error_handlers(order_app)

# admin routes first so "/admin" is never parsed as an order id
order_app.include_router(public_router)
order_app.include_router(admin_router)
order_app.include_router(router)
