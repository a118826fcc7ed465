from fastapi import FastAPI
from shared.config.database import init_models

# IMPORTANT: import models so they register with Base
from services.auth_service import models as auth_models # noqa: F401
from services.product_service import models as product_models # noqa: F401
from services.session_service import models as session_models # noqa: F401
from services.order_service import models as order_models # noqa: F401

from services.product_service.main import product_app
from services.order_service.main import order_app
from services.payment_service.main import payment_app
from services.session_service.main import session_app

app = FastAPI(title="Ecommerce Cluster")


@app.on_event("startup")
async def startup_event():
    # Creates the per-service schemas and all tables
    await init_models()


app.mount("/products", product_app)
app.mount("/orders", order_app)
app.mount("/payments", payment_app)
app.mount("/sessions", session_app)
