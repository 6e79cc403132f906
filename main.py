import os
import logging
from contextlib import asynccontextmanager
from typing import List, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse
from pymongo.errors import PyMongoError

from auth import (
    Capability,
    Principal,
    ensure_user_indexes,
    get_current_user,
    get_optional_user,
    login as login_user,
    register_user,
    require,
)
from cart import CartRegistry, get_cart_registry
from catalog import Catalog
from checkout import checkout as run_checkout
from database import get_db, get_session_factory, init_orders_schema
from errors import NotFoundError, ShopError
from orders import OrderStore
from schemas import CartEntry, CartItemIn, LoginInput, ProductIn, ProductUpdate, RegisterInput, TokenResponse

LOG_LEVEL = os.getenv("LOG_LEVEL", "INFO")
CORS_ORIGINS = [o.strip() for o in os.getenv("CORS_ORIGINS", "*").split(",") if o.strip()]

logging.basicConfig(level=LOG_LEVEL, format="%(asctime)s %(levelname)s %(name)s: %(message)s")
logger = logging.getLogger(__name__)


@asynccontextmanager
async def lifespan(app: FastAPI):
    init_orders_schema()
    try:
        ensure_user_indexes()
    except ShopError:
        logger.warning("Could not create user indexes; MongoDB not reachable at startup")
    yield


app = FastAPI(title="Storefront API", lifespan=lifespan)

app.add_middleware(
    CORSMiddleware,
    allow_origins=CORS_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)


@app.exception_handler(ShopError)
async def shop_error_handler(request: Request, exc: ShopError):
    return JSONResponse(status_code=exc.status_code, content={"detail": exc.detail})


@app.exception_handler(RequestValidationError)
async def request_validation_handler(request: Request, exc: RequestValidationError):
    return JSONResponse(status_code=400, content={"detail": jsonable_encoder(exc.errors())})


# Dependencies

def get_catalog(db=Depends(get_db)) -> Catalog:
    return Catalog(db["product"])


def get_order_store(session_factory=Depends(get_session_factory)) -> OrderStore:
    return OrderStore(session_factory)


# Routes
@app.get("/")
def read_root():
    return {"message": "Storefront API"}


@app.get("/health")
def health(db=Depends(get_db), orders: OrderStore = Depends(get_order_store)):
    response = {"backend": "ok", "catalog": "unavailable", "orders": "unavailable"}
    try:
        db.list_collection_names()
        response["catalog"] = "ok"
    except PyMongoError as e:
        logger.warning("Health check: MongoDB ping failed: %s", e)
    try:
        orders.ping()
        response["orders"] = "ok"
    except ShopError as e:
        logger.warning("Health check: order store failed: %s", e.detail)
    return response


# Auth
@app.post("/auth/register")
def register(payload: RegisterInput, caller: Optional[Principal] = Depends(get_optional_user), db=Depends(get_db)):
    return register_user(db, payload, caller)


@app.post("/auth/login", response_model=TokenResponse)
def login(payload: LoginInput, db=Depends(get_db)):
    return login_user(db, payload)


@app.get("/auth/me")
def me(principal: Principal = Depends(get_current_user)):
    return {"id": principal.id, "role": principal.role.value}


# Products
@app.get("/products")
def list_products(search: Optional[str] = None, category: Optional[str] = None, catalog: Catalog = Depends(get_catalog)):
    return catalog.list(search=search, category=category)


@app.get("/products/{product_id}")
def get_product(product_id: str, catalog: Catalog = Depends(get_catalog)):
    product = catalog.get(product_id)
    if not product:
        raise NotFoundError("Product not found")
    return product


@app.post("/products")
def create_product(
    data: ProductIn,
    _: Principal = Depends(require(Capability.MANAGE_CATALOG)),
    catalog: Catalog = Depends(get_catalog),
):
    return catalog.create(data)


@app.put("/products/{product_id}")
def update_product(
    product_id: str,
    data: ProductUpdate,
    _: Principal = Depends(require(Capability.MANAGE_CATALOG)),
    catalog: Catalog = Depends(get_catalog),
):
    return catalog.update(product_id, data)


@app.delete("/products/{product_id}")
def delete_product(
    product_id: str,
    _: Principal = Depends(require(Capability.MANAGE_CATALOG)),
    catalog: Catalog = Depends(get_catalog),
):
    deleted = catalog.delete(product_id)
    return {"ok": True, "id": product_id, "deleted": deleted}


# Cart
@app.get("/cart", response_model=List[CartEntry])
def get_cart(principal: Principal = Depends(require(Capability.SHOP)), carts: CartRegistry = Depends(get_cart_registry)):
    return carts.get(principal.id)


@app.post("/cart", response_model=List[CartEntry])
def add_to_cart(
    item: CartItemIn,
    principal: Principal = Depends(require(Capability.SHOP)),
    carts: CartRegistry = Depends(get_cart_registry),
):
    return carts.add(principal.id, item.product_id, item.quantity)


@app.delete("/cart/{product_id}", response_model=List[CartEntry])
def remove_from_cart(
    product_id: str,
    principal: Principal = Depends(require(Capability.SHOP)),
    carts: CartRegistry = Depends(get_cart_registry),
):
    return carts.remove(principal.id, product_id)


# Checkout & orders
@app.post("/checkout")
def checkout(
    principal: Principal = Depends(require(Capability.SHOP)),
    carts: CartRegistry = Depends(get_cart_registry),
    catalog: Catalog = Depends(get_catalog),
    orders: OrderStore = Depends(get_order_store),
):
    return run_checkout(principal.id, carts, catalog, orders)


@app.get("/orders")
def list_orders(principal: Principal = Depends(require(Capability.SHOP)), orders: OrderStore = Depends(get_order_store)):
    return orders.list_for_user(principal.id)


@app.get("/orders/{order_id}")
def get_order(
    order_id: int,
    principal: Principal = Depends(require(Capability.SHOP)),
    orders: OrderStore = Depends(get_order_store),
):
    order = orders.get(order_id)
    if order is None or (order.user_id != principal.id and not principal.can(Capability.VIEW_ALL_ORDERS)):
        raise NotFoundError("Order not found")
    return order


if __name__ == "__main__":
    import uvicorn
    port = int(os.getenv("PORT", 8000))
    uvicorn.run(app, host="0.0.0.0", port=port)
