import logging
from contextlib import asynccontextmanager
from typing import Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile
from fastapi.middleware.cors import CORSMiddleware
from fastapi.staticfiles import StaticFiles
from pydantic import BaseModel, ConfigDict, Field

import cart as cart_service
import catalog
import identity
from config import Settings, configure_logging
from database import connect, ensure_indexes
from errors import DependencyError, install_error_handlers
from payments import PaymentGateway
from storage import LocalImageStore, build_image_store

logger = logging.getLogger(__name__)


# Models for requests
class RegisterRequest(BaseModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    type: Optional[str] = Field(None, description="farmer | buyer")


class LoginRequest(BaseModel):
    email: Optional[str] = None
    password: Optional[str] = None


class AddToCartRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    user_id: Optional[str] = Field(None, alias="userId")
    product_id: Optional[str] = Field(None, alias="productId")
    quantity: Optional[int] = None


class CreateOrderRequest(BaseModel):
    amount: Optional[float] = Field(None, description="Amount in rupees")


# Shared clients live on app.state, built once in create_app

def get_db(request: Request):
    db = request.app.state.db
    if db is None:
        raise DependencyError("Database not available")
    return db


def get_image_store(request: Request):
    return request.app.state.image_store


def get_gateway(request: Request) -> PaymentGateway:
    return request.app.state.gateway


@asynccontextmanager
async def lifespan(app: FastAPI):
    if app.state.db is not None:
        ensure_indexes(app.state.db)
    yield


def create_app(settings: Optional[Settings] = None, db=None, image_store=None,
               gateway: Optional[PaymentGateway] = None) -> FastAPI:
    settings = settings or Settings.from_env()
    configure_logging(settings.log_level)

    app = FastAPI(title="Farmers Market API", version="1.0.0", lifespan=lifespan)
    app.state.settings = settings
    app.state.db = db if db is not None else connect(settings)
    app.state.image_store = image_store or build_image_store(settings)
    app.state.gateway = gateway or PaymentGateway.from_settings(settings)

    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origins,
        allow_credentials=True,
        allow_methods=["GET", "POST", "PUT", "DELETE"],
        allow_headers=["*"],
    )
    install_error_handlers(app)

    store = app.state.image_store
    if isinstance(store, LocalImageStore):
        app.mount(store.url_prefix, StaticFiles(directory=store.directory, check_dir=False), name="uploads")

    register_routes(app)
    return app


def register_routes(app: FastAPI) -> None:
    @app.get("/")
    def read_root():
        return {"message": "Farmers Market API ready"}

    @app.get("/api/test")
    def test_database(request: Request):
        db = request.app.state.db
        settings = request.app.state.settings
        response = {
            "backend": "✅ Running",
            "database": "❌ Not Available",
            "database_url": "✅ Set" if settings.database_url else "❌ Not Set",
            "database_name": "✅ Set" if settings.database_name else "❌ Not Set",
            "connection_status": "Not Connected",
            "collections": [],
        }
        if db is not None:
            try:
                response["collections"] = db.list_collection_names()
                response["database"] = "✅ Connected"
                response["connection_status"] = "Connected"
            except Exception as e:
                response["database"] = f"⚠️ {str(e)[:80]}"
        return response

    # Auth endpoints
    @app.post("/api/register", status_code=201)
    def register(payload: RegisterRequest, db=Depends(get_db)):
        user = identity.register(db, payload.name, payload.email, payload.password, payload.type)
        return {"message": "User registered successfully", "user": user}

    @app.post("/api/login")
    def login(payload: LoginRequest, db=Depends(get_db)):
        user = identity.login(db, payload.email, payload.password)
        return {"message": "Login successful", "user": user}

    # Products endpoints
    @app.post("/api/products/add", status_code=201)
    def add_product(
        name: Optional[str] = Form(None),
        price: Optional[str] = Form(None),
        farmerId: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        quantity: Optional[str] = Form(None),
        image: Optional[UploadFile] = File(None),
        db=Depends(get_db),
        store=Depends(get_image_store),
    ):
        upload = None
        if image is not None and image.filename:
            upload = (image.filename, image.file.read())
        product = catalog.add_product(
            db, store, name, price, farmerId,
            description=description, quantity=quantity, image=upload,
        )
        return {"message": "Product added successfully", "product": product}

    @app.get("/api/products")
    def list_products(db=Depends(get_db)):
        return catalog.list_all(db)

    @app.get("/api/products/{farmer_id}")
    def list_farmer_products(farmer_id: str, db=Depends(get_db)):
        return catalog.list_by_farmer(db, farmer_id)

    @app.delete("/api/products/{product_id}")
    def delete_product(product_id: str, db=Depends(get_db), store=Depends(get_image_store)):
        catalog.delete_product(db, store, product_id)
        return {"message": "Product deleted successfully"}

    # Cart endpoints
    @app.post("/api/add-to-cart")
    def add_to_cart(payload: AddToCartRequest, db=Depends(get_db)):
        return cart_service.add_to_cart(db, payload.user_id, payload.product_id, payload.quantity)

    @app.get("/api/cart/{user_id}")
    def get_cart(user_id: str, db=Depends(get_db)):
        return cart_service.get_cart(db, user_id)

    @app.delete("/api/cart/{user_id}/{product_id}")
    def remove_from_cart(user_id: str, product_id: str, db=Depends(get_db)):
        return cart_service.remove_from_cart(db, user_id, product_id)

    # Payment endpoints
    @app.post("/api/payment/create-order")
    def create_order(payload: CreateOrderRequest, gateway: PaymentGateway = Depends(get_gateway)):
        return gateway.create_order(payload.amount)


if __name__ == "__main__":
    import uvicorn
    app = create_app()
    uvicorn.run(app, host="0.0.0.0", port=app.state.settings.port)
