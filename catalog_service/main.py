# catalog_service/main.py

"""
FastAPI Catalog Service API.
Lists, creates and deletes storefront products, stores their images on local
disk, and serves the public storefront and the admin page. Mutating routes
require admin credentials checked on the server.
"""
import logging
import os
import sys
import time
from typing import List, Optional

from fastapi import Depends, FastAPI, File, Form, Request, UploadFile, status
from fastapi.concurrency import run_in_threadpool
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import FileResponse, JSONResponse
from fastapi.staticfiles import StaticFiles
from starlette.exceptions import HTTPException as StarletteHTTPException

from .auth import require_admin
from .catalog import CatalogService, get_catalog
from .config import Settings, load_settings
from .db import StorageGateway, get_gateway
from .exceptions import CatalogError, StorageFailure, ValidationFailure
from .media import MediaStore, UploadedImage
from .schemas import ErrorResponse, MessageResponse, ProductResponse

# -----------------------------
# Configure Logging
# -----------------------------
logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s - %(levelname)s - %(name)s - %(message)s",
    handlers=[logging.StreamHandler(sys.stdout)],
)
logger = logging.getLogger(__name__)

# Suppress noisy logs from third-party libraries for cleaner output
logging.getLogger("uvicorn.access").setLevel(logging.WARNING)
logging.getLogger("uvicorn.error").setLevel(logging.INFO)

STATIC_DIR = os.path.join(os.path.dirname(os.path.abspath(__file__)), "static")

ERROR_RESPONSES = {
    status.HTTP_500_INTERNAL_SERVER_ERROR: {"model": ErrorResponse},
}


def _error_body(message: str, fields=None) -> dict:
    body = {"error": message}
    if fields:
        body["fields"] = fields
    return body


def _register_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(CatalogError)
    async def catalog_error_handler(request: Request, exc: CatalogError):
        fields = exc.fields if isinstance(exc, ValidationFailure) else None
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.message, fields))

    @app.exception_handler(RequestValidationError)
    async def request_validation_handler(request: Request, exc: RequestValidationError):
        fields = {}
        for err in exc.errors():
            loc = [str(part) for part in err["loc"] if part not in ("body", "query", "path", "form")]
            fields.setdefault(".".join(loc) or "body", err["msg"])
        logger.warning(f"Rejected request to {request.url.path}: {fields}")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content=_error_body("Invalid request.", fields),
        )

    @app.exception_handler(StarletteHTTPException)
    async def http_error_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content=_error_body(str(exc.detail)),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def unhandled_error_handler(request: Request, exc: Exception):
        logger.error(f"Unhandled error on {request.method} {request.url.path}: {exc}", exc_info=exc)
        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=_error_body("Internal server error."),
        )


def _register_routes(app: FastAPI) -> None:
    # --- Views ---
    @app.get("/", include_in_schema=False)
    async def storefront():
        return FileResponse(os.path.join(STATIC_DIR, "index.html"))

    @app.get("/admin", include_in_schema=False)
    async def admin_page():
        return FileResponse(os.path.join(STATIC_DIR, "admin.html"))

    # --- Health Check Endpoint ---
    @app.get("/health", status_code=status.HTTP_200_OK, summary="Health check endpoint")
    def health_check(gateway: StorageGateway = Depends(get_gateway)):
        """
        Reports whether the service is alive and whether the database answers.
        Always returns 200 so a down database does not mark the process dead.
        """
        database = "up" if gateway.ping() else "down"
        return {"status": "ok", "service": "catalog-service", "database": database}

    @app.get(
        "/api/admin/session",
        responses={status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse}},
        summary="Verify admin credentials",
    )
    def admin_session(admin: str = Depends(require_admin)):
        """Used by the admin page to check credentials before showing the panel."""
        return {"username": admin}

    # -----------------------------
    # Catalog Endpoints
    # -----------------------------

    @app.get(
        "/api/products",
        response_model=List[ProductResponse],
        responses=ERROR_RESPONSES,
        summary="List all products, newest first",
    )
    def list_products(catalog: CatalogService = Depends(get_catalog)):
        """
        Retrieves every product in the catalog ordered by creation time, newest first.
        There is no pagination; the full collection is returned on each call.
        """
        logger.info("Listing products")
        return catalog.list()

    @app.get(
        "/api/products/{product_id}",
        response_model=ProductResponse,
        responses={status.HTTP_404_NOT_FOUND: {"model": ErrorResponse}, **ERROR_RESPONSES},
        summary="Retrieve a product by ID",
    )
    def get_product(product_id: str, catalog: CatalogService = Depends(get_catalog)):
        """
        Retrieves a single product by its unique ID.

        - Returns 404 if the product does not exist.
        """
        logger.info(f"Fetching product with ID: {product_id}")
        return catalog.get(product_id)

    @app.post(
        "/api/products",
        response_model=ProductResponse,
        status_code=status.HTTP_201_CREATED,
        responses={
            status.HTTP_400_BAD_REQUEST: {"model": ErrorResponse},
            status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
            status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: {"model": ErrorResponse},
            status.HTTP_415_UNSUPPORTED_MEDIA_TYPE: {"model": ErrorResponse},
            **ERROR_RESPONSES,
        },
        summary="Create a new product",
    )
    async def create_product(
        request: Request,
        name: Optional[str] = Form(None),
        price: Optional[str] = Form(None),
        description: Optional[str] = Form(None),
        category: Optional[str] = Form(None),
        images: Optional[List[UploadFile]] = File(None),
        catalog: CatalogService = Depends(get_catalog),
        admin: str = Depends(require_admin),
    ):
        """
        Creates a product from a multipart form.

        - Text fields `name`, `price`, `description`, `category`; up to four image files under `images`.
        - Returns the created product including its generated `id`, `createdAt` and image references.
        """
        max_bytes = request.app.state.media.max_bytes
        uploads = []
        for upload in images or []:
            if not upload.filename:
                # Empty file inputs from browsers arrive as nameless parts.
                continue
            # Starlette has already spooled the part; reading one byte past the limit is enough to detect oversize.
            content = await upload.read(max_bytes + 1)
            uploads.append(UploadedImage(upload.filename, content, upload.content_type))
            await upload.close()

        logger.info(f"Admin '{admin}' creating product: {name}")
        return await run_in_threadpool(catalog.create, name, price, description, category, uploads)

    @app.delete(
        "/api/products/{product_id}",
        response_model=MessageResponse,
        responses={
            status.HTTP_401_UNAUTHORIZED: {"model": ErrorResponse},
            status.HTTP_404_NOT_FOUND: {"model": ErrorResponse},
            **ERROR_RESPONSES,
        },
        summary="Delete a product by ID",
    )
    def delete_product(
        product_id: str,
        catalog: CatalogService = Depends(get_catalog),
        admin: str = Depends(require_admin),
    ):
        """
        Deletes a product record by its unique ID.

        - Returns 404 if the product does not exist.
        """
        logger.info(f"Admin '{admin}' deleting product with ID: {product_id}")
        catalog.delete(product_id)
        return {"message": "Product deleted successfully"}


def create_app(settings: Optional[Settings] = None) -> FastAPI:
    """
    Build the application. Collaborators are attached to `app.state` so that
    endpoints receive them through dependencies rather than module globals.
    """
    settings = settings or load_settings()
    logging.getLogger().setLevel(settings.log_level)

    app = FastAPI(
        title="Catalog Service API",
        description="Manages the product catalog and product images for the storefront",
        version="1.0.0",
    )
    app.state.settings = settings
    app.state.gateway = StorageGateway(settings.database_url)
    app.state.media = MediaStore(
        settings.media_root,
        url_prefix=settings.media_url_prefix,
        max_bytes=settings.max_upload_bytes,
    )
    # The media root must exist before StaticFiles is mounted on it.
    app.state.media.ensure_root()

    # Enable CORS (for frontend dev/testing)
    app.add_middleware(
        CORSMiddleware,
        allow_origins=list(settings.cors_allow_origins),
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    # --- FastAPI Event Handlers ---
    @app.on_event("startup")
    async def startup_event():
        """
        Connects the storage gateway, retrying a bounded number of times.
        If the database stays unreachable the service keeps running and
        storage-backed routes answer 500 until a later call connects.
        """
        gateway: StorageGateway = app.state.gateway
        max_retries = settings.db_connect_retries
        for i in range(max_retries):
            try:
                logger.info(
                    f"Attempting to connect to the database (attempt {i+1}/{max_retries})..."
                )
                gateway.connect()
                logger.info("Successfully connected to the database.")
                break
            except StorageFailure as e:
                logger.warning(f"Failed to connect to the database: {e}")
                if i < max_retries - 1:
                    logger.info(f"Retrying in {settings.db_connect_retry_delay} seconds...")
                    time.sleep(settings.db_connect_retry_delay)
                else:
                    logger.critical(
                        f"Failed to connect to the database after {max_retries} attempts. "
                        "Continuing without a database connection."
                    )

    @app.on_event("shutdown")
    async def shutdown_event():
        app.state.gateway.dispose()

    _register_error_handlers(app)
    _register_routes(app)
    app.mount(
        settings.media_url_prefix,
        StaticFiles(directory=app.state.media.root),
        name="uploads",
    )
    return app


def run() -> None:
    """Console entry point: serve the application with uvicorn."""
    import uvicorn

    uvicorn.run(
        "catalog_service.main:create_app",
        factory=True,
        host=os.getenv("HOST", "0.0.0.0"),
        port=int(os.getenv("PORT", "3000")),
    )


if __name__ == "__main__":
    run()
