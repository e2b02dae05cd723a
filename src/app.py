"""Enrolment cart FastAPI application.

Web server that runs cart operations synchronously over HTTP. Every
``/cart`` request is wrapped in the enrolcart domain context.

Usage:
    uvicorn app:app --app-dir src --host 0.0.0.0 --port 8000 --reload
"""

# ---------------------------------------------------------------------------
# Domain initialization
# ---------------------------------------------------------------------------
# The domain is initialized at module level so uvicorn workers share it.
# PROTEAN_ENV selects the config overlay; ENROLCART_* variables the cart settings.
from fastapi import FastAPI, Request
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from enrolcart.api.dependencies import CartDependencies
from enrolcart.api.routes import router as cart_router
from enrolcart.domain import enrolcart

enrolcart.init()

_DOMAIN_PREFIXES = ("/cart",)


def create_app(dependencies: CartDependencies | None = None) -> FastAPI:
    """Build the application around one set of collaborators."""
    app = FastAPI(
        title="Enrolment Cart API",
        description="Carts, coupons and checkout for paid course enrolments",
    )
    app.state.cart_dependencies = dependencies or CartDependencies.from_settings()

    app.add_middleware(
        CORSMiddleware,
        allow_origins=["*"],
        allow_credentials=True,
        allow_methods=["*"],
        allow_headers=["*"],
    )

    @app.middleware("http")
    async def domain_context_middleware(request: Request, call_next):
        """Push the enrolcart domain context for cart requests."""
        if request.url.path.startswith(_DOMAIN_PREFIXES):
            with enrolcart.domain_context():
                return await call_next(request)
        # Health check, docs, etc.
        return await call_next(request)

    app.include_router(cart_router)

    @app.get("/health")
    async def health():
        return JSONResponse(content={"status": "ok", "domain": enrolcart.name})

    return app


app = create_app()
