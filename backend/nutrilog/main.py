"""NutriLog API Server - Entry point.

Builds the Starlette application and runs it with uvicorn. The store and
the estimator are created once per app and closed when the app shuts down.
"""

import contextlib
import logging
import os

import uvicorn
from starlette.applications import Starlette
from starlette.middleware import Middleware
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.middleware.cors import CORSMiddleware
from starlette.requests import Request
from starlette.responses import JSONResponse
from starlette.routing import Route

from .core.errors import InvalidInputError
from .shell import api
from .shell.auth import AuthService
from .shell.config import AppConfig
from .shell.estimator import NutritionEstimator
from .shell.firestore_client import FirestoreConfig, NutritionFirestoreClient
from .shell.memory_store import InMemoryNutritionStore
from .shell.store import EmailAlreadyRegistered, NutritionStore


logging.basicConfig(
    level=os.environ.get("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
)
logger = logging.getLogger(__name__)


PROFILE_FIELDS = ("weight_kg", "height_cm", "age", "gender", "activity_level")


def build_store(config: AppConfig) -> NutritionStore:
    """Create the store selected by configuration."""
    if config.store_backend == "memory":
        logger.warning("Using in-memory store; data will not survive a restart")
        return InMemoryNutritionStore()
    if config.store_backend != "firestore":
        raise ValueError(f"Unknown store backend: {config.store_backend}")
    return NutritionFirestoreClient(
        FirestoreConfig(
            project_id=config.firestore_project,
            database=config.firestore_database,
        )
    )


# ==================== Route Handlers ====================


async def health_check(request: Request) -> JSONResponse:
    """Health check endpoint for Cloud Run."""
    return JSONResponse({"status": "healthy", "service": "nutrilog"})


async def signup(request: Request) -> JSONResponse:
    """Register a new user with body metrics and return their API key."""
    try:
        body = await api.read_json(request)

        required = ("email", "password") + PROFILE_FIELDS
        if any(body.get(key) in (None, "") for key in required):
            return JSONResponse(
                {"error": "Missing required fields: " + ", ".join(required)},
                status_code=400,
            )

        auth_service: AuthService = request.app.state.auth
        result = auth_service.signup(body["email"], body["password"], body)

        return JSONResponse({
            "success": True,
            "user": {"id": result.user.id, "email": result.user.email},
            "targets": {
                "target_calories": result.targets.calories,
                "target_protein": result.targets.protein,
            },
            "api_key": result.api_key,
            "message": "Registration successful! Save your API key - it won't be shown again.",
        })

    except InvalidInputError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except EmailAlreadyRegistered:
        return JSONResponse({"error": "Email already registered"}, status_code=409)
    except Exception as e:
        logger.error("Signup failed: %s", str(e))
        return JSONResponse({"error": "Sign up failed."}, status_code=500)


async def login(request: Request) -> JSONResponse:
    """Exchange email and password for a new API key."""
    try:
        body = await api.read_json(request)
        if not body.get("email") or not body.get("password"):
            return JSONResponse({"error": "Email and password are required"}, status_code=400)

        auth_service: AuthService = request.app.state.auth
        result = auth_service.login(body["email"], body["password"])
        if result is None:
            return JSONResponse({"error": "Invalid email or password"}, status_code=401)

        api_key, user = result
        return JSONResponse({
            "api_key": api_key,
            "user": {"id": user.id, "email": user.email},
        })

    except InvalidInputError as e:
        return JSONResponse({"error": str(e)}, status_code=400)
    except Exception as e:
        logger.error("Login failed: %s", str(e))
        return JSONResponse({"error": "Login failed."}, status_code=500)


async def validate_key(request: Request) -> JSONResponse:
    """Validate an API key."""
    try:
        body = await request.json()
        api_key = body.get("api_key") if isinstance(body, dict) else None

        if not api_key:
            return JSONResponse({"valid": False, "error": "API key required"})

        auth_service: AuthService = request.app.state.auth
        return JSONResponse({"valid": auth_service.authenticate(api_key) is not None})

    except Exception as e:
        logger.error("Validation failed: %s", str(e))
        return JSONResponse({"valid": False, "error": "Validation failed"})


# ==================== Auth Middleware ====================


class AuthMiddleware(BaseHTTPMiddleware):
    """Authenticate API requests using the API key in the Authorization header."""

    async def dispatch(self, request: Request, call_next):
        # Skip auth for non-API routes and CORS preflight
        if not request.url.path.startswith("/api") or request.method == "OPTIONS":
            return await call_next(request)

        auth_header = request.headers.get("Authorization", "")
        user_id = None

        if auth_header.startswith("Bearer "):
            api_key = auth_header.removeprefix("Bearer ").strip()
            auth_service: AuthService = request.app.state.auth
            user_id = auth_service.authenticate(api_key)

        if user_id is None:
            return JSONResponse({"error": "Unauthorized"}, status_code=401)

        request.state.user_id = user_id
        logger.debug("Authenticated user: %s", user_id[:8])
        return await call_next(request)


# ==================== Create ASGI App ====================


def create_app(
    config: AppConfig | None = None,
    store: NutritionStore | None = None,
    estimator: NutritionEstimator | None = None,
) -> Starlette:
    """Create the Starlette application.

    Args:
        config: Settings (read from the environment when omitted)
        store: Persistence handle (built from config when omitted)
        estimator: Nutrition estimator (built from config when omitted)
    """
    config = config or AppConfig.from_env()
    store = store if store is not None else build_store(config)
    estimator = estimator or NutritionEstimator(
        api_key=config.openai_api_key,
        model=config.openai_model,
    )

    @contextlib.asynccontextmanager
    async def lifespan(app: Starlette):
        logger.info("Opening %s", type(store).__name__)
        yield
        logger.info("Closing %s", type(store).__name__)
        store.close()
        await estimator.close()

    routes = [
        Route("/health", health_check, methods=["GET"]),
        Route("/auth/signup", signup, methods=["POST"]),
        Route("/auth/login", login, methods=["POST"]),
        Route("/auth/validate", validate_key, methods=["POST"]),
        Route("/api/me", api.me, methods=["GET"]),
        Route("/api/estimate-nutrition", api.estimate_nutrition, methods=["POST"]),
        Route("/api/entries", api.list_entries, methods=["GET"]),
        Route("/api/entries", api.create_entry, methods=["POST"]),
        Route("/api/entries", api.update_entry, methods=["PATCH"]),
        Route("/api/entries", api.delete_entry, methods=["DELETE"]),
        Route("/api/targets", api.get_targets, methods=["GET"]),
        Route("/api/targets", api.set_target, methods=["POST", "PUT"]),
        Route("/api/summary", api.get_summary, methods=["GET"]),
        Route("/api/calendar", api.get_calendar, methods=["GET"]),
    ]

    app = Starlette(
        routes=routes,
        middleware=[
            Middleware(
                CORSMiddleware,
                allow_origins=config.cors_origins,
                allow_methods=["GET", "POST", "PUT", "PATCH", "DELETE", "OPTIONS"],
                allow_headers=["*"],
            ),
            Middleware(AuthMiddleware),
        ],
        lifespan=lifespan,
    )
    app.state.config = config
    app.state.store = store
    app.state.estimator = estimator
    app.state.auth = AuthService(store)

    return app


def main() -> None:
    """Run the server."""
    config = AppConfig.from_env()
    logging.getLogger().setLevel(config.log_level)
    app = create_app(config)

    logger.info("Starting NutriLog server on %s:%d", config.host, config.port)

    uvicorn.run(app, host=config.host, port=config.port)


if __name__ == "__main__":
    main()
