from fastapi import Request, FastAPI
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.trustedhost import TrustedHostMiddleware
from uvicorn.middleware.proxy_headers import ProxyHeadersMiddleware
from billing_backend.config import COOKIE_SECURE, CORS_ORIGINS, ALLOWED_HOSTS

"""
Middlewares transverses de l’application.
- register_basic_middlewares: CORS, TrustedHost et confiance en X-Forwarded-*.
- register_security_middleware: en-têtes de sécurité sur toutes les réponses JSON.
- register_no_cache_middleware: empêche la mise en cache des réponses /api/ (soldes, historique).
Notes:
- L’authentification est portée par un jeton Bearer (pas de cookie de session): pas de CSRF à vérifier.
- Le webhook Stripe reste public; son authenticité repose sur la signature.
"""
def register_basic_middlewares(app: FastAPI) -> None:
    """
    Ajoute les middlewares « de base »:
    - CORSMiddleware: autorise les origines définies (dev/prod).
    - TrustedHostMiddleware: limite les hôtes acceptés (défense host header).
    - ProxyHeadersMiddleware: fait confiance aux en-têtes du proxy (x-forwarded-*).
    """
    app.add_middleware(
        CORSMiddleware,
        allow_origins=CORS_ORIGINS,
        allow_credentials=False,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=["Authorization", "Content-Type", "Stripe-Signature"],
    )
    app.add_middleware(
        TrustedHostMiddleware,
        allowed_hosts=ALLOWED_HOSTS + ["*"] if "*" in CORS_ORIGINS else ALLOWED_HOSTS,
    )
    # Fait confiance aux en-têtes X-Forwarded-* (Render, Nginx, etc.)
    app.add_middleware(ProxyHeadersMiddleware, trusted_hosts=["*"])

def register_security_middleware(app: FastAPI) -> None:
    """
    En-têtes: X-Frame-Options, X-Content-Type-Options, Referrer-Policy, HSTS (si secure).
    CSP minimale: l'API ne sert aucun contenu HTML hormis la doc Swagger.
    """
    @app.middleware("http")
    async def security_headers(request: Request, call_next):
        response = await call_next(request)
        if "X-Frame-Options" not in response.headers:
            response.headers["X-Frame-Options"] = "DENY"
        if "X-Content-Type-Options" not in response.headers:
            response.headers["X-Content-Type-Options"] = "nosniff"
        if "Referrer-Policy" not in response.headers:
            response.headers["Referrer-Policy"] = "no-referrer"
        if COOKIE_SECURE and "Strict-Transport-Security" not in response.headers:
            response.headers["Strict-Transport-Security"] = "max-age=63072000; includeSubDomains; preload"
        if request.url.path.startswith("/api/"):
            response.headers["Content-Security-Policy"] = "default-src 'none'; frame-ancestors 'none'"
        return response

def register_no_cache_middleware(app: FastAPI) -> None:
    """
    Empêche la mise en cache des réponses de l'API (portefeuille, historique des paiements).
    """
    @app.middleware("http")
    async def no_cache_for_api(request: Request, call_next):
        response = await call_next(request)
        if request.url.path.startswith("/api/"):
            response.headers["Cache-Control"] = "no-store, no-cache, must-revalidate, max-age=0"
            response.headers["Pragma"] = "no-cache"
            response.headers["Expires"] = "0"
        return response
