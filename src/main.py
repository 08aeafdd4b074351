# src/main.py

from contextlib import asynccontextmanager
from fastapi import FastAPI
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import HTMLResponse
from src.common.database.database import connect_to_db, close_db_connection
from src.common.config import settings
from src.common.utils.logger import configure_logging
from src.router.routers import include_routers

# Lifespan context manager for startup and shutdown events
@asynccontextmanager
async def lifespan(app: FastAPI):
    configure_logging()
    await connect_to_db()
    yield
    await close_db_connection()

# Initialize FastAPI app with lifespan manager
app = FastAPI(
    title="Hospital Billing API",
    description="Encounter billing, payments, HMO claims and revenue reconciliation",
    version="1.0.0",
    lifespan=lifespan
)

# Middleware for CORS using allowed origins from settings
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.ALLOWED_ORIGINS,
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Include routers from a separate file
include_routers(app)

ENDPOINTS = [
    ("POST", "/encounter-charges", "Add a charge to an encounter"),
    ("POST", "/receipts/encounter", "Collect payment and issue a receipt"),
    ("POST", "/receipts/{id}/reverse", "Reverse a payment"),
    ("POST", "/receipts/validate", "Validate a receipt for a department"),
    ("POST", "/claims/generate/{encounter_id}", "Generate an HMO claim"),
    ("PUT", "/claims/{id}/status", "Move a claim through its lifecycle"),
    ("PUT", "/invoices/{id}/pay", "Pay an invoice"),
    ("GET", "/hmos/{id}/statement", "HMO account statement"),
    ("GET", "/reports/revenue", "Cash-basis revenue report"),
    ("GET", "/reports/dashboard-stats", "Dashboard statistics"),
]

# Root endpoint
@app.get("/", response_class=HTMLResponse)
async def root():
    rows = "\n".join(
        f'            <div class="endpoint"><span class="method">{method}</span>'
        f'<span class="endpoint-path">{path}</span>'
        f'<span class="endpoint-desc">{desc}</span></div>'
        for method, path, desc in ENDPOINTS
    )
    html_content = f"""<!DOCTYPE html>
<html lang="en">
<head>
    <meta charset="UTF-8">
    <title>Hospital Billing API</title>
    <style>
        body {{ font-family: system-ui, sans-serif; background: #0a0a0f; color: #e5e5e5; }}
        .container {{ max-width: 900px; margin: 0 auto; padding: 2rem; }}
        .endpoint {{ display: flex; gap: 1rem; padding: 0.5rem 0; border-bottom: 1px solid #222; }}
        .method {{ width: 4rem; font-weight: 600; color: #818cf8; }}
        .endpoint-path {{ width: 22rem; font-family: monospace; }}
        .endpoint-desc {{ color: #a3a3a3; }}
    </style>
</head>
<body>
    <div class="container">
        <h1>Hospital Billing API</h1>
        <p>Environment: {settings.APP_ENV} &middot; Currency: {settings.CURRENCY} &middot; <a href="/docs">API docs</a></p>
        <div class="endpoints">
{rows}
        </div>
    </div>
</body>
</html>"""
    return HTMLResponse(content=html_content)
