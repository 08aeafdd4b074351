# src/router/routers.py

from fastapi import FastAPI
from src.modules.charges.charges_controller import router as charges_router
from src.modules.encounter_charges.encounter_charges_controller import router as encounter_charges_router
from src.modules.receipts.receipts_controller import router as receipts_router
from src.modules.deposits.deposits_controller import router as deposits_router
from src.modules.hmo.hmo_controller import router as hmo_router
from src.modules.invoices.invoices_controller import router as invoices_router
from src.modules.claims.claims_controller import router as claims_router
from src.modules.reports.reports_controller import router as reports_router

def include_routers(app: FastAPI) -> None:
    """Include all API routers in the FastAPI application."""
    app.include_router(charges_router)
    app.include_router(encounter_charges_router)
    app.include_router(receipts_router)
    app.include_router(deposits_router)
    app.include_router(hmo_router)
    app.include_router(invoices_router)
    app.include_router(claims_router)
    app.include_router(reports_router)
