"""
FastAPI dependencies: the core components live on app.state, built once by create_app.
"""
from fastapi import Request

from bookledger.services import CatalogService, ReportEngine, TransactionManager
from bookledger.utils.pdf_reports import PDFReportGenerator


def get_transactions(request: Request) -> TransactionManager:
    return request.app.state.services.transactions


def get_catalog(request: Request) -> CatalogService:
    return request.app.state.services.catalog


def get_reports(request: Request) -> ReportEngine:
    return request.app.state.services.reports


def get_pdf_generator(request: Request) -> PDFReportGenerator:
    return request.app.state.pdf_generator
