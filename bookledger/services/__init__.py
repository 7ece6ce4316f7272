from sqlalchemy.orm import sessionmaker

from bookledger.config import Settings
from bookledger.crud.unit_of_work import unit_of_work_factory
from bookledger.services.catalog import CatalogService
from bookledger.services.identifiers import DatabaseSequence, IdentifierGenerator, LocalSequence
from bookledger.services.reports import LOW_STOCK_THRESHOLD, ReportEngine
from bookledger.services.transactions import TransactionManager


class Services:
    """The core components wired to one session factory."""

    def __init__(self, session_factory: sessionmaker, settings: Settings):
        uow_factory = unit_of_work_factory(session_factory)
        if settings.IDENTIFIER_SOURCE == "local":
            source = LocalSequence()
        else:
            source = DatabaseSequence(uow_factory)
        self.identifiers = IdentifierGenerator(source, receipt_prefix=settings.RECEIPT_PREFIX)
        self.transactions = TransactionManager(uow_factory, self.identifiers)
        self.catalog = CatalogService(
            uow_factory, self.identifiers, student_code_prefix=settings.STUDENT_CODE_PREFIX
        )
        self.reports = ReportEngine(uow_factory)


__all__ = [
    "CatalogService",
    "DatabaseSequence",
    "IdentifierGenerator",
    "LOW_STOCK_THRESHOLD",
    "LocalSequence",
    "ReportEngine",
    "Services",
    "TransactionManager",
]
