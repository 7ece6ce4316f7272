from bookledger.routers import items, purchases, reports, students

__all__ = ["items", "purchases", "reports", "students"]
