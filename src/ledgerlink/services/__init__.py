"""Application services: connection lifecycle, syncs and transaction edits."""

from .connections import ConnectionService
from .factory import Services, build_services
from .transactions import TransactionService

__all__ = ["ConnectionService", "Services", "TransactionService", "build_services"]
