"""Centralized logging configuration for LedgerLink.

Standard usage:
    ```python
    import logging
    from ledgerlink.logging import setup_logging

    # Configure once at application startup
    setup_logging()

    # Get loggers in each module
    logger = logging.getLogger(__name__)
    ```
"""

from .config import setup_logging

__all__ = ["setup_logging"]
