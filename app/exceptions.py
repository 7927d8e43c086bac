"""
eShop Scraper - Custom Exceptions
"""
import structlog

logger = structlog.get_logger('exceptions')


class ScraperAppException(Exception):
    """Base exception for the eShop scraper"""
    def __init__(self, message: str, code: str = "SCRAPER_ERROR"):
        self.message = message
        self.code = code
        super().__init__(message)

    def to_dict(self):
        return {
            'error': True,
            'code': self.code,
            'message': self.message
        }


class ConnectivityException(ScraperAppException):
    """Queue store or relational store unreachable"""
    def __init__(self, message: str):
        super().__init__(message, code="CONNECTIVITY_ERROR")
        logger.error(f"Connectivity error: {message}")


class QueueStoreException(ScraperAppException):
    """Key-value queue store errors"""
    def __init__(self, message: str):
        super().__init__(message, code="QUEUE_STORE_ERROR")
        logger.error(f"Queue store error: {message}")


class ScrapeException(ScraperAppException):
    """Fetching or extracting a storefront page failed"""
    def __init__(self, message: str, code: str = "SCRAPE_ERROR"):
        super().__init__(message, code=code)
        logger.warning(f"Scrape error: {message}")


class BlockedException(ScrapeException):
    """Storefront answered with a block or captcha page"""
    def __init__(self, message: str = "Page access blocked"):
        super().__init__(message, code="BLOCKED")



class ValidationException(ScraperAppException):
    """Validation-related exceptions"""
    def __init__(self, message: str):
        super().__init__(message, code="VALIDATION_ERROR")
        logger.warning(f"Validation error: {message}")
