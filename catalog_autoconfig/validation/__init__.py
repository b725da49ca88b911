"""Live validation of provider configs."""

from catalog_autoconfig.validation.config_validator import (
    DEFAULT_TEST_QUERIES,
    ConfigValidator,
    ValidationStage,
)

__all__ = ["ConfigValidator", "DEFAULT_TEST_QUERIES", "ValidationStage"]
