# SPDX-License-Identifier: MIT
# Copyright (c) 2025 Copilot-for-Consensus contributors

"""Error-reporting wrapper around the identity/storage/analytics backend."""

from typing import Any, Mapping, Protocol

from .aggregator import ErrorAggregator
from .logger import Logger


class BackendClient(Protocol):
    """Operations of the external backend that can fail."""

    def sign_out(self) -> None: ...

    def delete_account(self) -> None: ...

    def log_event(self, name: str, parameters: Mapping[str, Any] | None = None) -> None: ...

    def upload_file(self, path: str, data: bytes, content_type: str | None = None) -> str: ...

    def delete_file(self, path: str) -> None: ...


class BackendService:
    """Surfaces every backend failure to the error aggregator.

    Failures are reported as storage errors and re-raised to the caller,
    except analytics logging which is best-effort: its failures are
    reported but never propagated.
    """

    def __init__(self, client: BackendClient, aggregator: ErrorAggregator, logger: Logger | None = None):
        """Initialize the backend service.

        Args:
            client: Backend client performing the actual calls
            aggregator: Aggregator receiving failure reports
            logger: Logger for success messages (defaults to the aggregator's)
        """
        self.client = client
        self.aggregator = aggregator
        self.logger = logger or aggregator.logger

    def sign_out(self) -> None:
        try:
            self.client.sign_out()
        except Exception as e:
            self.aggregator.report_storage_error(e, operation="sign_out")
            raise
        self.logger.info("User signed out")

    def delete_account(self) -> None:
        try:
            self.client.delete_account()
        except Exception as e:
            self.aggregator.report_storage_error(e, operation="delete_account")
            raise
        self.logger.info("User account deleted")

    def log_event(self, name: str, parameters: Mapping[str, Any] | None = None) -> None:
        """Log an analytics event. Failures are reported, never raised."""
        try:
            self.client.log_event(name, parameters)
        except Exception as e:
            self.aggregator.report_storage_error(
                e,
                operation="log_event",
                metadata={"event": name},
            )
            return
        self.logger.debug("Analytics event logged", event=name)

    def upload_file(self, path: str, data: bytes, content_type: str | None = None) -> str:
        """Upload a file and return its download URL."""
        try:
            url = self.client.upload_file(path, data, content_type)
        except Exception as e:
            self.aggregator.report_storage_error(
                e,
                operation="upload_file",
                metadata={"path": path, "contentType": content_type, "size": len(data)},
            )
            raise
        self.logger.info("File uploaded", path=path)
        return url

    def delete_file(self, path: str) -> None:
        try:
            self.client.delete_file(path)
        except Exception as e:
            self.aggregator.report_storage_error(e, operation="delete_file", metadata={"path": path})
            raise
        self.logger.info("File deleted", path=path)
