"""
Recommendations API Client

This module provides a client for the hosted recommendations service: it
manages models, uploads catalog and usage data, triggers builds and batch
scoring jobs, monitors their operations and requests recommendations.
"""

import logging
import os
import threading
from datetime import datetime, timezone
from typing import Any, Callable, Dict, Optional, Tuple
from urllib.parse import urlparse

from pydantic import ValidationError as SchemaValidationError

from .base import BaseAPIClient
from .polling import wait_for_operation
from .schemas import (
    BatchJobsRequestInfo,
    BuildRequestInfo,
    BuildType,
    CatalogImportStats,
    ModelInfo,
    OperationInfo,
    RecommendedItemSetInfoList,
    UsageImportStats
)

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://westus.api.cognitive.microsoft.com/recommendations/v4.0"


class RecommendationsClient(BaseAPIClient):
    """
    Client for interacting with the recommendations REST API.

    Every call is authenticated with the account's subscription key. Calls that
    start asynchronous work return the operation location so the caller can
    monitor it with wait_for_operation_completion().
    """

    def __init__(
        self,
        api_key: str,
        base_url: str = DEFAULT_BASE_URL,
        timeout: int = 30,
        max_retries: int = 3
    ):
        """
        Initialize the recommendations API client.

        Args:
            api_key: Subscription key of the recommendations account
            base_url: Base URL for the API (depends on the data center)
            timeout: Request timeout in seconds
            max_retries: Maximum number of retries for failed requests
        """
        if not api_key:
            raise ValueError("API key is required")

        super().__init__(
            base_url=base_url,
            timeout=timeout,
            max_retries=max_retries,
            headers={"Ocp-Apim-Subscription-Key": api_key}
        )
        self.api_key = api_key

    @staticmethod
    def get_operation_id(operation_location: Optional[str]) -> str:
        """
        Extract the operation ID from an Operation-Location header.

        Args:
            operation_location: Header value, e.g. ".../operations/1234"

        Returns:
            The last path segment of the location

        Raises:
            ValueError: If the header is missing or has no path segment
        """
        if not operation_location:
            raise ValueError("Operation-Location header is missing")

        path = urlparse(operation_location).path.rstrip("/")
        operation_id = path.rsplit("/", 1)[-1]
        if not operation_id:
            raise ValueError(f"Invalid Operation-Location header: {operation_location}")
        return operation_id

    def create_model(self, model_name: str, description: str = "") -> ModelInfo:
        """
        Create a new model.

        Args:
            model_name: Name of the model
            description: Free-form description of the model

        Returns:
            ModelInfo of the created model

        Raises:
            requests.exceptions.RequestException: If the request fails
            ValueError: If the response is invalid
        """
        response = self.post(
            endpoint="/models",
            json={"modelName": model_name, "description": description}
        )
        return self._parse(ModelInfo, response.json())

    def delete_model(self, model_id: str) -> None:
        """
        Delete a model together with its data and builds.

        Raises:
            requests.exceptions.RequestException: If the request fails
        """
        self.delete(endpoint=f"/models/{model_id}")
        logger.info(f"Deleted model {model_id}")

    def upload_catalog(self, model_id: str, catalog_path: str, display_name: Optional[str] = None) -> CatalogImportStats:
        """
        Upload a catalog file to a model.

        Args:
            model_id: ID of the model
            catalog_path: Path to the catalog CSV file
            display_name: Name shown for the file on the service (defaults to the file name)

        Returns:
            Import statistics reported by the service
        """
        stats = self._upload(model_id, "catalog", catalog_path, display_name)
        result = self._parse(CatalogImportStats, stats)
        logger.info(
            f"Catalog {display_name or os.path.basename(catalog_path)}: "
            f"{result.imported_line_count} lines imported, {result.error_line_count} errors"
        )
        return result

    def upload_usage(self, model_id: str, usage_path: str, display_name: Optional[str] = None) -> UsageImportStats:
        """
        Upload a usage file to a model.

        Args:
            model_id: ID of the model
            usage_path: Path to the usage CSV file
            display_name: Name shown for the file on the service (defaults to the file name)

        Returns:
            Import statistics reported by the service
        """
        stats = self._upload(model_id, "usage", usage_path, display_name)
        result = self._parse(UsageImportStats, stats)
        logger.info(
            f"Usage {display_name or os.path.basename(usage_path)}: "
            f"{result.processed_line_count} lines processed, {result.error_line_count} errors"
        )
        return result

    def create_build(
        self,
        model_id: str,
        description: str,
        build_type: BuildType = BuildType.RECOMMENDATION,
        enable_model_insights: bool = False
    ) -> Tuple[int, str]:
        """
        Trigger a build of a model.

        Args:
            model_id: ID of the model
            description: Description of the build
            build_type: Recommendation or frequently-bought-together build
            enable_model_insights: Whether the service computes model metrics

        Returns:
            Tuple of (build_id, operation_location)

        Raises:
            requests.exceptions.RequestException: If the request fails
            ValueError: If the response carries no build ID or operation location
        """
        request = BuildRequestInfo(
            description=description,
            build_type=build_type,
            enable_model_insights=enable_model_insights
        )
        response = self.post(endpoint=f"/models/{model_id}/builds", json=request.to_payload())

        operation_location = response.headers.get("Operation-Location")
        self.get_operation_id(operation_location)

        body = response.json()
        if "buildId" not in body:
            raise ValueError(f"Invalid create build response: {body}")

        return int(body["buildId"]), operation_location

    def create_recommendations_build(self, model_id: str, description: str, enable_model_insights: bool = False) -> Tuple[int, str]:
        """Trigger a recommendation build. See create_build()."""
        return self.create_build(model_id, description, BuildType.RECOMMENDATION, enable_model_insights)

    def create_fbt_build(self, model_id: str, description: str, enable_model_insights: bool = False) -> Tuple[int, str]:
        """Trigger a frequently-bought-together build. See create_build()."""
        return self.create_build(model_id, description, BuildType.FBT, enable_model_insights)

    def get_operation(self, operation_id: str) -> OperationInfo:
        """
        Get the status of an asynchronous operation.

        Raises:
            requests.exceptions.RequestException: If the request fails
            ValueError: If the response is invalid
        """
        response = self.get(endpoint=f"/operations/{operation_id}")
        return self._parse(OperationInfo, response.json())

    def wait_for_operation_completion(
        self,
        operation_id: str,
        timeout: float = 3600,
        initial_interval: float = 5,
        max_interval: float = 60,
        cancel_event: Optional[threading.Event] = None,
        sleep: Optional[Callable[[float], None]] = None
    ) -> OperationInfo:
        """
        Block until an operation reaches a terminal status.

        See polling.wait_for_operation() for the back-off, timeout and
        cancellation behavior.
        """
        return wait_for_operation(
            lambda: self.get_operation(operation_id),
            timeout=timeout,
            initial_interval=initial_interval,
            max_interval=max_interval,
            cancel_event=cancel_event,
            sleep=sleep
        )

    def set_active_build(self, model_id: str, build_id: int) -> None:
        """
        Mark a build as the one serving recommendations for a model.

        Raises:
            requests.exceptions.RequestException: If the request fails
        """
        self.patch(endpoint=f"/models/{model_id}", json={"activeBuildId": build_id})

    def get_recommendations(
        self,
        model_id: str,
        build_id: int,
        item_ids: str,
        number_of_results: int,
        minimal_score: float = 0
    ) -> RecommendedItemSetInfoList:
        """
        Get item-to-item recommendations.

        Args:
            model_id: ID of the model
            build_id: ID of the build to score with
            item_ids: Comma-separated IDs of the seed items
            number_of_results: Maximum number of recommendations
            minimal_score: Minimum score of returned items

        Returns:
            The recommended item sets
        """
        response = self.get(
            endpoint=f"/models/{model_id}/recommend/item",
            params={
                "itemIds": item_ids,
                "numberOfResults": number_of_results,
                "minimalScore": minimal_score,
                "buildId": build_id
            }
        )
        return self._parse(RecommendedItemSetInfoList, response.json())

    def get_user_recommendations(
        self,
        model_id: str,
        build_id: int,
        user_id: str,
        number_of_results: int
    ) -> RecommendedItemSetInfoList:
        """
        Get user-to-item recommendations based on the user's usage history.

        Args:
            model_id: ID of the model
            build_id: ID of the build to score with
            user_id: ID of the user
            number_of_results: Maximum number of recommendations

        Returns:
            The recommended item sets
        """
        response = self.get(
            endpoint=f"/models/{model_id}/recommend/user",
            params={
                "userId": user_id,
                "numberOfResults": number_of_results,
                "buildId": build_id
            }
        )
        return self._parse(RecommendedItemSetInfoList, response.json())

    def start_batch_job(self, request: BatchJobsRequestInfo) -> Tuple[str, str]:
        """
        Submit a batch scoring job.

        Args:
            request: Blob locations and scoring parameters of the job

        Returns:
            Tuple of (job_id, operation_location). The job is identified by its operation ID.

        Raises:
            requests.exceptions.RequestException: If the request fails
            ValueError: If the response carries no operation location
        """
        response = self.post(endpoint="/batchjobs", json=request.to_payload())
        operation_location = response.headers.get("Operation-Location")
        job_id = self.get_operation_id(operation_location)
        return job_id, operation_location

    def _upload(self, model_id: str, kind: str, path: str, display_name: Optional[str]) -> Dict[str, Any]:
        if display_name is None:
            display_name = os.path.basename(path)

        with open(path, "rb") as f:
            content = f.read()

        response = self.post(
            endpoint=f"/models/{model_id}/{kind}",
            params={f"{kind}DisplayName": display_name},
            data=content,
            headers={"Content-Type": "application/octet-stream"}
        )
        return response.json()

    def _parse(self, schema, payload: Dict[str, Any]):
        try:
            return schema.model_validate(payload)
        except SchemaValidationError as e:
            logger.error(f"Error validating {schema.__name__} response: {str(e)}")
            raise ValueError(f"Invalid {schema.__name__} response: {str(e)}")


def build_description(build_type: BuildType, when: Optional[datetime] = None) -> str:
    """Describe a build the way the sample names them, stamped with UTC time."""
    when = when or datetime.now(timezone.utc)
    stamp = when.strftime("%Y%m%d%H%M%S")
    if build_type == BuildType.FBT:
        return f"Frequenty-Bought-Together Build {stamp}"
    return f"Recommendation Build {stamp}"
