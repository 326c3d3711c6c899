"""
Recommendations sample workflow.

The steps the sample app runs against the recommendations service:

1) Create a model
2) Upload catalog and usage data, trigger a build and wait for it
3) Set the build as the active build of the model
4) Request item-to-item and user-to-item recommendations
5) Optionally score a batch of items through blob storage
"""

import logging
import os
import threading
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple, Union

from api_clients.blob_client import BlobHelper
from api_clients.recommendations_client import RecommendationsClient, build_description
from api_clients.schemas import (
    BatchJobsRequestInfo,
    BuildType,
    JobInfo,
    RecommendedItemSetInfoList,
    StorageBlobInfo
)
from reco_sample.config import BATCH_CONFIG, MODEL_CONFIG, POLLING_CONFIG, RECOMMENDATION_CONFIG

logger = logging.getLogger(__name__)


def create_model(client: RecommendationsClient, model_name: str, description: str = MODEL_CONFIG["description"]) -> str:
    """
    Create a model and return its ID.

    Args:
        client: Recommendations API client
        model_name: Name of the new model
        description: Description stored with the model
    """
    logger.info(f"Creating a new model {model_name}...")
    model_info = client.create_model(model_name, description)
    logger.info(f"Model '{model_name}' created with ID: {model_info.id}")
    return model_info.id


def upload_data(
    client: RecommendationsClient,
    model_id: str,
    resources_dir: Union[str, Path] = MODEL_CONFIG["resources_dir"]
) -> Tuple[int, int]:
    """
    Upload every catalog file, then every usage file, found in resources_dir.

    Returns:
        Tuple of (catalog_files_count, usage_files_count)
    """
    resources_dir = Path(resources_dir)

    logger.info("Importing catalog files...")
    catalog_files_count = 0
    for catalog in sorted(resources_dir.glob(MODEL_CONFIG["catalog_pattern"])):
        client.upload_catalog(model_id, str(catalog), catalog.name)
        catalog_files_count += 1
    logger.info(f"Imported {catalog_files_count} catalog files.")

    logger.info("Importing usage files...")
    usage_files_count = 0
    for usage in sorted(resources_dir.glob(MODEL_CONFIG["usage_pattern"])):
        client.upload_usage(model_id, str(usage), usage.name)
        usage_files_count += 1
    logger.info(f"Imported {usage_files_count} usage files.")

    return catalog_files_count, usage_files_count


def upload_data_and_train_model(
    client: RecommendationsClient,
    model_id: str,
    build_type: BuildType = BuildType.RECOMMENDATION,
    resources_dir: Union[str, Path] = MODEL_CONFIG["resources_dir"],
    polling: Optional[Dict[str, Any]] = None,
    propagation_delay: float = MODEL_CONFIG["propagation_delay_seconds"],
    cancel_event: Optional[threading.Event] = None,
    sleep: Callable[[float], None] = time.sleep
) -> Optional[int]:
    """
    Upload catalog and usage data, train a build and make it the active build.

    Args:
        client: Recommendations API client
        model_id: ID of the model
        build_type: Recommendation or frequently-bought-together build
        resources_dir: Directory holding catalog*.csv and usage*.csv files
        polling: Overrides for POLLING_CONFIG (timeout, initial_interval, max_interval)
        propagation_delay: Seconds to wait after the build before activating it
        cancel_event: Event that stops the build monitoring when set
        sleep: Sleep function used for the propagation delay

    Returns:
        The build ID, or None if the build did not succeed

    Raises:
        OperationTimeoutError: If the build does not finish in time
        OperationCancelledError: If cancel_event is set while waiting
    """
    upload_data(client, model_id, resources_dir)

    logger.info(f"Triggering build for model '{model_id}'. This will take a few minutes...")
    description = build_description(build_type)
    enable_insights = MODEL_CONFIG["enable_model_insights"]
    if build_type == BuildType.RECOMMENDATION:
        build_id, operation_location = client.create_recommendations_build(
            model_id, description, enable_model_insights=enable_insights
        )
    else:
        build_id, operation_location = client.create_fbt_build(
            model_id, description, enable_model_insights=enable_insights
        )

    logger.info(f"Monitoring build {build_id}")
    polling = {**POLLING_CONFIG, **(polling or {})}
    build_info = client.wait_for_operation_completion(
        client.get_operation_id(operation_location),
        cancel_event=cancel_event,
        **polling
    )
    logger.info(f"Build {build_id} ended with status {build_info.status}.")

    if not build_info.succeeded:
        logger.error(f"Build {build_id} did not end successfully, the sample app will stop here.")
        if build_info.message:
            logger.error(build_info.message)
        return None

    logger.info(f"Waiting for {propagation_delay:.0f} sec for propagation of the built model...")
    sleep(propagation_delay)

    # A model's first build is already active; this matters once a model has several builds.
    logger.info(f"Setting build {build_id} as active build.")
    client.set_active_build(model_id, build_id)

    return build_id


def print_recommendations(item_sets: RecommendedItemSetInfoList) -> int:
    """
    Print each recommended item with the rating of its set.

    Returns:
        Number of items printed
    """
    if not item_sets.recommended_items:
        print("No recommendations found.")
        return 0

    count = 0
    for reco_set in item_sets.recommended_items:
        for item in reco_set.items:
            print(f"Item id: {item.id}\n Item name: {item.name}\t(Rating {reco_set.rating})")
            count += 1
    return count


def get_recommendations_single_request(
    client: RecommendationsClient,
    model_id: str,
    build_id: int,
    item_ids: str = RECOMMENDATION_CONFIG["item_ids"],
    user_id: str = RECOMMENDATION_CONFIG["user_id"],
    number_of_results: int = RECOMMENDATION_CONFIG["number_of_results"]
) -> None:
    """Request and print item-to-item, then user-to-item recommendations."""
    print()
    print(f"Getting Item to Item {item_ids}")
    item_sets = client.get_recommendations(model_id, build_id, item_ids, number_of_results)
    print_recommendations(item_sets)

    print()
    print(f"Getting User Recommendations for User: {user_id}")
    item_sets = client.get_user_recommendations(model_id, build_id, user_id, number_of_results)
    print_recommendations(item_sets)


def build_batch_request(
    blob_helper: BlobHelper,
    model_id: str,
    build_id: int,
    batch_config: Optional[Dict[str, Any]] = None
) -> BatchJobsRequestInfo:
    """Describe a batch job reading and writing the configured blobs."""
    batch_config = {**BATCH_CONFIG, **(batch_config or {})}
    container = blob_helper.container_name

    def blob_info(file_name: str) -> StorageBlobInfo:
        return StorageBlobInfo(
            base_location=blob_helper.base_location,
            relative_location=f"{container}/{file_name}",
            sas_blob_token=blob_helper.generate_blob_sas_token(container, file_name)
        )

    return BatchJobsRequestInfo(
        input=blob_info(batch_config["input_file"]),
        output=blob_info(batch_config["output_file"]),
        error=blob_info(batch_config["error_file"]),
        job=JobInfo(
            api_name=batch_config["api_name"],
            model_id=model_id,
            build_id=build_id,
            number_of_results=batch_config["number_of_results"],
            include_metadata=batch_config["include_metadata"],
            minimal_score=batch_config["minimal_score"]
        )
    )


def get_recommendations_batch(
    client: RecommendationsClient,
    blob_helper: BlobHelper,
    model_id: str,
    build_id: int,
    resources_dir: Union[str, Path] = MODEL_CONFIG["resources_dir"],
    batch_config: Optional[Dict[str, Any]] = None,
    polling: Optional[Dict[str, Any]] = None,
    cancel_event: Optional[threading.Event] = None
) -> Optional[str]:
    """
    Score a batch of item-to-item requests through blob storage.

    The input file is copied from resources_dir to the container, the job is
    submitted and monitored, and its output is copied back to resources_dir.

    Returns:
        Path of the downloaded output file, or None if the job did not succeed
    """
    batch_config = {**BATCH_CONFIG, **(batch_config or {})}
    container = blob_helper.container_name
    input_path = os.path.join(resources_dir, batch_config["input_file"])

    with open(input_path, "r", encoding="utf-8") as f:
        blob_helper.put_block_blob(container, batch_config["input_file"], f.read())

    request = build_batch_request(blob_helper, model_id, build_id, batch_config)
    job_id, operation_location = client.start_batch_job(request)

    logger.info(f"Monitoring batch job {job_id}")
    polling = {**POLLING_CONFIG, **(polling or {})}
    batch_info = client.wait_for_operation_completion(
        client.get_operation_id(operation_location),
        cancel_event=cancel_event,
        **polling
    )
    logger.info(f"Batch {job_id} ended with status {batch_info.status}.")

    if not batch_info.succeeded:
        logger.error(f"Batch job {job_id} did not end successfully, the sample app will stop here.")
        return None

    output_path = os.path.join(resources_dir, batch_config["output_file"])
    blob_helper.download_blob_to_file(container, batch_config["output_file"], output_path)
    logger.info(f"The output of the batch job has been saved to: {output_path}")
    return output_path
