#!/usr/bin/env python3
"""
Recommendations sample app.

Shows how to use the recommendations API end to end: creates a model, uploads
catalog and usage data, trains a build, and requests item and user
recommendations. Batch scoring through blob storage runs with --batch.

Before you run the app, get a subscription key for the recommendations
service and set RECOMMENDATIONS_API_KEY (or pass --api-key). To train a model
with your own data, replace the catalog*.csv and usage*.csv files in the
resources directory or point --resources-dir at your own.
"""

import argparse
import getpass
import logging
import os
import sys

import requests

from api_clients.blob_client import BlobHelper
from api_clients.config_validation import validate_blob_config, validate_client_config, validate_polling_config
from api_clients.credential_store import RecommendationsCredentialManager
from api_clients.recommendations_client import RecommendationsClient
from api_clients.schemas import BuildType
from reco_sample.config import API_CONFIG, BATCH_CONFIG, MODEL_CONFIG, POLLING_CONFIG
from reco_sample.utils.logging_config import setup_logging
from reco_sample.workflow import (
    create_model,
    get_recommendations_batch,
    get_recommendations_single_request,
    upload_data_and_train_model
)

logger = logging.getLogger(__name__)


def parse_args(argv=None):
    """Parse command line arguments."""
    parser = argparse.ArgumentParser(description="Train a recommendations model and request recommendations")
    parser.add_argument("--api-key", help="Recommendations API key (default: environment or credential store)")
    parser.add_argument("--base-url", default=os.environ.get("RECOMMENDATIONS_BASE_URL", API_CONFIG["base_url"]),
                        help="Base URL of the recommendations API (default: %(default)s, from RECOMMENDATIONS_BASE_URL when set)")
    parser.add_argument("--model-name", default=MODEL_CONFIG["model_name"], help="Name of the model to create")
    parser.add_argument("--model-id", help="Use an existing model instead of creating one")
    parser.add_argument("--build-id", type=int, help="Use an existing build instead of training one")
    parser.add_argument("--build-type", choices=[t.value for t in BuildType], default=BuildType.RECOMMENDATION.value,
                        help="Type of build to train (default: recommendation)")
    parser.add_argument("--resources-dir", default=str(MODEL_CONFIG["resources_dir"]),
                        help="Directory holding catalog*.csv, usage*.csv and the batch input")
    parser.add_argument("--batch", action="store_true", help="Also score a batch of items through blob storage")
    parser.add_argument("--delete-model", action="store_true", help="Delete the model when done")
    parser.add_argument("--timeout", type=float, default=POLLING_CONFIG["timeout"],
                        help="Seconds to wait for a build or batch job (default: %(default)s)")
    parser.add_argument("--no-prompt", action="store_true", help="Do not wait for a key press before exiting")
    parser.add_argument("--log-level", default="INFO", choices=["DEBUG", "INFO", "WARNING", "ERROR"],
                        help="Logging level (default: INFO)")
    return parser.parse_args(argv)


def resolve_api_key(args, credential_manager: RecommendationsCredentialManager) -> str:
    """Return the API key from the command line, environment or store, prompting as a last resort."""
    if args.api_key:
        return args.api_key

    try:
        return credential_manager.get_api_key()
    except ValueError:
        if args.no_prompt:
            raise

    print("In order to use this sample, you need an account key for the recommendations service.")
    print("Please enter your recommendations API account key:")
    api_key = getpass.getpass("API key: ").strip()
    if not api_key:
        raise ValueError("No API key entered")

    credential_manager.save_api_key(api_key)
    return api_key


def make_blob_helper(credential_manager: RecommendationsCredentialManager) -> BlobHelper:
    """Build the blob helper for batch scoring from stored or environment credentials."""
    config = validate_blob_config(credential_manager.get_blob_credentials())
    return BlobHelper(
        account_name=config["account_name"],
        account_key=config["account_key"],
        container_name=config["container_name"],
        sas_ttl_hours=BATCH_CONFIG["sas_ttl_hours"]
    )


def run(args, credential_manager: RecommendationsCredentialManager = None) -> int:
    """
    Run the sample workflow.

    Returns:
        Process exit status
    """
    credential_manager = credential_manager or RecommendationsCredentialManager()

    client_config = validate_client_config({
        "api_key": resolve_api_key(args, credential_manager),
        "base_url": args.base_url,
        "timeout": API_CONFIG["timeout"],
        "max_retries": API_CONFIG["max_retries"]
    })
    polling = validate_polling_config({**POLLING_CONFIG, "timeout": args.timeout})

    with RecommendationsClient(**client_config) as client:
        model_id = args.model_id or create_model(client, args.model_name)
        try:
            build_id = args.build_id
            if build_id is None:
                build_id = upload_data_and_train_model(
                    client,
                    model_id,
                    build_type=BuildType(args.build_type),
                    resources_dir=args.resources_dir,
                    polling=polling
                )
                if build_id is None:
                    return 1

            get_recommendations_single_request(client, model_id, build_id)

            if args.batch:
                blob_helper = make_blob_helper(credential_manager)
                output_path = get_recommendations_batch(
                    client,
                    blob_helper,
                    model_id,
                    build_id,
                    resources_dir=args.resources_dir,
                    polling=polling
                )
                if output_path is None:
                    return 1
        finally:
            # An account holds a limited number of models.
            if args.delete_model:
                try:
                    client.delete_model(model_id)
                except requests.exceptions.RequestException as e:
                    logger.warning(f"Could not delete model {model_id}: {str(e)}")

    return 0


def main(argv=None) -> int:
    """Main function."""
    args = parse_args(argv)

    try:
        setup_logging(level=getattr(logging, args.log_level))
        status = run(args)
    except Exception as e:
        logger.error("Error encountered:")
        logger.error(str(e))
        status = 1

    if not args.no_prompt:
        input("Press Enter to end")
    return status


if __name__ == "__main__":
    sys.exit(main())
