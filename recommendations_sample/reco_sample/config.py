"""
Configuration settings for the recommendations sample app.
"""

from api_clients.recommendations_client import DEFAULT_BASE_URL
from reco_sample.utils.constants import RESOURCES_DIR

# Remote service
API_CONFIG = {
    "base_url": DEFAULT_BASE_URL,
    "timeout": 30,
    "max_retries": 3
}

# Model and build
MODEL_CONFIG = {
    "model_name": "MyNewModel",
    "description": "MSStore",
    "enable_model_insights": False,
    "propagation_delay_seconds": 40,   # Time for a new build to reach the scoring nodes
    "catalog_pattern": "catalog*.csv",
    "usage_pattern": "usage*.csv",
    "resources_dir": RESOURCES_DIR
}

# Operation polling
POLLING_CONFIG = {
    "timeout": 3600,
    "initial_interval": 5,
    "max_interval": 60
}

# Single requests
RECOMMENDATION_CONFIG = {
    "item_ids": "5C5-00025",
    "user_id": "0003BFFDC7118D12",
    "number_of_results": 6
}

# Batch scoring
BATCH_CONFIG = {
    "input_file": "batchInput.json",
    "output_file": "batchOutput.json",
    "error_file": "batchError.json",
    "api_name": "ItemRecommend",        # Only ItemRecommend is supported by the service
    "number_of_results": 10,
    "include_metadata": False,
    "minimal_score": 0,
    "sas_ttl_hours": 24
}
