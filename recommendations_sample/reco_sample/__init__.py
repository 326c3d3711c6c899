# Recommendations sample app
# Version: 0.1.0

from reco_sample.workflow import (
    create_model,
    upload_data_and_train_model,
    get_recommendations_single_request,
    get_recommendations_batch
)

__all__ = [
    'create_model',
    'upload_data_and_train_model',
    'get_recommendations_single_request',
    'get_recommendations_batch'
]
