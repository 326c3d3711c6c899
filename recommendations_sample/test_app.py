import logging
from unittest.mock import MagicMock

import pytest
import requests

from api_clients.config_validation import ValidationError
from api_clients.credential_store import CredentialStore, RecommendationsCredentialManager
from reco_sample import app


@pytest.fixture
def credential_manager(tmp_path, monkeypatch):
    for name in ["RECOMMENDATIONS_API_KEY", "RECOMMENDATIONS_SAMPLE_KEY", "BLOB_ACCOUNT_NAME",
                 "BLOB_ACCOUNT_KEY", "BLOB_CONTAINER"]:
        monkeypatch.delenv(name, raising=False)
    return RecommendationsCredentialManager(CredentialStore(config_dir=str(tmp_path), use_encryption=False))


@pytest.fixture
def client(monkeypatch):
    client = MagicMock()
    client_cls = MagicMock()
    client_cls.return_value.__enter__.return_value = client
    monkeypatch.setattr(app, "RecommendationsClient", client_cls)
    return client


@pytest.fixture
def steps(monkeypatch):
    mocks = {
        "create_model": MagicMock(return_value="m-1"),
        "upload_data_and_train_model": MagicMock(return_value=1651),
        "get_recommendations_single_request": MagicMock(),
        "get_recommendations_batch": MagicMock(return_value="out.json"),
    }
    for name, mock in mocks.items():
        monkeypatch.setattr(app, name, mock)
    return mocks


def test_full_run(client, steps, credential_manager):
    args = app.parse_args(["--api-key", "secret", "--no-prompt"])

    assert app.run(args, credential_manager) == 0

    steps["create_model"].assert_called_once_with(client, "MyNewModel")
    steps["upload_data_and_train_model"].assert_called_once()
    steps["get_recommendations_single_request"].assert_called_once_with(client, "m-1", 1651)
    steps["get_recommendations_batch"].assert_not_called()
    client.delete_model.assert_not_called()


def test_existing_model_and_build_skip_training(client, steps, credential_manager):
    args = app.parse_args(["--api-key", "secret", "--model-id", "m-9", "--build-id", "42", "--no-prompt"])

    assert app.run(args, credential_manager) == 0

    steps["create_model"].assert_not_called()
    steps["upload_data_and_train_model"].assert_not_called()
    steps["get_recommendations_single_request"].assert_called_once_with(client, "m-9", 42)


def test_failed_build_stops_before_recommendations(client, steps, credential_manager):
    steps["upload_data_and_train_model"].return_value = None
    args = app.parse_args(["--api-key", "secret", "--build-type", "fbt", "--no-prompt"])

    assert app.run(args, credential_manager) == 1

    assert steps["upload_data_and_train_model"].call_args.kwargs["build_type"] == app.BuildType.FBT
    steps["get_recommendations_single_request"].assert_not_called()


def test_delete_model_runs_even_on_error(client, steps, credential_manager):
    steps["get_recommendations_single_request"].side_effect = RuntimeError("boom")
    args = app.parse_args(["--api-key", "secret", "--delete-model", "--no-prompt"])

    with pytest.raises(RuntimeError):
        app.run(args, credential_manager)

    client.delete_model.assert_called_once_with("m-1")


def test_batch_requires_valid_storage_settings(client, steps, credential_manager):
    args = app.parse_args(["--api-key", "secret", "--batch", "--no-prompt"])

    with pytest.raises(ValidationError):
        app.run(args, credential_manager)

    steps["get_recommendations_batch"].assert_not_called()


def test_batch_run(client, steps, credential_manager, monkeypatch):
    credential_manager.save_blob_credentials("account", "a2V5", "batch")
    blob_helper = MagicMock()
    blob_helper_cls = MagicMock(return_value=blob_helper)
    monkeypatch.setattr(app, "BlobHelper", blob_helper_cls)
    args = app.parse_args(["--api-key", "secret", "--batch", "--no-prompt"])

    assert app.run(args, credential_manager) == 0

    assert blob_helper_cls.call_args.kwargs["container_name"] == "batch"
    assert steps["get_recommendations_batch"].call_args.args[:4] == (client, blob_helper, "m-1", 1651)


def test_invalid_base_url_is_rejected(client, steps, credential_manager):
    args = app.parse_args(["--api-key", "secret", "--base-url", "http://insecure.test", "--no-prompt"])

    with pytest.raises(Exception, match="https"):
        app.run(args, credential_manager)

    steps["create_model"].assert_not_called()


def test_api_key_from_environment(credential_manager, monkeypatch):
    monkeypatch.setenv("RECOMMENDATIONS_API_KEY", "from-env")
    args = app.parse_args(["--no-prompt"])

    assert app.resolve_api_key(args, credential_manager) == "from-env"


def test_missing_api_key_without_prompt(credential_manager):
    args = app.parse_args(["--no-prompt"])

    with pytest.raises(ValueError):
        app.resolve_api_key(args, credential_manager)


def test_prompted_api_key_is_stored(credential_manager, monkeypatch):
    monkeypatch.setattr(app.getpass, "getpass", lambda prompt: " typed-key ")
    args = app.parse_args([])

    assert app.resolve_api_key(args, credential_manager) == "typed-key"
    assert credential_manager.get_api_key() == "typed-key"


def test_main_reports_errors_and_waits_for_acknowledgment(monkeypatch, caplog):
    monkeypatch.setattr(app, "setup_logging", MagicMock())
    monkeypatch.setattr(app, "run", MagicMock(side_effect=RuntimeError("service unavailable")))
    prompt = MagicMock(return_value="")
    monkeypatch.setattr("builtins.input", prompt)

    with caplog.at_level(logging.ERROR):
        assert app.main([]) == 1

    assert "Error encountered:" in caplog.text
    assert "service unavailable" in caplog.text
    prompt.assert_called_once()


def test_main_without_prompt(monkeypatch):
    monkeypatch.setattr(app, "setup_logging", MagicMock())
    monkeypatch.setattr(app, "run", MagicMock(return_value=0))
    prompt = MagicMock()
    monkeypatch.setattr("builtins.input", prompt)

    assert app.main(["--no-prompt"]) == 0
    prompt.assert_not_called()


def test_base_url_from_environment(monkeypatch):
    monkeypatch.setenv("RECOMMENDATIONS_BASE_URL", "https://eastus.example.test/recommendations/v4.0")

    assert app.parse_args(["--no-prompt"]).base_url == "https://eastus.example.test/recommendations/v4.0"


def test_base_url_flag_overrides_environment(monkeypatch):
    monkeypatch.setenv("RECOMMENDATIONS_BASE_URL", "https://eastus.example.test/recommendations/v4.0")

    args = app.parse_args(["--base-url", "https://westeurope.example.test/v4.0"])

    assert args.base_url == "https://westeurope.example.test/v4.0"


def test_failed_delete_keeps_workflow_error(client, steps, credential_manager, caplog):
    steps["get_recommendations_single_request"].side_effect = RuntimeError("boom")
    client.delete_model.side_effect = requests.exceptions.ConnectionError("offline")
    args = app.parse_args(["--api-key", "secret", "--delete-model", "--no-prompt"])

    with caplog.at_level(logging.WARNING):
        with pytest.raises(RuntimeError, match="boom"):
            app.run(args, credential_manager)

    assert "Could not delete model m-1" in caplog.text


def test_main_reports_logging_setup_errors(monkeypatch, caplog):
    monkeypatch.setattr(app, "setup_logging", MagicMock(side_effect=PermissionError("read-only")))
    run = MagicMock()
    monkeypatch.setattr(app, "run", run)

    with caplog.at_level(logging.ERROR):
        assert app.main(["--no-prompt"]) == 1

    assert "Error encountered:" in caplog.text
    run.assert_not_called()
