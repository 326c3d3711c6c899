from unittest.mock import MagicMock

import pytest
import requests

from api_clients.recommendations_client import RecommendationsClient, build_description
from api_clients.schemas import BuildType, OperationInfo

BASE_URL = "https://example.test/recommendations/v4.0"


def make_response(payload=None, headers=None, status_code=200):
    response = MagicMock()
    response.status_code = status_code
    response.json.return_value = payload if payload is not None else {}
    response.headers = headers or {}
    return response


@pytest.fixture
def client():
    client = RecommendationsClient(api_key="secret", base_url=BASE_URL)
    client.session = MagicMock()
    return client


def sent(client, index=-1):
    return client.session.request.call_args_list[index].kwargs


def test_requires_api_key():
    with pytest.raises(ValueError):
        RecommendationsClient(api_key="")


def test_subscription_key_header_is_set():
    with RecommendationsClient(api_key="secret", base_url=BASE_URL) as client:
        assert client.session.headers["Ocp-Apim-Subscription-Key"] == "secret"


@pytest.mark.parametrize("location, expected", [
    ("https://example.test/recommendations/v4.0/operations/1234", "1234"),
    ("https://example.test/recommendations/v4.0/operations/1234/", "1234"),
    ("https://example.test/operations/abc?api-version=4", "abc"),
])
def test_get_operation_id(location, expected):
    assert RecommendationsClient.get_operation_id(location) == expected


@pytest.mark.parametrize("location", [None, "", "https://example.test/"])
def test_get_operation_id_rejects_missing_location(location):
    with pytest.raises(ValueError):
        RecommendationsClient.get_operation_id(location)


def test_create_model(client):
    client.session.request.return_value = make_response({"id": "m-1", "name": "MyNewModel"})

    model = client.create_model("MyNewModel", "MSStore")

    assert model.id == "m-1"
    kwargs = sent(client)
    assert kwargs["method"] == "POST"
    assert kwargs["url"] == f"{BASE_URL}/models"
    assert kwargs["json"] == {"modelName": "MyNewModel", "description": "MSStore"}


def test_create_model_rejects_invalid_response(client):
    client.session.request.return_value = make_response({"name": "no id"})

    with pytest.raises(ValueError):
        client.create_model("MyNewModel")


def test_upload_catalog_sends_file_content(client, tmp_path):
    catalog = tmp_path / "catalog.csv"
    catalog.write_bytes(b"5C5-00025,Word 2013,Office Products\n")
    client.session.request.return_value = make_response(
        {"processedLineCount": 1, "importedLineCount": 1, "errorLineCount": 0}
    )

    stats = client.upload_catalog("m-1", str(catalog))

    assert stats.imported_line_count == 1
    kwargs = sent(client)
    assert kwargs["url"] == f"{BASE_URL}/models/m-1/catalog"
    assert kwargs["params"] == {"catalogDisplayName": "catalog.csv"}
    assert kwargs["data"] == catalog.read_bytes()
    assert kwargs["headers"]["Content-Type"] == "application/octet-stream"


def test_upload_usage_uses_display_name(client, tmp_path):
    usage = tmp_path / "usage.csv"
    usage.write_text("u1,5C5-00025,2015/06/20T19:00:41\n")
    client.session.request.return_value = make_response({"processedLineCount": 1, "fileId": "f-1"})

    stats = client.upload_usage("m-1", str(usage), "my usage")

    assert stats.file_id == "f-1"
    assert sent(client)["params"] == {"usageDisplayName": "my usage"}


def test_create_fbt_build(client):
    location = f"{BASE_URL}/operations/op-7"
    client.session.request.return_value = make_response({"buildId": 1651}, {"Operation-Location": location})

    build_id, operation_location = client.create_fbt_build("m-1", "FBT build")

    assert build_id == 1651
    assert operation_location == location
    body = sent(client)["json"]
    assert body["buildType"] == "fbt"
    assert body["buildParameters"] == {"fbt": {"enableModelingInsights": False}}


def test_create_build_without_operation_location_fails(client):
    client.session.request.return_value = make_response({"buildId": 1651})

    with pytest.raises(ValueError):
        client.create_recommendations_build("m-1", "build")


def test_get_operation(client):
    client.session.request.return_value = make_response(
        {"type": "BuildModel", "status": "Running", "percentComplete": 40}
    )

    operation = client.get_operation("op-7")

    assert sent(client)["url"] == f"{BASE_URL}/operations/op-7"
    assert operation.status == "Running"
    assert operation.percent_complete == 40
    assert not operation.is_terminal


def test_wait_for_operation_completion_polls_until_done(client):
    client.session.request.side_effect = [
        make_response({"status": "NotStarted"}),
        make_response({"status": "Running"}),
        make_response({"status": "Succeeded", "result": {"id": 1651}}),
    ]
    sleep = MagicMock()

    operation = client.wait_for_operation_completion("op-7", sleep=sleep)

    assert operation.succeeded
    assert client.session.request.call_count == 3
    assert sleep.call_count == 2


def test_set_active_build(client):
    client.set_active_build("m-1", 1651)

    kwargs = sent(client)
    assert kwargs["method"] == "PATCH"
    assert kwargs["url"] == f"{BASE_URL}/models/m-1"
    assert kwargs["json"] == {"activeBuildId": 1651}


def test_get_recommendations(client):
    client.session.request.return_value = make_response({
        "recommendedItems": [
            {"items": [{"id": "AAA-04294", "name": "OneNote 2013"}], "rating": 0.8, "reasoning": ["People also like"]}
        ]
    })

    item_sets = client.get_recommendations("m-1", 1651, "5C5-00025", 6)

    assert item_sets.recommended_items[0].items[0].name == "OneNote 2013"
    assert sent(client)["params"] == {
        "itemIds": "5C5-00025",
        "numberOfResults": 6,
        "minimalScore": 0,
        "buildId": 1651
    }


def test_get_user_recommendations_empty(client):
    client.session.request.return_value = make_response({})

    item_sets = client.get_user_recommendations("m-1", 1651, "0003BFFDC7118D12", 6)

    assert item_sets.recommended_items is None
    kwargs = sent(client)
    assert kwargs["url"] == f"{BASE_URL}/models/m-1/recommend/user"
    assert kwargs["params"]["userId"] == "0003BFFDC7118D12"


def test_delete_model(client):
    client.delete_model("m-1")

    kwargs = sent(client)
    assert kwargs["method"] == "DELETE"
    assert kwargs["url"] == f"{BASE_URL}/models/m-1"


def test_http_errors_are_not_retried(client):
    response = make_response()
    response.raise_for_status.side_effect = requests.exceptions.HTTPError("404 Client Error")
    client.session.request.return_value = response

    with pytest.raises(requests.exceptions.HTTPError):
        client.get_operation("missing")

    assert client.session.request.call_count == 1


def test_build_description():
    from datetime import datetime, timezone

    when = datetime(2016, 3, 1, 12, 30, 5, tzinfo=timezone.utc)
    assert build_description(BuildType.RECOMMENDATION, when) == "Recommendation Build 20160301123005"
    assert build_description(BuildType.FBT, when) == "Frequenty-Bought-Together Build 20160301123005"


def test_operation_status_is_case_insensitive():
    assert OperationInfo(status="succeeded").succeeded
    assert OperationInfo(status="FAILED").is_terminal
    assert not OperationInfo(status="Failed").succeeded
