import pytest

from modules.core.middleware import redact_path
from modules.downloads.models import generate_token

pytestmark = pytest.mark.unit


class TestSensitiveDataMasking:
    def test_download_token_masked(self):
        from config.settings import mask_sensitive_data

        token = generate_token()
        event_dict = {"event": "test", "detail": f"link {token} opened"}
        result = mask_sensitive_data(None, None, event_dict)
        assert token not in result["detail"]
        assert "***MASKED***" in result["detail"]

    def test_password_masked(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "test", "data": "password='s3cret123'"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "s3cret123" not in result["data"]
        assert "***MASKED***" in result["data"]

    def test_secret_masked(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "test", "header": "secret=whsec_abc123"}
        result = mask_sensitive_data(None, None, event_dict)
        assert "whsec_abc123" not in result["header"]

    def test_non_sensitive_data_unchanged(self):
        from config.settings import mask_sensitive_data

        event_dict = {"event": "order.created", "order_number": "DS26010001"}
        result = mask_sensitive_data(None, None, event_dict)
        assert result["order_number"] == "DS26010001"
        assert result["event"] == "order.created"


class TestRedactPath:
    def test_token_removed_from_download_paths(self):
        token = generate_token()
        assert redact_path(f"/api/v1/downloads/{token}/file/") == (
            "/api/v1/downloads/<redacted>/file/"
        )

    def test_other_paths_untouched(self):
        assert redact_path("/api/v1/products/?page=2") == "/api/v1/products/?page=2"
