import logging

import pytest
import structlog

pytestmark = pytest.mark.unit


def _rendered(caplog) -> str:
    return "\n".join(record.getMessage() for record in caplog.records)


class TestStructuredLogging:
    def test_correlation_id_in_logs(self, client, caplog):
        custom_id = "log-test-correlation-456"
        with caplog.at_level(logging.INFO):
            client.get("/health", HTTP_X_REQUEST_ID=custom_id)
        assert custom_id in _rendered(caplog), (
            f"correlation_id '{custom_id}' not found in log records: {_rendered(caplog)}"
        )

    def test_webhook_signature_never_logged(self, client, caplog):
        signature = "deadbeef" * 8
        with caplog.at_level(logging.INFO):
            client.post(
                "/api/v1/payments/webhook/",
                data=b'{"event": "payment.captured"}',
                content_type="application/json",
                HTTP_X_RAZORPAY_SIGNATURE=signature,
            )
        output = _rendered(caplog)
        assert "payment.webhook_rejected" in output
        assert signature not in output

    def test_sensitive_kwargs_masked_through_structlog(self, caplog):
        logger = structlog.get_logger("modules.payments.services")
        with caplog.at_level(logging.INFO):
            logger.info("payment.debug", key_secret="rzp-secret-value", card="4111 1111 1111 1111")
        output = _rendered(caplog)
        assert "rzp-secret-value" not in output
        assert "4111 1111 1111 1111" not in output
        assert "***MASKED***" in output
